'''SMTP AUTH strategies.

An Auth drives one SASL exchange: start() picks the mechanism and the
optional initial response, then next() is called with every decoded server
challenge (more=True, after a 334 reply) and once more with the final
success text (more=False, after 235). Returning None from next() ends the
exchange.
'''
from __future__ import annotations

# stdlib imports:
from abc import ABCMeta, abstractmethod
from dataclasses import dataclass, field
import hmac
from typing import List, Optional as Opt, Tuple

# local imports:
from .errors import AuthenticationError

LOCALHOST = frozenset([ 'localhost', '127.0.0.1', '::1' ])

@dataclass
class ServerInfo:
	name: str
	tls: bool
	auth: List[str] = field( default_factory = list )

	def advertises( self, mechanism: str ) -> bool:
		return mechanism.upper() in ( m.upper() for m in self.auth )

class Auth( metaclass = ABCMeta ):
	@abstractmethod
	def start( self, server: ServerInfo ) -> Tuple[str,Opt[bytes]]:
		cls = type( self )
		raise NotImplementedError( f'{cls.__module__}.{cls.__qualname__}.start()' )

	@abstractmethod
	def next( self, challenge: bytes, more: bool ) -> Opt[bytes]:
		cls = type( self )
		raise NotImplementedError( f'{cls.__module__}.{cls.__qualname__}.next()' )

class PlainAuth( Auth ):
	"""PLAIN (RFC 4616).

	The credentials travel in clear text, so they are only sent over TLS or to
	localhost, and only to the host the strategy was created for.
	"""
	def __init__( self, identity: str, username: str, password: str, host: str ) -> None:
		self.identity = identity
		self.username = username
		self.password = password
		self.host = host

	def start( self, server: ServerInfo ) -> Tuple[str,Opt[bytes]]:
		if not server.tls and server.name not in LOCALHOST:
			raise AuthenticationError( 'unencrypted connection' )
		if server.name != self.host:
			raise AuthenticationError( 'wrong host name' )
		resp = '\0'.join([ self.identity, self.username, self.password ])
		return 'PLAIN', resp.encode( 'utf-8' )

	def next( self, challenge: bytes, more: bool ) -> Opt[bytes]:
		if more:
			raise AuthenticationError( 'unexpected server challenge' )
		return None

	def __repr__( self ) -> str:
		return f'{type(self).__qualname__}({self.identity!r}, {self.username!r}, <password>, {self.host!r})'

class LoginAuth( Auth ):
	"""LOGIN, the non-standard mechanism still required by some servers (Office 365...).

	Over a plain connection it is only used when the server advertises it.
	"""
	def __init__( self, username: str, password: str, host: str ) -> None:
		self.username = username
		self.password = password
		self.host = host

	def start( self, server: ServerInfo ) -> Tuple[str,Opt[bytes]]:
		if not server.tls and not server.advertises( 'LOGIN' ):
			raise AuthenticationError( 'unencrypted connection' )
		if server.name != self.host:
			raise AuthenticationError( 'wrong host name' )
		return 'LOGIN', None

	def next( self, challenge: bytes, more: bool ) -> Opt[bytes]:
		if not more:
			return None
		prompt = challenge.decode( 'utf-8', 'replace' ).strip().rstrip( ':' ).lower()
		if prompt == 'username':
			return self.username.encode( 'utf-8' )
		if prompt == 'password':
			return self.password.encode( 'utf-8' )
		raise AuthenticationError( f'unexpected server challenge: {prompt}' )

	def __repr__( self ) -> str:
		return f'{type(self).__qualname__}({self.username!r}, <password>, {self.host!r})'

class CramMD5Auth( Auth ):
	"""CRAM-MD5 (RFC 2195): the secret never leaves the client."""
	def __init__( self, username: str, secret: str ) -> None:
		self.username = username
		self.secret = secret

	def start( self, server: ServerInfo ) -> Tuple[str,Opt[bytes]]:
		return 'CRAM-MD5', None

	def next( self, challenge: bytes, more: bool ) -> Opt[bytes]:
		if not more:
			return None
		digest = hmac.new( self.secret.encode( 'utf-8' ), challenge, digestmod = 'md5' ).hexdigest()
		return f'{self.username} {digest}'.encode( 'utf-8' )

	def __repr__( self ) -> str:
		return f'{type(self).__qualname__}({self.username!r}, <secret>)'
