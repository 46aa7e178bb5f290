'''SMTP dialer.

Dialer.dial() runs the whole connection sequence and returns an SMTPSender
that can send any number of messages over that connection:

	dial -> [SSL handshake] -> greeting -> [HELO/EHLO local_name]
		-> [STARTTLS when advertised] -> [AUTH] -> ready

Dialing, the TLS handshake and the protocol client are pluggable so tests can
script a server without any network.
'''
from __future__ import annotations

# stdlib imports:
from dataclasses import dataclass
import logging
import socket
import ssl
from typing import Callable, Optional as Opt, Protocol, Sequence as Seq, Tuple

# local imports:
from .auth import Auth, CramMD5Auth, LoginAuth, PlainAuth
from .errors import ConfigurationError, MailError, TransportError
from .message import Message
from .sender import SendCloser, WriterTo, send
from .smtplib2 import DataWriter, SMTP, SMTPServerDisconnected, TLS_UPGRADE, wrap_tls
from .util import coalesce

logger = logging.getLogger( __name__ )

ADDRESS = Tuple[str,int]

class SMTPClient( Protocol ):
	def hello( self, name: str ) -> None: ...
	def extension( self, name: str ) -> Tuple[bool,str]: ...
	def starttls( self, context: ssl.SSLContext ) -> Tuple[int,str]: ...
	def auth( self, a: Auth ) -> None: ...
	def mail( self, sender: str ) -> None: ...
	def rcpt( self, recip: str ) -> None: ...
	def data( self ) -> DataWriter: ...
	def quit( self ) -> Tuple[int,str]: ...
	def close( self ) -> None: ...

NET_DIAL = Callable[[ADDRESS,Opt[float]],socket.socket]
NEW_CLIENT = Callable[[socket.socket,str,TLS_UPGRADE],SMTPClient]

def net_dial( address: ADDRESS, timeout: Opt[float] ) -> socket.socket:
	return socket.create_connection( address, timeout )

def new_client( sock: socket.socket, host: str, tls_upgrade: TLS_UPGRADE ) -> SMTPClient:
	return SMTP( sock, host, tls_upgrade = tls_upgrade )

@dataclass
class DialerConfig:
	host: str
	port: int = 587
	username: str = ''
	password: str = ''
	# explicit strategy; chosen from the advertised mechanisms when None
	auth: Opt[Auth] = None
	# None: SSL on port 465 only
	ssl: Opt[bool] = None
	tls_context: Opt[ssl.SSLContext] = None
	local_name: str = ''
	# seconds, 0 disables
	timeout: float = 10.0
	retry_failure: bool = True
	starttls: bool = True

	def __post_init__( self ) -> None:
		if not self.host:
			raise ConfigurationError( 'SMTP host is required' )
		if not 0 < self.port < 65536:
			raise ConfigurationError( f'invalid SMTP port {self.port!r}' )
		if self.timeout < 0:
			raise ConfigurationError( f'invalid timeout {self.timeout!r}' )

	@property
	def use_ssl( self ) -> bool:
		return bool( coalesce( self.ssl, self.port == 465 ))

	def context( self ) -> ssl.SSLContext:
		return self.tls_context or ssl.create_default_context()

class Dialer:
	def __init__( self,
		config: DialerConfig,
		*,
		net_dial: NET_DIAL = net_dial,
		tls_client: TLS_UPGRADE = wrap_tls,
		new_client: NEW_CLIENT = new_client,
	) -> None:
		self.config = config
		self.net_dial = net_dial
		self.tls_client = tls_client
		self.new_client = new_client

	def _select_auth( self, c: SMTPClient ) -> Opt[Auth]:
		cfg = self.config
		if not cfg.username:
			return None
		ok, params = c.extension( 'AUTH' )
		if not ok:
			return None
		mechanisms = params.upper().split()
		if 'CRAM-MD5' in mechanisms:
			return CramMD5Auth( cfg.username, cfg.password )
		if 'LOGIN' in mechanisms and 'PLAIN' not in mechanisms:
			return LoginAuth( cfg.username, cfg.password, cfg.host )
		return PlainAuth( '', cfg.username, cfg.password, cfg.host )

	def dial( self ) -> SMTPSender:
		"""Connect, secure and authenticate. The returned sender must be closed."""
		log = logger.getChild( 'Dialer.dial' )
		cfg = self.config
		log.info( 'connecting to %s:%d ssl=%r', cfg.host, cfg.port, cfg.use_ssl )
		try:
			sock = self.net_dial( ( cfg.host, cfg.port ), cfg.timeout or None )
		except OSError as e:
			log.warning( 'connecting to %s:%d failed: %r', cfg.host, cfg.port, e )
			raise TransportError( f'could not connect to {cfg.host}:{cfg.port}: {e}' ) from e

		try:
			if cfg.use_ssl:
				sock = self.tls_client( sock, cfg.context(), cfg.host )
			c = self.new_client( sock, cfg.host, self.tls_client )
		except OSError as e:
			sock.close()
			log.warning( 'connection setup with %s failed: %r', cfg.host, e )
			raise TransportError( f'connection setup with {cfg.host} failed: {e}' ) from e
		except Exception:
			sock.close()
			raise

		try:
			if cfg.local_name:
				c.hello( cfg.local_name )
			if cfg.starttls and not cfg.use_ssl:
				ok, _ = c.extension( 'STARTTLS' )
				if ok:
					log.info( 'STARTTLS' )
					c.starttls( cfg.context() )
			a = cfg.auth or self._select_auth( c )
			if a is not None:
				log.info( 'authenticating with %r', a )
				c.auth( a )
		except Exception as e:
			log.warning( 'session setup with %s failed: %r', cfg.host, e )
			c.close()
			raise
		return SMTPSender( self, c )

	def dial_and_send( self, *messages: Message ) -> None:
		"""Open a connection, send the messages and close it again."""
		log = logger.getChild( 'Dialer.dial_and_send' )
		s = self.dial()
		try:
			send( s, *messages )
		except Exception:
			try:
				s.close()
			except MailError as e:
				log.warning( 'closing after a failed send also failed: %r', e )
			raise
		s.close()

class SMTPSender( SendCloser ):
	"""A live SMTP session. Not thread-safe: use one per worker or guard it."""
	def __init__( self, dialer: Dialer, client: SMTPClient ) -> None:
		self.dialer = dialer
		self.client = client

	def _redial( self, error: SMTPServerDisconnected ) -> None:
		log = logger.getChild( 'SMTPSender._redial' )
		log.warning( 'MAIL FROM failed with %r, reconnecting', error )
		self.client.close()
		try:
			fresh = self.dialer.dial()
		except MailError as e:
			log.warning( 'reconnecting failed: %r', e )
			raise error
		self.client = fresh.client

	def send( self, from_: str, to: Seq[str], msg: WriterTo ) -> None:
		try:
			self.client.mail( from_ )
		except SMTPServerDisconnected as e:
			# most likely the server dropped an idle connection
			if not self.dialer.config.retry_failure:
				raise
			self._redial( e )
			self.client.mail( from_ )

		for addr in to:
			self.client.rcpt( addr )

		w = self.client.data()
		try:
			msg.write_to( w )
		except Exception:
			w.abort()
			raise
		w.close()

	def close( self ) -> None:
		self.client.quit()
