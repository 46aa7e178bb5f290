from __future__ import annotations

'''SMTP/ESMTP client class.

This should follow RFC 5321 (SMTP), RFC 1869 (ESMTP), RFC 4954 (SMTP
Authentication) and RFC 3207 (Secure SMTP over TLS).

Unlike the standard library's smtplib, the client is handed an already
connected socket (dialing and SSL are the Dialer's business), the AUTH
exchange is driven by a pluggable Auth strategy, and DATA returns a writer
so a message can be streamed to the server while it is being rendered.

Notes:

Please remember, when doing ESMTP, that the names of the SMTP service
extensions are NOT the same thing as the option keywords for the RCPT
and MAIL commands!

Example:

  >>> import socket
  >>> from email_composer import smtplib2
  >>> s = smtplib2.SMTP ( socket.create_connection ( ( 'localhost', 25 ) ), 'localhost' )
  >>> s.extension ( 'AUTH' )
  (True, 'PLAIN LOGIN')
  >>> s.mail ( 'me@my.org' )
  >>> s.rcpt ( 'you@your.org' )
  >>> w = s.data()
  >>> w.write ( b'Subject: hi\\r\\n\\r\\nhello\\r\\n' )
  >>> w.close()
  (250, '2.0.0 Ok: queued as 4C1D2E')
  >>> s.quit()
'''

# Author: The Dragon De Monsyne <dragondm@integral.org>
# ESMTP support, test code and doc fixes added by
#     Eric S. Raymond <esr@thyrsus.com>
# Better RFC 821 compliance (MAIL and RCPT, and CRLF in data)
#     by Carey Evans <c.evans@clear.net.nz>, for picky mail servers.
# RFC 2554 (authentication) support by Gerhard Haering <gerhard@bigfoot.de>.
#
# This was modified from the Python 1.5 library HTTP lib.
#
# This was further modified to remove set_debuglevel and replace it with the logging module

# stdlib imports:
import base64
import email.utils
import logging
import re
import socket
import ssl
from typing import BinaryIO, Callable, Dict, List, Optional as Opt, Tuple

# local imports:
from .auth import Auth, ServerInfo
from .errors import AuthenticationError, MailError, ProtocolError, TransportError

__all__ = [
	'SMTPException', 'SMTPServerDisconnected', 'SMTPTLSError', 'SMTPResponseException',
	'SMTPSenderRefused', 'SMTPRecipientsRefused', 'SMTPDataError',
	'SMTPConnectError', 'SMTPHeloError', 'SMTPAuthenticationError',
	'quoteaddr', 'wrap_tls', 'SMTP', 'DataWriter',
]

logger = logging.getLogger ( __name__ )

CRLF = b'\r\n'
_MAXLINE = 8192 # more than 8 times larger than RFC 821, 4.5.3
DATA_CHUNK = 64 * 1024

OLDSTYLE_AUTH = re.compile ( r'auth=(.*)', re.I )

TLS_UPGRADE = Callable[[socket.socket,ssl.SSLContext,str],socket.socket]


# Exception classes used by this module.
class SMTPException ( MailError ):
	"""Base class for all exceptions raised by this module."""

class SMTPServerDisconnected ( SMTPException, TransportError ):
	"""Not connected to any SMTP server.

	This exception is raised when the server unexpectedly disconnects,
	when a read or write on the socket fails or times out, or when an
	attempt is made to use the SMTP instance after it was closed.
	"""

class SMTPTLSError ( SMTPException, TransportError ):
	"""The TLS handshake after STARTTLS failed."""

class SMTPResponseException ( SMTPException, ProtocolError ):
	"""Base class for all exceptions that include an SMTP error code.

	These exceptions are generated in some instances when the SMTP
	server returns an error code.  The error code is stored in the
	`smtp_code' attribute of the error, and the `smtp_error' attribute
	is set to the error message.
	"""

	def __init__( self, code: int, msg: str ) -> None:
		self.smtp_code = code
		self.smtp_error = msg
		self.args = code, msg

class SMTPSenderRefused ( SMTPResponseException ):
	"""Sender address refused.

	In addition to the attributes set by on all SMTPResponseException
	exceptions, this sets `sender' to the string that the SMTP refused.
	"""

	def __init__ ( self, code: int, msg: str, sender: str ) -> None:
		self.smtp_code = code
		self.smtp_error = msg
		self.sender = sender
		self.args = code, msg, sender

class SMTPRecipientsRefused ( SMTPException, ProtocolError ):
	"""Recipient address refused.

	The error for each refused recipient is accessible through the attribute
	'recipients', a dictionary mapping the address to the SMTP error code
	and the accompanying error message.
	"""

	def __init__ ( self, recipients: Dict[str,Tuple[int,str]] ) -> None:
		self.recipients = recipients
		self.args = ( recipients, )


class SMTPDataError ( SMTPResponseException ):
	"""The SMTP server didn't accept the data."""

class SMTPConnectError ( SMTPResponseException ):
	"""Error during connection establishment."""

class SMTPHeloError ( SMTPResponseException ):
	"""The server refused our HELO reply."""

class SMTPAuthenticationError ( SMTPException, AuthenticationError ):
	"""Authentication error.

	Most probably the server didn't accept the username/password
	combination provided.
	"""

	def __init__( self, code: int, msg: str ) -> None:
		self.smtp_code = code
		self.smtp_error = msg
		self.args = code, msg

def encode_base64 ( b: bytes ) -> bytes:
	encoded = base64.b64encode ( b )
	assert not b'\r' in encoded, f'invalid encoded (CR): {encoded!r}'
	assert not b'\n' in encoded, f'invalid encoded (LF): {encoded!r}'
	return encoded

def quoteaddr ( addr: str ) -> bytes:
	"""Quote a subset of the email addresses defined by RFC 821.

	>>> quoteaddr ( 'Joe <joe@example.com>' )
	b'<joe@example.com>'
	>>> quoteaddr ( '' )
	b'<>'
	"""
	m = email.utils.parseaddr ( addr )[1]
	if not m:
		# the sender wants an empty return address
		return b'<>'
	return f'<{m}>'.encode ( 'utf-8', 'strict' )

# dot-stuffing and bare LF repair for DATA; both patterns look behind so the
# single byte of context carried between writes is never rewritten itself
_r_bare_lf = re.compile ( b'(?<=[^\\r])\\n' )
_r_leading_dot = re.compile ( b'(?<=\\n)\\.' )

def wrap_tls ( sock: socket.socket, context: ssl.SSLContext, host: str ) -> socket.socket:
	log = logger.getChild ( 'wrap_tls' )
	log.info ( 'TLS handshake with %r', host )
	return context.wrap_socket ( sock, server_hostname = host )

class SMTP:
	"""This class manages a connection to an SMTP or ESMTP server.
	SMTP Objects:
		SMTP objects have the following attributes:
			helo_resp
				This is the message given by the server in response to the
				most recent HELO command.

			ehlo_resp
				This is the message given by the server in response to the
				most recent EHLO command. This is usually multiline.

			esmtp_features
				This is a dictionary, which, if the server supports ESMTP,
				will _after you do an EHLO command_, contain the names of the
				SMTP service extensions this server supports, and their
				parameters (if any).

				Note, all extension names are mapped to lower case in the
				dictionary.

			tls
				True once the connection is encrypted, either because the
				socket handed in was already an SSL socket or after STARTTLS.

		The greeting is read when the object is created. EHLO (falling back to
		HELO) is sent lazily by the first command that needs it.
		"""
	file: Opt[BinaryIO] = None
	helo_resp: Opt[str] = None
	ehlo_msg = b'ehlo'
	ehlo_resp: Opt[str] = None

	def __init__ ( self,
		sock: socket.socket,
		host: str,
		*,
		local_hostname: str = 'localhost',
		tls_upgrade: TLS_UPGRADE = wrap_tls,
	) -> None:
		"""Take over a connected socket and read the server's greeting.

		`host' is the server name used to verify certificates and offered to
		Auth strategies. `local_hostname` is the name sent with HELO/EHLO.
		`tls_upgrade` performs the handshake after STARTTLS.

		Raises SMTPConnectError if the greeting isn't a 220.
		"""
		self.sock: Opt[socket.socket] = sock
		self.host = host
		self.local_hostname = local_hostname
		self.tls_upgrade = tls_upgrade
		self.tls = isinstance ( sock, ssl.SSLSocket )
		self.esmtp_features: Dict[str,str] = {}
		code, msg = self.getreply()
		if code != 220:
			self.close()
			raise SMTPConnectError ( code, msg )

	def send ( self, content: bytes, *, sensitive: bool = False ) -> None:
		"""Send `content' to the server."""
		log = logger.getChild ( 'SMTP.send' )
		loglevel = logging.DEBUG if sensitive else logging.INFO
		log.log ( loglevel, 'C>%r', content )
		if self.sock is None:
			raise SMTPServerDisconnected ( 'connection already closed' )
		try:
			self.sock.sendall ( content )
		except OSError as e:
			self.close()
			raise SMTPServerDisconnected ( repr ( e ) ) from e

	def putcmd ( self, cmd: bytes, args: bytes = b'', sensitive: bool = False ) -> None:
		"""Send a command to the server."""
		assert isinstance ( cmd, bytes ), f'expected type(cmd)=bytes but got {cmd!r}'
		if args == b"":
			content = b''.join ( [ cmd, CRLF ] )
		else:
			content = b''.join ( [ cmd, b' ', args, CRLF ] )
		self.send ( content, sensitive = sensitive )

	def getreply ( self ) -> Tuple[int,str]:
		"""Get a reply from the server.

		Returns a tuple consisting of:

		  - server response code (e.g. '250', or such, if all goes well)
			Note: returns -1 if it can't read response code.

		  - server response string corresponding to response code (multiline
			responses are converted to a single, multiline string).

		Raises SMTPServerDisconnected if end-of-file is reached or the read
		fails (timeouts included).
		"""
		log = logger.getChild ( 'SMTP.getreply' )
		resp: List[str] = []
		if self.sock is None:
			raise SMTPServerDisconnected ( 'connection already closed' )
		if self.file is None:
			self.file = self.sock.makefile ( 'rb' )
		while 1:
			try:
				line: str = self.file.readline ( _MAXLINE + 1 ).decode ( 'utf-8', 'replace' )
			except OSError as e:
				self.close()
				raise SMTPServerDisconnected ( f'Connection unexpectedly failed: {e!r}' ) from e
			if not line:
				self.close()
				raise SMTPServerDisconnected ( 'Connection unexpectedly closed' )
			log.info ( 'S>%s', line.rstrip ( '\r\n' ) )
			if len ( line ) > _MAXLINE:
				raise SMTPResponseException ( 500, 'Line too long.' )
			resp.append ( line[4:].strip() )
			code_ = line[:3]
			# Check that the error code is syntactically correct.
			# Don't attempt to read a continuation line if it is broken.
			try:
				code = int ( code_ )
			except ValueError:
				log.warning ( 'server sent invalid code=%r', code_ )
				code = -1
				break
			# Check if multiline response.
			if line[3:4] != '-':
				break

		msg = '\n'.join ( resp )
		log.debug ( 'reply code=%r msg=%r', code, msg ) # this is debug because it's redundant to logging above
		return code, msg

	def docmd ( self, cmd: bytes, args: bytes = b'', *, sensitive: bool = False ) -> Tuple[int,str]:
		"""Send a command, and return its response code."""
		self.putcmd ( cmd, args, sensitive = sensitive )
		return self.getreply()

	# std smtp commands
	def helo ( self, name: str = '' ) -> Tuple[int,str]:
		"""SMTP 'helo' command.
		Hostname to send for this command defaults to local_hostname.
		"""
		self.putcmd ( b'helo', ( name or self.local_hostname ).encode ( 'ascii', 'strict' ) )
		code, msg = self.getreply()
		self.helo_resp = msg
		return code, msg

	def ehlo ( self, name: str = '' ) -> Tuple[int,str]:
		""" SMTP 'ehlo' command.
		Hostname to send for this command defaults to local_hostname.
		"""
		self.esmtp_features = {}
		self.putcmd ( self.ehlo_msg, ( name or self.local_hostname ).encode ( 'ascii', 'strict' ) )
		code, msg = self.getreply()
		# According to RFC1869 some (badly written)
		# MTA's will disconnect on an ehlo. Toss an exception if
		# that happens -ddm
		if code == -1 and len ( msg ) == 0:
			self.close()
			raise SMTPServerDisconnected ( 'Server not connected' )
		self.ehlo_resp = msg
		if code != 250:
			return code, msg
		#parse the ehlo response -ddm
		resp = self.ehlo_resp.split ( '\n' )
		del resp[0]
		for each in resp:
			# To be able to communicate with as many SMTP servers as possible,
			# we have to take the old-style auth advertisement into account,
			# because:
			# 1) Else our SMTP feature parser gets confused.
			# 2) There are some servers that only advertise the auth methods we
			#    support using the old style.
			auth_match = OLDSTYLE_AUTH.match ( each )
			if auth_match:
				# This doesn't remove duplicates, but that's no problem
				auth = self.esmtp_features.get ( 'auth', '' )
				self.esmtp_features['auth'] = f'{auth} {auth_match.group ( 1 )}'
				continue

			# RFC 1869 requires a space between ehlo keyword and parameters.
			# It's actually stricter, in that only spaces are allowed between
			# parameters, but were not going to check for that here.  Note
			# that the space isn't present if there are no parameters.
			m = re.match ( r'(?P<feature>[A-Za-z0-9][A-Za-z0-9\-]*) ?', each )
			if m:
				feature = m.group ( 'feature' ).lower()
				params = m.string[m.end ( 'feature' ):].strip()
				if feature == 'auth':
					esmtp_feature = self.esmtp_features.get ( feature, '' )
					self.esmtp_features[feature] = f'{esmtp_feature} {params}'
				else:
					self.esmtp_features[feature] = params
		return code, msg

	def ehlo_or_helo_if_needed ( self ) -> None:
		"""Call self.ehlo() and/or self.helo() if needed.

		If there has been no previous EHLO or HELO command this session, this
		method tries ESMTP EHLO first.

		This method may raise the following exceptions:

		 SMTPHeloError            The server didn't reply properly to
								  the helo greeting.
		"""
		if self.helo_resp is None and self.ehlo_resp is None:
			if not ( 200 <= self.ehlo()[0] <= 299 ):
				code, resp = self.helo()
				if not ( 200 <= code <= 299 ):
					raise SMTPHeloError ( code, resp )

	def hello ( self, name: str ) -> None:
		"""Greet the server as `name` instead of local_hostname.

		Only valid before any other command was sent.
		"""
		if self.helo_resp is not None or self.ehlo_resp is not None:
			raise SMTPException ( 'hello() called after other commands' )
		self.local_hostname = name
		self.ehlo_or_helo_if_needed()

	def has_extn ( self, opt: str ) -> bool:
		"""Does the server support a given SMTP service extension?"""
		return opt.lower() in self.esmtp_features

	def extension ( self, name: str ) -> Tuple[bool,str]:
		"""Whether the server supports an extension, and its parameters.

		The parameters of AUTH are the advertised mechanisms separated by
		spaces.
		"""
		self.ehlo_or_helo_if_needed()
		if not self.has_extn ( name ):
			return False, ''
		return True, self.esmtp_features[name.lower()].strip()

	def starttls ( self, context: ssl.SSLContext ) -> Tuple[int,str]:
		"""Puts the connection to the SMTP server into TLS mode.

		If there has been no previous EHLO or HELO command this session, this
		method tries ESMTP EHLO first.

		This method may raise the following exceptions:

		 SMTPHeloError            The server didn't reply properly to
								  the helo greeting.
		 SMTPResponseException    The server refused STARTTLS.
		 SMTPTLSError             The handshake failed; the connection is
								  closed.
		"""
		log = logger.getChild ( 'SMTP.starttls' )

		self.ehlo_or_helo_if_needed()
		if not self.has_extn ( 'starttls' ):
			raise SMTPException ( 'STARTTLS extension not supported by server.' )
		resp, reply = self.docmd ( b'STARTTLS' )
		if resp != 220:
			# RFC 3207:
			# 501 Syntax error (no parameters allowed)
			# 454 TLS not available due to temporary reason
			raise SMTPResponseException ( resp, reply )
		assert self.sock is not None
		try:
			sock = self.tls_upgrade ( self.sock, context, self.host )
		except OSError as e:
			log.warning ( 'TLS handshake with %r failed: %r', self.host, e )
			self.close()
			raise SMTPTLSError ( f'TLS handshake failed: {e}' ) from e
		self.sock = sock
		self.file = None
		self.tls = True
		# RFC 3207:
		# The client MUST discard any knowledge obtained from
		# the server, such as the list of SMTP service extensions,
		# which was not obtained from the TLS negotiation itself.
		self.helo_resp = None
		self.ehlo_resp = None
		self.esmtp_features = {}
		return resp, reply

	def auth ( self, a: Auth ) -> None:
		"""Authenticate using the given strategy.

		The strategy sees the server name, whether the connection is
		encrypted and the advertised mechanisms. Each 334 challenge is
		base64-decoded and handed to a.next ( challenge, True ), whose answer
		is sent back encoded; the 235 success text is handed to
		a.next ( text, False ).

		This method may raise the following exceptions:

		 SMTPAuthenticationError  The server rejected the exchange.
		 AuthenticationError      The strategy refused to continue.
		"""
		log = logger.getChild ( 'SMTP.auth' )
		self.ehlo_or_helo_if_needed()
		server = ServerInfo ( self.host, self.tls, self.esmtp_features.get ( 'auth', '' ).split() )
		mechanism, resp = a.start ( server )
		log.info ( 'mechanism=%r', mechanism )
		args = mechanism.encode ( 'ascii', 'strict' )
		if resp:
			args += b' ' + encode_base64 ( resp )
		code, msg = self.docmd ( b'AUTH', args, sensitive = True )
		while True:
			if code == 334:
				try:
					challenge = base64.b64decode ( msg.encode ( 'ascii' ), validate = True )
				except ValueError as e:
					self.docmd ( b'*' )
					raise SMTPAuthenticationError ( code, f'malformed challenge: {msg}' ) from e
			elif code == 235:
				challenge = msg.encode ( 'utf-8' )
			else:
				log.warning ( 'authentication failed: %r %s', code, msg )
				raise SMTPAuthenticationError ( code, msg )
			try:
				answer = a.next ( challenge, code == 334 )
			except AuthenticationError:
				if code == 334:
					# cancel the exchange (RFC 4954, 4)
					self.docmd ( b'*' )
				raise
			if answer is None:
				break
			code, msg = self.docmd ( encode_base64 ( answer ), sensitive = True )

	def mail ( self, sender: str ) -> None:
		"""SMTP 'MAIL' command -- begins mail xfer session.

		BODY=8BITMIME is added when the server supports it.
		"""
		self.ehlo_or_helo_if_needed()
		optionlist = b' BODY=8BITMIME' if self.has_extn ( '8bitmime' ) else b''
		code, resp = self.docmd ( b'MAIL', b''.join ( [ b'FROM:', quoteaddr ( sender ), optionlist ] ) )
		if code != 250:
			raise SMTPSenderRefused ( code, resp, sender )

	def rcpt ( self, recip: str ) -> None:
		"""SMTP 'RCPT' command -- indicates 1 recipient for this mail."""
		code, resp = self.docmd ( b'RCPT', b''.join ( [ b'TO:', quoteaddr ( recip ) ] ) )
		if code not in ( 250, 251 ):
			raise SMTPRecipientsRefused ( { recip: ( code, resp ) } )

	def data ( self ) -> DataWriter:
		"""SMTP 'DATA' command -- returns the writer the message goes into.

		Raises SMTPDataError if there is an unexpected reply to the
		DATA command. The transaction ends when the writer is closed.
		"""
		log = logger.getChild ( 'SMTP.data' )
		code, repl = self.docmd ( b'DATA' )
		if code != 354:
			log.warning ( 'initial response: %r %s', code, repl )
			raise SMTPDataError ( code, repl )
		log.info ( 'initial response: %r %s', code, repl )
		return DataWriter ( self )

	def close ( self ) -> None:
		"""Close the connection to the SMTP server."""
		try:
			file = self.file
			self.file = None
			if file:
				file.close()
		finally:
			sock = self.sock
			self.sock = None
			if sock is not None:
				sock.close()

	def quit ( self ) -> Tuple[int,str]:
		"""Terminate the SMTP session; the connection is closed in any case."""
		try:
			code, resp = self.docmd ( b'QUIT' )
		finally:
			# A new EHLO is required after reconnecting
			self.ehlo_resp = self.helo_resp = None
			self.esmtp_features = {}
			self.close()
		if code != 221:
			raise SMTPResponseException ( code, resp )
		return code, resp

class DataWriter:
	"""Streams message data after DATA.

	Lines starting with '.' are dot-stuffed and bare LFs are turned into CRLF,
	across write() boundaries. close() terminates the data with CRLF '.' CRLF
	and checks the server accepted the message; abort() drops the connection
	instead, so a partially written message is never delivered.
	"""
	def __init__ ( self, smtp: SMTP ) -> None:
		self.smtp = smtp
		self._last = b'\n'
		self._buf = bytearray()
		self.closed = False

	def write ( self, data: bytes ) -> int:
		if self.closed:
			raise SMTPException ( 'write to a closed DataWriter' )
		if not data:
			return 0
		data = bytes ( data )
		buf = _r_bare_lf.sub ( CRLF, self._last + data )
		buf = _r_leading_dot.sub ( b'..', buf )
		self._last = data[-1:]
		self._buf += buf[1:]
		if len ( self._buf ) >= DATA_CHUNK:
			self.flush()
		return len ( data )

	def flush ( self ) -> None:
		if self._buf:
			data = bytes ( self._buf )
			self._buf.clear()
			self.smtp.send ( data, sensitive = True )

	def close ( self ) -> Tuple[int,str]:
		log = logger.getChild ( 'DataWriter.close' )
		if self.closed:
			raise SMTPException ( 'DataWriter already closed' )
		self.closed = True
		if self._last != b'\n':
			self._buf += CRLF
		self._buf += b'.' + CRLF
		self.flush()
		code, resp = self.smtp.getreply()
		loglevel = logging.WARNING if code >= 400 else logging.INFO
		log.log ( loglevel, 'final response: %r %s', code, resp )
		if code != 250:
			raise SMTPDataError ( code, resp )
		return code, resp

	def abort ( self ) -> None:
		log = logger.getChild ( 'DataWriter.abort' )
		log.warning ( 'dropping the connection in the middle of DATA' )
		self.closed = True
		self._buf.clear()
		self.smtp.close()
