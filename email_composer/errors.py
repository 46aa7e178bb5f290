'''Exception hierarchy shared by the message and transport layers.

Every error raised by this package derives from MailError. The second level
tells the caller what kind of failure happened and therefore whether it makes
sense to try again:

	ConfigurationError   the message or the settings are unusable; fix and resend
	AddressParseError    a From/Sender/To/Cc/Bcc value can't be parsed
	SerializationError   a content producer failed while rendering
	TransportError       dial, TLS, timeout or a dropped connection
	ProtocolError        the server answered with an unexpected reply code
	AuthenticationError  the server (or the client side strategy) refused to log in

The SMTP client in smtplib2 keeps the classic smtplib exception names but
mixes these categories into them.
'''

class MailError( Exception ):
	"""Base class for all exceptions raised by this package."""

class ConfigurationError( MailError ):
	pass

class MissingFromError( ConfigurationError ):
	def __init__( self ) -> None:
		super().__init__( 'invalid message, "From" field is absent' )

class NoRecipientsError( ConfigurationError ):
	def __init__( self ) -> None:
		super().__init__( 'invalid message, no "To", "Cc" or "Bcc" recipient' )

class AddressParseError( MailError ):
	pass

class MalformedAddressError( AddressParseError ):
	def __init__( self, field: str, value: str, reason: str = 'malformed address' ) -> None:
		self.field = field
		self.value = value
		super().__init__( f'{field}: {reason}: {value!r}' )

class SerializationError( MailError ):
	pass

class TransportError( MailError ):
	pass

class ProtocolError( MailError ):
	pass

class AuthenticationError( MailError ):
	pass

class SendError( MailError ):
	"""A message out of a batch couldn't be sent.

	`index` is 1-based. Messages before it were delivered, and so may have been
	some of this message's Bcc transmissions: the error only describes the first
	transmission that failed.
	"""
	def __init__( self, index: int, error: BaseException ) -> None:
		self.index = index
		self.error = error
		super().__init__( f'could not send email {index}: {error}' )
