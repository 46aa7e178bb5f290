'''Compose MIME email messages and deliver them over SMTP.

	>>> from email_composer import Dialer, DialerConfig, Message
	>>> m = Message()
	>>> m.set_header( 'From', 'alex@example.com' )
	>>> m.set_header( 'To', 'bob@example.com', 'cora@example.com' )
	>>> m.set_address_header( 'Cc', 'dan@example.com', 'Dan' )
	>>> m.set_header( 'Subject', 'Hello!' )
	>>> m.set_body( 'text/html', 'Hello <b>Bob</b> and <i>Cora</i>!' )
	>>> m.attach( '/home/alex/lolcat.jpg' ) # doctest: +SKIP
	>>> d = Dialer( DialerConfig( 'smtp.example.com', 587, 'user', '123456' ))
	>>> d.dial_and_send( m ) # doctest: +SKIP
'''

from .auth import Auth, CramMD5Auth, LoginAuth, PlainAuth, ServerInfo
from .content import BytesSource, ContentSource, FileSource, StreamSource, TemplateSource
from .dialer import Dialer, DialerConfig, SMTPSender
from .errors import (
	AddressParseError, AuthenticationError, ConfigurationError, MailError,
	MalformedAddressError, MissingFromError, NoRecipientsError, ProtocolError,
	SendError, SerializationError, TransportError,
)
from .linewriter import Encoding
from .message import File, Message, MessageSettings, Part
from .recipients import Recipients, resolve_recipients, resolve_sender
from .sender import SendCloser, Sender, SendFunc, Transmission, send, send_message

__version__ = '1.0.0'
