# stdlib imports:
from dataclasses import asdict, dataclass, field, fields
import json
import logging
from pathlib import Path
import threading
from typing import Any, Dict, Union

# 3rd-party imports:
from mypy_extensions import TypedDict # pip install mypy_extensions
from typing_extensions import Literal # pip install typing_extensions

# local imports:
from .dialer import Dialer, DialerConfig
from .errors import ConfigurationError
from .linewriter import Encoding
from .message import Message, MessageSettings

logger = logging.getLogger( __name__ )

SMTP_SECURE = Literal['no','starttls','yes']

g_lock = threading.RLock()

class SettingMeta( TypedDict ):
	description: str

@dataclass
class Settings:
	smtp_secure: SMTP_SECURE = field( default = 'starttls', metadata = SettingMeta(
		description = 'SMTP Secure',
	))
	smtp_host: str = field( default = '127.0.0.1', metadata = SettingMeta(
		description = 'SMTP Hostname',
	))
	smtp_port: int = field( default = 0, metadata = SettingMeta(
		description = 'SMTP Port (0: 465 when secure, else 587)',
	))
	smtp_timeout_seconds: int = field( default = 10, metadata = SettingMeta(
		description = 'SMTP Timeout (seconds, 0 disables)',
	))
	smtp_username: str = field( default = '', metadata = SettingMeta(
		description = 'SMTP Username',
	))
	smtp_password: str = field( default = '', metadata = SettingMeta(
		description = 'SMTP Password',
	))
	smtp_local_name: str = field( default = '', metadata = SettingMeta(
		description = 'SMTP HELO Name',
	))
	smtp_retry_failure: bool = field( default = True, metadata = SettingMeta(
		description = 'SMTP Reconnect Once When The Connection Went Stale',
	))
	mail_charset: str = field( default = 'UTF-8', metadata = SettingMeta(
		description = 'Mail Charset',
	))
	mail_encoding: str = field( default = Encoding.QUOTED_PRINTABLE.value, metadata = SettingMeta(
		description = 'Mail Body Encoding (quoted-printable, base64 or 8bit)',
	))

	def __post_init__( self ) -> None:
		if self.smtp_secure not in ( 'no', 'starttls', 'yes' ):
			raise ConfigurationError( f'invalid smtp_secure={self.smtp_secure!r}' )
		if self.mail_encoding not in { e.value for e in Encoding }:
			raise ConfigurationError( f'invalid mail_encoding={self.mail_encoding!r}' )

	@property
	def port( self ) -> int:
		return self.smtp_port or ( 465 if self.smtp_secure == 'yes' else 587 )

	def dialer( self ) -> Dialer:
		return Dialer( DialerConfig(
			host = self.smtp_host,
			port = self.port,
			username = self.smtp_username,
			password = self.smtp_password,
			ssl = self.smtp_secure == 'yes',
			starttls = self.smtp_secure == 'starttls',
			local_name = self.smtp_local_name,
			timeout = float( self.smtp_timeout_seconds ),
			retry_failure = self.smtp_retry_failure,
		))

	def message( self ) -> Message:
		return Message( MessageSettings(
			charset = self.mail_charset,
			encoding = Encoding( self.mail_encoding ),
		))

	@classmethod
	def describe( cls ) -> Dict[str,str]:
		return { fld.name: fld.metadata['description'] for fld in fields( cls ) }

def _from_json( data: Any ) -> Settings:
	if not isinstance( data, dict ):
		raise ConfigurationError( f'expected a JSON object, got {type(data).__name__}' )
	known = { fld.name for fld in fields( Settings ) }
	unknown = sorted( set( data ) - known )
	if unknown:
		raise ConfigurationError( f'unknown settings: {", ".join( unknown )}' )
	return Settings( **data )

def load( path: Union[str,Path] ) -> Settings:
	"""Read the settings file, creating it with the defaults when it is missing."""
	log = logger.getChild( 'load' )
	path = Path( path )
	with g_lock:
		try:
			with path.open( 'r' ) as f:
				data = json.loads( f.read() )
		except FileNotFoundError:
			log.info( 'creating %r with default settings', str( path ))
			settings = Settings()
			save( settings, path )
			return settings
		except json.JSONDecodeError as e:
			raise ConfigurationError( f'{path}: {e}' ) from e
		return _from_json( data )

def save( settings: Settings, path: Union[str,Path] ) -> None:
	path = Path( path )
	with g_lock:
		path.parent.mkdir( parents = True, exist_ok = True )
		with path.open( 'w' ) as f:
			f.write( json.dumps(
				asdict( settings ),
				indent = 1, # make it a bit more human-readable just in case
			))
