# stdlib imports:
import json
from pathlib import Path

# 3rd-party imports:
import pytest # pip install pytest

# local imports:
from email_composer import ConfigurationError, Encoding
from email_composer import settings as settings_

def test_missing_file_is_created_with_defaults( tmp_path: Path ) -> None:
	path = tmp_path / 'etc' / 'email_composer.json'
	s = settings_.load( path )
	assert s == settings_.Settings()
	assert json.loads( path.read_text() )['smtp_host'] == '127.0.0.1'
	assert settings_.load( path ) == s

def test_round_trip( tmp_path: Path ) -> None:
	path = tmp_path / 'settings.json'
	s = settings_.Settings( smtp_host = 'smtp.example.com', smtp_username = 'user', smtp_secure = 'yes' )
	settings_.save( s, path )
	assert settings_.load( path ) == s

def test_partial_file_keeps_defaults( tmp_path: Path ) -> None:
	path = tmp_path / 'settings.json'
	path.write_text( '{"smtp_host": "smtp.example.com"}' )
	s = settings_.load( path )
	assert s.smtp_host == 'smtp.example.com'
	assert s.smtp_secure == 'starttls'

@pytest.mark.parametrize( 'content', [
	'{not json',
	'[1, 2]',
	'{"smtp_hots": "typo"}',
	'{"smtp_secure": "maybe"}',
	'{"mail_encoding": "uuencode"}',
])
def test_bad_files( tmp_path: Path, content: str ) -> None:
	path = tmp_path / 'settings.json'
	path.write_text( content )
	with pytest.raises( ConfigurationError ):
		settings_.load( path )

@pytest.mark.parametrize( 'secure, port', [
	( 'no', 587 ),
	( 'starttls', 587 ),
	( 'yes', 465 ),
])
def test_default_port( secure: settings_.SMTP_SECURE, port: int ) -> None:
	assert settings_.Settings( smtp_secure = secure ).port == port
	assert settings_.Settings( smtp_secure = secure, smtp_port = 2525 ).port == 2525

def test_dialer() -> None:
	s = settings_.Settings(
		smtp_secure = 'yes',
		smtp_host = 'smtp.example.com',
		smtp_username = 'user',
		smtp_password = 'pwd',
		smtp_timeout_seconds = 0,
		smtp_retry_failure = False,
	)
	cfg = s.dialer().config
	assert ( cfg.host, cfg.port, cfg.username, cfg.password ) == ( 'smtp.example.com', 465, 'user', 'pwd' )
	assert cfg.use_ssl and not cfg.starttls
	assert cfg.timeout == 0
	assert not cfg.retry_failure

def test_plain_smtp() -> None:
	cfg = settings_.Settings( smtp_secure = 'no', smtp_port = 465 ).dialer().config
	assert not cfg.use_ssl and not cfg.starttls

def test_message() -> None:
	m = settings_.Settings( mail_charset = 'ISO-8859-1', mail_encoding = 'base64' ).message()
	assert m.charset == 'ISO-8859-1'
	assert m.encoding is Encoding.BASE64

def test_describe() -> None:
	d = settings_.Settings.describe()
	assert d['smtp_host'] == 'SMTP Hostname'
	assert list( d ) == [ f.name for f in settings_.fields( settings_.Settings ) ]
