# stdlib imports:
import datetime
import email.header

# 3rd-party imports:
import pytest # pip install pytest

# local imports:
from email_composer import header

def decode( value: str ) -> str:
	return str( email.header.make_header( email.header.decode_header( value )))

def test_printable_ascii_is_left_alone() -> None:
	assert header.encode( 'UTF-8', 'Hello, world! (test) <x>' ) == 'Hello, world! (test) <x>'

def test_q_encoding() -> None:
	assert header.encode( 'UTF-8', 'Café' ) == '=?UTF-8?Q?Caf=C3=A9?='
	assert header.encode( 'UTF-8', 'a_b=c?d é' ) == '=?UTF-8?Q?a=5Fb=3Dc=3Fd_=C3=A9?='

def test_b_encoding_with_other_charset() -> None:
	assert header.encode( 'ISO-8859-1', 'Café', 'B' ) == '=?ISO-8859-1?B?Q2Fm6Q==?='

@pytest.mark.parametrize( 'value', [
	'¡Hola, señor!',
	'Ünïcödé "quoted" (comment) <angle> @ ; :',
	'日本語のテキスト',
	'é' * 80,
	'naïve ' * 30,
])
@pytest.mark.parametrize( 'scheme', [ 'Q', 'B' ])
def test_decodes_back( value: str, scheme: header.SCHEME ) -> None:
	encoded = header.encode( 'UTF-8', value, scheme )
	assert decode( encoded ) == value
	for word in encoded.split( ' ' ):
		assert len( word ) <= header.MAX_ENCODED_WORD_LEN

def test_long_values_are_split_on_character_boundaries() -> None:
	encoded = header.encode( 'UTF-8', '€' * 40 )
	words = encoded.split( ' ' )
	assert len( words ) > 1
	for word in words:
		# every word must decode on its own
		assert set( decode( word )) == { '€' }

def test_format_address() -> None:
	assert header.format_address( 'to@example.com', '' ) == 'to@example.com'
	assert header.format_address( 'to@example.com', 'John Doe' ) == 'John Doe <to@example.com>'
	assert header.format_address( 'to@example.com', 'Doe, John' ) == '"Doe, John" <to@example.com>'
	assert header.format_address( 'to@example.com', 'say "hi"\\' ) == '"say \\"hi\\"\\\\" <to@example.com>'
	assert header.format_address( 'to@example.com', 'Señor To' ) == '=?UTF-8?Q?Se=C3=B1or_To?= <to@example.com>'
	assert header.format_address( 'to@example.com', 'à, b' ) == '=?UTF-8?B?w6AsIGI=?= <to@example.com>'

def test_format_date() -> None:
	tz = datetime.timezone( datetime.timedelta( hours = -7 ))
	date = datetime.datetime( 2006, 1, 2, 15, 4, 5, tzinfo = tz )
	assert header.format_date( date ) == 'Mon, 02 Jan 2006 15:04:05 -0700'
