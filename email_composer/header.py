'''Header field value encoding (RFC 2047 encoded-words, RFC 5322 addresses and dates).

>>> encode( 'UTF-8', 'Hello, world!' )
'Hello, world!'
>>> encode( 'UTF-8', '¡Hola, señor!' )
'=?UTF-8?Q?=C2=A1Hola,_se=C3=B1or!?='
>>> encode( 'UTF-8', 'Café', 'B' )
'=?UTF-8?B?Q2Fmw6k=?='
>>> format_address( 'cc@example.com', 'A, B' )
'"A, B" <cc@example.com>'
>>> format_address( 'ccbis@example.com', 'à, b' )
'=?UTF-8?B?w6AsIGI=?= <ccbis@example.com>'
'''

# stdlib imports:
import base64
import datetime
import email.utils
from typing import List

# 3rd-party imports:
from typing_extensions import Final, Literal # pip install typing_extensions

SCHEME = Literal['Q','B']

# RFC 2047, 2: an encoded-word may not be more than 75 characters long
MAX_ENCODED_WORD_LEN: Final = 75

SPECIALS: Final = frozenset( '()<>[]:;@\\,."&' )

def needs_encoding( value: str ) -> bool:
	return any( ( c < ' ' or c > '~' ) and c != '\t' for c in value )

def has_specials( text: str ) -> bool:
	return any( c in SPECIALS for c in text )

def _q_char( b: int ) -> str:
	if b == 0x20:
		return '_'
	if 0x21 <= b <= 0x7e and b not in ( 0x3d, 0x3f, 0x5f ): # '=', '?', '_'
		return chr( b )
	return f'={b:02X}'

def _words( charset: str, value: str, scheme: SCHEME ) -> List[str]:
	prefix = f'=?{charset}?{scheme}?'
	max_content = MAX_ENCODED_WORD_LEN - len( prefix ) - len( '?=' )
	words: List[str] = []
	if scheme == 'B':
		max_raw = max_content // 4 * 3
		raw = b''
		for c in value:
			enc = c.encode( charset )
			if raw and len( raw ) + len( enc ) > max_raw:
				words.append( base64.b64encode( raw ).decode( 'ascii' ))
				raw = b''
			raw += enc
		words.append( base64.b64encode( raw ).decode( 'ascii' ))
	else:
		current = ''
		for c in value:
			chunk = ''.join( map( _q_char, c.encode( charset )))
			if current and len( current ) + len( chunk ) > max_content:
				words.append( current )
				current = ''
			current += chunk
		words.append( current )
	# a word never splits a character, so every word decodes on its own
	return [ f'{prefix}{word}?=' for word in words ]

def encode( charset: str, value: str, scheme: SCHEME = 'Q' ) -> str:
	"""Encode a header value as RFC 2047 encoded-words when it isn't plain printable ASCII.

	Long values are split into several encoded-words separated by a space;
	decoders drop the whitespace between adjacent encoded-words.
	"""
	if not needs_encoding( value ):
		return value
	return ' '.join( _words( charset, value, scheme ))

def quote( text: str ) -> str:
	escaped = text.replace( '\\', '\\\\' ).replace( '"', '\\"' )
	return f'"{escaped}"'

def format_address( address: str, name: str, charset: str = 'UTF-8', scheme: SCHEME = 'Q' ) -> str:
	if not name:
		return address
	enc = encode( charset, name, scheme )
	if enc == name:
		if has_specials( name ):
			return f'{quote( name )} <{address}>'
		return f'{name} <{address}>'
	if has_specials( name ):
		# Q-encoded words may not carry specials inside a phrase
		enc = encode( charset, name, 'B' )
	return f'{enc} <{address}>'

def format_date( date: datetime.datetime ) -> str:
	"""RFC 5322 date, e.g. 'Wed, 25 Jun 2014 17:46:00 +0000'."""
	return email.utils.format_datetime( date )
