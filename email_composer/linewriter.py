'''Content-transfer-encoding filters.

A body travels through two filters on its way to the sink: an encoder
(QuotedPrintableEncoder or Base64Encoder) that turns raw bytes into the
encoded alphabet without caring about line length, followed by a line
writer (QPLineWriter or Base64LineWriter) that folds the encoded stream
into lines of at most MAX_LINE_LEN characters, as RFC 2045 6.7 and 6.8
require.

All four expose write( data ) like the sink they wrap and keep enough state
between calls that a body may be fed in arbitrarily sized pieces.
'''

# stdlib imports:
import base64
from enum import Enum
from typing import Protocol

# 3rd-party imports:
from typing_extensions import Final # pip install typing_extensions

MAX_LINE_LEN: Final = 76
CRLF: Final = b'\r\n'
SOFT_BREAK: Final = b'=\r\n'

_CR = 0x0d
_LF = 0x0a
_EQUALS = 0x3d
_WHITESPACE = b' \t'

class Sink( Protocol ):
	def write( self, data: bytes ) -> int: ...

class Encoding( Enum ):
	QUOTED_PRINTABLE = 'quoted-printable'
	BASE64 = 'base64'
	# the body is left as is; headers are still Q-encoded
	UNENCODED = '8bit'

class Base64LineWriter:
	def __init__( self, sink: Sink ) -> None:
		self.sink = sink
		self.line_len = 0

	def write( self, data: bytes ) -> int:
		n = 0
		while len( data ) + self.line_len > MAX_LINE_LEN:
			cut = MAX_LINE_LEN - self.line_len
			self.sink.write( data[:cut] )
			self.sink.write( CRLF )
			data = data[cut:]
			n += cut
			self.line_len = 0
		if data:
			self.sink.write( data )
			self.line_len += len( data )
		return n + len( data )

class QPLineWriter:
	"""Folds quoted-printable text with soft line breaks.

	Hard line breaks already present in the input reset the column. A soft
	break ('=' CRLF) is only inserted when a line would otherwise run past
	MAX_LINE_LEN, and it is moved one or two characters to the left when the
	nominal position falls inside an =XX escape. A line may use all
	MAX_LINE_LEN columns only when it ends in a hard break; otherwise the last
	column is kept for the '=' of a soft break.
	"""
	def __init__( self, sink: Sink ) -> None:
		self.sink = sink
		self.line_len = 0

	def write( self, data: bytes ) -> int:
		n = 0
		while data:
			room = MAX_LINE_LEN - self.line_len
			i = data.find( b'\n', 0, room + 2 )
			# a newline close enough to end the line within the limit
			if i != -1 and ( i <= room or data[i - 1] == _CR ):
				self.sink.write( data[:i + 1] )
				data = data[i + 1:]
				n += i + 1
				self.line_len = 0
				continue

			avail = room - 1
			if len( data ) <= avail:
				self.sink.write( data )
				self.line_len += len( data )
				return n + len( data )

			# never cut between an equal sign and the two following characters
			if avail >= 2 and data[avail - 2] == _EQUALS:
				cut = avail - 2
			elif avail >= 1 and data[avail - 1] == _EQUALS:
				cut = avail - 1
			else:
				cut = avail
			self.sink.write( data[:cut] + SOFT_BREAK )
			data = data[cut:]
			n += cut
			self.line_len = 0
		return n

class QuotedPrintableEncoder:
	"""Quoted-printable encoder (RFC 2045, 6.7) without line folding.

	Line breaks are hard breaks: CRLF is kept, a bare LF or a bare CR becomes
	CRLF. Whitespace is escaped when it ends a line or the body, so trailing
	whitespace and CRs are held back until the next write (or close) shows what
	follows them; a CRLF pair is therefore never split between two chunks.
	"""
	def __init__( self, sink: Sink ) -> None:
		self.sink = sink
		self._pending = b''

	def write( self, data: bytes ) -> int:
		buf = self._pending + bytes( data )
		keep = len( buf.rstrip( b' \t\r' ))
		self._pending = buf[keep:]
		if keep:
			self.sink.write( self._encode( buf[:keep] ))
		return len( data )

	def close( self ) -> None:
		pending, self._pending = self._pending, b''
		if pending:
			self.sink.write( self._encode( pending ))

	@staticmethod
	def _encode( chunk: bytes ) -> bytes:
		out = bytearray()
		last = len( chunk ) - 1
		for i, b in enumerate( chunk ):
			nxt = chunk[i + 1] if i < last else None
			if b == _CR:
				out += CRLF
			elif b == _LF:
				if i == 0 or chunk[i - 1] != _CR:
					out += CRLF
			elif b in _WHITESPACE:
				if nxt is None or nxt in ( _CR, _LF ):
					out += b'=%02X' % b
				else:
					out.append( b )
			elif 0x21 <= b <= 0x7e and b != _EQUALS:
				out.append( b )
			else:
				out += b'=%02X' % b
		return bytes( out )

class Base64Encoder:
	"""Streaming base64 encoder; input is encoded in multiples of 3 bytes and the
	remainder (with padding) is emitted by close()."""
	def __init__( self, sink: Sink ) -> None:
		self.sink = sink
		self._carry = b''

	def write( self, data: bytes ) -> int:
		buf = self._carry + bytes( data )
		aligned = len( buf ) - len( buf ) % 3
		self._carry = buf[aligned:]
		if aligned:
			self.sink.write( base64.b64encode( buf[:aligned] ))
		return len( data )

	def close( self ) -> None:
		carry, self._carry = self._carry, b''
		if carry:
			self.sink.write( base64.b64encode( carry ))
