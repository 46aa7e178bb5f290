# stdlib imports:
import datetime
from io import BytesIO
import re
import socket
from typing import Dict, List

# 3rd-party imports:
import pytest # pip install pytest

# local imports:
from email_composer import writer

FIXED_NOW = datetime.datetime( 2014, 6, 25, 17, 46, 0, tzinfo = datetime.timezone.utc )
FIXED_DATE = 'Wed, 25 Jun 2014 17:46:00 +0000'

_r_boundary = re.compile( r'boundary=([0-9a-f]+)' )

@pytest.fixture( autouse = True )
def fixed_now( monkeypatch: pytest.MonkeyPatch ) -> datetime.datetime:
	monkeypatch.setattr( writer, 'now', lambda: FIXED_NOW )
	return FIXED_NOW

def normalize_boundaries( text: str ) -> str:
	"""Replace generated boundaries with B1, B2... in order of appearance."""
	names: Dict[str,str] = {}
	for boundary in _r_boundary.findall( text ):
		names.setdefault( boundary, f'B{len( names ) + 1}' )
	for boundary, name in names.items():
		text = text.replace( boundary, name )
	return text

class ScriptedReplies( BytesIO ):
	"""Server side of a FakeSocket; optionally times out once the script is exhausted."""
	def __init__( self, data: bytes, timeout: bool ) -> None:
		super().__init__( data )
		self.timeout = timeout

	def readline( self, size: int = -1 ) -> bytes: # type: ignore
		line = super().readline( size )
		if not line and self.timeout:
			raise socket.timeout( 'timed out' )
		return line

class FakeSocket:
	"""A connected socket whose server side is a fixed script of reply lines."""
	def __init__( self, *replies: str, timeout: bool = False ) -> None:
		self.rfile = ScriptedReplies(
			''.join( f'{line}\r\n' for line in replies ).encode( 'utf-8' ),
			timeout,
		)
		self.sent: List[bytes] = []
		self.closed = False

	def makefile( self, mode: str ) -> BytesIO:
		assert mode == 'rb'
		return self.rfile

	def sendall( self, data: bytes ) -> None:
		if self.closed:
			raise OSError( 'socket closed' )
		self.sent.append( data )

	def close( self ) -> None:
		self.closed = True

	@property
	def lines( self ) -> List[bytes]:
		return b''.join( self.sent ).split( b'\r\n' )[:-1]
