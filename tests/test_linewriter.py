# stdlib imports:
import base64
import binascii
from io import BytesIO
import os
import re
from typing import List

# 3rd-party imports:
import pytest # pip install pytest

# local imports:
from email_composer.linewriter import (
	Base64Encoder, Base64LineWriter, MAX_LINE_LEN, QPLineWriter,
	QuotedPrintableEncoder,
)

_r_broken_escape = re.compile( rb'=(?![0-9A-F]{2})' )

def base64_lines( data: bytes, chunk: int ) -> List[bytes]:
	out = BytesIO()
	enc = Base64Encoder( Base64LineWriter( out ))
	for i in range( 0, len( data ), chunk ):
		enc.write( data[i:i + chunk] )
	enc.close()
	return out.getvalue().split( b'\r\n' )

def qp( data: bytes, chunk: int = 0 ) -> bytes:
	out = BytesIO()
	enc = QuotedPrintableEncoder( QPLineWriter( out ))
	if chunk:
		for i in range( 0, len( data ), chunk ):
			enc.write( data[i:i + chunk] )
	else:
		enc.write( data )
	enc.close()
	return out.getvalue()

@pytest.mark.parametrize( 'size', [ 0, 1, 56, 57, 58, 1000, 4096 ])
@pytest.mark.parametrize( 'chunk', [ 1, 7, 1024 ])
def test_base64_lines_are_folded( size: int, chunk: int ) -> None:
	data = os.urandom( size )
	lines = base64_lines( data, chunk )
	for line in lines:
		assert len( line ) <= MAX_LINE_LEN
	assert base64.b64decode( b''.join( lines )) == data

def test_base64_exact_line() -> None:
	# 57 bytes encode to exactly 76 characters: no break needed
	lines = base64_lines( b'x' * 57, 57 )
	assert len( lines ) == 1
	assert len( lines[0] ) == 76

def test_base64_line_writer_counts_input() -> None:
	out = BytesIO()
	w = Base64LineWriter( out )
	assert w.write( b'A' * 100 ) == 100
	assert w.write( b'A' * 60 ) == 60
	assert out.getvalue() == b'A' * 76 + b'\r\n' + b'A' * 76 + b'\r\n' + b'A' * 8

def test_qp_plain_text() -> None:
	assert qp( b'Test message' ) == b'Test message'
	assert qp( '¡Hola, señor!'.encode( 'utf-8' )) == b'=C2=A1Hola, se=C3=B1or!'

def test_qp_keeps_hard_breaks_and_escapes_trailing_whitespace() -> None:
	assert qp( b'a \r\nb\t\r\nc ' ) == b'a=20\r\nb=09\r\nc=20'
	assert qp( b'1 = 2' ) == b'1 =3D 2'

def test_qp_trailing_whitespace_across_writes() -> None:
	assert qp( b'a \r\nb ', chunk = 1 ) == b'a=20\r\nb=20'

@pytest.mark.parametrize( 'chunk', [ 0, 1, 2 ])
def test_qp_bare_line_breaks_become_crlf( chunk: int ) -> None:
	assert qp( b'line one\nline two\n', chunk ) == b'line one\r\nline two\r\n'
	assert qp( b'mac\rstyle\r', chunk ) == b'mac\r\nstyle\r\n'
	assert qp( b'x\r\r\ny\n\nz', chunk ) == b'x\r\n\r\ny\r\n\r\nz'

@pytest.mark.parametrize( 'chunk', [ 0, 1, 2 ])
def test_qp_whitespace_before_a_bare_break_is_escaped( chunk: int ) -> None:
	assert qp( b'a \nb\t\rc \r', chunk ) == b'a=20\r\nb=09\r\nc=20\r\n'

def test_qp_crlf_split_between_writes() -> None:
	out = BytesIO()
	enc = QuotedPrintableEncoder( QPLineWriter( out ))
	enc.write( b'one \r' )
	enc.write( b'\ntwo' )
	enc.close()
	assert out.getvalue() == b'one=20\r\ntwo'

def test_qp_soft_breaks() -> None:
	encoded = qp( b'a' * 200 )
	lines = encoded.split( b'\r\n' )
	assert lines[0] == b'a' * 75 + b'='
	assert lines[1] == b'a' * 75 + b'='
	assert lines[2] == b'a' * 50
	assert binascii.a2b_qp( encoded ) == b'a' * 200

def test_qp_line_of_exactly_76_before_a_hard_break() -> None:
	assert qp( b'a' * 76 + b'\r\nb' ) == b'a' * 76 + b'\r\nb'

@pytest.mark.parametrize( 'prefix', [ 70, 71, 72, 73, 74, 75, 76 ])
@pytest.mark.parametrize( 'chunk', [ 0, 1, 3 ])
def test_qp_never_splits_an_escape( prefix: int, chunk: int ) -> None:
	data = b'a' * prefix + 'éèà=\x00'.encode( 'utf-8' ) * 20
	encoded = qp( data, chunk )
	for line in encoded.split( b'\r\n' ):
		assert len( line ) <= MAX_LINE_LEN
		body = line[:-1] if line.endswith( b'=' ) else line
		assert not _r_broken_escape.search( body ), line
	assert binascii.a2b_qp( encoded ) == data
