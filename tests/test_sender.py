# stdlib imports:
from io import BytesIO
from typing import List, Optional as Opt, Sequence as Seq, Tuple

# 3rd-party imports:
import pytest # pip install pytest

# local imports:
from email_composer import (
	Message, NoRecipientsError, SendError, SendFunc, Transmission, send,
	send_message,
)
from email_composer.sender import WriterTo

class Recorder:
	def __init__( self, fail_on: Opt[int] = None ) -> None:
		self.sent: List[Tuple[str,List[str],bytes]] = []
		self.fail_on = fail_on

	def __call__( self, from_: str, to: Seq[str], msg: WriterTo ) -> None:
		if self.fail_on is not None and len( self.sent ) + 1 == self.fail_on:
			raise ConnectionResetError( 'boom' )
		buf = BytesIO()
		msg.write_to( buf )
		self.sent.append(( from_, list( to ), buf.getvalue() ))

def message( to: Seq[str] = ( 'to@example.com', ), bcc: Seq[str] = () ) -> Message:
	m = Message()
	m.set_header( 'From', 'from@example.com' )
	if to:
		m.set_header( 'To', *to )
	if bcc:
		m.set_header( 'Bcc', *bcc )
	m.set_header( 'Subject', 'hi' )
	m.set_body( 'text/plain', 'Test message' )
	return m

def test_simple() -> None:
	rec = Recorder()
	assert send_message( SendFunc( rec ), message() ) == 1
	assert [ ( f, t ) for f, t, _ in rec.sent ] == [ ( 'from@example.com', [ 'to@example.com' ] ) ]

def test_bcc_fan_out() -> None:
	rec = Recorder()
	m = message(
		to = ( 'to@example.com', ),
		bcc = ( 'Bee <bcc1@example.com>', 'bcc2@example.com' ),
	)
	m.set_header( 'Cc', 'cc@example.com' )
	assert send_message( SendFunc( rec ), m ) == 3
	assert [ t for _, t, _ in rec.sent ] == [
		[ 'to@example.com', 'cc@example.com' ],
		[ 'bcc1@example.com' ],
		[ 'bcc2@example.com' ],
	]
	primary, first, second = [ data for _, _, data in rec.sent ]
	assert b'Bcc' not in primary
	assert first.count( b'Bcc:' ) == 1
	assert b'Bcc: Bee <bcc1@example.com>\r\n' in first
	assert second.count( b'Bcc:' ) == 1
	assert b'Bcc: bcc2@example.com\r\n' in second

def test_bcc_only() -> None:
	rec = Recorder()
	assert send_message( SendFunc( rec ), message( to = (), bcc = ( 'bcc@example.com', ))) == 1
	assert [ t for _, t, _ in rec.sent ] == [ [ 'bcc@example.com' ] ]

def test_no_recipients() -> None:
	rec = Recorder()
	with pytest.raises( NoRecipientsError ):
		send_message( SendFunc( rec ), message( to = () ))
	assert rec.sent == []

def test_send_error_names_the_message() -> None:
	rec = Recorder( fail_on = 2 )
	with pytest.raises( SendError ) as exc_info:
		send( SendFunc( rec ), message(), message(), message() )
	assert exc_info.value.index == 2
	assert isinstance( exc_info.value.error, ConnectionResetError )
	assert exc_info.value.__cause__ is exc_info.value.error
	assert len( rec.sent ) == 1

def test_send_error_wraps_validation_errors() -> None:
	rec = Recorder()
	bad = Message()
	bad.set_header( 'To', 'to@example.com' )
	with pytest.raises( SendError ) as exc_info:
		send( SendFunc( rec ), message(), bad )
	assert exc_info.value.index == 2
	assert 'From' in str( exc_info.value.error )

def test_transmission() -> None:
	m = message( bcc = ( 'bcc@example.com', ))
	assert b'Bcc' not in Transmission( m ).as_bytes()
	assert b'Bcc: bcc@example.com\r\n' in Transmission( m, 'bcc@example.com' ).as_bytes()
