'''Transport-agnostic sending.

A Sender delivers one transmission: an envelope sender, the envelope
recipients and something that can write the message into a byte sink. The
SMTP dialer provides one; SendFunc adapts a plain function (handy for tests,
a local sendmail pipe or an HTTP mail API).

send() turns Messages into transmissions: the primary one to the To/Cc
recipients, rendered without any Bcc header, followed by one transmission per
Bcc address whose copy names only that address. Transmissions go out one
after the other, so the primary one always completes (or fails) first.
'''
from __future__ import annotations

# stdlib imports:
from abc import ABCMeta, abstractmethod
from dataclasses import dataclass
import datetime
import logging
from typing import Callable, Optional as Opt, Protocol, Sequence as Seq

# local imports:
from .errors import NoRecipientsError, SendError
from .linewriter import Sink
from .message import Message
from .recipients import resolve_recipients, resolve_sender
from .util import dhms

logger = logging.getLogger( __name__ )

class WriterTo( Protocol ):
	def write_to( self, sink: Sink ) -> int: ...

class Sender( metaclass = ABCMeta ):
	@abstractmethod
	def send( self, from_: str, to: Seq[str], msg: WriterTo ) -> None:
		cls = type( self )
		raise NotImplementedError( f'{cls.__module__}.{cls.__qualname__}.send()' )

class SendCloser( Sender ):
	"""A Sender holding a connection that is reused until close()."""
	@abstractmethod
	def close( self ) -> None:
		cls = type( self )
		raise NotImplementedError( f'{cls.__module__}.{cls.__qualname__}.close()' )

SEND_FUNC = Callable[[str,Seq[str],WriterTo],None]

class SendFunc( Sender ):
	def __init__( self, func: SEND_FUNC ) -> None:
		self.func = func

	def send( self, from_: str, to: Seq[str], msg: WriterTo ) -> None:
		self.func( from_, to, msg )

@dataclass
class Transmission:
	"""One copy of a message. `bcc` is the Bcc header value this copy shows, if any."""
	message: Message
	bcc: Opt[str] = None

	def write_to( self, sink: Sink ) -> int:
		return self.message.write_to( sink, bcc = self.bcc )

	def as_bytes( self ) -> bytes:
		return self.message.as_bytes( bcc = self.bcc )

def send_message( sender: Sender, msg: Message ) -> int:
	"""Send every transmission of `msg` and return how many were made.

	That is one per Bcc address, plus the primary one unless the message has
	no To/Cc recipient (a Bcc-only message makes only the Bcc transmissions).
	The first failure propagates; transmissions before it were delivered.
	"""
	log = logger.getChild( 'send_message' )
	from_ = resolve_sender( msg.header )
	recipients = resolve_recipients( msg.header )
	if not recipients:
		raise NoRecipientsError()

	count = 0
	if recipients.primary:
		start = datetime.datetime.now()
		sender.send( from_, recipients.primary, Transmission( msg ))
		count += 1
		log.info( 'sent from %r to %r in %s', from_, recipients.primary, dhms( datetime.datetime.now() - start ))
	for addr in recipients.bcc:
		start = datetime.datetime.now()
		sender.send( from_, [ addr ], Transmission( msg, recipients.bcc_values[addr] ))
		count += 1
		log.info( 'sent from %r to bcc %r in %s', from_, addr, dhms( datetime.datetime.now() - start ))
	return count

def send( sender: Sender, *messages: Message ) -> None:
	"""Send the messages in order, stopping at the first one that fails.

	Raises SendError naming the 1-based index of that message. Messages before
	it, and possibly some of its own Bcc copies, have already been delivered.
	"""
	log = logger.getChild( 'send' )
	for i, msg in enumerate( messages, 1 ):
		try:
			send_message( sender, msg )
		except Exception as e:
			log.warning( 'could not send email %d: %r', i, e )
			raise SendError( i, e ) from e
