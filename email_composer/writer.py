'''MIME serializer.

MessageWriter walks a Message and streams it into a sink:

	mixed ⊃ related ⊃ alternative ⊃ body parts, then embedded files, then attachments

Only the wrapping levels the message needs are opened (see
Message.has_mixed_part() and friends). Header bytes are collected in a small
per-render buffer and flushed before every body so the sink sees few, large
writes; bodies are streamed through the transfer-encoding filters without
ever holding a whole part in memory.

Errors are latched: the first failure (a sink write or a content source)
turns every later write into a no-op and is raised once the walk is over.
'''
from __future__ import annotations

# stdlib imports:
import datetime
import logging
from typing import List, Optional as Opt, Sequence as Seq, Tuple, TYPE_CHECKING
import uuid

# 3rd-party imports:
import tzlocal # pip install tzlocal

# local imports:
from .content import ContentSource
from .errors import SerializationError
from .header import format_date
from .linewriter import (
	Base64Encoder, Base64LineWriter, CRLF, Encoding, QPLineWriter,
	QuotedPrintableEncoder, Sink,
)

if TYPE_CHECKING:
	from .message import File, Message

logger = logging.getLogger( __name__ )

HEADERS = Seq[Tuple[str,str]]

def now() -> datetime.datetime:
	# replaced by tests that need a stable Date header
	return datetime.datetime.now( tz = tzlocal.get_localzone() )

class _Aborted( Exception ):
	pass

class _Multipart:
	def __init__( self, subtype: str ) -> None:
		self.subtype = subtype
		self.boundary = uuid.uuid4().hex
		self.parts = 0

	@property
	def content_type( self ) -> str:
		return f'multipart/{self.subtype}; boundary={self.boundary}'

class _PartSink:
	'''What a content source writes into: forwards to the message writer and
	stops the source as soon as the sink has failed.'''
	def __init__( self, mw: MessageWriter ) -> None:
		self.mw = mw

	def write( self, data: bytes ) -> int:
		self.mw._write( bytes( data ))
		if self.mw.error is not None:
			raise _Aborted()
		return len( data )

class MessageWriter:
	def __init__( self, sink: Sink ) -> None:
		self.sink = sink
		self.n = 0
		self.error: Opt[BaseException] = None
		self._content_error = False
		self._buf = bytearray()
		self._stack: List[_Multipart] = []

	# low level output

	def _write( self, data: bytes ) -> None:
		if self.error is not None or not data:
			return
		try:
			self.sink.write( data )
		except Exception as e:
			self.error = e
			return
		self.n += len( data )

	def _flush( self ) -> None:
		if self._buf:
			data = bytes( self._buf )
			self._buf.clear()
			self._write( data )

	def _header( self, field: str, *values: str ) -> None:
		self._buf += f'{field}: {", ".join( values )}'.encode( 'utf-8' )
		self._buf += CRLF

	# multipart framing

	def _create_part( self, headers: HEADERS ) -> None:
		mp = self._stack[-1]
		delimiter = b'--' if mp.parts == 0 else b'\r\n--'
		self._buf += delimiter + mp.boundary.encode( 'ascii' ) + CRLF
		for field, value in headers:
			self._header( field, value )
		self._buf += CRLF
		mp.parts += 1

	def _open_multipart( self, subtype: str ) -> None:
		mp = _Multipart( subtype )
		if self._stack:
			self._create_part( [( 'Content-Type', mp.content_type )] )
		else:
			self._header( 'Content-Type', mp.content_type )
			self._buf += CRLF
		self._stack.append( mp )

	def _close_multipart( self ) -> None:
		mp = self._stack.pop()
		self._buf += b'\r\n--' + mp.boundary.encode( 'ascii' ) + b'--' + CRLF

	def _write_headers( self, headers: HEADERS ) -> None:
		if self._stack:
			self._create_part( headers )
		else:
			for field, value in headers:
				self._header( field, value )

	# bodies

	def _write_body( self, source: ContentSource, encoding: Encoding ) -> None:
		if not self._stack:
			self._buf += CRLF
		self._flush()
		if self.error is not None:
			return
		part = _PartSink( self )
		try:
			if encoding is Encoding.BASE64:
				b64 = Base64Encoder( Base64LineWriter( part ))
				source.write_into( b64 )
				b64.close()
			elif encoding is Encoding.UNENCODED:
				source.write_into( part )
			else:
				qp = QuotedPrintableEncoder( QPLineWriter( part ))
				source.write_into( qp )
				qp.close()
		except _Aborted:
			pass # the sink error is already latched
		except Exception as e:
			if self.error is None:
				self.error = e
				self._content_error = True

	def _file_headers( self, f: File, attachment: bool ) -> List[Tuple[str,str]]:
		disposition = 'attachment' if attachment else 'inline'
		defaults = [
			( 'Content-Type', f'{f.mime_type}; name="{f.name}"' ),
			( 'Content-Disposition', f'{disposition}; filename="{f.name}"' ),
		]
		if not attachment:
			defaults.append(( 'Content-ID', f'<{f.name}>' ))
		defaults.append(( 'Content-Transfer-Encoding', Encoding.BASE64.value ))

		known = { field.casefold() for field, _ in defaults }
		headers = [ ( field, f.header.get( field, value )) for field, value in defaults ]
		headers.extend(
			( field, value ) for field, value in f.header.items()
			if field.casefold() not in known
		)
		return headers

	def _write_files( self, files: Seq[File], attachment: bool ) -> None:
		for f in files:
			self._write_headers( self._file_headers( f, attachment ))
			self._write_body( f.source, Encoding.BASE64 )

	# entry point

	def write_message( self, msg: Message, bcc: Opt[str] = None ) -> int:
		"""Render `msg` and return the number of bytes written to the sink.

		The Bcc header is never rendered, except that a non-None `bcc` is
		written as the only Bcc value (the copy a blind recipient gets).
		"""
		log = logger.getChild( 'MessageWriter.write_message' )
		if 'Mime-Version' not in msg.header:
			self._header( 'Mime-Version', '1.0' )
		if 'Date' not in msg.header:
			self._header( 'Date', format_date( now() ))
		for field, values in msg.header.items():
			if field != 'Bcc':
				self._header( field, *values )
			elif bcc is not None:
				self._header( field, bcc )

		mixed = msg.has_mixed_part()
		related = msg.has_related_part()
		alternative = msg.has_alternative_part()

		if mixed:
			self._open_multipart( 'mixed' )
		if related:
			self._open_multipart( 'related' )
		if alternative:
			self._open_multipart( 'alternative' )

		for part in msg.parts:
			self._write_headers( [
				( 'Content-Type', f'{part.content_type}; charset={msg.charset}' ),
				( 'Content-Transfer-Encoding', msg.encoding.value ),
			] )
			self._write_body( part.source, msg.encoding )

		if alternative:
			self._close_multipart()
		self._write_files( msg.embedded, False )
		if related:
			self._close_multipart()
		self._write_files( msg.attachments, True )
		if mixed:
			self._close_multipart()

		if not msg.parts and not msg.embedded and not msg.attachments:
			# headers only
			self._buf += CRLF
		self._flush()

		if self.error is not None:
			log.warning( 'render failed after %d bytes: %r', self.n, self.error )
			if self._content_error:
				raise SerializationError( f'could not render message: {self.error}' ) from self.error
			raise self.error
		log.debug( 'rendered %d bytes', self.n )
		return self.n
