# stdlib imports:
from abc import ABCMeta, abstractmethod
import logging
from pathlib import Path
from typing import Any, BinaryIO, Optional as Opt, Union

# 3rd-party imports:
import tornado.template # pip install tornado

# local imports:
from .linewriter import Sink

logger = logging.getLogger( __name__ )

CHUNK_SIZE = 64 * 1024

class ContentSource( metaclass = ABCMeta ):
	"""Produces the raw (unencoded) bytes of a body part or file on demand.

	write_into() is called once per render, synchronously, in emission order.
	It may be called again for the next transmission of the same message
	(Bcc fan-out), so implementations must be able to produce their content
	more than once. Any exception raised aborts the render.
	"""
	@abstractmethod
	def write_into( self, sink: Sink ) -> None:
		cls = type( self )
		raise NotImplementedError( f'{cls.__module__}.{cls.__qualname__}.write_into()' )

class BytesSource( ContentSource ):
	def __init__( self, data: Union[bytes,str], encoding: str = 'utf-8' ) -> None:
		self.data = data.encode( encoding ) if isinstance( data, str ) else bytes( data )

	def write_into( self, sink: Sink ) -> None:
		sink.write( self.data )

	def __repr__( self ) -> str:
		return f'{type(self).__qualname__}(<{len(self.data)} bytes>)'

def copy_stream( fp: BinaryIO, sink: Sink ) -> None:
	while True:
		chunk = fp.read( CHUNK_SIZE )
		if not chunk:
			break
		sink.write( chunk )

class FileSource( ContentSource ):
	"""Streams a file from disk; the file is opened anew for every render."""
	def __init__( self, path: Union[str,Path] ) -> None:
		self.path = Path( path )

	def write_into( self, sink: Sink ) -> None:
		log = logger.getChild( 'FileSource.write_into' )
		log.debug( 'streaming %r', str( self.path ))
		with self.path.open( 'rb' ) as fp:
			copy_stream( fp, sink )

	def __repr__( self ) -> str:
		return f'{type(self).__qualname__}({str(self.path)!r})'

class StreamSource( ContentSource ):
	"""Copies an already opened binary stream.

	When the stream is seekable it is rewound to the position it had when the
	source was created, so every render sees the whole content. A stream that
	can't seek can only be rendered once.
	"""
	def __init__( self, fp: BinaryIO ) -> None:
		self.fp = fp
		self._start: Opt[int] = fp.tell() if fp.seekable() else None
		self._consumed = False

	def write_into( self, sink: Sink ) -> None:
		if self._start is not None:
			self.fp.seek( self._start )
		elif self._consumed:
			raise OSError( f'stream {self.fp!r} is not seekable and was already consumed' )
		self._consumed = True
		copy_stream( self.fp, sink )

class TemplateSource( ContentSource ):
	"""Renders a tornado template with the given namespace at send time."""
	def __init__( self, template: Union[str,tornado.template.Template], **namespace: Any ) -> None:
		if isinstance( template, str ):
			template = tornado.template.Template( template, autoescape = None )
		self.template = template
		self.namespace = namespace

	def write_into( self, sink: Sink ) -> None:
		sink.write( self.template.generate( **self.namespace ))
