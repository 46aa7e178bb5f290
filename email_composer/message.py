from __future__ import annotations

# stdlib imports:
from dataclasses import dataclass, field
import datetime
from io import BytesIO
import logging
import mimetypes
from pathlib import Path
from typing import (
	BinaryIO, Dict, List, Mapping, Optional as Opt, Sequence as Seq, Union,
)

# local imports:
from .CaseFoldedDict import CaseFoldedDict
from .content import BytesSource, ContentSource, FileSource, StreamSource
from . import header
from .linewriter import Encoding, Sink
from .writer import MessageWriter

logger = logging.getLogger( __name__ )

@dataclass
class MessageSettings:
	charset: str = 'UTF-8'
	encoding: Encoding = Encoding.QUOTED_PRINTABLE

	def __post_init__( self ) -> None:
		if isinstance( self.encoding, str ):
			self.encoding = Encoding( self.encoding )

@dataclass
class Part:
	content_type: str
	source: ContentSource

@dataclass
class File:
	name: str
	source: ContentSource
	header: CaseFoldedDict[str] = field( default_factory = CaseFoldedDict )

	@property
	def mime_type( self ) -> str:
		return mimetypes.guess_type( self.name, strict = False )[0] or 'application/octet-stream'

BODY = Union[str,bytes,ContentSource]

class Message:
	def __init__( self, settings: Opt[MessageSettings] = None ) -> None:
		self.settings = settings or MessageSettings()
		self.header: Dict[str,List[str]] = {}
		self.parts: List[Part] = []
		self.attachments: List[File] = []
		self.embedded: List[File] = []

	@property
	def charset( self ) -> str:
		return self.settings.charset

	@property
	def encoding( self ) -> Encoding:
		return self.settings.encoding

	@property
	def scheme( self ) -> header.SCHEME:
		return 'B' if self.encoding is Encoding.BASE64 else 'Q'

	def reset( self ) -> None:
		"""Forget headers, parts and files so the message can be reused with the same settings."""
		self.header = {}
		self.parts = []
		self.attachments = []
		self.embedded = []

	# headers

	def encode_header( self, value: str ) -> str:
		return header.encode( self.charset, value, self.scheme )

	def set_header( self, field: str, *values: str ) -> None:
		self.header[field] = [ self.encode_header( value ) for value in values ]

	def set_headers( self, headers: Mapping[str,Seq[str]] ) -> None:
		for field, values in headers.items():
			self.set_header( field, *values )

	def format_address( self, address: str, name: str ) -> str:
		return header.format_address( address, name, self.charset, self.scheme )

	def set_address_header( self, field: str, address: str, name: str ) -> None:
		self.header[field] = [ self.format_address( address, name ) ]

	def format_date( self, date: datetime.datetime ) -> str:
		return header.format_date( date )

	def set_date_header( self, field: str, date: datetime.datetime ) -> None:
		self.header[field] = [ self.format_date( date ) ]

	def get_header( self, field: str ) -> List[str]:
		return list( self.header.get( field, [] ))

	def del_header( self, field: str ) -> None:
		self.header.pop( field, None )

	# body parts

	def _source( self, body: BODY ) -> ContentSource:
		if isinstance( body, ContentSource ):
			return body
		return BytesSource( body, self.charset )

	def set_body( self, content_type: str, body: BODY ) -> None:
		"""Replace all body parts with a single one."""
		self.parts = [ Part( content_type, self._source( body )) ]

	def add_alternative( self, content_type: str, body: BODY ) -> None:
		"""Add an alternative version of the body, e.g. text/html next to text/plain.

		Alternatives are listed from the least to the most preferred one.
		"""
		self.parts.append( Part( content_type, self._source( body )))

	def add_alternative_source( self, content_type: str, source: ContentSource ) -> None:
		self.parts.append( Part( content_type, source ))

	# files

	def _file( self,
		path: Union[str,Path,None],
		name: Opt[str],
		header: Opt[Mapping[str,str]],
		source: Opt[ContentSource],
	) -> File:
		if source is None:
			assert path is not None, 'either a path or a source is required'
			source = FileSource( path )
		if name is None:
			assert path is not None, 'a name is required when no path is given'
			name = Path( path ).name
		return File( name, source, CaseFoldedDict( header or {} ))

	def attach( self,
		path: Union[str,Path,None] = None,
		*,
		name: Opt[str] = None,
		header: Opt[Mapping[str,str]] = None,
		source: Opt[ContentSource] = None,
	) -> File:
		"""Attach a file.

		The file is read from `path` when the message is rendered unless a
		`source` is given. `name` renames the attachment (default: the base name
		of `path`) and `header` overrides any of the part headers, e.g.
		Content-Type or Content-Disposition.
		"""
		f = self._file( path, name, header, source )
		self.attachments.append( f )
		return f

	def embed( self,
		path: Union[str,Path,None] = None,
		*,
		name: Opt[str] = None,
		header: Opt[Mapping[str,str]] = None,
		source: Opt[ContentSource] = None,
	) -> File:
		"""Embed a file (typically an image) referenced from an HTML body as cid:<name>."""
		f = self._file( path, name, header, source )
		self.embedded.append( f )
		return f

	def attach_stream( self, fp: BinaryIO, name: str, *, header: Opt[Mapping[str,str]] = None ) -> File:
		return self.attach( name = name, header = header, source = StreamSource( fp ))

	def embed_stream( self, fp: BinaryIO, name: str, *, header: Opt[Mapping[str,str]] = None ) -> File:
		return self.embed( name = name, header = header, source = StreamSource( fp ))

	# structure

	def has_mixed_part( self ) -> bool:
		return ( len( self.parts ) > 0 and len( self.attachments ) > 0 ) or len( self.attachments ) > 1

	def has_related_part( self ) -> bool:
		return ( len( self.parts ) > 0 and len( self.embedded ) > 0 ) or len( self.embedded ) > 1

	def has_alternative_part( self ) -> bool:
		return len( self.parts ) > 1

	# rendering

	def write_to( self, sink: Sink, *, bcc: Opt[str] = None ) -> int:
		return MessageWriter( sink ).write_message( self, bcc = bcc )

	def as_bytes( self, *, bcc: Opt[str] = None ) -> bytes:
		buf = BytesIO()
		self.write_to( buf, bcc = bcc )
		return buf.getvalue()
