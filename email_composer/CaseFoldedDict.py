# https://github.com/kennethreitz
from __future__ import annotations

# stdlib imports:
from collections import OrderedDict
from typing import (
	Any, Generic, Iterator, Mapping, MutableMapping, Optional as Opt, Tuple,
	TypeVar,
)

T = TypeVar( 'T' )

class CaseFoldedDict( MutableMapping[str,T], Generic[T] ):
	"""A case-folded ``dict``-like object.
	Implements all methods and operations of
	``MutableMapping`` as well as dict's ``copy``. Also
	provides ``folded_items``.
	All keys are required to be unicode strings. The structure remembers the
	case of the key from the last time it was set, and ``iter(instance)``,
	``keys()``, ``items()``
	will contain case-sensitive keys. However, querying and contains
	testing is case insensitive::
		cfd = CaseFoldedDict()
		cfd['Content-ID'] = '<logo.png>'
		cfd['content-id'] == '<logo.png>'  # True
		list(cfd) == ['Content-ID']  # True
	If the constructor, ``.update``, or equality comparison
	operations are given keys that have equal case-folded keys, the
	behavior is undefined.
	"""

	def __init__( self, data: Opt[Any] = None, **kwargs: T ) -> None:
		self._store: MutableMapping[str,Tuple[str,T]] = OrderedDict()
		self.update( data or {}, **kwargs )

	def __setitem__( self, key: str, value: T ) -> None:
		# Use the casefolded key for lookups, but store the actual
		# key alongside the value.
		assert isinstance( key, str ), f'expecting str key not {key!r}'
		self._store[key.casefold()] = ( key, value )

	def __getitem__( self, key: str ) -> T:
		assert isinstance( key, str ), f'expecting str key not {key!r}'
		kv = self._store.get( key.casefold() )
		if kv is None:
			raise KeyError( key )
		return kv[1]

	def __delitem__( self, key: str ) -> None:
		del self._store[key.casefold()]

	def __iter__( self ) -> Iterator[str]:
		for casedkey, _ in self._store.values():
			yield casedkey

	def __len__( self ) -> int:
		return len( self._store )

	def folded_items( self ) -> Iterator[Tuple[str,T]]:
		for folded_key, keyval in self._store.items():
			yield folded_key, keyval[1]

	def __eq__( self, other: Any ) -> bool:
		if isinstance( other, Mapping ):
			other = CaseFoldedDict( other )
		else:
			return NotImplemented
		# Compare insensitively
		return dict( self.folded_items() ) == dict( other.folded_items() )

	# Copy is required
	def copy( self ) -> CaseFoldedDict[T]:
		return CaseFoldedDict( self._store.values() )

	def __repr__( self ) -> str:
		items = ', '.join( f'{k!r}: {v!r}' for k, v in self._store.values() )
		return f'CaseFoldedDict({{{items}}})'
