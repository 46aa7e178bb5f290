'''Envelope sender and recipients, taken from a message's header block.'''
from __future__ import annotations

# stdlib imports:
from dataclasses import dataclass, field
import email.errors
import email.policy
import logging
from typing import Dict, List, Mapping, Sequence as Seq

# local imports:
from .errors import MalformedAddressError, MissingFromError

logger = logging.getLogger( __name__ )

HEADERS = Mapping[str,Seq[str]]

PRIMARY_FIELDS = ( 'To', 'Cc' )

@dataclass
class Recipients:
	primary: List[str] = field( default_factory = list )
	bcc: List[str] = field( default_factory = list )
	# Bcc address -> the header value that named it, rendered in that recipient's copy
	bcc_values: Dict[str,str] = field( default_factory = dict )

	def __bool__( self ) -> bool:
		return bool( self.primary or self.bcc )

def parse_address( field: str, value: str ) -> str:
	"""Return the addr-spec of the single address in `value`.

	>>> parse_address( 'To', '"A, B" <cc@example.com>' )
	'cc@example.com'
	>>> parse_address( 'From', 'from@example.com' )
	'from@example.com'
	"""
	try:
		parsed = email.policy.default.header_factory( field, value )
		addresses = parsed.addresses
	except ( email.errors.HeaderParseError, ValueError, IndexError ) as e:
		raise MalformedAddressError( field, value, str( e )) from e
	if len( addresses ) != 1:
		raise MalformedAddressError( field, value, f'expected one address, found {len( addresses )}' )
	addr = addresses[0]
	if not addr.username or not addr.domain:
		raise MalformedAddressError( field, value )
	return addr.addr_spec

def resolve_sender( headers: HEADERS ) -> str:
	"""The envelope sender: the Sender header if present, else From."""
	for field in ( 'Sender', 'From' ):
		values = headers.get( field )
		if values and values[0]:
			return parse_address( field, values[0] )
	raise MissingFromError()

def resolve_recipients( headers: HEADERS ) -> Recipients:
	"""Collect To/Cc and Bcc addresses, dropping duplicates within each list.

	Addresses are compared by addr-spec only; the first occurrence wins and
	order is kept.
	"""
	r = Recipients()
	for field in PRIMARY_FIELDS:
		for value in headers.get( field, () ):
			addr = parse_address( field, value )
			if addr not in r.primary:
				r.primary.append( addr )
	for value in headers.get( 'Bcc', () ):
		addr = parse_address( 'Bcc', value )
		if addr not in r.bcc_values:
			r.bcc.append( addr )
			r.bcc_values[addr] = value
	logger.getChild( 'resolve_recipients' ).debug(
		'%d primary, %d bcc', len( r.primary ), len( r.bcc ),
	)
	return r
