# stdlib imports:
import datetime
from typing import Any, List

def coalesce( *args: Any ) -> Any:
	'''
	>>> coalesce( None, 0, 465 )
	0
	>>> coalesce( None, None ) is None
	True
	'''
	for arg in args:
		if arg is not None:
			return arg
	return None

def dhms( dt: datetime.timedelta, limit: int = 2 ) -> str:
	'''
	>>> dhms( datetime.timedelta() )
	'0s'
	>>> dhms( datetime.timedelta( days = 1, hours = 3, minutes = 5, seconds = 7 ))
	'1d 3h'
	>>> dhms( -datetime.timedelta( days = 1, hours = 3, minutes = 5, seconds = 7 ))
	'-(1d 3h)'
	>>> dhms( datetime.timedelta( seconds = 4.5 ))
	'4.5s'
	>>> dhms( datetime.timedelta( milliseconds = 250 ))
	'0.25s'
	'''
	limit = max( limit, 1 ) # you must allow at least one visible component
	ar: List[str] = []
	suffix = ''
	if dt.days < 0:
		dt = -dt
		ar.append( '-(' )
		limit += 1
		suffix = ')'
	seconds = dt.seconds % 60
	minutes = ( dt.seconds // 60 ) % 60
	hours = dt.seconds // 3600

	if dt.days:
		ar.append( f'{dt.days}d ' )
	if hours:
		ar.append( f'{hours}h ' )
	if minutes:
		ar.append( f'{minutes}m ' )
	if not ar or ar == [ '-(' ]:
		ar.append( f'{seconds+dt.microseconds*0.000001:.3f}'.rstrip( '0' ).rstrip( '.' ) + 's' )
	elif seconds:
		ar.append( f'{seconds}s ' )

	return ''.join( ar[:limit] ).rstrip() + suffix
