# stdlib imports:
import logging
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Dict, Mapping, Optional as Opt, Union

LEVELS = ( 'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL' )

FORMAT = '%(asctime)s:%(levelname)s:%(name)s:%(message)s'

def parse_level( level: Union[str,int] ) -> int:
	"""
	>>> parse_level( 'INFO' )
	20
	>>> parse_level( '5' )
	5
	"""
	if isinstance( level, int ):
		return level
	if level.isnumeric():
		return int( level )
	if level.upper() in LEVELS:
		return int( getattr( logging, level.upper() ))
	raise ValueError( f'invalid level={level!r}' )

def init( logfile: Opt[Path], loglevels: Mapping[str,Union[str,int]] = {} ) -> None:
	"""Log to stderr and, when `logfile` is given, to a file rotated daily.

	`loglevels` maps logger names to level names or numbers, e.g.
	{ 'email_composer.smtplib2': 'WARNING' } to silence the C>/S> protocol trace.
	"""
	levels: Dict[str,int] = { name: parse_level( level ) for name, level in loglevels.items() }

	logging.basicConfig(
		level = logging.DEBUG,
		format = FORMAT,
	)

	if logfile is not None:
		logfile.parent.mkdir ( parents = True, exist_ok = True )
		trfh = TimedRotatingFileHandler(
			logfile,
			when = 'D',
			interval = 1,
			backupCount = 14,
		)
		trfh.setFormatter( logging.Formatter( FORMAT ))
		logging.getLogger( '' ).addHandler( trfh )

	for name, level in levels.items():
		logging.getLogger( name ).setLevel( level )
