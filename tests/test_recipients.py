# 3rd-party imports:
import pytest # pip install pytest

# local imports:
from email_composer import MalformedAddressError, MissingFromError
from email_composer.recipients import parse_address, resolve_recipients, resolve_sender

def test_sender_is_preferred_over_from() -> None:
	assert resolve_sender({ 'From': [ 'from@example.com' ] }) == 'from@example.com'
	assert resolve_sender({
		'From': [ 'From <from@example.com>' ],
		'Sender': [ 'Robot <sender@example.com>' ],
	}) == 'sender@example.com'

def test_missing_from() -> None:
	with pytest.raises( MissingFromError ):
		resolve_sender({ 'To': [ 'to@example.com' ] })
	with pytest.raises( MissingFromError ):
		resolve_sender({ 'From': [] })

def test_recipients_are_deduplicated_in_order() -> None:
	r = resolve_recipients({
		'To': [ 'a@example.com', 'B <b@example.com>' ],
		'Cc': [ 'A again <a@example.com>', 'c@example.com' ],
		'Bcc': [ 'd@example.com', 'Dee <d@example.com>', 'a@example.com' ],
	})
	assert r.primary == [ 'a@example.com', 'b@example.com', 'c@example.com' ]
	# Bcc is deduplicated on its own
	assert r.bcc == [ 'd@example.com', 'a@example.com' ]
	assert r.bcc_values == { 'd@example.com': 'd@example.com', 'a@example.com': 'a@example.com' }
	assert r

def test_no_recipients_is_falsy() -> None:
	assert not resolve_recipients({ 'From': [ 'from@example.com' ] })

def test_encoded_display_names() -> None:
	assert parse_address( 'To', '=?UTF-8?Q?Se=C3=B1or_To?= <to@example.com>' ) == 'to@example.com'
	assert parse_address( 'Cc', '=?UTF-8?B?w6AsIGI=?= <ccbis@example.com>' ) == 'ccbis@example.com'

@pytest.mark.parametrize( 'value', [
	'not-an-address',
	'',
	'a@example.com, b@example.com',
])
def test_malformed( value: str ) -> None:
	with pytest.raises( MalformedAddressError ) as exc_info:
		resolve_recipients({ 'Cc': [ value ] })
	assert exc_info.value.field == 'Cc'
	assert exc_info.value.value == value
