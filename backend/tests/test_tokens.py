import re
from datetime import datetime, timedelta, timezone

from marketplace.models.payment_token import PaymentConfirmationToken
from marketplace.services.tokens import generate_token, is_expired, is_valid, token_prefix

URL_SAFE = re.compile(r"^[A-Za-z0-9_-]+$")
NOW = datetime(2025, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


def _token(expires_at, used=False):
    return PaymentConfirmationToken(token="x", order_id=1, created_at=NOW, expires_at=expires_at, used=used)


def test_generated_tokens_are_url_safe_and_long_enough():
    token = generate_token()
    assert URL_SAFE.match(token)
    # 6 bits per url-safe character; at least 128 bits
    assert len(token) * 6 >= 128


def test_generated_tokens_do_not_repeat():
    tokens = {generate_token() for _ in range(1000)}
    assert len(tokens) == 1000


def test_token_prefix_hides_the_rest():
    token = generate_token()
    prefix = token_prefix(token)
    assert prefix.startswith(token[:8])
    assert token not in prefix
    assert token_prefix("") == "<empty>"


def test_expiry_boundary():
    assert is_expired(_token(NOW - timedelta(seconds=1)), NOW)
    assert not is_expired(_token(NOW + timedelta(seconds=1)), NOW)
    # exactly at expiry the link still works: expired means now > expires_at
    assert not is_expired(_token(NOW), NOW)


def test_naive_timestamps_are_read_as_utc():
    naive = (NOW - timedelta(seconds=1)).replace(tzinfo=None)
    assert is_expired(_token(naive), NOW)


def test_is_valid_requires_unused_and_unexpired():
    assert is_valid(_token(NOW + timedelta(hours=1)), NOW)
    assert not is_valid(_token(NOW + timedelta(hours=1), used=True), NOW)
    assert not is_valid(_token(NOW - timedelta(hours=1)), NOW)
