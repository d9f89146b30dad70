import secrets
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from marketplace.core.clock import as_utc, now_utc
from marketplace.core.config import settings
from marketplace.core.logging_config import get_logger
from marketplace.models.payment_token import PaymentConfirmationToken

log = get_logger(__name__)

# 32 random bytes -> 43 url-safe characters, 256 bits of entropy
TOKEN_BYTES = 32
LOG_PREFIX_LEN = 8


def generate_token() -> str:
    return secrets.token_urlsafe(TOKEN_BYTES)


def token_prefix(token: str | None) -> str:
    """The only form in which a token may reach the logs."""
    if not token:
        return "<empty>"
    return f"{token[:LOG_PREFIX_LEN]}..."


def is_expired(token: PaymentConfirmationToken, now: datetime | None = None) -> bool:
    now = now or now_utc()
    return now > as_utc(token.expires_at)


def is_valid(token: PaymentConfirmationToken, now: datetime | None = None) -> bool:
    return not token.used and not is_expired(token, now)


def issue_token(db: Session, order_id: int, now: datetime | None = None) -> PaymentConfirmationToken:
    """
    Adds a fresh confirmation token for `order_id` to the session.

    Does not commit; checkout persists it in the same transaction as the order.
    Uniqueness rests on the entropy of the value, the unique index on
    `token` only backs it up.
    """
    now = now or now_utc()
    row = PaymentConfirmationToken(
        token=generate_token(),
        order_id=order_id,
        created_at=now,
        expires_at=now + timedelta(hours=settings.TOKEN_TTL_HOURS),
        used=False,
    )
    db.add(row)
    db.flush()
    log.info(f"[Order: {order_id}] confirmation token {token_prefix(row.token)} issued, expires {row.expires_at.isoformat()}")
    return row
