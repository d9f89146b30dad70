"""
Outgoing email log.

Every confirmation email gets a row here before delivery is attempted, and
the row is committed on its own, after the order. A failed send leaves the
row in `failed` with the error text so `scripts/retry_outbox.py` can pick it
up later; the order itself is never touched.
"""

from sqlalchemy import select
from sqlalchemy.orm import Session

from marketplace.core.clock import now_utc
from marketplace.core.config import settings
from marketplace.core.logging_config import get_logger
from marketplace.models.email_outbox import EmailOutbox
from marketplace.services.mailer import send_email

log = get_logger(__name__)

PENDING = "pending"
SENT = "sent"
FAILED = "failed"
# claimed by a delivery attempt whose outcome is not yet recorded
SENDING = "sending"


def queue_email(db: Session, recipient: str, subject: str, body: str, order_id: int | None = None) -> EmailOutbox:
    row = EmailOutbox(order_id=order_id, recipient=recipient, subject=subject, body=body, status=PENDING)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def deliver(db: Session, row: EmailOutbox) -> bool:
    """Attempts one send. Returns whether the email went out; SMTP errors are recorded, not raised.

    The row is moved to `sending` before the SMTP call, so a send whose result
    could not be saved is never picked up again by `retry_undelivered`.
    """
    row.attempts += 1
    row.status = SENDING
    db.commit()
    row_id, order_id, recipient = row.id, row.order_id, row.recipient

    try:
        send_email(recipient, row.subject, row.body)
    except Exception as e:
        row.status = FAILED
        row.last_error = f"{type(e).__name__}: {e}"[:2000]
        db.commit()
        log.error(
            f"[Order: {order_id}] email #{row_id} to {recipient} failed "
            f"(attempt {row.attempts}): {row.last_error}",
            exc_info=True,
        )
        return False

    try:
        row.status = SENT
        row.sent_at = now_utc()
        row.last_error = None
        db.commit()
    except Exception as e:
        db.rollback()
        log.error(f"[Order: {order_id}] email #{row_id} sent to {recipient} but not recorded: {e}", exc_info=True)
        return True

    log.info(f"[Order: {order_id}] email #{row_id} sent to {recipient}")
    return True


def retry_undelivered(db: Session, max_attempts: int | None = None, limit: int = 100) -> dict:
    max_attempts = max_attempts or settings.EMAIL_MAX_ATTEMPTS
    rows = db.scalars(
        select(EmailOutbox)
        .where(EmailOutbox.status.in_([PENDING, FAILED]), EmailOutbox.attempts < max_attempts)
        .order_by(EmailOutbox.id)
        .limit(limit)
    ).all()

    sent = failed = 0
    for row in rows:
        if deliver(db, row):
            sent += 1
        else:
            failed += 1

    return {"attempted": len(rows), "sent": sent, "failed": failed}
