from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from marketplace.models.order import Order
from marketplace.models.order_sequence import OrderNumberSequence

PREFIX = "PED"


def format_order_number(year: int, sequence: int) -> str:
    return f"{PREFIX}-{year}-{sequence:06d}"


def parse_sequence(order_number: str) -> int | None:
    parts = (order_number or "").split("-")
    if len(parts) != 3 or parts[0] != PREFIX:
        return None
    try:
        return int(parts[2])
    except ValueError:
        return None


def max_existing_sequence(db: Session, year: int) -> int:
    numbers = db.scalars(
        select(Order.order_number).where(Order.order_number.startswith(f"{PREFIX}-{year}-"))
    ).all()
    return max((s for s in map(parse_sequence, numbers) if s is not None), default=0)


def next_order_number(db: Session, now: datetime) -> str:
    """
    Allocates the next PED-{year}-{NNNNNN} inside the caller's transaction.

    The year's counter row is locked (SELECT ... FOR UPDATE) until the order
    insert commits, so concurrent checkouts serialize here. A year's first
    row starts from whatever orders already carry that year's prefix.
    """
    year = now.year
    seq = db.execute(
        select(OrderNumberSequence)
        .where(OrderNumberSequence.year == year)
        .with_for_update()
    ).scalar_one_or_none()

    if seq is None:
        seq = OrderNumberSequence(year=year, last_value=max_existing_sequence(db, year))
        db.add(seq)

    seq.last_value += 1
    db.flush()
    return format_order_number(year, seq.last_value)
