from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from marketplace.core.logging_config import get_logger
from marketplace.models.address import Address, CustomerAddress

log = get_logger(__name__)

ADDRESS_FIELDS = ("zip_code", "street", "number", "complement", "neighborhood", "city", "state")


def find_address(db: Session, fields: dict) -> Address | None:
    """Exact match on every address field; a missing complement only matches NULL."""
    stmt = select(Address)
    for name in ADDRESS_FIELDS:
        column = getattr(Address, name)
        value = fields.get(name)
        stmt = stmt.where(column.is_(None) if value is None else column == value)
    return db.scalars(stmt.order_by(Address.id).limit(1)).first()


def resolve_address(db: Session, fields: dict, now: datetime) -> Address:
    address = find_address(db, fields)
    if address:
        return address

    address = Address(**{name: fields.get(name) for name in ADDRESS_FIELDS}, created_at=now, updated_at=now)
    db.add(address)
    db.flush()
    log.info(f"New shipping address #{address.id} ({address.zip_code}, {address.city}/{address.state})")
    return address


def link_customer_address(db: Session, customer_id: str, address_id: int, now: datetime) -> bool:
    """Returns False when the pair already exists."""
    existing = db.scalars(
        select(CustomerAddress).where(
            CustomerAddress.customer_id == customer_id,
            CustomerAddress.address_id == address_id,
        )
    ).first()
    if existing:
        return False

    db.add(CustomerAddress(customer_id=customer_id, address_id=address_id, is_default=False, created_at=now))
    db.flush()
    return True
