from datetime import datetime, timezone
from decimal import Decimal

from marketplace.models.address import Address
from marketplace.models.order import Order
from marketplace.services.order_numbers import format_order_number, next_order_number, parse_sequence


def _legacy_order(db, customer, number):
    address = Address(zip_code="01310-100", street="Rua A", number="1", neighborhood="Centro", city="São Paulo", state="SP")
    db.add(address)
    db.flush()
    db.add(
        Order(
            order_number=number,
            customer_id=customer.id,
            shipping_address_id=address.id,
            subtotal_amount=Decimal("1.00"),
            shipping_amount=Decimal("0.00"),
            total_amount=Decimal("1.00"),
            payment_method="PIX",
        )
    )
    db.commit()


def test_format_and_parse():
    assert format_order_number(2025, 123) == "PED-2025-000123"
    assert parse_sequence("PED-2025-000123") == 123
    assert parse_sequence("garbage") is None
    assert parse_sequence("PED-2025-abc") is None


def test_sequence_increments_within_a_year(db):
    now = datetime(2025, 3, 1, tzinfo=timezone.utc)
    assert next_order_number(db, now) == "PED-2025-000001"
    assert next_order_number(db, now) == "PED-2025-000002"
    db.commit()
    assert next_order_number(db, now) == "PED-2025-000003"


def test_sequence_restarts_each_year(db):
    assert next_order_number(db, datetime(2025, 12, 31, tzinfo=timezone.utc)) == "PED-2025-000001"
    assert next_order_number(db, datetime(2026, 1, 1, tzinfo=timezone.utc)) == "PED-2026-000001"


def test_counter_starts_after_existing_orders(db, customer):
    _legacy_order(db, customer, "PED-2025-000041")
    _legacy_order(db, customer, "PED-2025-000007")
    _legacy_order(db, customer, "PED-2024-000900")

    assert next_order_number(db, datetime(2025, 5, 5, tzinfo=timezone.utc)) == "PED-2025-000042"
