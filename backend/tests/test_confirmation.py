from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import select

from marketplace.core.errors import (
    ConfirmationFailedError,
    InsufficientStockAtConfirmationError,
    OrderAlreadyProcessedError,
    TokenAlreadyUsedError,
    TokenExpiredError,
    TokenMissingError,
    TokenNotFoundError,
)
from marketplace.models.customer import Customer
from marketplace.models.order import Order, OrderStatus
from marketplace.models.payment_token import PaymentConfirmationToken
from marketplace.models.product import Product, ProductStatus
from marketplace.services.checkout import checkout
from marketplace.services.confirmation import confirm_payment


@pytest.fixture
def pending(db, customer, scenario_cart, form, sent_emails):
    """A checked-out scenario order: (order_id, token string, product A, product B)."""
    result = checkout(db, customer, form)
    token = db.scalars(
        select(PaymentConfirmationToken).where(PaymentConfirmationToken.order_id == result.order_id)
    ).one()
    a, b = scenario_cart
    return result.order_id, token.token, a, b


def _snapshot(db, order_id):
    db.expire_all()
    order = db.get(Order, order_id)
    token = db.scalars(select(PaymentConfirmationToken).where(PaymentConfirmationToken.order_id == order_id)).one()
    products = db.scalars(select(Product).order_by(Product.id)).all()
    return (
        (order.status, order.paid_at),
        (token.used, token.used_at),
        [(p.id, p.stock, p.status) for p in products],
    )


def test_confirmation_commits_payment_and_stock(db, pending):
    order_id, token, a, b = pending

    result = confirm_payment(db, token)

    order = db.get(Order, order_id)
    assert result.order_number == order.order_number
    assert result.customer_name == "Maria Silva"
    assert order.status == OrderStatus.PAYMENT_CONFIRMED.value
    assert order.paid_at is not None

    db.refresh(a)
    db.refresh(b)
    assert a.stock == 3
    assert a.status == ProductStatus.AVAILABLE.value
    assert b.stock == 0
    assert b.status == ProductStatus.OUT_OF_STOCK.value

    row = db.scalars(select(PaymentConfirmationToken).where(PaymentConfirmationToken.token == token)).one()
    assert row.used is True
    assert row.used_at is not None


def test_second_confirmation_is_rejected_as_already_used(db, pending):
    order_id, token, a, b = pending

    confirm_payment(db, token)
    with pytest.raises(TokenAlreadyUsedError) as exc:
        confirm_payment(db, token)

    assert exc.value.used_at is not None
    db.refresh(a)
    assert a.stock == 3  # decremented exactly once


def test_stock_gone_before_confirmation_rejects_everything(db, pending):
    order_id, token, a, b = pending
    b.stock = 0  # another order was confirmed first
    db.commit()
    before = _snapshot(db, order_id)

    with pytest.raises(InsufficientStockAtConfirmationError) as exc:
        confirm_payment(db, token)

    assert [p.product_name for p in exc.value.problems] == ["Product B"]
    assert "Product B" in exc.value.problems[0].describe()
    assert _snapshot(db, order_id) == before


def test_every_short_product_is_reported(db, pending):
    order_id, token, a, b = pending
    a.stock = 1
    b.stock = 0
    db.commit()

    with pytest.raises(InsufficientStockAtConfirmationError) as exc:
        confirm_payment(db, token)

    assert [(p.product_name, p.available, p.requested) for p in exc.value.problems] == [
        ("Product A", 1, 2),
        ("Product B", 0, 1),
    ]


def test_expiry_boundary(db, pending):
    order_id, token, a, b = pending
    now = datetime.now(timezone.utc)
    row = db.scalars(select(PaymentConfirmationToken).where(PaymentConfirmationToken.token == token)).one()

    row.expires_at = now - timedelta(seconds=1)
    db.commit()
    with pytest.raises(TokenExpiredError):
        confirm_payment(db, token, now=now)

    row.expires_at = now + timedelta(seconds=1)
    db.commit()
    confirm_payment(db, token, now=now)
    assert db.get(Order, order_id).status == OrderStatus.PAYMENT_CONFIRMED.value


def test_expired_token_changes_nothing(db, pending):
    order_id, token, a, b = pending
    before = _snapshot(db, order_id)

    with pytest.raises(TokenExpiredError) as exc:
        confirm_payment(db, token, now=datetime.now(timezone.utc) + timedelta(hours=25))

    assert exc.value.order_number
    assert _snapshot(db, order_id) == before


@pytest.mark.parametrize("value", [None, "", "   "])
def test_missing_token(db, value):
    with pytest.raises(TokenMissingError):
        confirm_payment(db, value)


def test_unknown_token(db, pending):
    with pytest.raises(TokenNotFoundError):
        confirm_payment(db, "not-a-real-token")


def test_order_no_longer_pending(db, pending):
    order_id, token, a, b = pending
    order = db.get(Order, order_id)
    order.status = OrderStatus.CANCELED.value
    db.commit()

    with pytest.raises(OrderAlreadyProcessedError) as exc:
        confirm_payment(db, token)

    assert exc.value.status == OrderStatus.CANCELED.value
    db.refresh(a)
    assert a.stock == 5


def test_checks_run_in_order_used_before_expired(db, pending):
    order_id, token, a, b = pending
    confirm_payment(db, token)

    with pytest.raises(TokenAlreadyUsedError):
        confirm_payment(db, token, now=datetime.now(timezone.utc) + timedelta(days=30))


def test_storage_failure_mid_write_rolls_back(db, pending, monkeypatch):
    order_id, token, a, b = pending
    before = _snapshot(db, order_id)

    # Product A is decremented before Product B reaches zero and fails here
    def broken(db, product_id):
        raise RuntimeError("disk full")

    monkeypatch.setattr("marketplace.services.confirmation.set_status_out_of_stock", broken)

    with pytest.raises(ConfirmationFailedError) as exc:
        confirm_payment(db, token)

    assert "disk full" not in exc.value.message
    assert _snapshot(db, order_id) == before


def test_token_claimed_by_concurrent_request(db, pending, monkeypatch):
    order_id, token, a, b = pending
    before = _snapshot(db, order_id)

    import marketplace.services.confirmation as confirmation

    real_is_expired = confirmation.is_expired

    def racing_is_expired(row, now=None):
        # another request consumes the token between the checks and the write
        db.execute(
            PaymentConfirmationToken.__table__.update()
            .where(PaymentConfirmationToken.__table__.c.id == row.id)
            .values(used=True, used_at=datetime.now(timezone.utc))
        )
        return real_is_expired(row, now)

    monkeypatch.setattr(confirmation, "is_expired", racing_is_expired)

    with pytest.raises(TokenAlreadyUsedError):
        confirm_payment(db, token)

    # the losing request wrote nothing
    assert _snapshot(db, order_id) == before


def test_failure_reading_customer_rolls_back(db, pending, monkeypatch):
    order_id, token, a, b = pending
    before = _snapshot(db, order_id)

    real_get = db.get

    def flaky_get(entity, ident, **kw):
        if entity is Customer:
            raise RuntimeError("connection reset")
        return real_get(entity, ident, **kw)

    monkeypatch.setattr(db, "get", flaky_get)

    with pytest.raises(ConfirmationFailedError):
        confirm_payment(db, token)

    monkeypatch.undo()
    assert _snapshot(db, order_id) == before


def test_storage_errors_after_commit_do_not_report_failure(db, pending, monkeypatch):
    order_id, token, a, b = pending
    real_commit = db.commit

    def connection_lost(*args, **kw):
        raise RuntimeError("connection reset")

    def commit_then_lose_connection():
        real_commit()
        for name in ("get", "execute", "scalars", "scalar", "refresh"):
            monkeypatch.setattr(db, name, connection_lost)

    monkeypatch.setattr(db, "commit", commit_then_lose_connection)

    result = confirm_payment(db, token)

    monkeypatch.undo()
    assert result.customer_name == "Maria Silva"
    assert result.total_amount == Decimal("40.00")
    assert result.order_number.startswith("PED-")

    db.expire_all()
    assert db.get(Order, order_id).status == OrderStatus.PAYMENT_CONFIRMED.value
