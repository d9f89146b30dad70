"""
Payment confirmation: the customer followed the emailed link.

    Pending --(valid token, stock available)--> PaymentConfirmed

Every check runs before anything is written, and each failure raises its own
`ConfirmationRejected` subclass. The write step (order status, stock
decrements, token consumption) is a single transaction; anything unexpected
rolls it back and surfaces as `ConfirmationFailedError`.
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from marketplace.core.clock import as_utc, now_utc
from marketplace.core.errors import (
    ConfirmationFailedError,
    ConfirmationRejected,
    InsufficientStockAtConfirmationError,
    OrderAlreadyProcessedError,
    StockProblem,
    StockUnderflowError,
    TokenAlreadyUsedError,
    TokenExpiredError,
    TokenMissingError,
    TokenNotFoundError,
)
from marketplace.core.logging_config import get_logger
from marketplace.models.customer import Customer
from marketplace.models.order import Order, OrderItem, OrderStatus
from marketplace.models.payment_token import PaymentConfirmationToken
from marketplace.models.product import Product
from marketplace.services.pricing import money
from marketplace.services.stock_ledger import decrement_stock, get_stock, set_status_out_of_stock
from marketplace.services.tokens import is_expired, token_prefix

log = get_logger(__name__)


@dataclass(frozen=True)
class ConfirmationResult:
    order_id: int
    order_number: str
    total_amount: Decimal
    customer_name: str
    paid_at: datetime


def confirm_payment(db: Session, token: str | None, now: datetime | None = None) -> ConfirmationResult:
    if not token or not token.strip():
        log.warning("Payment confirmation attempted without a token")
        raise TokenMissingError()

    now = now or now_utc()
    prefix = token_prefix(token)
    log.info(f"Payment confirmation started with token {prefix}")

    try:
        result, customer_email = _confirm(db, token.strip(), now, prefix)
        db.commit()
    except ConfirmationRejected:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        log.error(f"Payment confirmation failed unexpectedly for token {prefix}: {e}", exc_info=True)
        raise ConfirmationFailedError() from e

    # committed: only values read inside the transaction from here on
    log.info(f"Payment confirmed: order {result.order_number}, customer {customer_email}")
    return result


def _confirm(db: Session, token: str, now: datetime, prefix: str) -> tuple[ConfirmationResult, str]:
    row = db.scalars(
        select(PaymentConfirmationToken)
        .where(PaymentConfirmationToken.token == token)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).first()
    if not row:
        log.warning(f"Token not found: {prefix}")
        raise TokenNotFoundError()

    order = db.scalars(
        select(Order)
        .where(Order.id == row.order_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    ).one()

    if row.used:
        log.warning(f"Token {prefix} already used (order {order.order_number})")
        raise TokenAlreadyUsedError(order.order_number, as_utc(row.used_at))

    if is_expired(row, now):
        log.warning(f"Token {prefix} expired at {as_utc(row.expires_at).isoformat()} (order {order.order_number})")
        raise TokenExpiredError(order.order_number, as_utc(row.expires_at))

    # second line of defence: token flag and order status are checked separately
    if order.status != OrderStatus.PENDING.value:
        log.warning(f"Order {order.order_number} is no longer Pending (status: {order.status})")
        raise OrderAlreadyProcessedError(order.order_number, order.status)

    lines = db.execute(
        select(OrderItem, Product)
        .join(Product, Product.id == OrderItem.product_id)
        .where(OrderItem.order_id == order.id)
        .order_by(OrderItem.id)
        .execution_options(populate_existing=True)
    ).all()

    problems = [
        StockProblem(product.id, product.name, product.stock, item.quantity)
        for item, product in lines
        if product.stock < item.quantity
    ]
    if problems:
        log.warning(
            f"Stock problems confirming order {order.order_number}: "
            + ", ".join(p.describe() for p in problems)
        )
        raise InsufficientStockAtConfirmationError(order.order_number, problems)

    # ---- all checks passed: one transaction from here on --------------------
    log.info(f"Confirming payment for order {order.order_number}")

    claimed = db.execute(
        update(PaymentConfirmationToken)
        .where(PaymentConfirmationToken.id == row.id, PaymentConfirmationToken.used.is_(False))
        .values(used=True, used_at=now)
        .execution_options(synchronize_session=False)
    )
    if claimed.rowcount != 1:
        # a concurrent confirmation got here first
        used_at = db.scalar(select(PaymentConfirmationToken.used_at).where(PaymentConfirmationToken.id == row.id))
        raise TokenAlreadyUsedError(order.order_number, as_utc(used_at))

    order.status = OrderStatus.PAYMENT_CONFIRMED.value
    order.paid_at = now

    for item, product in lines:
        try:
            new_stock = decrement_stock(db, product.id, item.quantity)
        except StockUnderflowError:
            available = get_stock(db, product.id)
            raise InsufficientStockAtConfirmationError(
                order.order_number,
                [StockProblem(product.id, product.name, available, item.quantity)],
            )
        if new_stock <= 0:
            set_status_out_of_stock(db, product.id)

    customer = db.get(Customer, order.customer_id)
    result = ConfirmationResult(
        order_id=order.id,
        order_number=order.order_number,
        total_amount=money(order.total_amount),
        customer_name=customer.full_name if customer else "",
        paid_at=now,
    )
    return result, customer.email if customer else order.customer_id
