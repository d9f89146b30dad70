"""
Checkout: turns a customer's cart into a Pending order plus a confirmation token.

Stock is only checked here, never decremented; inventory moves when the
customer follows the emailed link (see `services.confirmation`).
"""

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.orm import Session

from marketplace.core.clock import now_utc
from marketplace.core.config import settings
from marketplace.core.errors import (
    CheckoutFailedError,
    CheckoutValidationError,
    EmptyCartError,
    InsufficientStockError,
    OrderNotFoundError,
    OrderNotPendingError,
)
from marketplace.core.logging_config import get_logger
from marketplace.models.address import Address
from marketplace.models.customer import Customer
from marketplace.models.order import Order, OrderItem, OrderStatus
from marketplace.models.product import Product
from marketplace.schemas.checkout import CARD_FIELDS, PAYMENT_METHOD_LABELS, CheckoutForm
from marketplace.services import outbox
from marketplace.services.addresses import link_customer_address, resolve_address
from marketplace.services.cart import CartLine, cart_subtotal, clear_cart, load_cart_lines
from marketplace.services.mailer import build_order_confirmation_email
from marketplace.services.order_numbers import next_order_number
from marketplace.services.pricing import item_subtotal, money, order_total
from marketplace.services.tokens import issue_token, token_prefix

log = get_logger(__name__)

EMAIL_WARNING = (
    "Pedido criado, mas não foi possível enviar o email de confirmação. "
    "Entre em contato com nosso suporte para receber o link de pagamento."
)


@dataclass(frozen=True)
class CheckoutResult:
    order_id: int
    order_number: str
    status: str
    total: Decimal
    email_sent: bool
    warning: str | None = None


def build_summary(lines: list[CartLine]) -> dict:
    subtotal = cart_subtotal(lines)
    shipping = money(settings.SHIPPING_FLAT_RATE)
    discount = money(0)
    return {
        "items": [
            {
                "product_id": line.product.id,
                "product_name": line.product.name,
                "quantity": line.item.quantity,
                "unit_price": money(line.item.unit_price),
                "subtotal": line.subtotal,
                "available_stock": line.product.stock,
            }
            for line in lines
        ],
        "subtotal": subtotal,
        "shipping": shipping,
        "discount": discount,
        "total": order_total(subtotal, shipping, discount),
    }


def checkout_summary(db: Session, customer_id: str) -> dict:
    lines = load_cart_lines(db, customer_id)
    if not lines:
        raise EmptyCartError()
    return build_summary(lines)


def missing_payment_fields(form: CheckoutForm) -> list[str]:
    if form.payment_method != "CreditCard":
        return []
    return [name for name in CARD_FIELDS if not getattr(form, name)]


def checkout(db: Session, customer: Customer, form: CheckoutForm, now: datetime | None = None) -> CheckoutResult:
    now = now or now_utc()
    customer_id = customer.id

    # 1) live cart, never the client's idea of it
    lines = load_cart_lines(db, customer_id)
    if not lines:
        raise EmptyCartError()

    # 2) payment-method specific fields
    missing = missing_payment_fields(form)
    if missing:
        raise CheckoutValidationError(
            "Todos os dados do cartão são obrigatórios.",
            fields=missing,
            summary=build_summary(lines),
        )

    # 3) point-in-time stock check (no reservation)
    for line in lines:
        if line.product.stock < line.item.quantity:
            raise InsufficientStockError(line.product.id, line.product.name, line.item.quantity, line.product.stock)

    # 4) address, order, items and token in one transaction
    try:
        address = resolve_address(db, form.address_fields(), now)
        if form.save_address:
            link_customer_address(db, customer_id, address.id, now)

        summary = build_summary(lines)
        order = Order(
            order_number=next_order_number(db, now),
            customer_id=customer_id,
            shipping_address_id=address.id,
            status=OrderStatus.PENDING.value,
            subtotal_amount=summary["subtotal"],
            shipping_amount=summary["shipping"],
            discount_amount=summary["discount"],
            total_amount=summary["total"],
            payment_method=PAYMENT_METHOD_LABELS.get(form.payment_method, form.payment_method),
            created_at=now,
        )
        db.add(order)
        db.flush()

        db.add_all(
            OrderItem(
                order_id=order.id,
                product_id=line.item.product_id,
                quantity=line.item.quantity,
                unit_price=money(line.item.unit_price),
                discount_amount=money(0),
            )
            for line in lines
        )
        token = issue_token(db, order.id, now)
        token_value = token.token
        order_id, order_number, total = order.id, order.order_number, money(order.total_amount)
        db.commit()
    except Exception as e:
        db.rollback()
        log.error(f"[Customer: {customer_id}] checkout failed: {e}", exc_info=True)
        raise CheckoutFailedError() from e

    # committed: the order stands from here on, so nothing below may raise
    log.info(f"[Order: {order_number}] created, total {total}, awaiting payment")

    # 5) best effort: the order stands whether or not the email goes out
    email_sent = send_order_confirmation(db, order_id, order_number, total, token_value, form.email, form.full_name)

    # 6) empty the cart
    try:
        removed = clear_cart(db, customer_id)
        db.commit()
        log.info(f"[Order: {order_number}] {removed} cart item(s) removed")
    except Exception as e:
        db.rollback()
        log.error(f"[Order: {order_number}] order saved but cart not cleared: {e}", exc_info=True)

    return CheckoutResult(
        order_id=order_id,
        order_number=order_number,
        status=OrderStatus.PENDING.value,
        total=total,
        email_sent=email_sent,
        warning=None if email_sent else EMAIL_WARNING,
    )


def send_order_confirmation(
    db: Session,
    order_id: int,
    order_number: str,
    total: Decimal,
    token: str,
    recipient: str,
    recipient_name: str,
) -> bool:
    """Queues and attempts the confirmation email. Never raises."""
    subject, body = build_order_confirmation_email(recipient_name, order_number, total, token)
    try:
        row = outbox.queue_email(db, recipient, subject, body, order_id=order_id)
        sent = outbox.deliver(db, row)
    except Exception as e:
        db.rollback()
        log.error(
            f"[Order: {order_number}] could not record confirmation email "
            f"(token {token_prefix(token)}): {e}",
            exc_info=True,
        )
        return False

    if not sent:
        log.warning(f"[Order: {order_number}] confirmation email not delivered; order kept as Pending")
    return sent


def reissue_confirmation(db: Session, order_id: int, customer: Customer, now: datetime | None = None) -> tuple[str, bool]:
    """New link for an order still waiting for payment. Earlier tokens stay as they are.

    Returns the order number and whether the email went out.
    """
    order = db.scalars(select(Order).where(Order.id == order_id, Order.customer_id == customer.id)).first()
    if not order:
        raise OrderNotFoundError(order_id)
    if order.status != OrderStatus.PENDING.value:
        raise OrderNotPendingError(order.order_number, order.status)

    order_number, total = order.order_number, money(order.total_amount)
    email, full_name = customer.email, customer.full_name
    token = issue_token(db, order.id, now)
    token_value = token.token
    db.commit()
    log.info(f"[Order: {order_number}] confirmation link reissued")

    sent = send_order_confirmation(db, order_id, order_number, total, token_value, email, full_name)
    return order_number, sent

def get_order_for_customer(db: Session, order_id: int, customer_id: str) -> dict:
    order = db.scalars(select(Order).where(Order.id == order_id, Order.customer_id == customer_id)).first()
    if not order:
        raise OrderNotFoundError(order_id)

    rows = db.execute(
        select(OrderItem, Product.name)
        .join(Product, Product.id == OrderItem.product_id)
        .where(OrderItem.order_id == order.id)
        .order_by(OrderItem.id)
    ).all()
    address = db.get(Address, order.shipping_address_id)

    return {
        "id": order.id,
        "order_number": order.order_number,
        "status": order.status,
        "payment_method": order.payment_method,
        "subtotal_amount": order.subtotal_amount,
        "shipping_amount": order.shipping_amount,
        "discount_amount": order.discount_amount,
        "total_amount": order.total_amount,
        "created_at": order.created_at,
        "paid_at": order.paid_at,
        "items": [
            {
                "product_id": item.product_id,
                "product_name": name,
                "quantity": item.quantity,
                "unit_price": item.unit_price,
                "discount_amount": item.discount_amount,
                "subtotal": item_subtotal(item),
            }
            for item, name in rows
        ],
        "shipping_address": {
            "zip_code": address.zip_code,
            "street": address.street,
            "number": address.number,
            "complement": address.complement,
            "neighborhood": address.neighborhood,
            "city": address.city,
            "state": address.state,
            "country": address.country,
        },
    }
