from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from marketplace.core.clock import now_utc
from marketplace.core.errors import BusinessRuleError, InsufficientStockError, ProductNotFoundError
from marketplace.core.logging_config import get_logger
from marketplace.models.cart import Cart, CartItem
from marketplace.models.product import Product, ProductStatus
from marketplace.services.pricing import line_subtotal, sum_money

log = get_logger(__name__)

MAX_LINE_QUANTITY = 999


@dataclass(frozen=True)
class CartLine:
    item: CartItem
    product: Product

    @property
    def subtotal(self) -> Decimal:
        return line_subtotal(self.item.quantity, self.item.unit_price)


def get_cart(db: Session, customer_id: str) -> Cart | None:
    return db.scalars(select(Cart).where(Cart.customer_id == customer_id)).first()


def get_or_create_cart(db: Session, customer_id: str) -> Cart:
    cart = get_cart(db, customer_id)
    if cart:
        return cart
    cart = Cart(customer_id=customer_id)
    db.add(cart)
    db.flush()
    return cart


def load_cart_lines(db: Session, customer_id: str) -> list[CartLine]:
    """Cart items joined with the live product rows, oldest line first."""
    rows = db.execute(
        select(CartItem, Product)
        .join(Cart, Cart.id == CartItem.cart_id)
        .join(Product, Product.id == CartItem.product_id)
        .where(Cart.customer_id == customer_id)
        .order_by(CartItem.id)
    ).all()
    return [CartLine(item=item, product=product) for item, product in rows]


def cart_subtotal(lines: list[CartLine]) -> Decimal:
    return sum_money(line.subtotal for line in lines)


def add_to_cart(db: Session, customer_id: str, product_id: int, quantity: int = 1) -> CartItem:
    if quantity < 1 or quantity > MAX_LINE_QUANTITY:
        raise BusinessRuleError("Quantidade inválida")

    product = db.get(Product, product_id)
    if not product:
        raise ProductNotFoundError(product_id)
    if product.status != ProductStatus.AVAILABLE.value:
        raise BusinessRuleError("Este produto não está disponível no momento")

    cart = get_or_create_cart(db, customer_id)
    item = db.scalars(
        select(CartItem).where(CartItem.cart_id == cart.id, CartItem.product_id == product_id)
    ).first()

    new_quantity = quantity + (item.quantity if item else 0)
    if new_quantity > MAX_LINE_QUANTITY:
        raise BusinessRuleError(f"Não é possível adicionar mais unidades. Máximo por item: {MAX_LINE_QUANTITY}")
    if new_quantity > product.stock:
        raise InsufficientStockError(product.id, product.name, new_quantity, product.stock)

    if item:
        item.quantity = new_quantity
    else:
        # capture the current price on the line
        item = CartItem(cart_id=cart.id, product_id=product.id, quantity=quantity, unit_price=product.price)
        db.add(item)

    cart.updated_at = now_utc()
    db.commit()
    db.refresh(item)
    log.info(f"[Cart: {cart.id}] {product.name} x{new_quantity}")
    return item


def clear_cart(db: Session, customer_id: str) -> int:
    cart = get_cart(db, customer_id)
    if not cart:
        return 0
    result = db.execute(delete(CartItem).where(CartItem.cart_id == cart.id))
    cart.updated_at = now_utc()
    return result.rowcount
