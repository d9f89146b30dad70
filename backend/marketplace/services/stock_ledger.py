from sqlalchemy import select, update
from sqlalchemy.orm import Session

from marketplace.core.errors import ProductNotFoundError, StockUnderflowError
from marketplace.core.logging_config import get_logger
from marketplace.models.product import Product, ProductStatus

log = get_logger(__name__)

# None of these commit: they run inside the caller's transaction.


def get_stock(db: Session, product_id: int) -> int:
    stock = db.scalar(select(Product.stock).where(Product.id == product_id))
    if stock is None:
        raise ProductNotFoundError(product_id)
    return stock


def decrement_stock(db: Session, product_id: int, quantity: int) -> int:
    if quantity < 1:
        raise ValueError(f"quantity must be >= 1, got {quantity}")

    result = db.execute(
        update(Product)
        .where(Product.id == product_id, Product.stock >= quantity)
        .values(stock=Product.stock - quantity)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        # distinguish "no such product" from "not enough units"
        get_stock(db, product_id)
        raise StockUnderflowError(product_id, quantity)

    new_stock = get_stock(db, product_id)
    log.info(f"[Product: {product_id}] stock -{quantity} -> {new_stock}")
    return new_stock


def set_status_out_of_stock(db: Session, product_id: int) -> None:
    db.execute(
        update(Product)
        .where(Product.id == product_id)
        .values(status=ProductStatus.OUT_OF_STOCK.value)
        .execution_options(synchronize_session=False)
    )
    log.info(f"[Product: {product_id}] marked {ProductStatus.OUT_OF_STOCK.value}")
