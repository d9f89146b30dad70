import enum
from datetime import datetime, timezone
from decimal import Decimal
from sqlalchemy import Integer, String, Numeric, Text, DateTime
from sqlalchemy.orm import Mapped, mapped_column
from marketplace.core.db import Base


class ProductStatus(str, enum.Enum):
    AVAILABLE = "Available"
    OUT_OF_STOCK = "OutOfStock"
    DISCONTINUED = "Discontinued"
    DRAFT = "Draft"


class Product(Base):
    __tablename__ = "products"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    sku: Mapped[str | None] = mapped_column(String(40), unique=True, index=True, nullable=True)
    name: Mapped[str] = mapped_column(String(100), index=True)
    description: Mapped[str] = mapped_column(Text, default="")
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2))
    stock: Mapped[int] = mapped_column(Integer, default=0)
    status: Mapped[str] = mapped_column(String(30), default=ProductStatus.AVAILABLE.value, index=True)
    modified_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc)
    )
