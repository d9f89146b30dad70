from sqlalchemy import Integer
from sqlalchemy.orm import Mapped, mapped_column
from marketplace.core.db import Base

class OrderNumberSequence(Base):
    """Last order number handed out per calendar year."""

    __tablename__ = "order_number_sequences"

    year: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=False)
    last_value: Mapped[int] = mapped_column(Integer, default=0)
