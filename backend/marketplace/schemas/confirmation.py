from decimal import Decimal

from pydantic import BaseModel


class ConfirmationOut(BaseModel):
    title: str
    message: str
    order_number: str
    total_amount: Decimal
    customer_name: str


class ConfirmationErrorOut(BaseModel):
    error: str
    title: str
    message: str
    order_number: str | None = None
    problems: list[str] = []
