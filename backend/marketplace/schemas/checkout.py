from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field, field_validator

PaymentMethod = Literal["CreditCard", "PIX", "BankSlip"]

PAYMENT_METHOD_LABELS = {
    "CreditCard": "Cartão de Crédito",
    "PIX": "PIX",
    "BankSlip": "Boleto Bancário",
}

CARD_FIELDS = ("card_number", "card_holder_name", "card_expiry", "card_cvv")


class CheckoutForm(BaseModel):
    # personal data
    full_name: str = Field(min_length=1, max_length=200)
    email: str = Field(pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$", max_length=256)
    phone: str = Field(min_length=8, max_length=20)
    cpf: str = Field(pattern=r"^\d{3}\.\d{3}\.\d{3}-\d{2}$")

    # shipping address
    zip_code: str = Field(pattern=r"^\d{5}-\d{3}$")
    street: str = Field(min_length=1, max_length=200)
    number: str = Field(min_length=1, max_length=10)
    complement: str | None = Field(None, max_length=100)
    neighborhood: str = Field(min_length=1, max_length=100)
    city: str = Field(min_length=1, max_length=100)
    state: str = Field(pattern=r"^[A-Z]{2}$")

    # payment
    payment_method: PaymentMethod = "CreditCard"
    card_number: str | None = Field(None, pattern=r"^[\d ]{12,23}$")
    card_holder_name: str | None = Field(None, max_length=100)
    card_expiry: str | None = Field(None, pattern=r"^(0[1-9]|1[0-2])/\d{2}$")
    card_cvv: str | None = Field(None, pattern=r"^\d{3,4}$")

    save_address: bool = True

    @field_validator("complement", *CARD_FIELDS, mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    def address_fields(self) -> dict:
        return {
            "zip_code": self.zip_code,
            "street": self.street,
            "number": self.number,
            "complement": self.complement,
            "neighborhood": self.neighborhood,
            "city": self.city,
            "state": self.state,
        }


class CheckoutItemOut(BaseModel):
    product_id: int
    product_name: str
    quantity: int
    unit_price: Decimal
    subtotal: Decimal
    available_stock: int


class CheckoutSummary(BaseModel):
    items: list[CheckoutItemOut]
    subtotal: Decimal
    shipping: Decimal
    discount: Decimal
    total: Decimal


class CheckoutResponse(BaseModel):
    order_id: int
    order_number: str
    status: str
    total: Decimal
    email_sent: bool
    warning: str | None = None


class OrderItemOut(BaseModel):
    product_id: int
    product_name: str
    quantity: int
    unit_price: Decimal
    discount_amount: Decimal
    subtotal: Decimal


class AddressOut(BaseModel):
    zip_code: str
    street: str
    number: str
    complement: str | None
    neighborhood: str
    city: str
    state: str
    country: str


class OrderOut(BaseModel):
    id: int
    order_number: str
    status: str
    payment_method: str
    subtotal_amount: Decimal
    shipping_amount: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    created_at: datetime
    paid_at: datetime | None
    items: list[OrderItemOut]
    shipping_address: AddressOut


class ReissueResponse(BaseModel):
    order_number: str
    email_sent: bool
    warning: str | None = None
