from marketplace.models.customer import Customer
from marketplace.models.product import Product, ProductStatus
from marketplace.models.cart import Cart, CartItem
from marketplace.models.address import Address, CustomerAddress
from marketplace.models.order import Order, OrderItem, OrderStatus
from marketplace.models.payment_token import PaymentConfirmationToken
from marketplace.models.order_sequence import OrderNumberSequence
from marketplace.models.email_outbox import EmailOutbox

__all__ = [
    "Customer",
    "Product",
    "ProductStatus",
    "Cart",
    "CartItem",
    "Address",
    "CustomerAddress",
    "Order",
    "OrderItem",
    "OrderStatus",
    "PaymentConfirmationToken",
    "OrderNumberSequence",
    "EmailOutbox",
]
