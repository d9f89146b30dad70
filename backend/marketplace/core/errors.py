"""
Exception taxonomy for checkout and payment confirmation.

Three families, each mapped to an HTTP response in `marketplace.main`:

* ValidationError      - malformed or missing input, field-level detail
* BusinessRuleError    - a rule rejected the request before any state changed
* InfrastructureError  - storage or email failure; callers see a generic message
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any


class MarketplaceError(Exception):
    title = "Erro"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


# ---- validation -------------------------------------------------------------

class ValidationError(MarketplaceError):
    title = "Dados inválidos"

    def __init__(self, message: str, fields: list[str] | None = None):
        super().__init__(message)
        self.fields = fields or []


class CheckoutValidationError(ValidationError):
    """Carries the recomputed cart summary so the form can be shown again."""

    def __init__(self, message: str, fields: list[str], summary: dict[str, Any] | None = None):
        super().__init__(message, fields)
        self.summary = summary


# ---- business rules ---------------------------------------------------------

class BusinessRuleError(MarketplaceError):
    pass


class EmptyCartError(BusinessRuleError):
    title = "Carrinho vazio"

    def __init__(self):
        super().__init__("Seu carrinho está vazio.")


class InsufficientStockError(BusinessRuleError):
    title = "Estoque insuficiente"

    def __init__(self, product_id: int, product_name: str, requested: int, available: int):
        super().__init__(f"Produto '{product_name}' sem estoque suficiente.")
        self.product_id = product_id
        self.product_name = product_name
        self.requested = requested
        self.available = available


class ProductNotFoundError(BusinessRuleError):
    title = "Produto não encontrado"

    def __init__(self, product_id: int):
        super().__init__(f"Produto {product_id} não encontrado.")
        self.product_id = product_id


class StockUnderflowError(BusinessRuleError):
    title = "Estoque insuficiente"

    def __init__(self, product_id: int, quantity: int):
        super().__init__(f"Baixa de {quantity} unidade(s) deixaria o produto {product_id} com estoque negativo.")
        self.product_id = product_id
        self.quantity = quantity


class OrderNotFoundError(BusinessRuleError):
    title = "Pedido não encontrado"

    def __init__(self, order_id: int):
        super().__init__(f"Pedido {order_id} não encontrado.")
        self.order_id = order_id


class OrderNotPendingError(BusinessRuleError):
    title = "Pedido já processado"

    def __init__(self, order_number: str, status: str):
        super().__init__(f"O pedido {order_number} não está aguardando pagamento. Status atual: {status}")
        self.order_number = order_number
        self.status = status


# ---- confirmation outcomes --------------------------------------------------

class ConfirmationRejected(BusinessRuleError):
    """A confirmation link was refused; nothing was written."""

    code = "confirmation_rejected"
    order_number: str | None = None


class TokenMissingError(ConfirmationRejected):
    code = "token_missing"
    title = "Token não fornecido"

    def __init__(self):
        super().__init__(
            "O link de confirmação está incompleto. Verifique se copiou o link completo do email."
        )


class TokenNotFoundError(ConfirmationRejected):
    code = "token_not_found"
    title = "Token inválido"

    def __init__(self):
        super().__init__(
            "Este link de confirmação não é válido. Verifique se copiou o link corretamente."
        )


class TokenAlreadyUsedError(ConfirmationRejected):
    code = "token_already_used"
    title = "Pagamento já confirmado"

    def __init__(self, order_number: str, used_at: datetime | None):
        when = used_at.strftime("%d/%m/%Y %H:%M") if used_at else "data desconhecida"
        super().__init__(
            f"O pagamento do pedido {order_number} já foi confirmado anteriormente em {when}."
        )
        self.order_number = order_number
        self.used_at = used_at


class TokenExpiredError(ConfirmationRejected):
    code = "token_expired"
    title = "Link expirado"

    def __init__(self, order_number: str, expires_at: datetime):
        super().__init__(
            f"Este link de confirmação expirou em {expires_at:%d/%m/%Y %H:%M}. "
            "Entre em contato conosco para obter um novo link."
        )
        self.order_number = order_number
        self.expires_at = expires_at


class OrderAlreadyProcessedError(ConfirmationRejected):
    code = "order_already_processed"
    title = "Pedido já processado"

    def __init__(self, order_number: str, status: str):
        super().__init__(
            f"O pedido {order_number} já foi processado anteriormente. Status atual: {status}"
        )
        self.order_number = order_number
        self.status = status


@dataclass(frozen=True)
class StockProblem:
    product_id: int
    product_name: str
    available: int
    requested: int

    def describe(self) -> str:
        return (
            f"{self.product_name}: estoque disponível ({self.available}) "
            f"menor que quantidade pedida ({self.requested})"
        )


class InsufficientStockAtConfirmationError(ConfirmationRejected):
    code = "insufficient_stock"
    title = "Estoque insuficiente"

    def __init__(self, order_number: str, problems: list[StockProblem]):
        super().__init__(
            "Infelizmente alguns produtos do seu pedido não têm mais estoque disponível."
        )
        self.order_number = order_number
        self.problems = problems


# ---- infrastructure ---------------------------------------------------------

class InfrastructureError(MarketplaceError):
    title = "Erro inesperado"


class ConfirmationFailedError(InfrastructureError):
    title = "Erro ao confirmar pagamento"

    def __init__(self):
        super().__init__(
            "Ocorreu um erro inesperado ao processar sua confirmação. "
            "Por favor, tente novamente mais tarde ou entre em contato com nosso suporte."
        )


class CheckoutFailedError(InfrastructureError):
    title = "Erro ao processar pedido"

    def __init__(self):
        super().__init__("Erro ao processar seu pedido. Tente novamente.")
