from fastapi import FastAPI, Depends, Header, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from marketplace.core.config import settings
from marketplace.core.db import Base, engine, get_db
from marketplace.core.errors import (
    BusinessRuleError,
    CheckoutValidationError,
    ConfirmationRejected,
    EmptyCartError,
    InfrastructureError,
    InsufficientStockAtConfirmationError,
    InsufficientStockError,
    OrderAlreadyProcessedError,
    OrderNotFoundError,
    OrderNotPendingError,
    ProductNotFoundError,
    TokenAlreadyUsedError,
    TokenExpiredError,
    TokenMissingError,
    TokenNotFoundError,
    ValidationError,
)
from marketplace.core.logging_config import get_logger, setup_logging
from marketplace.models.customer import Customer
from marketplace.schemas.checkout import CheckoutForm, CheckoutResponse, CheckoutSummary, OrderOut, ReissueResponse
from marketplace.schemas.confirmation import ConfirmationErrorOut, ConfirmationOut
from marketplace.services.checkout import (
    EMAIL_WARNING,
    checkout,
    checkout_summary,
    get_order_for_customer,
    reissue_confirmation,
)
from marketplace.services.confirmation import confirm_payment

# Import models so Base.metadata knows them
import marketplace.models  # noqa

setup_logging()
log = get_logger(__name__)

app = FastAPI(title="Marketplace Orders & Payment Confirmation")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Customer-Id"],
    max_age=600,
)

# Create tables (Alembic optional)
Base.metadata.create_all(bind=engine)
log.info("Marketplace API ready")


# -------------------------
# Error -> response mapping
# -------------------------

CONFIRMATION_STATUS = {
    TokenMissingError: 400,
    TokenNotFoundError: 404,
    TokenAlreadyUsedError: 409,
    TokenExpiredError: 410,
    OrderAlreadyProcessedError: 409,
    InsufficientStockAtConfirmationError: 409,
}

BUSINESS_STATUS = {
    EmptyCartError: 409,
    InsufficientStockError: 409,
    OrderNotFoundError: 404,
    OrderNotPendingError: 409,
    ProductNotFoundError: 404,
}


@app.exception_handler(ConfirmationRejected)
def confirmation_rejected_handler(request: Request, exc: ConfirmationRejected):
    body = ConfirmationErrorOut(
        error=exc.code,
        title=exc.title,
        message=exc.message,
        order_number=exc.order_number,
        problems=[p.describe() for p in getattr(exc, "problems", [])],
    )
    return JSONResponse(status_code=CONFIRMATION_STATUS.get(type(exc), 409), content=body.model_dump())


@app.exception_handler(ValidationError)
def validation_error_handler(request: Request, exc: ValidationError):
    content = {"title": exc.title, "message": exc.message, "fields": exc.fields}
    if isinstance(exc, CheckoutValidationError) and exc.summary is not None:
        content["cart"] = CheckoutSummary(**exc.summary).model_dump(mode="json")
    return JSONResponse(status_code=422, content=content)


@app.exception_handler(BusinessRuleError)
def business_rule_handler(request: Request, exc: BusinessRuleError):
    content = {"title": exc.title, "message": exc.message}
    if isinstance(exc, InsufficientStockError):
        content["product_id"] = exc.product_id
    return JSONResponse(status_code=BUSINESS_STATUS.get(type(exc), 409), content=content)


@app.exception_handler(InfrastructureError)
def infrastructure_handler(request: Request, exc: InfrastructureError):
    # details were logged where the error was raised
    return JSONResponse(status_code=500, content={"title": exc.title, "message": exc.message})


# -------------------------
# Dependencies
# -------------------------

def current_customer(
    x_customer_id: str | None = Header(default=None),
    db: Session = Depends(get_db),
) -> Customer:
    """The auth layer in front of the API passes the signed-in customer id."""
    if not x_customer_id:
        raise HTTPException(status_code=401, detail="Login required")
    customer = db.get(Customer, x_customer_id)
    if not customer:
        raise HTTPException(status_code=401, detail="Unknown customer")
    return customer


# -------------------------
# Routes
# -------------------------

@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/checkout", response_model=CheckoutSummary)
def get_checkout(customer: Customer = Depends(current_customer), db: Session = Depends(get_db)):
    return checkout_summary(db, customer.id)


@app.post("/checkout", response_model=CheckoutResponse, status_code=201)
def post_checkout(
    form: CheckoutForm,
    customer: Customer = Depends(current_customer),
    db: Session = Depends(get_db),
):
    result = checkout(db, customer, form)
    return CheckoutResponse(
        order_id=result.order_id,
        order_number=result.order_number,
        status=result.status,
        total=result.total,
        email_sent=result.email_sent,
        warning=result.warning,
    )


@app.get("/orders/{order_id}", response_model=OrderOut)
def get_order(order_id: int, customer: Customer = Depends(current_customer), db: Session = Depends(get_db)):
    return get_order_for_customer(db, order_id, customer.id)


@app.post("/orders/{order_id}/confirmation-token", response_model=ReissueResponse)
def reissue_token(order_id: int, customer: Customer = Depends(current_customer), db: Session = Depends(get_db)):
    order_number, sent = reissue_confirmation(db, order_id, customer)
    return ReissueResponse(order_number=order_number, email_sent=sent, warning=None if sent else EMAIL_WARNING)


# No login here: the link may be opened on any device.
@app.get("/confirm", response_model=ConfirmationOut)
def confirm(token: str | None = None, db: Session = Depends(get_db)):
    result = confirm_payment(db, token)
    return ConfirmationOut(
        title="Pagamento Confirmado!",
        message=f"O pagamento do pedido {result.order_number} foi confirmado.",
        order_number=result.order_number,
        total_amount=result.total_amount,
        customer_name=result.customer_name,
    )
