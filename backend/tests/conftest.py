from __future__ import annotations

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import marketplace.models  # noqa
from marketplace.core.db import Base, get_db
from marketplace.main import app
from marketplace.models.customer import Customer
from marketplace.models.product import Product, ProductStatus
from marketplace.schemas.checkout import CheckoutForm
from marketplace.services.cart import add_to_cart


@pytest.fixture
def db():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(bind=engine, autoflush=False)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        engine.dispose()


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def sent_emails(monkeypatch):
    """Captures outgoing mail instead of talking to an SMTP server."""
    sent = []

    def fake_send(to_addr, subject, html_body):
        sent.append({"to": to_addr, "subject": subject, "body": html_body})

    monkeypatch.setattr("marketplace.services.outbox.send_email", fake_send)
    return sent


@pytest.fixture
def failing_smtp(monkeypatch):
    def boom(to_addr, subject, html_body):
        raise ConnectionRefusedError("smtp down")

    monkeypatch.setattr("marketplace.services.outbox.send_email", boom)


@pytest.fixture
def customer(db):
    c = Customer(id="cust-1", full_name="Maria Silva", email="maria@example.com")
    db.add(c)
    db.commit()
    return c


@pytest.fixture
def make_product(db):
    def _make(name: str, price: str, stock: int, status: str = ProductStatus.AVAILABLE.value) -> Product:
        p = Product(name=name, price=Decimal(price), stock=stock, status=status)
        db.add(p)
        db.commit()
        return p

    return _make


@pytest.fixture
def scenario_cart(db, customer, make_product):
    """2x Product A (stock 5, R$ 10,00) and 1x Product B (stock 1, R$ 20,00)."""
    a = make_product("Product A", "10.00", 5)
    b = make_product("Product B", "20.00", 1)
    add_to_cart(db, customer.id, a.id, 2)
    add_to_cart(db, customer.id, b.id, 1)
    return a, b


@pytest.fixture
def form_data():
    return {
        "full_name": "Maria Silva",
        "email": "maria@example.com",
        "phone": "11987654321",
        "cpf": "123.456.789-09",
        "zip_code": "01310-100",
        "street": "Avenida Paulista",
        "number": "1000",
        "complement": "Apto 12",
        "neighborhood": "Bela Vista",
        "city": "São Paulo",
        "state": "SP",
        "payment_method": "CreditCard",
        "card_number": "4111 1111 1111 1111",
        "card_holder_name": "MARIA SILVA",
        "card_expiry": "12/29",
        "card_cvv": "123",
        "save_address": True,
    }


@pytest.fixture
def form(form_data):
    return CheckoutForm(**form_data)
