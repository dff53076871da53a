"""Pytest configuration and fixtures."""

import hashlib
import hmac
import os
import tempfile
import time
from collections.abc import Generator
from decimal import Decimal
from typing import Any, Callable
from unittest.mock import MagicMock

import pytest

# Set test environment variables before importing application modules
os.environ.setdefault("DATABASE_URL", f"sqlite:///{os.path.join(tempfile.gettempdir(), 'store_app_test.db')}")
os.environ.setdefault("STRIPE_SECRET_KEY", "sk_test_stripe_secret_key")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_webhook_secret")
os.environ.setdefault("REVALIDATE_URL", "")
os.environ.setdefault("CART_MERGE_POLICY", "replace")
os.environ.setdefault("PAYMENT_INTENT_REDIS_LOCK", "false")

from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402

from app.data.database import Base  # noqa: E402
from app.data import models  # noqa: E402,F401
from app.data.models.order import OrderModel, OrderItemModel  # noqa: E402
from app.data.models.user import UserModel  # noqa: E402
from app.domain.errors import NotFound  # noqa: E402
from app.services.cart_service import CartService  # noqa: E402
from app.services.inflight import get_inflight_registry  # noqa: E402

PRODUCTS = [
    {"id": 1, "name": "Polo Sporty Stretch Shirt", "slug": "polo-sporty-stretch-shirt",
     "price": "25.00", "stock": 5, "images": ["/images/p1.jpg"]},
    {"id": 2, "name": "Brooks Brothers Long Sleeved Shirt", "slug": "brooks-brothers-long-sleeved-shirt",
     "price": "50.00", "stock": 10, "images": ["/images/p2.jpg"]},
    {"id": 3, "name": "Tommy Hilfiger Classic Fit Dress Shirt", "slug": "tommy-hilfiger-classic-fit-dress-shirt",
     "price": "99.95", "stock": 0, "images": []},
    {"id": 4, "name": "Calvin Klein Slim Fit Stretch Shirt", "slug": "calvin-klein-slim-fit-stretch-shirt",
     "price": "0.10", "stock": 1, "images": ["/images/p4.jpg"]},
]


@pytest.fixture
def session_factory(tmp_path) -> Generator[sessionmaker, None, None]:
    """Provide a session factory bound to a fresh file based SQLite database.

    A file (not :memory:) is used so separate sessions really use separate connections.
    """
    engine = create_engine(
        f"sqlite:///{tmp_path / 'store.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(bind=engine, autoflush=False)
    engine.dispose()


@pytest.fixture
def db(session_factory: sessionmaker) -> Generator[Session, None, None]:
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def products() -> dict[int, dict[str, Any]]:
    """Mutable product catalog used by the product client mock."""
    return {p["id"]: dict(p) for p in PRODUCTS}


@pytest.fixture
def product_client(products: dict[int, dict[str, Any]]) -> MagicMock:
    """Provide a product client mock backed by the products fixture.

    Tests can set ``product_client.before_fetch`` to a callable run before each lookup.
    """
    client = MagicMock()
    client.before_fetch = None

    def fetch_product(product_id: int) -> dict[str, Any]:
        if client.before_fetch is not None:
            client.before_fetch(product_id)
        product = products.get(product_id)
        if not product:
            raise NotFound("Produkt nie istnieje")
        return dict(product)

    client.fetch_product.side_effect = fetch_product
    return client


@pytest.fixture
def revalidation_service() -> MagicMock:
    return MagicMock()


@pytest.fixture
def make_cart_service(
    product_client: MagicMock, revalidation_service: MagicMock
) -> Callable[..., CartService]:
    def factory(session: Session, merge_policy: str | None = None) -> CartService:
        return CartService(
            db=session,
            product_client=product_client,
            revalidation_service=revalidation_service,
            merge_policy=merge_policy,
        )

    return factory


@pytest.fixture
def cart_service(db: Session, make_cart_service) -> CartService:
    return make_cart_service(db)


@pytest.fixture
def make_user(db: Session) -> Callable[..., UserModel]:
    def factory(user_id: int, address: dict | None = None, payment_method: str | None = None) -> UserModel:
        user = UserModel(id=user_id, name=f"User {user_id}", address=address, payment_method=payment_method)
        db.add(user)
        db.commit()
        return user

    return factory


@pytest.fixture
def make_order(db: Session) -> Callable[..., int]:
    """Insert an unpaid order directly and return its id."""

    def factory(user_id: int = 1, total: str = "100.75", payment_method: str = "Stripe") -> int:
        order = OrderModel(
            user_id=user_id,
            shipping_address={"full_name": "Jan Kowalski", "street_address": "Prosta 1",
                              "city": "Warszawa", "postal_code": "00-001", "country": "PL"},
            payment_method=payment_method,
            items_price=Decimal("75.00"),
            shipping_price=Decimal("10.00"),
            tax_price=Decimal("15.75"),
            total_price=Decimal(total),
            is_paid=False,
            is_delivered=False,
        )
        db.add(order)
        db.flush()
        db.add(OrderItemModel(order_id=order.id, product_id=1, name="Polo Sporty Stretch Shirt",
                              slug="polo-sporty-stretch-shirt", image=None, price=Decimal("25.00"), qty=3))
        db.commit()
        return order.id

    return factory


@pytest.fixture(autouse=True)
def clear_inflight_registry() -> Generator[None, None, None]:
    """Process wide in-flight registry must not leak between tests (order ids restart at 1)."""
    get_inflight_registry().clear()
    yield
    get_inflight_registry().clear()


@pytest.fixture
def address() -> dict[str, str]:
    return {
        "full_name": "Jan Kowalski",
        "street_address": "Prosta 1",
        "city": "Warszawa",
        "postal_code": "00-001",
        "country": "PL",
    }


@pytest.fixture
def sign() -> Callable[..., str]:
    """Build a Stripe-Signature header the way Stripe does (HMAC-SHA256 over "t.payload")."""

    def factory(payload: bytes, secret: str = "whsec_test_webhook_secret", timestamp: int | None = None) -> str:
        ts = timestamp if timestamp is not None else int(time.time())
        signed = f"{ts}.{payload.decode('utf-8')}".encode("utf-8")
        signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
        return f"t={ts},v1={signature}"

    return factory
