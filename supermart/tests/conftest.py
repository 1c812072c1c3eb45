"""Shared test fixtures.

Tests run against an in-memory SQLite database. Every table is created before
each test and dropped afterwards, so tests never see each other's rows.
"""

from __future__ import annotations

import os

os.environ["DATABASE_URL"] = "sqlite://"

from decimal import Decimal  # noqa: E402
from typing import Generator  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from supermart.app.api.v1.endpoints.auth import _login_limiter  # noqa: E402
from supermart.app.core.database import Base, SessionLocal, engine, get_db  # noqa: E402
from supermart.app.core.security import get_password_hash  # noqa: E402
from supermart.app.main import app  # noqa: E402
from supermart.app.models.discount import Discount  # noqa: E402
from supermart.app.models.product import Category, Product, ProductVariant  # noqa: E402
from supermart.app.models.user import RoleEnum, User  # noqa: E402
from supermart.app.services.auth import issue_token  # noqa: E402
from supermart.app.services.bill_engine import DiscountKind  # noqa: E402

TEST_PASSWORD = "Passw0rd!"


# ─── DB session on a fresh schema ─────────────────────────────────────────────


@pytest.fixture()
def db() -> Generator[Session, None, None]:
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    yield session
    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def client(db: Session) -> Generator[TestClient, None, None]:
    """FastAPI TestClient wired to the test session."""

    def _override_get_db() -> Generator[Session, None, None]:
        yield db

    app.dependency_overrides[get_db] = _override_get_db
    _login_limiter.reset()
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


# ─── Auth helpers ─────────────────────────────────────────────────────────────


@pytest.fixture()
def admin_user(db: Session) -> User:
    user = User(
        username="test_admin",
        full_name="Test Admin",
        employee_id="EMP-ADMIN",
        hashed_password=get_password_hash(TEST_PASSWORD),
        role=RoleEnum.ADMIN,
    )
    db.add(user)
    db.flush()
    return user


@pytest.fixture()
def cashier_user(db: Session) -> User:
    user = User(
        username="test_cashier",
        full_name="Test Cashier",
        employee_id="EMP-CASH1",
        hashed_password=get_password_hash(TEST_PASSWORD),
        role=RoleEnum.CASHIER,
    )
    db.add(user)
    db.flush()
    return user


@pytest.fixture()
def admin_token(admin_user: User) -> str:
    return issue_token(admin_user)


@pytest.fixture()
def cashier_token(cashier_user: User) -> str:
    return issue_token(cashier_user)


def auth(token: str) -> dict[str, str]:
    """Return Authorization header dict."""
    return {"Authorization": f"Bearer {token}"}


# ─── Inventory fixtures ───────────────────────────────────────────────────────


@pytest.fixture()
def category(db: Session) -> Category:
    cat = Category(name="Groceries")
    db.add(cat)
    db.flush()
    return cat


@pytest.fixture()
def product_rice(db: Session, category: Category) -> Product:
    """Plain product: 50 per unit, 18% tax, 100 in stock."""
    p = Product(
        code="RICE-5KG",
        name="Basmati Rice 5kg",
        category_id=category.id,
        price=Decimal("50.0000"),
        tax_rate=Decimal("18.0000"),
        stock=Decimal("100"),
        min_stock=Decimal("10"),
    )
    db.add(p)
    db.flush()
    return p


@pytest.fixture()
def product_shirt(db: Session, category: Category) -> Product:
    """Sized product: M at 400 (10 in stock), L at 450 (2 in stock), 5% tax."""
    p = Product(
        code="SHIRT-01",
        name="Cotton Shirt",
        category_id=category.id,
        price=Decimal("400.0000"),
        tax_rate=Decimal("5.0000"),
        min_stock=Decimal("3"),
    )
    p.variants.append(
        ProductVariant(size="M", sku="SHIRT-01-M", price=Decimal("400.0000"), stock=Decimal("10"))
    )
    p.variants.append(
        ProductVariant(size="L", sku="SHIRT-01-L", price=Decimal("450.0000"), stock=Decimal("2"))
    )
    db.add(p)
    db.flush()
    return p


# ─── Discount fixtures ───────────────────────────────────────────────────────


@pytest.fixture()
def rice_ten_percent(db: Session, product_rice: Product) -> Discount:
    d = Discount(
        name="Rice 10% off",
        kind=DiscountKind.PERCENTAGE,
        value=Decimal("10"),
        product_id=product_rice.id,
    )
    db.add(d)
    db.flush()
    return d


@pytest.fixture()
def rice_fixed_bulk(db: Session, product_rice: Product) -> Discount:
    """8 off per unit from 5 units up."""
    d = Discount(
        name="Rice bulk 8 off",
        kind=DiscountKind.FIXED,
        value=Decimal("8"),
        product_id=product_rice.id,
        min_quantity=Decimal("5"),
    )
    db.add(d)
    db.flush()
    return d
