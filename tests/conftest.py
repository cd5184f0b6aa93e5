"""Pytest fixtures for storefront tests."""

import asyncio
import os
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from types import SimpleNamespace

os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ["DB_TYPE"] = "sqlite"
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import NullPool

from storefront.core.db import Base, get_db
from storefront.core.security import create_access_token, hash_password
from storefront.models import (
    Address,
    PaymentMethod,
    PaymentMethodEnum,
    Product,
    ProductVariant,
    User,
    Voucher,
)

PASSWORD = "correct-horse-battery"


def _enable_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


async def _create_all(engine):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@pytest.fixture
def session_factory(tmp_path):
    """A fresh SQLite file per test; NullPool so every event loop gets its own connection."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'storefront.db'}", poolclass=NullPool)
    event.listen(engine.sync_engine, "connect", _enable_foreign_keys)
    asyncio.run(_create_all(engine))

    yield sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)

    asyncio.run(engine.dispose())


@pytest.fixture
def run(session_factory):
    """Run ``fn(db, *args, **kwargs)`` in its own session and event loop."""

    def _run(fn, *args, **kwargs):
        async def _go():
            async with session_factory() as db:
                return await fn(db, *args, **kwargs)

        return asyncio.run(_go())

    return _run


@pytest.fixture(scope="session")
def password_hash():
    return hash_password(PASSWORD)


@pytest.fixture
def seed(run, password_hash):
    """
    Two customers, one admin, a product with three variants, an address in a
    metro province for the first customer, COD and a SAVE20 voucher.
    """

    async def _seed(db):
        admin = User(username="admin@shopmail.com", full_name="Admin", password_hash=password_hash, role="admin")
        alice = User(username="alice@shopmail.com", full_name="Alice", password_hash=password_hash, role="customer")
        bob = User(username="bob@shopmail.com", full_name="Bob", password_hash=password_hash, role="customer")
        db.add_all([admin, alice, bob])

        product = Product(name="Linen Shirt", category="shirts", base_price=Decimal("250000"))
        db.add(product)
        await db.flush()

        red = ProductVariant(product_id=product.id, color="red", size="M", price=Decimal("250000"), stock=10)
        blue = ProductVariant(product_id=product.id, color="blue", size="L", price=Decimal("150000"), stock=1)
        green = ProductVariant(product_id=product.id, color="green", size="S", price=Decimal("100000"), stock=5)
        db.add_all([red, blue, green])

        home = Address(
            user_id=alice.id, full_name="Alice", phone="0901234567",
            address_line="12 Hang Bac Street", province="hn", is_default=True,
        )
        faraway = Address(
            user_id=bob.id, full_name="Bob", phone="0907654321",
            address_line="3 Mountain Road", province="hg", is_default=True,
        )
        db.add_all([home, faraway])

        cod = PaymentMethod(method=PaymentMethodEnum.COD, description="Cash on delivery")
        db.add(cod)

        now = datetime.now(timezone.utc)
        voucher = Voucher(
            code="SAVE20",
            discount_percent=Decimal("20"),
            minimum_order_value=Decimal("300000"),
            maximum_discount_amount=Decimal("80000"),
            start_date=now - timedelta(days=1),
            end_date=now + timedelta(days=30),
        )
        db.add(voucher)

        await db.commit()
        return SimpleNamespace(
            admin=admin, alice=alice, bob=bob, product=product,
            red=red, blue=blue, green=green,
            home=home, faraway=faraway, cod=cod, voucher=voucher,
        )

    return run(_seed)


@pytest.fixture
def client(session_factory):
    """TestClient without the context manager so the startup hook never touches the real DB."""
    from main import app

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def auth_headers(user) -> dict:
    token = create_access_token(
        {"sub": user.username, "user_id": user.id, "role": user.role},
        token_version=user.token_version or 0,
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def headers(seed):
    return SimpleNamespace(
        admin=auth_headers(seed.admin),
        alice=auth_headers(seed.alice),
        bob=auth_headers(seed.bob),
    )
