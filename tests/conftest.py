from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.pool import StaticPool

from order_api import config, models
from order_api.crud import ProductStore
from order_api.db import Database, create_engine_for
from order_api.dependencies import OrderServices, build_order_services


@pytest_asyncio.fixture(scope="function")
async def database() -> AsyncGenerator[Database, None]:
    # Use in-memory SQLite with a single connection
    engine = create_engine_for("sqlite+aiosqlite://", poolclass=StaticPool)
    db = Database(engine)
    await db.create_all()
    try:
        yield db
    finally:
        await db.dispose()


@pytest.fixture(scope="function")
def services(database) -> OrderServices:
    return build_order_services(database)


@pytest.fixture(autouse=True)
def strict_stock_mode():
    # Ensure deterministic starting mode
    config.set_strict_stock(True)
    yield
    config.set_strict_stock(True)


@pytest.fixture
def make_user(database):
    counter = {"n": 0}

    async def _make_user(name: str = None, email: str = None, role=models.UserRole.USER) -> models.User:
        counter["n"] += 1
        name = name or f"User {counter['n']}"
        email = email or f"user{counter['n']}@example.com"
        async with database.transaction() as db:
            user = models.User(name=name, email=email, role=role, password_hash="!")
            db.add(user)
            await db.flush()
        return user

    return _make_user


@pytest.fixture
def make_product(database):
    async def _make_product(name: str = "Widget", price: str = "10.00", stock: int = 10, active: bool = True) -> models.Product:
        async with database.transaction() as db:
            product = models.Product(name=name, price=Decimal(price), stock=stock, active=active)
            db.add(product)
            await db.flush()
        return product

    return _make_product


@pytest.fixture
def stock_of(database):
    async def _stock_of(product_id: str) -> int:
        async with database.session() as db:
            product = await ProductStore().get(db, product_id)
            return product.stock

    return _stock_of


@pytest.fixture
def count_rows(database):
    from sqlalchemy import func, select

    async def _count_rows(table) -> int:
        async with database.session() as db:
            return (await db.execute(select(func.count()).select_from(table))).scalar_one()

    return _count_rows
