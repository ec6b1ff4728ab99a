"""
Schema bootstrap + demo data
- Creates all order-core tables if missing
- Seeds a small product catalog and two demo users when the tables are empty

Usage:
  python -m migration.seed_catalog --db sqlite+aiosqlite:///./app.db
"""
import argparse
import asyncio
import logging
from decimal import Decimal
from typing import Dict

from sqlalchemy import func, select

from order_api import models
from order_api.db import Database
from order_api.logging_config import setup_logging

logger = logging.getLogger(__name__)

# Placeholder hash: demo users cannot log in
UNUSABLE_PASSWORD = "!"

DEMO_PRODUCTS = [
    ("Laptop", "14-inch, 16GB RAM", Decimal("999.99"), 50),
    ("Smartphone", None, Decimal("599.99"), 100),
    ("Headphones", "Noise cancelling", Decimal("99.99"), 200),
    ("Desk Chair", None, Decimal("199.99"), 30),
    ("Monitor", "27-inch", Decimal("299.99"), 75),
    ("Keyboard", None, Decimal("79.99"), 150),
]

DEMO_USERS = [
    ("Admin", "admin@example.com", models.UserRole.ADMIN),
    ("Customer", "customer@example.com", models.UserRole.USER),
]


async def seed(database: Database) -> Dict[str, int]:
    """Create the schema and seed demo rows; returns how many rows were inserted per table."""
    await database.create_all()
    inserted = {"products": 0, "users": 0}

    async with database.transaction() as db:
        if (await db.execute(select(func.count()).select_from(models.Product))).scalar_one() == 0:
            db.add_all([
                models.Product(name=name, description=description, price=price, stock=stock)
                for name, description, price, stock in DEMO_PRODUCTS
            ])
            inserted["products"] = len(DEMO_PRODUCTS)

        if (await db.execute(select(func.count()).select_from(models.User))).scalar_one() == 0:
            db.add_all([
                models.User(name=name, email=email, role=role, password_hash=UNUSABLE_PASSWORD)
                for name, email, role in DEMO_USERS
            ])
            inserted["users"] = len(DEMO_USERS)

    logger.info("Seeded demo catalog", extra=inserted)
    return inserted


async def seed_url(url: str) -> Dict[str, int]:
    database = Database.from_url(url)
    try:
        return await seed(database)
    finally:
        await database.dispose()


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--db", required=True, help="Async SQLAlchemy database URL")
    args = parser.parse_args()
    setup_logging()
    asyncio.run(seed_url(args.db))

if __name__ == "__main__":
    main()
