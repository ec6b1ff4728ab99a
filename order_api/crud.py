"""Store collaborators used by the order core.

Every method takes the transaction-scoped ``AsyncSession`` first; none of them
commit. Committing or rolling back is the caller's transaction scope's job.
"""
import logging
from typing import Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from . import models

logger = logging.getLogger(__name__)


class ProductStore:
    async def get(self, db: AsyncSession, product_id: str) -> Optional[models.Product]:
        return await db.get(models.Product, product_id)

    async def find_active(self, db: AsyncSession, product_id: str) -> Optional[models.Product]:
        result = await db.execute(
            select(models.Product).where(
                models.Product.id == product_id,
                models.Product.active.is_(True),
            )
        )
        return result.scalar_one_or_none()

    async def save(self, db: AsyncSession, product: models.Product) -> models.Product:
        db.add(product)
        await db.flush()
        return product

    async def decrement_stock(self, db: AsyncSession, product: models.Product, quantity: int) -> bool:
        """Conditionally take ``quantity`` units off ``product``'s stock.

        Returns False, leaving the row untouched, when fewer than ``quantity``
        units are left at the moment the UPDATE runs.
        """
        result = await db.execute(
            update(models.Product)
            .where(
                models.Product.id == product.id,
                models.Product.stock >= quantity,
            )
            .values(stock=models.Product.stock - quantity, updated_at=models.utcnow())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            logger.debug("Conditional stock decrement matched no row", extra={
                "product_id": product.id,
                "quantity": quantity,
            })
            return False
        await db.refresh(product, attribute_names=["stock", "updated_at"])
        return True


class UserDirectory:
    async def find_by_ids(self, db: AsyncSession, user_ids: Iterable[str]) -> List[models.User]:
        ids = list(user_ids)
        if not ids:
            return []
        result = await db.execute(select(models.User).where(models.User.id.in_(ids)))
        return list(result.scalars().all())


class OrderStore:
    @staticmethod
    def _with_items():
        return (
            selectinload(models.Order.items).selectinload(models.OrderItem.product),
            selectinload(models.Order.participants),
        )

    async def create_aggregate(
        self,
        db: AsyncSession,
        order: models.Order,
        items: Sequence[models.OrderItem],
        participants: Sequence[models.User],
    ) -> models.Order:
        for position, item in enumerate(items):
            item.position = position
        order.items = list(items)
        order.participants = list(participants)
        db.add(order)
        await db.flush()
        return order

    async def get(self, db: AsyncSession, order_id: str, with_items: bool = True) -> Optional[models.Order]:
        stmt = select(models.Order).where(models.Order.id == order_id)
        if with_items:
            stmt = stmt.options(*self._with_items())
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def save(self, db: AsyncSession, order: models.Order) -> models.Order:
        db.add(order)
        await db.flush()
        return order

    async def find_page(
        self,
        db: AsyncSession,
        status: Optional[models.OrderStatus] = None,
        skip: int = 0,
        take: int = 10,
    ) -> Tuple[List[models.Order], int]:
        count_stmt = select(func.count()).select_from(models.Order)
        stmt = select(models.Order).options(*self._with_items())
        if status is not None:
            count_stmt = count_stmt.where(models.Order.status == status)
            stmt = stmt.where(models.Order.status == status)
        # id breaks created_at ties so pages stay stable
        stmt = stmt.order_by(models.Order.created_at.desc(), models.Order.id.desc()).offset(skip).limit(take)

        total = (await db.execute(count_stmt)).scalar_one()
        orders = list((await db.execute(stmt)).scalars().all())
        return orders, total
