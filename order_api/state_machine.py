"""Order status transitions.

pending -> paid -> preparing -> delivered, and cancelled from any state that
is neither delivered nor already cancelled. Payment is the only transition
with an inventory side effect: it takes every item's quantity off its
product's stock in the same transaction as the status change.
"""
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from . import config, models, schemas
from .crud import OrderStore, ProductStore
from .db import Database
from .errors import InsufficientStockError, InvalidTransitionError, NotFoundError

logger = logging.getLogger(__name__)

OrderStatus = models.OrderStatus


class OrderStateMachine:
    """Applies pay/prepare/deliver/cancel to stored orders."""

    def __init__(self, database: Database, orders: OrderStore, products: ProductStore):
        self.database = database
        self.orders = orders
        self.products = products

    async def pay(self, order_id: str) -> schemas.OrderSnapshot:
        async with self.database.transaction() as db:
            order = await self._load(db, order_id)
            if order.status != OrderStatus.PENDING:
                raise InvalidTransitionError(
                    f"order cannot be paid, current status: {order.status.value}",
                    current_status=order.status.value,
                )

            for item in order.items:
                await self._take_stock(db, item)

            snapshot = await self._apply(db, order, OrderStatus.PAID)
        self._log_transition(snapshot, OrderStatus.PENDING)
        return snapshot

    async def prepare(self, order_id: str) -> schemas.OrderSnapshot:
        async with self.database.transaction() as db:
            order = await self._load(db, order_id)
            if order.status != OrderStatus.PAID:
                raise InvalidTransitionError(
                    f"order {order_id} is not paid and cannot be prepared",
                    current_status=order.status.value,
                )
            snapshot = await self._apply(db, order, OrderStatus.PREPARING)
        self._log_transition(snapshot, OrderStatus.PAID)
        return snapshot

    async def deliver(self, order_id: str) -> schemas.OrderSnapshot:
        async with self.database.transaction() as db:
            order = await self._load(db, order_id)
            if order.status != OrderStatus.PREPARING:
                raise InvalidTransitionError(
                    f"order {order_id} is not in preparation and cannot be delivered",
                    current_status=order.status.value,
                )
            snapshot = await self._apply(db, order, OrderStatus.DELIVERED)
        self._log_transition(snapshot, OrderStatus.PREPARING)
        return snapshot

    async def cancel(self, order_id: str) -> schemas.OrderSnapshot:
        async with self.database.transaction() as db:
            order = await self._load(db, order_id)
            previous = order.status
            if not models.can_transition(previous, OrderStatus.CANCELLED):
                raise InvalidTransitionError(
                    f"order {order_id} cannot be cancelled",
                    current_status=previous.value,
                )
            snapshot = await self._apply(db, order, OrderStatus.CANCELLED)
        self._log_transition(snapshot, previous)
        return snapshot

    async def _load(self, db: AsyncSession, order_id: str) -> models.Order:
        order = await self.orders.get(db, order_id, with_items=True)
        if order is None:
            raise NotFoundError(f"order {order_id} not found")
        return order

    async def _apply(self, db: AsyncSession, order: models.Order, target: OrderStatus) -> schemas.OrderSnapshot:
        order.status = target
        order = await self.orders.save(db, order)
        return schemas.OrderSnapshot.model_validate(order)

    async def _take_stock(self, db: AsyncSession, item: models.OrderItem) -> None:
        product = item.product
        before = product.stock
        if config.is_strict_stock():
            if not await self.products.decrement_stock(db, product, item.quantity):
                raise InsufficientStockError(
                    f"insufficient stock for product {product.name}",
                    product_id=product.id,
                )
        else:
            # Read-modify-write without a stock guard; may go negative under races
            product.stock = product.stock - item.quantity
            await self.products.save(db, product)

        logger.info("Stock decremented", extra={
            "order_id": item.order_id,
            "product_id": product.id,
            "quantity": item.quantity,
            "stock_before": before,
            "stock_after": product.stock,
        })

    def _log_transition(self, snapshot: schemas.OrderSnapshot, previous: OrderStatus) -> None:
        logger.info("Order status changed", extra={
            "order_id": snapshot.id,
            "from_status": previous.value,
            "to_status": snapshot.status.value,
        })
