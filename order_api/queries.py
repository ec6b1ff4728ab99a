from typing import Optional, Union

from . import models, schemas
from .crud import OrderStore
from .db import Database
from .errors import NotFoundError, ValidationFailure


class OrderQueryService:
    """Read side: paginated listing (newest first) and lookup by id."""

    def __init__(self, database: Database, orders: OrderStore):
        self.database = database
        self.orders = orders

    async def find_all(
        self,
        pagination: Optional[schemas.PaginationParams] = None,
        status: Optional[Union[models.OrderStatus, str]] = None,
    ) -> schemas.Page[schemas.OrderRead]:
        pagination = pagination or schemas.PaginationParams()
        if status is not None:
            try:
                status = models.OrderStatus(status)
            except ValueError as e:
                raise ValidationFailure(f"unknown order status: {status}") from e

        async with self.database.session() as db:
            orders, total = await self.orders.find_page(
                db,
                status=status,
                skip=pagination.skip,
                take=pagination.limit,
            )
            data = [schemas.OrderRead.model_validate(order) for order in orders]

        return schemas.Page[schemas.OrderRead](
            data=data,
            meta=schemas.PageMeta.build(total, pagination.page, pagination.limit),
        )

    async def find_by_id(self, order_id: str) -> schemas.OrderRead:
        async with self.database.session() as db:
            order = await self.orders.get(db, order_id, with_items=True)
            if order is None:
                raise NotFoundError(f"order {order_id} not found")
            return schemas.OrderRead.model_validate(order)
