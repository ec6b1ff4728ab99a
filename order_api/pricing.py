"""Order creation: validation, price snapshotting and aggregate assembly."""
import logging
from collections import defaultdict
from decimal import Decimal
from typing import Any, Dict, List, Mapping, Union

from pydantic import ValidationError

from . import models, schemas
from .crud import OrderStore, ProductStore, UserDirectory
from .db import Database
from .errors import InsufficientStockError, NotFoundError, ValidationFailure
from .utils import line_total, round_money

logger = logging.getLogger(__name__)


def parse_order_create(payload: Union[schemas.OrderCreate, Mapping[str, Any]]) -> schemas.OrderCreate:
    if isinstance(payload, schemas.OrderCreate):
        return payload
    try:
        return schemas.OrderCreate.model_validate(payload)
    except ValidationError as e:
        raise ValidationFailure("invalid order payload", errors=e.errors()) from e


class OrderPricing:
    """Creates orders from a customer name, participants and line items."""

    def __init__(
        self,
        database: Database,
        users: UserDirectory,
        products: ProductStore,
        orders: OrderStore,
    ):
        """
        Initialize order pricing.

        Args:
            database: Transaction provider
            users: User directory used to resolve participants
            products: Inventory reader
            orders: Order store
        """
        self.database = database
        self.users = users
        self.products = products
        self.orders = orders

    async def create_order(
        self,
        payload: Union[schemas.OrderCreate, Mapping[str, Any]],
    ) -> schemas.OrderCreated:
        """
        Create a PENDING order.

        Stock is checked but not decremented; payment takes it.

        Args:
            payload: Order creation request (model or plain mapping)

        Returns:
            Snapshot of the created order

        Raises:
            ValidationFailure: If the payload is malformed
            NotFoundError: If a user or an active product does not exist
            InsufficientStockError: If a product has less stock than requested
        """
        request = parse_order_create(payload)

        async with self.database.transaction() as db:
            participants = await self._resolve_participants(db, request.user_ids)
            primary = participants[0]

            items: List[models.OrderItem] = []
            requested: Dict[str, int] = defaultdict(int)
            total_amount = Decimal("0.00")

            for line in request.items:
                product = await self.products.find_active(db, line.product_id)
                if product is None:
                    raise NotFoundError(f"product {line.product_id} not found or inactive")

                requested[product.id] += line.quantity
                if product.stock < requested[product.id]:
                    raise InsufficientStockError(
                        f"insufficient stock for product {product.name}",
                        product_id=product.id,
                    )

                unit_price = round_money(product.price)
                total_price = line_total(unit_price, line.quantity)
                total_amount += total_price

                items.append(models.OrderItem(
                    product=product,
                    product_id=product.id,
                    quantity=line.quantity,
                    unit_price=unit_price,
                    total_price=total_price,
                ))

            order = models.Order(
                customer_id=primary.id,
                # Caller-supplied name wins; email comes from the primary participant
                customer_name=request.customer_name,
                customer_email=primary.email,
                total_amount=round_money(total_amount),
                status=models.OrderStatus.PENDING,
                notes=request.notes,
            )
            order = await self.orders.create_aggregate(db, order, items, participants)
            created = schemas.OrderCreated.model_validate(order)

        logger.info("Order created", extra={
            "order_id": created.id,
            "customer_id": primary.id,
            "participant_count": len(created.participants),
            "item_count": len(created.items),
            "total_amount": str(created.total_amount),
        })
        return created

    async def _resolve_participants(self, db, user_ids: List[str]) -> List[models.User]:
        found = {user.id: user for user in await self.users.find_by_ids(db, user_ids)}
        missing = [user_id for user_id in user_ids if user_id not in found]
        if missing:
            raise NotFoundError(f"users not found: {', '.join(missing)}", missing_ids=missing)
        # Input order, so the first requested id is the primary customer
        return [found[user_id] for user_id in user_ids]
