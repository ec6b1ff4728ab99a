"""Explicit wiring of the order core."""
from typing import NamedTuple, Optional

from .crud import OrderStore, ProductStore, UserDirectory
from .db import Database
from .pricing import OrderPricing
from .queries import OrderQueryService
from .state_machine import OrderStateMachine


class OrderServices(NamedTuple):
    database: Database
    pricing: OrderPricing
    state_machine: OrderStateMachine
    queries: OrderQueryService


def get_order_pricing(database: Database) -> OrderPricing:
    return OrderPricing(database, UserDirectory(), ProductStore(), OrderStore())


def get_order_state_machine(database: Database) -> OrderStateMachine:
    return OrderStateMachine(database, OrderStore(), ProductStore())


def get_order_queries(database: Database) -> OrderQueryService:
    return OrderQueryService(database, OrderStore())


def build_order_services(database: Optional[Database] = None) -> OrderServices:
    """Build all order services on one database (configured URL by default)."""
    database = database or Database.from_url()
    return OrderServices(
        database=database,
        pricing=get_order_pricing(database),
        state_machine=get_order_state_machine(database),
        queries=get_order_queries(database),
    )
