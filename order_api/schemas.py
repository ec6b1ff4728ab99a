import math
from datetime import datetime
from decimal import Decimal
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field, PositiveInt, field_validator
from pydantic.config import ConfigDict

from . import config
from .models import OrderStatus, UserRole
from .utils import sanitize_input

T = TypeVar("T")

# Column widths on orders; checked again after sanitizing
CUSTOMER_NAME_MAX = 255
NOTES_MAX = 500


class OrderItemCreate(BaseModel):
    product_id: str = Field(..., min_length=1, max_length=36)
    quantity: PositiveInt


class OrderCreate(BaseModel):
    customer_name: str = Field(..., min_length=1, max_length=CUSTOMER_NAME_MAX)
    user_ids: List[str] = Field(..., min_length=1)
    items: List[OrderItemCreate] = Field(..., min_length=1)
    notes: Optional[str] = Field(default=None, max_length=NOTES_MAX)

    @field_validator("customer_name")
    def clean_customer_name(cls, v: str):
        cleaned = sanitize_input(v)
        if not cleaned:
            raise ValueError("customer_name must not be empty")
        if len(cleaned) > CUSTOMER_NAME_MAX:
            raise ValueError(f"customer_name must be at most {CUSTOMER_NAME_MAX} characters")
        return cleaned

    @field_validator("user_ids")
    def distinct_user_ids(cls, v: List[str]):
        # Keep first occurrence: the first id names the primary customer
        seen = []
        for user_id in v:
            if not user_id:
                raise ValueError("user ids must not be empty")
            if user_id not in seen:
                seen.append(user_id)
        return seen

    @field_validator("notes")
    def clean_notes(cls, v: Optional[str]):
        if v is None:
            return None
        cleaned = sanitize_input(v)
        if len(cleaned) > NOTES_MAX:
            raise ValueError(f"notes must be at most {NOTES_MAX} characters")
        return cleaned or None


class PaginationParams(BaseModel):
    page: int = Field(default=1, ge=1)
    limit: int = Field(default_factory=lambda: config.get_settings().default_page_size, ge=1)

    @field_validator("limit")
    def cap_limit(cls, v: int):
        max_size = config.get_settings().max_page_size
        if v > max_size:
            raise ValueError(f"limit must be at most {max_size}")
        return v

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


class ParticipantRead(BaseModel):
    id: str
    name: str
    email: str
    role: UserRole

    model_config = ConfigDict(from_attributes=True)


class OrderItemRead(BaseModel):
    product_id: str
    product_name: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal

    model_config = ConfigDict(from_attributes=True)


class OrderCreated(BaseModel):
    id: str
    customer_name: str
    total_amount: Decimal
    status: OrderStatus
    created_at: datetime
    participants: List[ParticipantRead]
    items: List[OrderItemRead]

    model_config = ConfigDict(from_attributes=True)


class OrderSnapshot(BaseModel):
    """Returned by every status transition."""
    id: str
    customer_name: str
    total_amount: Decimal
    status: OrderStatus
    updated_at: datetime
    items: List[OrderItemRead]

    model_config = ConfigDict(from_attributes=True)


class OrderRead(BaseModel):
    id: str
    customer_name: str
    customer_email: str
    total_amount: Decimal
    status: OrderStatus
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    participants: List[ParticipantRead] = []
    items: List[OrderItemRead] = []

    model_config = ConfigDict(from_attributes=True)


class PageMeta(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int
    has_next_page: bool
    has_previous_page: bool

    @classmethod
    def build(cls, total: int, page: int, limit: int) -> "PageMeta":
        total_pages = math.ceil(total / limit)
        return cls(
            total=total,
            page=page,
            limit=limit,
            total_pages=total_pages,
            has_next_page=page < total_pages,
            has_previous_page=page > 1,
        )


class Page(BaseModel, Generic[T]):
    data: List[T]
    meta: PageMeta
