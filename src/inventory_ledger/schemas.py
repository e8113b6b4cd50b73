"""Pydantic schemas for API payloads."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Message(BaseModel):
    message: str


class ErrorBody(BaseModel):
    error: str
    details: Optional[str] = None


class ProductUpsert(BaseModel):
    """Create a product when ``id`` is absent, otherwise patch the supplied fields."""

    id: Optional[int] = Field(None, ge=1)
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    sku: Optional[str] = Field(None, min_length=1, max_length=255)
    image: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0, max_digits=10, decimal_places=2)
    description: Optional[str] = None
    stock: Optional[int] = Field(None, ge=0, description="Opening stock, accepted on create only")


class ProductRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    sku: str
    image: Optional[str] = None
    price: float
    stock: int
    description: Optional[str] = None


class ProductAck(Message):
    id: Optional[int] = None


class AdjustmentUpsert(BaseModel):
    """Create an adjustment when ``id`` is absent, otherwise change its quantity."""

    id: Optional[int] = Field(None, ge=1)
    sku: Optional[str] = Field(None, min_length=1, max_length=255)
    qty: int = Field(..., description="Positive for inbound, negative for outbound")


class AdjustmentRead(BaseModel):
    id: int
    product_id: int
    sku: str
    qty: int
    amount: float
    created_at: datetime


class AdjustmentAck(Message):
    id: int
    stock: int


class _Page(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    total_items: int
    total_pages: int
    current_page: int


class ProductPage(_Page):
    products: List[ProductRead]


class AdjustmentPage(_Page):
    adjustments: List[AdjustmentRead]
