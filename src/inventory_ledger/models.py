"""Database models."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from .database import utcnow


class Product(SQLModel, table=True):
    """A sellable item. ``stock`` is maintained by the adjustment ledger."""

    __tablename__ = "products"

    id: Optional[int] = Field(default=None, primary_key=True)
    title: str = Field(max_length=255)
    sku: str = Field(max_length=255, unique=True, index=True)
    image: Optional[str] = Field(default=None)
    price: Decimal = Field(default=Decimal("0"), max_digits=10, decimal_places=2)
    description: Optional[str] = Field(default=None)
    stock: int = Field(default=0)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(
        default_factory=utcnow, sa_type=DateTime(timezone=True), sa_column_kwargs={"onupdate": utcnow}
    )
    deleted_at: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"<Product sku={self.sku!r} stock={self.stock}>"


class Adjustment(SQLModel, table=True):
    """A stock movement for the product carrying ``sku``."""

    __tablename__ = "adjustments"

    id: Optional[int] = Field(default=None, primary_key=True)
    sku: str = Field(max_length=255)
    qty: int
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(
        default_factory=utcnow, sa_type=DateTime(timezone=True), sa_column_kwargs={"onupdate": utcnow}
    )
    deleted_at: Optional[datetime] = Field(default=None, sa_type=DateTime(timezone=True))

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"<Adjustment id={self.id} sku={self.sku!r} qty={self.qty}>"
