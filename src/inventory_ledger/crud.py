"""Read-side database helpers."""

from __future__ import annotations

from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.engine import Row
from sqlalchemy.orm import Session

from .models import Adjustment, Product
from .pagination import PageWindow


def count_active_products(db: Session) -> int:
    statement = select(func.count()).select_from(Product).where(Product.deleted_at.is_(None))
    return db.scalar(statement) or 0


def list_products(db: Session, window: PageWindow) -> list[Product]:
    statement = (
        select(Product)
        .where(Product.deleted_at.is_(None))
        .order_by(Product.created_at.desc(), Product.id.desc())
    )
    if not window.unbounded:
        statement = statement.offset(window.offset).limit(window.limit)
    return list(db.scalars(statement))


def get_product(db: Session, product_id: int) -> Optional[Product]:
    statement = select(Product).where(Product.id == product_id, Product.deleted_at.is_(None))
    return db.scalars(statement).first()


def get_product_by_sku(db: Session, sku: str, *, include_deleted: bool = False) -> Optional[Product]:
    statement = select(Product).where(Product.sku == sku)
    if not include_deleted:
        statement = statement.where(Product.deleted_at.is_(None))
    return db.scalars(statement).first()


def get_adjustment(db: Session, adjustment_id: int) -> Optional[Adjustment]:
    statement = select(Adjustment).where(Adjustment.id == adjustment_id, Adjustment.deleted_at.is_(None))
    return db.scalars(statement).first()


def _adjustment_rows():
    return (
        select(
            Adjustment.id,
            Product.id.label("product_id"),
            Adjustment.sku,
            Adjustment.qty,
            (Product.price * Adjustment.qty).label("amount"),
            Adjustment.created_at,
        )
        .join(Product, Product.sku == Adjustment.sku)
        .where(Adjustment.deleted_at.is_(None))
    )


def count_active_adjustments(db: Session) -> int:
    statement = select(func.count()).select_from(Adjustment).where(Adjustment.deleted_at.is_(None))
    return db.scalar(statement) or 0


def list_adjustments(db: Session, window: PageWindow) -> list[Row]:
    statement = _adjustment_rows().order_by(Adjustment.created_at.desc(), Adjustment.id.desc())
    if not window.unbounded:
        statement = statement.offset(window.offset).limit(window.limit)
    return list(db.execute(statement).all())


def get_adjustment_row(db: Session, adjustment_id: int) -> Optional[Row]:
    statement = _adjustment_rows().where(Adjustment.id == adjustment_id)
    return db.execute(statement).first()
