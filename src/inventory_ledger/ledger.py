"""Stock ledger: keeps ``Product.stock`` in step with the adjustment history.

A product's stock is its opening stock plus the quantities of all of its
active adjustments. Every mutation below runs in a single transaction, and
the stock write itself is a conditional ``UPDATE`` so two concurrent callers
can never both pass the non-negative check on the same product.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator, Optional

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import crud
from .database import utcnow
from .exceptions import InvalidOperationError, NotFoundError
from .models import Adjustment, Product
from .schemas import AdjustmentUpsert, ProductUpsert

logger = logging.getLogger(__name__)

REQUIRED_ON_CREATE = ("title", "sku")
NOT_NULLABLE = ("title", "sku", "price")


@contextmanager
def _transaction(db: Session) -> Iterator[Session]:
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise


def _lock_product_by_sku(db: Session, sku: str, *, include_deleted: bool = False) -> Product:
    statement = select(Product).where(Product.sku == sku).with_for_update()
    if not include_deleted:
        statement = statement.where(Product.deleted_at.is_(None))
    product = db.scalars(statement).first()
    if product is None:
        raise NotFoundError("Product not found.", f"No product found with sku: {sku}")
    return product


def _lock_product(db: Session, product_id: int) -> Product:
    statement = (
        select(Product).where(Product.id == product_id, Product.deleted_at.is_(None)).with_for_update()
    )
    product = db.scalars(statement).first()
    if product is None:
        raise NotFoundError("Product not found.", f"No product found with id: {product_id}")
    return product


def _shift_stock(db: Session, product: Product, diff: int, *, guard: bool = True) -> None:
    """Apply ``stock += diff``; with ``guard`` the write only happens if the result is >= 0."""

    statement = update(Product).where(Product.id == product.id).values(stock=Product.stock + diff)
    if guard:
        statement = statement.where(Product.stock + diff >= 0)
    result = db.execute(statement.execution_options(synchronize_session=False))
    if result.rowcount != 1:
        raise InvalidOperationError("Invalid adjustment.", "Stock cannot be negative.")
    db.refresh(product)


def upsert_adjustment(db: Session, payload: AdjustmentUpsert) -> tuple[Adjustment, Product, bool]:
    """Create or re-quantify an adjustment and move the product's stock by the difference.

    On update the sku of the stored adjustment wins over the one in the
    payload, and the stock moves by ``new qty - old qty``. Returns the
    adjustment, the product with its new stock, and whether a row was created.
    """

    with _transaction(db):
        if payload.id is None:
            if not payload.sku:
                raise InvalidOperationError("Invalid adjustment.", "sku is required to create an adjustment.")
            adjustment: Optional[Adjustment] = None
            sku, diff = payload.sku, payload.qty
        else:
            adjustment = crud.get_adjustment(db, payload.id)
            if adjustment is None:
                raise NotFoundError("Adjustment not found.", f"No adjustment found with id: {payload.id}")
            sku, diff = adjustment.sku, payload.qty - adjustment.qty

        product = _lock_product_by_sku(db, sku)
        _shift_stock(db, product, diff)

        created = adjustment is None
        if adjustment is None:
            adjustment = Adjustment(sku=sku, qty=payload.qty)
        else:
            adjustment.qty = payload.qty
        db.add(adjustment)
        db.flush()

    logger.debug("Adjustment %s on %s moved stock by %+d to %d", adjustment.id, sku, diff, product.stock)
    return adjustment, product, created


def delete_adjustment(db: Session, adjustment_id: int) -> tuple[Adjustment, Product]:
    """Soft delete an adjustment and reverse its quantity on the product.

    The reversal is never blocked: if out-of-band changes left the stock lower
    than the adjustment, the product goes negative and a warning is logged.
    """

    with _transaction(db):
        adjustment = crud.get_adjustment(db, adjustment_id)
        if adjustment is None:
            raise NotFoundError("Adjustment not found.", f"No adjustment found with id: {adjustment_id}")
        product = _lock_product_by_sku(db, adjustment.sku, include_deleted=True)

        adjustment.deleted_at = utcnow()
        db.add(adjustment)
        db.flush()
        _shift_stock(db, product, -adjustment.qty, guard=False)

    if product.stock < 0:
        logger.warning("Deleting adjustment %s left %s with negative stock %d", adjustment.id, product.sku, product.stock)
    return adjustment, product


def upsert_product(db: Session, payload: ProductUpsert) -> tuple[Optional[Product], bool]:
    """Create a product, or patch the supplied fields of an existing one.

    Creating a product whose sku is already taken (even by a soft-deleted
    row) is a silent no-op and returns ``(None, False)``.
    """

    fields = payload.model_dump(exclude_unset=True, exclude={"id"})
    if payload.id is None:
        return _create_product(db, fields)
    return _update_product(db, payload.id, fields), False


def _create_product(db: Session, fields: dict[str, Any]) -> tuple[Optional[Product], bool]:
    missing = [name for name in REQUIRED_ON_CREATE if not fields.get(name)]
    if missing:
        raise InvalidOperationError("Invalid product.", f"Missing required field(s): {', '.join(missing)}.")
    for name in ("price", "stock"):
        if fields.get(name) is None:
            fields.pop(name, None)

    try:
        with _transaction(db):
            if crud.get_product_by_sku(db, fields["sku"], include_deleted=True) is not None:
                logger.info("Product with sku %s already exists; skipping create", fields["sku"])
                return None, False
            product = Product(**fields)
            db.add(product)
            db.flush()
    except IntegrityError:
        logger.info("Product with sku %s was created concurrently; skipping create", fields["sku"])
        return None, False
    return product, True


def _update_product(db: Session, product_id: int, fields: dict[str, Any]) -> Product:
    if fields.get("stock") is not None:
        raise InvalidOperationError("Invalid product.", "Stock can only be changed through adjustments.")
    fields.pop("stock", None)
    for name in NOT_NULLABLE:
        if name in fields and fields[name] is None:
            raise InvalidOperationError("Invalid product.", f"{name} cannot be null.")

    with _transaction(db):
        new_sku = fields.get("sku")
        if new_sku:
            clash = db.scalars(select(Product.id).where(Product.sku == new_sku, Product.id != product_id)).first()
            if clash is not None:
                raise InvalidOperationError("SKU already exists.", f"A product with SKU: {new_sku} already exists.")

        product = _lock_product(db, product_id)
        old_sku = product.sku
        for key, value in fields.items():
            setattr(product, key, value)
        db.add(product)
        db.flush()

        if new_sku and new_sku != old_sku:
            result = db.execute(
                update(Adjustment)
                .where(Adjustment.sku == old_sku)
                .values(sku=new_sku)
                .execution_options(synchronize_session="fetch")
            )
            logger.info("Repointed %d adjustment(s) from %s to %s", result.rowcount, old_sku, new_sku)
    return product


def delete_product(db: Session, product_id: int) -> Product:
    """Soft delete a product together with every active adjustment on its sku."""

    with _transaction(db):
        product = _lock_product(db, product_id)
        now = utcnow()
        product.deleted_at = now
        db.add(product)
        db.flush()
        result = db.execute(
            update(Adjustment)
            .where(Adjustment.sku == product.sku, Adjustment.deleted_at.is_(None))
            .values(deleted_at=now)
            .execution_options(synchronize_session="fetch")
        )

    logger.info("Soft deleted product %s and %d adjustment(s)", product.sku, result.rowcount)
    return product
