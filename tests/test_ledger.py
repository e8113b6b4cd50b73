import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from inventory_ledger import crud, ledger
from inventory_ledger.database import get_sessionmaker
from inventory_ledger.exceptions import InvalidOperationError, NotFoundError
from inventory_ledger.models import Adjustment, Product
from inventory_ledger.schemas import AdjustmentUpsert, ProductUpsert


def _stock(db: Session, sku: str) -> int:
    product = crud.get_product_by_sku(db, sku, include_deleted=True)
    db.refresh(product)
    return product.stock


def test_stock_never_goes_negative(db: Session, add_product) -> None:
    add_product("SKU001", stock=3)
    expected = 3
    for qty in [2, -4, -2, 5, -10, 1, -5]:
        if expected + qty < 0:
            with pytest.raises(InvalidOperationError):
                ledger.upsert_adjustment(db, AdjustmentUpsert(sku="SKU001", qty=qty))
        else:
            _, product, created = ledger.upsert_adjustment(db, AdjustmentUpsert(sku="SKU001", qty=qty))
            expected += qty
            assert created
            assert product.stock == expected
        assert _stock(db, "SKU001") == expected

    # every accepted adjustment is recorded, rejected ones leave no row
    assert crud.count_active_adjustments(db) == 5


def test_update_moves_stock_by_difference(db: Session, add_product) -> None:
    add_product("SKU001", stock=100)
    adjustment, product, _ = ledger.upsert_adjustment(db, AdjustmentUpsert(sku="SKU001", qty=10))
    assert product.stock == 110

    updated, product, created = ledger.upsert_adjustment(db, AdjustmentUpsert(id=adjustment.id, qty=15))
    assert not created
    assert updated.id == adjustment.id
    assert updated.qty == 15
    assert product.stock == 115

    _, product, _ = ledger.upsert_adjustment(db, AdjustmentUpsert(id=adjustment.id, qty=4))
    assert product.stock == 104


def test_rejected_update_leaves_adjustment_untouched(db: Session, add_product) -> None:
    add_product("SKU001", stock=0)
    adjustment, _, _ = ledger.upsert_adjustment(db, AdjustmentUpsert(sku="SKU001", qty=5))

    with pytest.raises(InvalidOperationError):
        ledger.upsert_adjustment(db, AdjustmentUpsert(id=adjustment.id, qty=-1))

    db.refresh(adjustment)
    assert adjustment.qty == 5
    assert _stock(db, "SKU001") == 5


def test_update_uses_stored_sku(db: Session, add_product) -> None:
    add_product("SKU001", stock=10)
    add_product("SKU002", stock=10)
    adjustment, _, _ = ledger.upsert_adjustment(db, AdjustmentUpsert(sku="SKU001", qty=2))

    updated, product, _ = ledger.upsert_adjustment(db, AdjustmentUpsert(id=adjustment.id, sku="SKU002", qty=7))

    assert updated.sku == "SKU001"
    assert product.sku == "SKU001"
    assert _stock(db, "SKU001") == 17
    assert _stock(db, "SKU002") == 10


def test_create_then_delete_restores_stock(db: Session, add_product) -> None:
    add_product("SKU001", stock=42)
    adjustment, _, _ = ledger.upsert_adjustment(db, AdjustmentUpsert(sku="SKU001", qty=-12))
    assert _stock(db, "SKU001") == 30

    deleted, product = ledger.delete_adjustment(db, adjustment.id)

    assert deleted.deleted_at is not None
    assert product.stock == 42
    assert crud.get_adjustment(db, adjustment.id) is None


def test_delete_reverses_without_guard(db: Session, add_product) -> None:
    product_id = add_product("SKU001", stock=0)
    adjustment, _, _ = ledger.upsert_adjustment(db, AdjustmentUpsert(sku="SKU001", qty=5))
    product = db.get(Product, product_id)
    product.stock = 2  # out-of-band correction
    db.add(product)
    db.commit()

    _, product = ledger.delete_adjustment(db, adjustment.id)

    assert product.stock == -3


def test_missing_records_raise_not_found(db: Session, add_product) -> None:
    with pytest.raises(NotFoundError) as exc_info:
        ledger.upsert_adjustment(db, AdjustmentUpsert(sku="NOPE", qty=1))
    assert exc_info.value.error == "Product not found."

    with pytest.raises(NotFoundError) as exc_info:
        ledger.upsert_adjustment(db, AdjustmentUpsert(id=999, qty=1))
    assert exc_info.value.error == "Adjustment not found."

    with pytest.raises(NotFoundError):
        ledger.delete_adjustment(db, 999)

    with pytest.raises(NotFoundError):
        ledger.delete_product(db, 999)


def test_create_requires_sku(db: Session) -> None:
    with pytest.raises(InvalidOperationError):
        ledger.upsert_adjustment(db, AdjustmentUpsert(qty=1))


def test_deleted_adjustment_cannot_be_updated(db: Session, add_product) -> None:
    add_product("SKU001", stock=10)
    adjustment, _, _ = ledger.upsert_adjustment(db, AdjustmentUpsert(sku="SKU001", qty=3))
    ledger.delete_adjustment(db, adjustment.id)

    with pytest.raises(NotFoundError):
        ledger.upsert_adjustment(db, AdjustmentUpsert(id=adjustment.id, qty=8))
    assert _stock(db, "SKU001") == 10


def test_product_delete_cascades_to_adjustments_only(db: Session, add_product) -> None:
    product_id = add_product("SKU001", stock=10)
    add_product("SKU002", stock=10)
    first, _, _ = ledger.upsert_adjustment(db, AdjustmentUpsert(sku="SKU001", qty=1))
    second, _, _ = ledger.upsert_adjustment(db, AdjustmentUpsert(sku="SKU001", qty=2))
    other, _, _ = ledger.upsert_adjustment(db, AdjustmentUpsert(sku="SKU002", qty=3))

    product = ledger.delete_product(db, product_id)
    db.refresh(product)

    assert product.deleted_at is not None
    for adjustment in (first, second):
        db.refresh(adjustment)
        assert adjustment.deleted_at == product.deleted_at
    db.refresh(other)
    assert other.deleted_at is None
    assert crud.get_product(db, product_id) is None


def test_adjustment_delete_keeps_product_active(db: Session, add_product) -> None:
    product_id = add_product("SKU001", stock=10)
    adjustment, _, _ = ledger.upsert_adjustment(db, AdjustmentUpsert(sku="SKU001", qty=1))

    ledger.delete_adjustment(db, adjustment.id)

    assert crud.get_product(db, product_id) is not None


def test_adjusting_deleted_product_is_not_found(db: Session, add_product) -> None:
    product_id = add_product("SKU001", stock=10)
    ledger.delete_product(db, product_id)

    with pytest.raises(NotFoundError):
        ledger.upsert_adjustment(db, AdjustmentUpsert(sku="SKU001", qty=1))


def test_create_product_with_taken_sku_is_noop(db: Session, add_product) -> None:
    product_id = add_product("SKU001", stock=7, title="Original")

    product, created = ledger.upsert_product(db, ProductUpsert(title="Other", sku="SKU001", stock=99))

    assert product is None
    assert not created
    original = crud.get_product(db, product_id)
    assert original.title == "Original"
    assert original.stock == 7


def test_soft_deleted_sku_cannot_be_reused(db: Session, add_product) -> None:
    product_id = add_product("SKU001")
    ledger.delete_product(db, product_id)

    product, created = ledger.upsert_product(db, ProductUpsert(title="Again", sku="SKU001"))

    assert product is None
    assert not created
    assert crud.count_active_products(db) == 0


def test_rename_repoints_adjustments(db: Session, add_product) -> None:
    product_id = add_product("OLD", stock=5)
    adjustment, _, _ = ledger.upsert_adjustment(db, AdjustmentUpsert(sku="OLD", qty=4))
    ledger.delete_adjustment(db, adjustment.id)
    live, _, _ = ledger.upsert_adjustment(db, AdjustmentUpsert(sku="OLD", qty=2))

    product, _ = ledger.upsert_product(db, ProductUpsert(id=product_id, sku="NEW"))

    assert product.sku == "NEW"
    for row in (adjustment, live):
        db.refresh(row)
        assert row.sku == "NEW"
    _, product, _ = ledger.upsert_adjustment(db, AdjustmentUpsert(sku="NEW", qty=1))
    assert product.stock == 8


def test_rename_to_taken_sku_is_rejected(db: Session, add_product) -> None:
    product_id = add_product("SKU001")
    add_product("SKU002")

    with pytest.raises(InvalidOperationError) as exc_info:
        ledger.upsert_product(db, ProductUpsert(id=product_id, sku="SKU002"))

    assert exc_info.value.error == "SKU already exists."
    assert crud.get_product(db, product_id).sku == "SKU001"


def test_update_cannot_set_stock(db: Session, add_product) -> None:
    product_id = add_product("SKU001", stock=1)

    with pytest.raises(InvalidOperationError):
        ledger.upsert_product(db, ProductUpsert(id=product_id, stock=50))

    assert _stock(db, "SKU001") == 1


def test_repointed_rows_count(db: Session, add_product) -> None:
    product_id = add_product("OLD", stock=0)
    for qty in (1, 2, 3):
        ledger.upsert_adjustment(db, AdjustmentUpsert(sku="OLD", qty=qty))

    ledger.upsert_product(db, ProductUpsert(id=product_id, sku="NEW"))

    rows = db.scalars(select(Adjustment).where(Adjustment.sku == "NEW")).all()
    assert len(rows) == 3


def test_concurrent_writers_cannot_overdraw(db: Session, add_product) -> None:
    add_product("SKU001", stock=5)
    other = get_sessionmaker()()
    try:
        # both sessions have seen stock=5 before either one writes
        assert crud.get_product_by_sku(other, "SKU001").stock == 5

        _, product, _ = ledger.upsert_adjustment(db, AdjustmentUpsert(sku="SKU001", qty=-5))
        assert product.stock == 0

        with pytest.raises(InvalidOperationError):
            ledger.upsert_adjustment(other, AdjustmentUpsert(sku="SKU001", qty=-5))
    finally:
        other.close()

    assert _stock(db, "SKU001") == 0
    assert crud.count_active_adjustments(db) == 1


def test_timestamps_are_stored(db: Session, add_product) -> None:
    product_id = add_product("SKU001", stock=1)
    adjustment, _, _ = ledger.upsert_adjustment(db, AdjustmentUpsert(sku="SKU001", qty=2))
    ledger.delete_adjustment(db, adjustment.id)
    db.expire_all()

    stored = db.get(Adjustment, adjustment.id)
    assert stored.created_at is not None
    assert stored.deleted_at >= stored.created_at
    product = db.get(Product, product_id)
    assert product.updated_at >= product.created_at
    assert product.deleted_at is None
