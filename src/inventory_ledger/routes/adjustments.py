from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import crud, ledger
from ..dependencies import adjustment_page, get_db, store_errors
from ..exceptions import NotFoundError
from ..pagination import PageWindow, total_pages
from ..schemas import AdjustmentAck, AdjustmentPage, AdjustmentRead, AdjustmentUpsert, ErrorBody

router = APIRouter(
    prefix="/adjustments",
    tags=["adjustments"],
    responses={404: {"model": ErrorBody}, 400: {"model": ErrorBody}, 500: {"model": ErrorBody}},
)


@router.get("", response_model=AdjustmentPage)
def list_adjustments(
    window: PageWindow = Depends(adjustment_page),
    db: Session = Depends(get_db),
) -> AdjustmentPage:
    with store_errors("Failed to fetch adjustments."):
        total_items = crud.count_active_adjustments(db)
        rows = crud.list_adjustments(db, window)
    return AdjustmentPage(
        adjustments=[AdjustmentRead.model_validate(row._asdict()) for row in rows],
        total_items=total_items,
        total_pages=total_pages(total_items, window.limit),
        current_page=window.page,
    )


@router.get("/{adjustment_id}", response_model=AdjustmentRead)
def get_adjustment(adjustment_id: int, db: Session = Depends(get_db)) -> AdjustmentRead:
    with store_errors("Failed to fetch adjustment."):
        row = crud.get_adjustment_row(db, adjustment_id)
    if row is None:
        raise NotFoundError("Adjustment not found.", f"No adjustment found with id: {adjustment_id}")
    return AdjustmentRead.model_validate(row._asdict())


@router.post("", response_model=AdjustmentAck)
def upsert_adjustment(payload: AdjustmentUpsert, db: Session = Depends(get_db)) -> AdjustmentAck:
    """Create an adjustment, or change the quantity of an existing one.

    Updating an adjustment that was soft deleted returns 404: its quantity
    has already been reversed out of the product's stock.
    """

    with store_errors("Failed to save adjustment."):
        adjustment, product, created = ledger.upsert_adjustment(db, payload)
    message = "Adjustment created successfully." if created else "Adjustment updated successfully."
    return AdjustmentAck(message=message, id=adjustment.id, stock=product.stock)


@router.delete("/{adjustment_id}", response_model=AdjustmentAck)
def delete_adjustment(adjustment_id: int, db: Session = Depends(get_db)) -> AdjustmentAck:
    with store_errors("Failed to soft delete adjustment."):
        adjustment, product = ledger.delete_adjustment(db, adjustment_id)
    return AdjustmentAck(message="Adjustment soft-deleted successfully.", id=adjustment.id, stock=product.stock)
