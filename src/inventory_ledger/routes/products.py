from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from .. import crud, ledger
from ..catalog import CatalogSource, seed_if_empty
from ..config import get_settings
from ..dependencies import get_catalog_source, get_db, product_page, store_errors
from ..exceptions import NotFoundError
from ..pagination import PageWindow, total_pages
from ..schemas import ErrorBody, Message, ProductAck, ProductPage, ProductRead, ProductUpsert

router = APIRouter(
    prefix="/products",
    tags=["products"],
    responses={404: {"model": ErrorBody}, 400: {"model": ErrorBody}, 500: {"model": ErrorBody}},
)


@router.get("", response_model=ProductPage)
def list_products(
    window: PageWindow = Depends(product_page),
    db: Session = Depends(get_db),
    source: CatalogSource = Depends(get_catalog_source),
) -> ProductPage:
    with store_errors("Failed to fetch products."):
        if get_settings().enable_catalog_seed:
            seed_if_empty(db, source)
        total_items = crud.count_active_products(db)
        products = crud.list_products(db, window)
    return ProductPage(
        products=[ProductRead.model_validate(product) for product in products],
        total_items=total_items,
        total_pages=total_pages(total_items, window.limit),
        current_page=window.page,
    )


@router.get("/{product_id}", response_model=ProductRead)
def get_product(product_id: int, db: Session = Depends(get_db)) -> ProductRead:
    with store_errors("Failed to fetch product."):
        product = crud.get_product(db, product_id)
    if product is None:
        raise NotFoundError("Product not found.", f"No product found with id: {product_id}")
    return ProductRead.model_validate(product)


@router.post("", response_model=ProductAck)
def upsert_product(payload: ProductUpsert, db: Session = Depends(get_db)) -> ProductAck:
    """Create a product, or patch the supplied fields of an existing one.

    ``stock`` is accepted as opening stock on create only. Sending it on an
    update returns 400, because stock moves only through ``/adjustments``.
    """

    with store_errors("Failed to upsert product."):
        product, created = ledger.upsert_product(db, payload)
    if payload.id is not None:
        return ProductAck(message="Product updated successfully.", id=product.id)
    return ProductAck(message="Product created successfully.", id=product.id if created else None)


@router.delete("/{product_id}", response_model=Message)
def delete_product(product_id: int, db: Session = Depends(get_db)) -> Message:
    """Soft delete a product and its active adjustments.

    Returns 404 when no active product has this id, including one that was
    already deleted.
    """

    with store_errors("Failed to soft delete product."):
        ledger.delete_product(db, product_id)
    return Message(message="Product and related adjustments soft-deleted successfully.")
