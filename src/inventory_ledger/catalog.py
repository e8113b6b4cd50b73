"""First-run catalog seeding from an external product feed."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from http.client import HTTPException
from typing import Any, Iterable, Optional, Protocol
from urllib.error import URLError
from urllib.request import Request, urlopen

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from . import crud
from .exceptions import CatalogSourceError
from .models import Product

logger = logging.getLogger(__name__)

USER_AGENT = "inventory-ledger-seed"


@dataclass(slots=True)
class CatalogItem:
    """A candidate product read from the external catalog."""

    title: str
    sku: str
    image: Optional[str] = None
    price: Decimal = Decimal("0")
    description: Optional[str] = None


class CatalogSource(Protocol):
    def fetch(self) -> Iterable[CatalogItem]:
        ...


def _parse_price(value: Any) -> Decimal:
    try:
        price = Decimal(str(value)).quantize(Decimal("0.01"))
    except (InvalidOperation, ValueError):
        return Decimal("0")
    if not price.is_finite() or price < 0:
        return Decimal("0")
    return price


def item_from_record(record: dict[str, Any]) -> Optional[CatalogItem]:
    """Map a remote record onto a catalog item, or ``None`` when it lacks a title or sku."""

    title = record.get("title")
    sku = record.get("sku")
    if not title or not sku:
        return None
    image = record.get("image") or record.get("thumbnail")
    if not image and record.get("images"):
        image = record["images"][0]
    return CatalogItem(
        title=str(title),
        sku=str(sku),
        image=image,
        price=_parse_price(record.get("price", 0)),
        description=record.get("description"),
    )


class HttpCatalogSource:
    """Reads a JSON product feed: a list of records or ``{"products": [...]}``."""

    def __init__(self, url: str, timeout: float = 10.0) -> None:
        self.url = url
        self.timeout = timeout

    def _load(self) -> Any:
        request = Request(self.url, headers={"Accept": "application/json", "User-Agent": USER_AGENT})
        try:
            with urlopen(request, timeout=self.timeout) as response:
                payload = response.read().decode("utf-8")
        except (URLError, HTTPException, TimeoutError, UnicodeDecodeError) as exc:
            raise CatalogSourceError("Failed to fetch catalog.", f"{self.url}: {exc}") from exc
        try:
            return json.loads(payload)
        except json.JSONDecodeError as exc:
            raise CatalogSourceError("Failed to fetch catalog.", "Catalog returned invalid JSON") from exc

    def fetch(self) -> list[CatalogItem]:
        data = self._load()
        records = data.get("products") if isinstance(data, dict) else data
        if not isinstance(records, list):
            raise CatalogSourceError("Failed to fetch catalog.", "Unexpected catalog response format")

        items: list[CatalogItem] = []
        for record in records:
            if not isinstance(record, dict):
                continue
            item = item_from_record(record)
            if item is not None:
                items.append(item)
        return items


def seed_catalog(db: Session, source: CatalogSource) -> int:
    """Insert every catalog item whose sku is not taken yet. Returns the number inserted."""

    inserted = 0
    for item in source.fetch():
        if crud.get_product_by_sku(db, item.sku, include_deleted=True) is not None:
            continue
        db.add(
            Product(title=item.title, sku=item.sku, image=item.image, price=item.price, description=item.description)
        )
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.debug("Skipping catalog item %s: sku already exists", item.sku)
            continue
        inserted += 1
    logger.info("Seeded %d product(s) from the catalog", inserted)
    return inserted


def seed_if_empty(db: Session, source: CatalogSource) -> int:
    """Seed the catalog only when there are no active products."""

    if crud.count_active_products(db):
        return 0
    return seed_catalog(db, source)
