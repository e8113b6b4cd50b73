"""Shared FastAPI dependencies."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Generator, Iterator

from fastapi import Query
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .catalog import CatalogSource, HttpCatalogSource
from .config import get_settings
from .database import get_sessionmaker
from .exceptions import StoreFailure
from .pagination import PageWindow, page_window

logger = logging.getLogger(__name__)


def get_db() -> Generator[Session, None, None]:
    """Provide a database session for FastAPI routes."""

    db = get_sessionmaker()()
    try:
        yield db
    finally:
        db.close()


def get_catalog_source() -> CatalogSource:
    settings = get_settings()
    return HttpCatalogSource(settings.catalog_url, timeout=settings.catalog_timeout)


def product_page(page: int = Query(1, ge=1), limit: int = Query(0, ge=0)) -> PageWindow:
    return page_window(page, limit, max_limit=get_settings().max_page_size)


def adjustment_page(page: int = Query(1, ge=1), limit: int = Query(10, ge=0)) -> PageWindow:
    return page_window(page, limit, max_limit=get_settings().max_page_size)


@contextmanager
def store_errors(action: str) -> Iterator[None]:
    """Turn database errors raised inside the block into a logged ``StoreFailure``."""

    try:
        yield
    except SQLAlchemyError as exc:
        logger.exception("%s", action)
        raise StoreFailure(action, str(exc)) from exc
