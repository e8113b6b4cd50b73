from collections.abc import Generator
from decimal import Decimal
from typing import Any, Iterable

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from inventory_ledger import migrations
from inventory_ledger.app import create_app
from inventory_ledger.catalog import CatalogItem
from inventory_ledger.config import get_settings
from inventory_ledger.database import get_engine, get_sessionmaker, reset_engine, session_scope
from inventory_ledger.dependencies import get_catalog_source
from inventory_ledger.models import Product


class FakeCatalog:
    """In-memory catalog source that records how often it was read."""

    def __init__(self, items: Iterable[CatalogItem] = (), error: Exception | None = None) -> None:
        self.items = list(items)
        self.error = error
        self.calls = 0

    def fetch(self) -> list[CatalogItem]:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return list(self.items)


@pytest.fixture(name="database_url")
def database_url_fixture(tmp_path, monkeypatch) -> Generator[str, None, None]:
    url = f"sqlite:///{tmp_path / 'test.db'}"
    monkeypatch.setenv("INVENTORY_DATABASE_URL", url)
    monkeypatch.setenv("INVENTORY_ENABLE_CATALOG_SEED", "true")
    get_settings.cache_clear()
    reset_engine()
    yield url
    reset_engine()
    get_settings.cache_clear()


@pytest.fixture(name="db_engine")
def db_engine_fixture(database_url: str) -> Any:
    engine = get_engine()
    migrations.migrate(engine)
    return engine


@pytest.fixture(name="db")
def db_fixture(db_engine) -> Generator[Session, None, None]:  # type: ignore[annotations]
    session = get_sessionmaker()()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(name="catalog")
def catalog_fixture() -> FakeCatalog:
    return FakeCatalog()


@pytest.fixture(name="client")
def client_fixture(db_engine, catalog: FakeCatalog):  # type: ignore[annotations]
    app = create_app()
    app.dependency_overrides[get_catalog_source] = lambda: catalog

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


@pytest.fixture(name="add_product")
def add_product_fixture(db_engine):  # type: ignore[annotations]
    """Insert a product directly, bypassing the API. Returns its id."""

    def _add(sku: str, *, stock: int = 0, price: str = "10.00", title: str | None = None) -> int:
        with session_scope() as session:
            product = Product(title=title or f"Product {sku}", sku=sku, price=Decimal(price), stock=stock)
            session.add(product)
            session.flush()
            return product.id

    return _add
