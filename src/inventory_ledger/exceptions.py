"""Errors raised by the inventory ledger.

Every error carries a short ``error`` message and a ``details`` string so the
HTTP layer can render ``{"error": ..., "details": ...}`` without parsing text.
"""

from __future__ import annotations

from typing import Optional


class InventoryError(RuntimeError):
    """Base class for domain errors."""

    status_code = 500

    def __init__(self, error: str, details: Optional[str] = None) -> None:
        super().__init__(error if details is None else f"{error} {details}")
        self.error = error
        self.details = details

    def to_dict(self) -> dict[str, Optional[str]]:
        return {"error": self.error, "details": self.details}


class NotFoundError(InventoryError):
    """Raised when a product or adjustment cannot be resolved."""

    status_code = 404


class InvalidOperationError(InventoryError):
    """Raised when a mutation would break a ledger rule."""

    status_code = 400


class StoreFailure(InventoryError):
    """Raised when the underlying database call fails."""


class CatalogSourceError(InventoryError):
    """Raised when the external product catalog cannot be read."""


class MigrationError(RuntimeError):
    """Raised when applying or reverting a schema migration fails."""
