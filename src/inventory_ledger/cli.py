"""Command line interface for the inventory service."""

from __future__ import annotations

from typing import Optional

import typer
import uvicorn

from . import migrations
from .catalog import HttpCatalogSource, seed_catalog, seed_if_empty
from .config import Settings, configure_logging, get_settings
from .database import get_engine, session_scope
from .exceptions import CatalogSourceError, MigrationError

app = typer.Typer(help="Manage and run the inventory ledger backend service.")


def _print_header(title: str) -> None:
    typer.secho(title, bold=True, fg=typer.colors.CYAN)


def _resolve_settings() -> Settings:
    settings = get_settings()
    configure_logging(settings.log_level)
    return settings


@app.command()
def run(
    host: Optional[str] = typer.Option(None, help="Hostname to bind"),
    port: Optional[int] = typer.Option(None, help="Port to expose"),
    reload: Optional[bool] = typer.Option(None, help="Enable auto-reload"),
    log_level: Optional[str] = typer.Option(None, help="Uvicorn log level"),
) -> None:
    """Start the FastAPI service using Uvicorn."""

    settings = _resolve_settings()

    uvicorn.run(
        "inventory_ledger.app:create_app",
        host=host or settings.host,
        port=port or settings.port,
        reload=settings.reload if reload is None else reload,
        log_level=log_level or settings.log_level,
        factory=True,
    )


@app.command()
def migrate() -> None:
    """Apply every pending schema migration."""

    _resolve_settings()
    try:
        applied = migrations.migrate(get_engine())
    except MigrationError as exc:
        typer.secho(f"Migration failed: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=1) from exc
    if not applied:
        typer.echo("Database is up to date.")
        return
    for name in applied:
        typer.secho(f"Applied {name}", fg=typer.colors.GREEN)


@app.command()
def rollback() -> None:
    """Revert the most recently applied migration."""

    _resolve_settings()
    try:
        name = migrations.rollback(get_engine())
    except MigrationError as exc:
        typer.secho(f"Rollback failed: {exc}", fg=typer.colors.RED)
        raise typer.Exit(code=1) from exc
    if name is None:
        typer.echo("No migrations to rollback.")
        return
    typer.secho(f"Rolled back {name}", fg=typer.colors.GREEN)


@app.command("migrations")
def migrations_cmd() -> None:
    """Display applied and pending migrations."""

    _resolve_settings()
    _print_header("Migrations")
    for name, applied_at in migrations.status(get_engine()):
        state = applied_at.isoformat(sep=" ", timespec="seconds") if applied_at else "pending"
        typer.echo(f"- {name} | {state}")


@app.command("seed-catalog")
def seed_catalog_cmd(
    url: Optional[str] = typer.Option(None, help="Catalog feed URL. Defaults to the configured catalog_url."),
    force: bool = typer.Option(False, help="Seed even when active products already exist."),
) -> None:
    """Populate the product table from the external catalog feed."""

    settings = _resolve_settings()
    source = HttpCatalogSource(url or settings.catalog_url, timeout=settings.catalog_timeout)
    try:
        with session_scope() as session:
            inserted = seed_catalog(session, source) if force else seed_if_empty(session, source)
    except CatalogSourceError as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1) from exc
    typer.echo(f"Inserted {inserted} product(s).")


@app.command()
def show_config() -> None:
    """Print out the effective configuration."""

    settings = _resolve_settings()
    _print_header("Configuration")
    for key, value in settings.model_dump().items():
        typer.echo(f"{key}: {value}")


def main() -> None:
    """Entry-point for console scripts."""

    app()


if __name__ == "__main__":  # pragma: no cover
    main()
