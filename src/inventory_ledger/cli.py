"""Command line interface for the packaged service."""

from __future__ import annotations

from typing import Optional

import typer
import uvicorn

from . import commitments, reconciliation, store
from .config import Settings, get_settings
from .database import init_database, session_scope
from .errors import LedgerError
from .logging_config import configure_logging

app = typer.Typer(help="Run and inspect the inventory ledger service.")


def _print_header(title: str) -> None:
    typer.secho(title, bold=True, fg=typer.colors.CYAN)


def _resolve_settings() -> Settings:
    settings = get_settings()
    configure_logging(settings.log_level)
    init_database()
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
def init_db() -> None:
    """Create the database tables."""

    settings = _resolve_settings()
    typer.echo(f"Database initialised at {settings.database_url}")


@app.command()
def show_settings() -> None:
    """Print the effective configuration."""

    settings = get_settings()
    typer.echo(f"Database: {settings.database_url}")
    typer.echo(f"API prefix: {settings.api_v1_prefix}")
    typer.echo(f"Origin warehouse: {settings.origin_warehouse}")
    typer.echo(f"Destination warehouse: {settings.destination_warehouse}")
    typer.echo(f"Write retries: {settings.write_retries}")


@app.command()
def inventory(
    location: Optional[str] = typer.Option(None, help="Only show this warehouse"),
) -> None:
    """List stock balances with committed and available quantities."""

    _resolve_settings()
    try:
        with session_scope() as session:
            committed = commitments.committed_by_product(session)
            records = store.list_all(session, location=location)
            if not records:
                typer.echo("No stock recorded.")
                return
            _print_header("Stock balances")
            for record in records:
                pending = committed.get(record.product_id, 0)
                typer.echo(
                    f"- {record.product_id}@{record.location} | on_hand={record.quantity}"
                    f" | committed={pending} | available={max(0, record.quantity - pending)}"
                )
    except LedgerError as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1) from exc


@app.command()
def reconcile(
    product: Optional[str] = typer.Option(None, "--product", help="Restrict to one product"),
    location: Optional[str] = typer.Option(None, "--location", help="Restrict to one location"),
) -> None:
    """Replay the movement log and report balances that disagree with it."""

    _resolve_settings()
    scope = reconciliation.ReconciliationScope(product_id=product, location=location)
    try:
        with session_scope() as session:
            result = reconciliation.run_reconciliation(session, scope)
    except LedgerError as exc:
        typer.secho(str(exc), fg=typer.colors.RED)
        raise typer.Exit(code=1) from exc

    if result.is_clean:
        typer.secho(f"No discrepancies across {result.checked} balances.", fg=typer.colors.GREEN)
        return
    _print_header(f"{len(result.discrepancies)} discrepancies across {result.checked} balances")
    for report in result.discrepancies:
        typer.secho(
            f"- {report.product_id}@{report.location}: recorded={report.recorded}"
            f" expected={report.expected} difference={report.difference:+d}",
            fg=typer.colors.YELLOW,
        )
        for contribution in report.contributions:
            typer.echo(
                f"    {contribution.number} {contribution.kind}/{contribution.status} {contribution.quantity:+d}"
            )
    raise typer.Exit(code=1)


def main() -> None:
    """Entry-point for console scripts."""

    app()


if __name__ == "__main__":  # pragma: no cover
    main()
