from __future__ import annotations

from pathlib import Path
from typing import List, Optional

import typer

from rentfolio.adapters.analysis_storage import AnalysisStorage
from rentfolio.adapters.config import config
from rentfolio.adapters.kv_store import SqlKeyValueStore
from rentfolio.services.analyses import list_analyses
from rentfolio.services.analysis_repository import AnalysisRepository
from rentfolio.services.cache import AnalysisCache
from rentfolio.services.query import AnalysisQuery
from rentfolio.services.seed import seed_example_analyses

app = typer.Typer(help="Rentfolio saved-analysis maintenance (list, export, import).")


def _repo(db: Optional[str]) -> AnalysisRepository:
    storage = AnalysisStorage(SqlKeyValueStore(db or config.STORE_URI))
    # one-shot commands gain nothing from caching
    return AnalysisRepository(storage, AnalysisCache(enabled=False))


@app.command("list")
def list_cmd(
    search: Optional[str] = typer.Option(None, help="Substring of title or address"),
    status: Optional[str] = typer.Option(None, help="draft|sent_to_client|client_responded|published|archived"),
    tag: Optional[List[str]] = typer.Option(None, "--tag", help="Match any of these tags"),
    page: int = typer.Option(1),
    page_size: int = typer.Option(config.DEFAULT_PAGE_SIZE),
    db: Optional[str] = typer.Option(None, help="Store URI (defaults to RENTFOLIO_STORE_URI)"),
) -> None:
    """
    Print one page of saved analyses, most recently updated first.
    """
    query = AnalysisQuery(search=search, status=status, tags=tag or None, page=page, page_size=page_size)
    result = list_analyses(_repo(db), query)

    typer.echo(f"{result.total} analyses (page {result.page})")
    typer.echo("ID\tStatus\tValue CLP\tTitle")
    for a in result.analyses:
        typer.echo(f"{a.id}\t{a.metadata.status}\t{a.property.value_clp:,.0f}\t{a.title}")
    if result.has_more:
        typer.echo(f"... more on page {result.page + 1}")


@app.command("dashboard")
def dashboard_cmd(db: Optional[str] = typer.Option(None)) -> None:
    """
    Print the dashboard summary.
    """
    summary = _repo(db).dashboard()
    typer.echo(f"Analyses:           {summary.total_analyses}")
    typer.echo(f"Active rentals:     {summary.active_rentals}")
    typer.echo(f"Total monthly rent: {summary.total_revenue:,.0f} CLP")
    typer.echo(f"Average cap rate:   {summary.average_rentability:.1f}%")
    for entry in summary.recent_activity[:5]:
        typer.echo(f"  {entry.date:%Y-%m-%d %H:%M}  {entry.title}: {entry.description}")


@app.command("export")
def export_cmd(
    out: Path = typer.Option(..., "--out", help="Destination JSON file"),
    db: Optional[str] = typer.Option(None),
) -> None:
    """
    Write a snapshot of every analysis plus the dashboard summary.
    """
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(_repo(db).export_all(), encoding="utf-8")
    typer.echo(f"Exported to {out}")


@app.command("import")
def import_cmd(
    src: Path = typer.Argument(..., help="Snapshot produced by `export`"),
    db: Optional[str] = typer.Option(None),
) -> None:
    """
    Replace all stored analyses with the snapshot's.
    """
    if not _repo(db).import_all(src.read_text(encoding="utf-8")):
        typer.echo("Import rejected: snapshot has no valid analyses list", err=True)
        raise typer.Exit(code=1)
    typer.echo(f"Imported {src}")


@app.command("seed")
def seed_cmd(db: Optional[str] = typer.Option(None)) -> None:
    """
    Write the demo analyses into an empty store.
    """
    n = seed_example_analyses(_repo(db).storage)
    typer.echo(f"Seeded {n} analyses")


@app.command("clear")
def clear_cmd(
    db: Optional[str] = typer.Option(None),
    yes: bool = typer.Option(False, "--yes", help="Skip confirmation"),
) -> None:
    """
    Delete every stored analysis and the dashboard summary.
    """
    if not yes:
        typer.confirm("Delete all saved analyses?", abort=True)
    if not _repo(db).clear_all():
        raise typer.Exit(code=1)
    typer.echo("Store cleared")


if __name__ == "__main__":
    app()
