"""Shared helpers for CLI commands."""

from datetime import date
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from ...core.exceptions import PortfolioValuationError
from ...core.models import Portfolio
from ...data.snapshot import Snapshot, load_snapshot

console = Console()

SNAPSHOT_OPTION = typer.Option(Path("portfolio.json"), "--file", "-f", help="Snapshot JSON file")


def open_snapshot(path: Path) -> Snapshot:
    try:
        return load_snapshot(path)
    except PortfolioValuationError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


def require_portfolio(snapshot: Snapshot, portfolio_id: str) -> Portfolio:
    p = snapshot.portfolio(portfolio_id)
    if not p:
        console.print(f"[red]Portfolio {portfolio_id} not found[/red]")
        raise typer.Exit(1)
    return p


def parse_date(value: Optional[str], default: Optional[date] = None) -> Optional[date]:
    if not value:
        return default
    try:
        return date.fromisoformat(value)
    except ValueError:
        console.print("[red]Invalid date format. Use YYYY-MM-DD[/red]")
        raise typer.Exit(1)


def pct(value) -> str:
    if value is None:
        return "[dim]n/a[/dim]"
    color = "green" if value >= 0 else "red"
    return f"[{color}]{float(value) * 100:+.2f}%[/{color}]"
