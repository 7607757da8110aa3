"""Currency ledger commands."""

from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional

import typer
from rich.table import Table

from ...core.ledger import CurrencyLedgerCalculator
from ._common import SNAPSHOT_OPTION, console, open_snapshot, parse_date

app = typer.Typer(help="Currency ledger balances and rates")


def _require_ledger(snap, ledger_id: str):
    ledger = next((lg for lg in snap.ledgers if lg.id == ledger_id), None)
    if ledger is None:
        console.print(f"[red]Ledger {ledger_id} not found[/red]")
        raise typer.Exit(1)
    return ledger


@app.command("summary")
def summary(
    ledger_id: str = typer.Argument(..., help="Currency ledger ID"),
    file: Path = SNAPSHOT_OPTION,
    as_of: Optional[str] = typer.Option(None, "--as-of", help="Only transactions up to YYYY-MM-DD"),
):
    """Balance, average cost and realized exchange P&L."""
    snap = open_snapshot(file)
    ledger = _require_ledger(snap, ledger_id)
    cutoff = parse_date(as_of)
    s = CurrencyLedgerCalculator.summarize(snap.ledger_transactions(ledger.id), cutoff)

    title = f"{ledger.name or ledger.id} ({ledger.currency_code})"
    if cutoff:
        title += f" as of {cutoff.isoformat()}"
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Label", style="dim")
    table.add_column("Value", justify="right")
    table.add_row("Balance", f"{s.balance:,.4f} {ledger.currency_code}")
    table.add_row("Average cost", f"{s.average_cost:,.6f} {ledger.home_currency}")
    table.add_row("Total cost", f"{s.total_cost:,.2f} {ledger.home_currency}")
    color = "green" if s.realized_pnl >= 0 else "red"
    table.add_row("Realized P&L", f"[{color}]{s.realized_pnl:,.2f} {ledger.home_currency}[/{color}]")
    console.print(f"\n[bold]{title}[/bold]\n")
    console.print(table)
    console.print()


@app.command("rate")
def rate(
    ledger_id: str = typer.Argument(..., help="Currency ledger ID"),
    amount: str = typer.Argument(..., help="Foreign amount of the purchase"),
    on: str = typer.Option(..., "--date", "-d", help="Purchase date YYYY-MM-DD"),
    file: Path = SNAPSHOT_OPTION,
):
    """Impute the exchange rate that funded a purchase (LIFO)."""
    snap = open_snapshot(file)
    ledger = _require_ledger(snap, ledger_id)
    try:
        purchase_amount = Decimal(amount)
    except InvalidOperation:
        console.print("[red]Invalid number format for amount[/red]")
        raise typer.Exit(1)
    if purchase_amount <= 0:
        console.print("[red]Amount must be positive[/red]")
        raise typer.Exit(1)

    purchase_date = parse_date(on)
    imputed = CurrencyLedgerCalculator.calculate_exchange_rate_for_purchase(
        snap.ledger_transactions(ledger.id), purchase_date, purchase_amount
    )
    if imputed == 0:
        console.print("[yellow]No exchange-sourced funds available before that date[/yellow]")
        return
    console.print(
        f"{purchase_amount:,.4f} {ledger.currency_code} on {purchase_date.isoformat()} "
        f"→ rate [bold]{imputed}[/bold] ({purchase_amount * imputed:,.2f} {ledger.home_currency})"
    )
