"""Position commands — holdings and profit/loss per ticker."""

from decimal import Decimal
from pathlib import Path

import typer
from rich.table import Table

from ...core.calculator import PortfolioCalculator
from ...core.config import get_config
from ...core.exceptions import PortfolioValuationError
from ...core.models import TransactionType
from ...external.quotes import YahooQuoteProvider
from ._common import SNAPSHOT_OPTION, console, open_snapshot, require_portfolio

app = typer.Typer(help="Positions and profit/loss")


@app.command("show")
def show(
    portfolio_id: str = typer.Argument(..., help="Portfolio ID"),
    file: Path = SNAPSHOT_OPTION,
    fetch: bool = typer.Option(False, "--fetch", help="Fetch current prices from Yahoo Finance"),
    raw: bool = typer.Option(False, "--raw", help="Ignore stock split adjustments"),
):
    """Show positions with average cost and unrealized P&L."""
    snap = open_snapshot(file)
    p = require_portfolio(snap, portfolio_id)
    txs = snap.transactions_for(p.id)

    if raw:
        positions = PortfolioCalculator.recalculate_all_positions(txs)
    else:
        positions = PortfolioCalculator.recalculate_all_positions_with_split_adjustments(txs, snap.splits)
    positions = [pos for pos in positions if pos.total_shares > 0]
    if not positions:
        console.print("[yellow]No open positions.[/yellow]")
        return

    prices = dict(snap.prices)
    if fetch:
        provider = YahooQuoteProvider()
        markets = {t.ticker: t.market for t in txs}
        for pos in positions:
            try:
                quote = provider.fetch_quote(pos.ticker, p.home_currency, markets.get(pos.ticker))
                prices[pos.ticker] = quote.as_current_price()
            except PortfolioValuationError as e:
                console.print(f"[yellow]{e}[/yellow]")

    table = Table(title=f"Positions — {p.name or p.id}")
    table.add_column("Ticker", style="bold")
    table.add_column("Shares", justify="right")
    table.add_column("Avg cost", justify="right")
    table.add_column(f"Cost ({p.home_currency})", justify="right")
    table.add_column(f"Value ({p.home_currency})", justify="right")
    table.add_column("Unrealized P&L", justify="right")

    total_cost = Decimal("0")
    total_value = Decimal("0")
    for pos in positions:
        quote = prices.get(pos.ticker)
        value_cell = pnl_cell = "—"
        if quote is not None:
            pnl = PortfolioCalculator.calculate_unrealized_pnl(pos, quote.price, quote.exchange_rate)
            total_value += pnl.current_value_home
            color = "green" if pnl.unrealized_pnl_home >= 0 else "red"
            value_cell = f"{pnl.current_value_home:,.2f}"
            pnl_cell = (
                f"[{color}]{pnl.unrealized_pnl_home:,.2f} "
                f"({pnl.unrealized_pnl_percentage:+.2f}%)[/{color}]"
            )
        total_cost += pos.total_cost_home
        table.add_row(
            pos.ticker,
            f"{pos.total_shares:,.4f}",
            f"{pos.average_cost_per_share_source:,.4f}",
            f"{pos.total_cost_home:,.2f}",
            value_cell,
            pnl_cell,
        )

    table.add_row("[bold]TOTAL[/bold]", "", "", f"[bold]{total_cost:,.2f}[/bold]",
                  f"[bold]{total_value:,.2f}[/bold]", "")
    console.print(table)


@app.command("realized")
def realized(
    portfolio_id: str = typer.Argument(..., help="Portfolio ID"),
    file: Path = SNAPSHOT_OPTION,
):
    """Replay sells and show realized P&L per sale (average cost)."""
    snap = open_snapshot(file)
    p = require_portfolio(snap, portfolio_id)
    txs = sorted((t for t in snap.transactions_for(p.id) if not t.is_deleted), key=lambda t: t.sort_key)
    sells = [(i, t) for i, t in enumerate(txs) if t.transaction_type == TransactionType.SELL]
    if not sells:
        console.print("[yellow]No sell transactions.[/yellow]")
        return

    table = Table(title=f"Realized P&L — {p.name or p.id}")
    table.add_column("Date")
    table.add_column("Ticker", style="bold")
    table.add_column("Shares", justify="right")
    table.add_column("Price", justify="right")
    table.add_column(f"Realized ({p.home_currency})", justify="right")

    total = Decimal("0")
    for i, sell in sells:
        earlier = txs[:i]
        before = PortfolioCalculator.calculate_position(sell.ticker, earlier)
        gain = PortfolioCalculator.calculate_realized_pnl(before, sell)
        total += gain
        color = "green" if gain >= 0 else "red"
        table.add_row(
            sell.transaction_date.isoformat(),
            sell.ticker,
            f"{sell.shares:,.4f}",
            f"{sell.price_per_share:,.4f}",
            f"[{color}]{gain:,.2f}[/{color}]",
        )

    color = "green" if total >= 0 else "red"
    table.add_row("[bold]TOTAL[/bold]", "", "", "", f"[bold {color}]{total:,.2f}[/bold {color}]")
    console.print(table)


@app.command("config")
def show_config():
    """Show the active configuration."""
    cfg = get_config()
    console.print(f"Home currency: {cfg.home_currency}")
    console.print(f"Default foreign currency: {cfg.default_foreign_currency}")
    console.print(f"XIRR: max {cfg.xirr_max_iterations} iterations, tolerance {cfg.xirr_tolerance}")
