"""Performance commands — XIRR, Modified Dietz, TWR and cash flows."""

from datetime import date
from pathlib import Path
from typing import Optional

import typer
from rich.table import Table

from ...core.config import get_config
from ...core.finance import (
    annualize_return,
    calculate_modified_dietz,
    calculate_portfolio_xirr,
    calculate_position_xirr,
    calculate_time_weighted_return,
)
from ...core.strategies import CurrencyLedgerCashFlowStrategy, select_cash_flow_strategy
from ...external.quotes import YahooQuoteProvider
from ._common import SNAPSHOT_OPTION, console, open_snapshot, parse_date, pct, require_portfolio

app = typer.Typer(help="XIRR, Modified Dietz and TWR")


@app.command("xirr")
def xirr(
    portfolio_id: Optional[str] = typer.Argument(None, help="Portfolio ID"),
    file: Path = SNAPSHOT_OPTION,
    all_: bool = typer.Option(False, "--all", help="All portfolios combined"),
    ticker: Optional[str] = typer.Option(None, "--ticker", "-t", help="Single position only"),
    as_of: Optional[str] = typer.Option(None, "--as-of", help="Valuation date YYYY-MM-DD (default today)"),
    fetch_fx: bool = typer.Option(False, "--fetch-fx", help="Fill missing exchange rates from Yahoo Finance"),
):
    """Annualized return (XIRR) of a portfolio, one of its positions, or all portfolios."""
    cfg = get_config()
    if all_ == bool(portfolio_id):
        console.print("[red]Give either a portfolio ID or --all[/red]")
        raise typer.Exit(1)
    snap = open_snapshot(file)
    valuation_date = parse_date(as_of, date.today())
    lookup = YahooQuoteProvider().historical_rate if fetch_fx else None
    if all_:
        txs = snap.stock_transactions
        home_currency = cfg.home_currency
        name = "All portfolios"
    else:
        p = require_portfolio(snap, portfolio_id)
        txs = snap.transactions_for(p.id)
        home_currency = p.home_currency
        name = p.name or p.id

    if ticker:
        result = calculate_position_xirr(
            ticker, txs, snap.splits, snap.prices.get(ticker.upper()), valuation_date,
            home_currency, lookup, cfg.xirr_max_iterations, cfg.xirr_tolerance,
        )
    else:
        result = calculate_portfolio_xirr(
            txs, snap.splits, snap.prices, valuation_date,
            home_currency, lookup, cfg.xirr_max_iterations, cfg.xirr_tolerance,
        )

    label = ticker.upper() if ticker else name
    console.print(f"\n[bold]XIRR — {label}[/bold]")
    console.print(f"  As of: {result.as_of.isoformat()}")
    if result.earliest_transaction_date:
        console.print(f"  Since: {result.earliest_transaction_date.isoformat()}")
    console.print(f"  Cash flows: {result.cash_flow_count}")
    console.print(f"  XIRR: {pct(result.xirr)}")
    if result.missing_exchange_rates:
        console.print(
            f"[yellow]  {len(result.missing_exchange_rates)} transaction(s) skipped "
            f"for missing exchange rates[/yellow]"
        )
        for m in result.missing_exchange_rates:
            console.print(f"[dim]    {m.transaction_date.isoformat()} {m.currency}[/dim]")
    console.print()


@app.command("cash-flows")
def cash_flows(
    portfolio_id: str = typer.Argument(..., help="Portfolio ID"),
    file: Path = SNAPSHOT_OPTION,
    start: Optional[str] = typer.Option(None, "--from", help="YYYY-MM-DD"),
    end: Optional[str] = typer.Option(None, "--to", help="YYYY-MM-DD"),
):
    """List the external cash-flow events used for return calculation."""
    cfg = get_config()
    snap = open_snapshot(file)
    p = require_portfolio(snap, portfolio_id)
    from_date = parse_date(start, date.min)
    to_date = parse_date(end, date.today())

    strategy = select_cash_flow_strategy(
        p, snap.stock_transactions, snap.ledgers, snap.currency_transactions,
        ledger_strategy=CurrencyLedgerCashFlowStrategy(cfg.stock_top_up_note_prefix),
    )
    events = strategy.get_cash_flow_events(
        p, from_date, to_date, snap.stock_transactions, snap.ledgers, snap.currency_transactions
    )

    table = Table(title=f"Cash flows — {p.name or p.id} ({strategy.name})")
    table.add_column("Date")
    table.add_column("Source")
    table.add_column("Amount", justify="right")
    table.add_column("Currency")
    for e in events:
        color = "green" if e.amount >= 0 else "red"
        table.add_row(
            e.transaction_date.isoformat(),
            e.source_id or "—",
            f"[{color}]{e.amount:,.2f}[/{color}]",
            e.currency_code,
        )
    console.print(table)


@app.command("returns")
def returns(
    portfolio_id: str = typer.Argument(..., help="Portfolio ID"),
    file: Path = SNAPSHOT_OPTION,
):
    """Modified Dietz and TWR for the snapshot's valuation period."""
    cfg = get_config()
    snap = open_snapshot(file)
    p = require_portfolio(snap, portfolio_id)
    period = snap.valuation
    if period is None:
        console.print("[red]Snapshot has no 'valuation' section[/red]")
        raise typer.Exit(1)

    strategy = select_cash_flow_strategy(
        p, snap.stock_transactions, snap.ledgers, snap.currency_transactions,
        ledger_strategy=CurrencyLedgerCashFlowStrategy(cfg.stock_top_up_note_prefix),
    )
    events = strategy.get_cash_flow_events(
        p, period.period_start, period.period_end,
        snap.stock_transactions, snap.ledgers, snap.currency_transactions,
    )
    dietz = calculate_modified_dietz(
        period.start_value, period.end_value, period.period_start, period.period_end,
        [e.as_return_cash_flow() for e in events],
    )
    twr = calculate_time_weighted_return(period.start_value, period.end_value, period.snapshots)
    days = (period.period_end - period.period_start).days
    annualized = annualize_return(dietz, days) if dietz is not None else None

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Label", style="dim")
    table.add_column("Value", justify="right")
    table.add_row("Period", f"{period.period_start.isoformat()} → {period.period_end.isoformat()}")
    table.add_row("Start value", f"{period.start_value:,.2f}")
    table.add_row("End value", f"{period.end_value:,.2f}")
    table.add_row("Cash-flow source", strategy.name)
    table.add_row("External flows", str(len(events)))
    table.add_row("Modified Dietz", pct(dietz))
    table.add_row("Annualized (Dietz)", pct(annualized))
    table.add_row("Time-weighted", pct(twr))
    console.print(f"\n[bold]Returns — {p.name or p.id}[/bold]\n")
    console.print(table)
    console.print()
