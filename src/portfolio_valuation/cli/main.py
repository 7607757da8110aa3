"""Portfolio Valuation CLI — main entry point."""

import logging

import typer

from .commands import ledger, performance, positions

app = typer.Typer(
    name="pv",
    help="Portfolio valuation: average-cost positions, XIRR, returns and currency ledgers",
    rich_markup_mode="rich",
    no_args_is_help=True,
)

app.add_typer(positions.app, name="positions", help="Positions and profit/loss")
app.add_typer(performance.app, name="perf", help="XIRR, Modified Dietz and TWR")
app.add_typer(ledger.app, name="ledger", help="Currency ledger balances and rates")


@app.callback()
def startup(verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging")):
    """Configure logging before any command runs."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


if __name__ == "__main__":
    app()
