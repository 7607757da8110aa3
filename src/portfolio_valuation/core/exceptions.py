"""Custom exceptions for the portfolio valuation engine."""


class PortfolioValuationError(Exception):
    """Base exception."""
    pass


class InvalidTransactionError(PortfolioValuationError):
    """A calculation was handed a transaction it does not accept."""
    pass


class SnapshotLoadError(PortfolioValuationError):
    pass


class QuoteFetchError(PortfolioValuationError):
    pass
