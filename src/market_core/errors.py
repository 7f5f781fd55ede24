"""Exception hierarchy for the market core."""

from typing import Optional


class MarketError(Exception):
    """Base class for all market core errors."""


class MarketStartupError(MarketError):
    """
    Raised when the market cannot enter serving state.

    Covers schema setup, migration and initial load failures as well as a
    missing required collaborator (e.g. the currency service).
    """


class StorageError(MarketError):
    """A storage operation failed. The original driver error is chained as __cause__."""

    def __init__(self, operation: str, message: Optional[str] = None):
        self.operation = operation
        super().__init__(message or f"Storage operation failed: {operation}")


class LedgerWriteError(StorageError):
    """A ledger batch could not be committed; nothing from the batch was persisted."""

    def __init__(self, batch_size: int, message: Optional[str] = None):
        self.batch_size = batch_size
        super().__init__(
            "append_batch",
            message or f"Ledger batch of {batch_size} row(s) rolled back",
        )


class UnknownProductError(MarketError, KeyError):
    """No product is registered under the requested alias."""

    def __init__(self, alias: str):
        self.alias = alias
        super().__init__(f"Unknown product: {alias}")

    def __str__(self) -> str:
        return self.args[0]
