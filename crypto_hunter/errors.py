"""
Crypto Hunter — Error Taxonomy
Every recoverable failure in the pipeline derives from CryptoHunterError.
"""


class CryptoHunterError(Exception):
    """Base class for all Crypto Hunter errors."""
    pass


class InsufficientDataError(CryptoHunterError):
    """Series shorter than the minimum a statistical computation needs."""

    def __init__(self, required: int, actual: int, what: str = "series"):
        self.required = required
        self.actual = actual
        self.what = what
        super().__init__(f"{what} needs at least {required} points, got {actual}")


class ModelNotFittedError(CryptoHunterError):
    """predict/classify called before fit."""
    pass


class InvalidSnapshotError(CryptoHunterError):
    """Missing, non-numeric or NaN market data fields."""

    def __init__(self, message: str, symbol: str = None):
        self.symbol = symbol
        super().__init__(message)


class NotificationChannelError(CryptoHunterError):
    """A single notification channel failed to deliver."""

    def __init__(self, channel: str, message: str):
        self.channel = channel
        super().__init__(f"{channel}: {message}")


class FetchError(CryptoHunterError):
    """The data source could not retrieve market data this cycle."""
    pass


class LedgerError(CryptoHunterError):
    """Rejected portfolio or paper-trading operation."""
    pass
