"""
Exception hierarchy for the arbitrage scanner.

All errors raised by the scanner derive from ScannerError so callers
can catch the whole family at transport boundaries.
"""


class ScannerError(Exception):
    """Base exception for scanner errors."""


class InvalidQueryError(ScannerError):
    """Client supplied a malformed page, limit, filter or sort."""

    def __init__(self, message: str, param: str | None = None) -> None:
        super().__init__(message)
        self.param = param


class DataInconsistencyError(ScannerError):
    """Internal state references data that no longer exists."""


class UnknownAssetError(DataInconsistencyError):
    """An opportunity or update references a coin missing from the asset table."""

    def __init__(self, coin: str) -> None:
        super().__init__(f"Unknown asset: {coin}")
        self.coin = coin


class TransportError(ScannerError):
    """A call to a remote collaborator failed."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class OpportunityNotFoundError(ScannerError):
    """An operation referenced an opportunity outside the working set."""

    def __init__(self, opportunity_id: int) -> None:
        super().__init__(f"Opportunity {opportunity_id} is not in the working set")
        self.opportunity_id = opportunity_id
