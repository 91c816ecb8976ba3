from __future__ import annotations


class SymbolNotFoundError(LookupError):
    def __init__(self, symbol: str) -> None:
        self.symbol = symbol
        super().__init__(f"Symbol not found: {symbol}")


class UpstreamError(Exception):
    """Transport-level failure talking to the market-data provider."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)
