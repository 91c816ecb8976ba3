from __future__ import annotations

from quotes_gateway.errors import SymbolNotFoundError
from quotes_gateway.schemas.quote import Quote
from quotes_gateway.services.circuit_breaker import OperationKind
from quotes_gateway.services.fallback import synthesize_quote
from quotes_gateway.services.guarded_call import GuardedExecutor
from quotes_gateway.services.quote_mapper import map_upstream_quote


class SingleQuoteResolver:
    def __init__(self, *, rest_client, executor: GuardedExecutor, timeout_sec: float | None = 1.0) -> None:
        self.rest_client = rest_client
        self.executor = executor
        self.timeout_sec = timeout_sec
        self.calls = 0
        self.fallbacks = 0

    def _fetch(self, symbol: str) -> Quote:
        record = self.rest_client.get_quote(symbol)
        if record is None:
            raise SymbolNotFoundError(symbol)
        return map_upstream_quote(record)

    def _fallback(self, symbol: str) -> Quote:
        self.fallbacks += 1
        print(f"[QUOTE][fallback] symbol={symbol} ordinal=1", flush=True)
        return synthesize_quote(1, symbol)

    def resolve(self, symbol: str) -> Quote:
        """Resolve one symbol.

        Raises SymbolNotFoundError only when the provider answered without a
        usable record. Unavailability is answered with a synthetic quote.
        """
        self.calls += 1
        return self.executor.execute(
            OperationKind.QUOTE,
            lambda: self._fetch(symbol),
            fallback=lambda: self._fallback(symbol),
            timeout_sec=self.timeout_sec,
        )
