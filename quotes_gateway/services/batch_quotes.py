from __future__ import annotations

from typing import Sequence

from quotes_gateway.schemas.quote import Quote, QuoteStatus
from quotes_gateway.schemas.upstream import BatchUpstreamResponse
from quotes_gateway.services.circuit_breaker import OperationKind
from quotes_gateway.services.fallback import synthesize_quote
from quotes_gateway.services.guarded_call import GuardedExecutor
from quotes_gateway.services.quote_mapper import map_upstream_quote


class BatchQuoteAggregator:
    """One upstream batch call, one result per requested symbol.

    Output keeps the input order and length, duplicates included. Symbols the
    provider leaves out come back as FAILED items; losing the whole upstream
    call yields synthetic quotes numbered by 1-based input position.
    """

    def __init__(self, *, rest_client, executor: GuardedExecutor, timeout_sec: float | None = 1.0) -> None:
        self.rest_client = rest_client
        self.executor = executor
        self.timeout_sec = timeout_sec
        self.calls = 0
        self.fallbacks = 0
        self.failed_items = 0

    def _fetch(self, symbols: list[str]) -> BatchUpstreamResponse:
        unique_symbols: list[str] = []
        seen: set[str] = set()
        for symbol in symbols:
            if symbol in seen:
                continue
            seen.add(symbol)
            unique_symbols.append(symbol)
        return self.rest_client.get_quotes(unique_symbols)

    def _reconcile(self, symbols: list[str], response: BatchUpstreamResponse) -> list[Quote]:
        out: list[Quote] = []
        for symbol in symbols:
            record = response.get(symbol)
            if record is None:
                print(f"[BATCH][symbol_not_found] symbol={symbol}", flush=True)
                out.append(Quote.failed(symbol))
                continue
            out.append(map_upstream_quote(record))
        return out

    def _fetch_and_reconcile(self, symbols: list[str]) -> list[Quote]:
        out = self._reconcile(symbols, self._fetch(symbols))
        failed_count = sum(1 for q in out if q.status is QuoteStatus.FAILED)
        self.failed_items += failed_count
        print(
            "[BATCH][resolve] "
            f"target_count={len(symbols)} final_count={len(out)} failed_count={failed_count}",
            flush=True,
        )
        return out

    def _fallback(self, symbols: list[str]) -> list[Quote]:
        self.fallbacks += 1
        print(f"[BATCH][fallback] symbols={','.join(symbols)} count={len(symbols)}", flush=True)
        return [synthesize_quote(i + 1, symbol) for i, symbol in enumerate(symbols)]

    def resolve_batch(self, symbols: Sequence[str]) -> list[Quote]:
        requested = list(symbols)
        if not requested:
            return []

        self.calls += 1
        return self.executor.execute(
            OperationKind.BATCH,
            lambda: self._fetch_and_reconcile(requested),
            fallback=lambda: self._fallback(requested),
            timeout_sec=self.timeout_sec,
        )
