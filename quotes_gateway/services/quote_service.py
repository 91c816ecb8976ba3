from __future__ import annotations

from typing import Sequence

from quotes_gateway.config.settings import Settings
from quotes_gateway.integrations.iex_rest import IexRestClient
from quotes_gateway.schemas.quote import CompanyInfo, Quote
from quotes_gateway.services.batch_quotes import BatchQuoteAggregator
from quotes_gateway.services.circuit_breaker import CircuitBreaker, CircuitBreakerRegistry
from quotes_gateway.services.company_search import CompanySearch
from quotes_gateway.services.guarded_call import GuardedExecutor
from quotes_gateway.services.quote_resolver import SingleQuoteResolver


class QuoteService:
    """Quote and company lookups with breaker-guarded fallback."""

    def __init__(
        self,
        *,
        rest_client,
        breakers: CircuitBreakerRegistry | None = None,
        executor: GuardedExecutor | None = None,
        quote_timeout_sec: float | None = 1.0,
        batch_timeout_sec: float | None = 1.0,
        search_timeout_sec: float | None = None,
    ) -> None:
        self.rest_client = rest_client
        if breakers is None:
            breakers = executor.breakers if executor is not None else CircuitBreakerRegistry()
        self.breakers = breakers
        self.executor = executor or GuardedExecutor(breakers)
        self.resolver = SingleQuoteResolver(
            rest_client=rest_client, executor=self.executor, timeout_sec=quote_timeout_sec
        )
        self.aggregator = BatchQuoteAggregator(
            rest_client=rest_client, executor=self.executor, timeout_sec=batch_timeout_sec
        )
        self.company_search = CompanySearch(
            rest_client=rest_client, executor=self.executor, timeout_sec=search_timeout_sec
        )

    def get_quote(self, symbol: str) -> Quote:
        return self.resolver.resolve(symbol)

    def get_quotes(self, symbols: Sequence[str]) -> list[Quote]:
        return self.aggregator.resolve_batch(symbols)

    def get_company_info(self, name: str) -> list[CompanyInfo]:
        return self.company_search.search(name)

    def metrics(self) -> dict:
        return {
            "quote_calls": self.resolver.calls,
            "quote_fallbacks": self.resolver.fallbacks,
            "batch_calls": self.aggregator.calls,
            "batch_fallbacks": self.aggregator.fallbacks,
            "batch_failed_items": self.aggregator.failed_items,
            "search_calls": self.company_search.calls,
            "search_fallbacks": self.company_search.fallbacks,
            "breakers": self.breakers.metrics(),
        }

    def close(self) -> None:
        self.executor.shutdown()
        close = getattr(self.rest_client, "close", None)
        if callable(close):
            close()


def build_quote_service(settings: Settings, *, rest_client=None) -> QuoteService:
    breakers = CircuitBreakerRegistry(
        lambda name: CircuitBreaker(
            name,
            request_volume_threshold=settings.BREAKER_REQUEST_VOLUME_THRESHOLD,
            error_threshold_pct=settings.BREAKER_ERROR_THRESHOLD_PCT,
            rolling_window_sec=settings.BREAKER_ROLLING_WINDOW_SEC,
            sleep_window_sec=settings.BREAKER_SLEEP_WINDOW_SEC,
        )
    )
    if rest_client is None:
        rest_client = IexRestClient(
            base_url=settings.QUOTES_BASE_URL,
            token=settings.QUOTES_API_TOKEN,
            timeout_sec=settings.QUOTES_HTTP_TIMEOUT_SEC,
        )
    return QuoteService(
        rest_client=rest_client,
        breakers=breakers,
        executor=GuardedExecutor(breakers, max_workers=settings.UPSTREAM_MAX_WORKERS),
        quote_timeout_sec=settings.QUOTE_TIMEOUT_SEC,
        batch_timeout_sec=settings.BATCH_TIMEOUT_SEC,
        search_timeout_sec=settings.SEARCH_TIMEOUT_SEC,
    )
