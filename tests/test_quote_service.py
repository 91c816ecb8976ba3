import threading
import unittest
from decimal import Decimal

from quotes_gateway.errors import SymbolNotFoundError, UpstreamError
from quotes_gateway.schemas.quote import CompanyInfo, QuoteStatus
from quotes_gateway.schemas.upstream import UpstreamQuote
from quotes_gateway.services.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerRegistry,
    CircuitState,
    OperationKind,
    Outcome,
)
from quotes_gateway.services.guarded_call import GuardedExecutor
from quotes_gateway.services.quote_service import QuoteService


def upstream(symbol: str, price: str = "100.5") -> UpstreamQuote:
    return UpstreamQuote(
        symbol=symbol,
        companyName=f"{symbol} Inc.",
        currency="USD",
        latestPrice=price,
        change="1.5",
        high="101",
        low="99",
        latestVolume=1000,
    )


class StubRestClient:
    def __init__(self, records: dict[str, UpstreamQuote] | None = None, companies=None) -> None:
        self.records = records or {}
        self.companies = companies or []
        self.quote_calls = 0
        self.batch_calls: list[list[str]] = []
        self.search_calls = 0

    def get_quote(self, symbol: str):
        self.quote_calls += 1
        return self.records.get(symbol)

    def get_quotes(self, symbols):
        self.batch_calls.append(list(symbols))
        return {s: self.records[s] for s in symbols if s in self.records}

    def search_companies(self, name: str):
        self.search_calls += 1
        return list(self.companies)


class FailingRestClient:
    def __init__(self) -> None:
        self.calls = 0

    def get_quote(self, symbol: str):
        self.calls += 1
        raise UpstreamError("connection refused")

    def get_quotes(self, symbols):
        self.calls += 1
        raise UpstreamError("connection refused")

    def search_companies(self, name: str):
        self.calls += 1
        raise UpstreamError("connection refused", status_code=503)


class BlockingRestClient:
    def __init__(self) -> None:
        self.release = threading.Event()

    def get_quote(self, symbol: str):
        self.release.wait(2)
        return upstream(symbol)

    def get_quotes(self, symbols):
        self.release.wait(2)
        return {s: upstream(s) for s in symbols}

    def search_companies(self, name: str):
        return [CompanyInfo(symbol="SLOW", name="Slow Corp", exchange="NYSE")]


def make_service(rest_client, *, volume_threshold: int = 20, timeout_sec: float | None = 1.0) -> QuoteService:
    breakers = CircuitBreakerRegistry(
        lambda name: CircuitBreaker(name, request_volume_threshold=volume_threshold, sleep_window_sec=60)
    )
    return QuoteService(
        rest_client=rest_client,
        breakers=breakers,
        executor=GuardedExecutor(breakers, max_workers=4),
        quote_timeout_sec=timeout_sec,
        batch_timeout_sec=timeout_sec,
    )


def trip(service: QuoteService, kind: OperationKind) -> None:
    breaker = service.breakers.get(kind)
    for _ in range(breaker.request_volume_threshold):
        breaker.record_outcome(Outcome.FAILURE)
    assert breaker.state is CircuitState.OPEN


class SingleQuoteResolverTest(unittest.TestCase):
    def test_resolves_and_maps_quote(self):
        service = make_service(StubRestClient({"AAPL": upstream("AAPL", "187.25")}))

        quote = service.get_quote("AAPL")

        self.assertEqual(quote.symbol, "AAPL")
        self.assertEqual(quote.name, "AAPL Inc.")
        self.assertEqual(quote.last_price, Decimal("187.25"))
        self.assertEqual(quote.volume, 1000)
        self.assertEqual(quote.status, QuoteStatus.SUCCESS)

    def test_unknown_symbol_raises_not_found_without_counting_failure(self):
        rest_client = StubRestClient()
        service = make_service(rest_client)

        with self.assertRaises(SymbolNotFoundError) as ctx:
            service.get_quote("NOPE")

        self.assertEqual(ctx.exception.symbol, "NOPE")
        self.assertEqual(rest_client.quote_calls, 1)
        metrics = service.breakers.get(OperationKind.QUOTE).metrics()
        self.assertEqual(metrics["window_errors"], 0)
        self.assertEqual(metrics["window_count"], 1)

    def test_transport_error_returns_fallback_with_first_ordinal(self):
        service = make_service(FailingRestClient())

        quote = service.get_quote("XYZ")

        self.assertEqual(quote.symbol, "XYZ")
        self.assertEqual(quote.name, "XYZ Corp LLC")
        self.assertEqual(quote.last_price, Decimal("123"))
        self.assertEqual(quote.volume, 320)
        self.assertEqual(quote.status, QuoteStatus.SUCCESS)
        self.assertEqual(service.metrics()["quote_fallbacks"], 1)
        self.assertEqual(service.breakers.get(OperationKind.QUOTE).metrics()["window_errors"], 1)

    def test_open_breaker_skips_upstream(self):
        rest_client = StubRestClient({"AAPL": upstream("AAPL")})
        service = make_service(rest_client)
        trip(service, OperationKind.QUOTE)

        quote = service.get_quote("AAPL")

        self.assertEqual(rest_client.quote_calls, 0)
        self.assertEqual(quote.name, "AAPL Corp LLC")
        self.assertEqual(quote.status, QuoteStatus.SUCCESS)

    def test_repeated_failures_trip_breaker_then_stop_calling_upstream(self):
        rest_client = FailingRestClient()
        service = make_service(rest_client, volume_threshold=3)

        for _ in range(5):
            service.get_quote("XYZ")

        self.assertEqual(rest_client.calls, 3)
        self.assertEqual(service.breakers.get(OperationKind.QUOTE).state, CircuitState.OPEN)

    def test_timeout_returns_fallback_and_is_counted(self):
        rest_client = BlockingRestClient()
        service = make_service(rest_client, timeout_sec=0.05)
        try:
            quote = service.get_quote("SLOW")
        finally:
            rest_client.release.set()

        self.assertEqual(quote.name, "SLOW Corp LLC")
        self.assertEqual(service.breakers.get(OperationKind.QUOTE).metrics()["window_errors"], 1)

    def test_resolves_from_upstream_again_after_close(self):
        rest_client = StubRestClient({"AAPL": upstream("AAPL", "187.25")})
        service = make_service(rest_client)
        service.close()

        quote = service.get_quote("AAPL")

        self.assertEqual(quote.last_price, Decimal("187.25"))
        self.assertEqual(service.metrics()["quote_fallbacks"], 0)
        self.assertEqual(rest_client.quote_calls, 1)

    def test_repeated_resolve_is_field_identical(self):
        service = make_service(StubRestClient({"MSFT": upstream("MSFT")}))

        self.assertEqual(service.get_quote("MSFT"), service.get_quote("MSFT"))


class BatchQuoteAggregatorTest(unittest.TestCase):
    def test_partial_batch_marks_missing_symbol_failed(self):
        rest_client = StubRestClient({"A": upstream("A", "10"), "C": upstream("C", "30")})
        service = make_service(rest_client)

        quotes = service.get_quotes(["A", "B", "C"])

        self.assertEqual([q.symbol for q in quotes], ["A", "B", "C"])
        self.assertEqual(quotes[0].status, QuoteStatus.SUCCESS)
        self.assertEqual(quotes[0].last_price, Decimal("10"))
        self.assertEqual(quotes[2].status, QuoteStatus.SUCCESS)
        self.assertEqual(quotes[2].last_price, Decimal("30"))

        failed = quotes[1]
        self.assertEqual(failed.status, QuoteStatus.FAILED)
        self.assertEqual(
            failed.model_dump(exclude={"symbol", "status"}),
            {"name": None, "currency": None, "last_price": None, "change": None,
             "high": None, "low": None, "volume": None},
        )
        self.assertEqual(rest_client.batch_calls, [["A", "B", "C"]])
        self.assertEqual(service.metrics()["batch_failed_items"], 1)

    def test_duplicates_keep_length_and_order_with_single_upstream_call(self):
        rest_client = StubRestClient({"A": upstream("A"), "B": upstream("B")})
        service = make_service(rest_client)

        quotes = service.get_quotes(["B", "A", "B", "Z", "Z"])

        self.assertEqual([q.symbol for q in quotes], ["B", "A", "B", "Z", "Z"])
        self.assertEqual(
            [q.status for q in quotes],
            [QuoteStatus.SUCCESS, QuoteStatus.SUCCESS, QuoteStatus.SUCCESS,
             QuoteStatus.FAILED, QuoteStatus.FAILED],
        )
        self.assertEqual(rest_client.batch_calls, [["B", "A", "Z"]])

    def test_total_failure_uses_position_ordinals(self):
        service = make_service(FailingRestClient())

        quotes = service.get_quotes(["X", "Y"])

        self.assertEqual([q.symbol for q in quotes], ["X", "Y"])
        self.assertEqual(quotes[0].last_price, Decimal("123"))
        self.assertEqual(quotes[0].volume, 320)
        self.assertEqual(quotes[1].last_price, Decimal("246"))
        self.assertEqual(quotes[1].volume, 640)
        self.assertTrue(all(q.status is QuoteStatus.SUCCESS for q in quotes))
        self.assertEqual(service.metrics()["batch_fallbacks"], 1)

    def test_open_breaker_skips_upstream(self):
        rest_client = StubRestClient({"A": upstream("A")})
        service = make_service(rest_client)
        trip(service, OperationKind.BATCH)

        quotes = service.get_quotes(["A", "B", "A"])

        self.assertEqual(rest_client.batch_calls, [])
        self.assertEqual([q.volume for q in quotes], [320, 640, 960])

    def test_batch_breaker_trip_does_not_affect_single_quotes(self):
        rest_client = StubRestClient({"A": upstream("A", "10")})
        service = make_service(rest_client)
        trip(service, OperationKind.BATCH)

        quote = service.get_quote("A")

        self.assertEqual(quote.last_price, Decimal("10"))
        self.assertEqual(rest_client.quote_calls, 1)

    def test_timeout_falls_back_for_whole_batch(self):
        rest_client = BlockingRestClient()
        service = make_service(rest_client, timeout_sec=0.05)
        try:
            quotes = service.get_quotes(["S1", "S2"])
        finally:
            rest_client.release.set()

        self.assertEqual([q.name for q in quotes], ["S1 Corp LLC", "S2 Corp LLC"])

    def test_empty_request_makes_no_call(self):
        rest_client = StubRestClient()
        service = make_service(rest_client)

        self.assertEqual(service.get_quotes([]), [])
        self.assertEqual(rest_client.batch_calls, [])
        self.assertEqual(service.breakers.get(OperationKind.BATCH).metrics()["window_count"], 0)


class CompanySearchTest(unittest.TestCase):
    def test_passes_upstream_order_through(self):
        companies = [
            CompanyInfo(symbol="AAPL", name="Apple Inc.", exchange="NASDAQ"),
            CompanyInfo(symbol="APLE", name="Apple Hospitality REIT", exchange="NYSE"),
        ]
        service = make_service(StubRestClient(companies=companies))

        result = service.get_company_info("apple")

        self.assertEqual([c.symbol for c in result], ["AAPL", "APLE"])

    def test_empty_result_is_not_a_failure(self):
        service = make_service(StubRestClient())

        self.assertEqual(service.get_company_info("zzz"), [])
        self.assertEqual(service.metrics()["search_fallbacks"], 0)

    def test_transport_failure_returns_placeholder_and_counts(self):
        service = make_service(FailingRestClient())

        result = service.get_company_info("apple")

        self.assertEqual(len(result), 1)
        self.assertEqual(result[0].symbol, "apple")
        self.assertEqual(result[0].exchange, "NASDAQ")
        breaker = service.breakers.get(OperationKind.COMPANY_SEARCH)
        self.assertEqual(breaker.metrics()["window_errors"], 1)

    def test_search_runs_without_deadline(self):
        rest_client = BlockingRestClient()
        service = make_service(rest_client, timeout_sec=0.01)

        result = service.get_company_info("slow")

        self.assertIsNone(service.company_search.timeout_sec)
        self.assertEqual(result[0].symbol, "SLOW")

    def test_open_breaker_skips_upstream(self):
        rest_client = StubRestClient()
        service = make_service(rest_client)
        trip(service, OperationKind.COMPANY_SEARCH)

        result = service.get_company_info("ibm")

        self.assertEqual(rest_client.search_calls, 0)
        self.assertEqual(result[0].name, "ibm Corp LLC")


if __name__ == "__main__":
    unittest.main()
