from __future__ import annotations

from quotes_gateway.schemas.quote import CompanyInfo
from quotes_gateway.services.circuit_breaker import OperationKind
from quotes_gateway.services.fallback import synthesize_company
from quotes_gateway.services.guarded_call import GuardedExecutor


class CompanySearch:
    # search may legitimately be slow, so no deadline unless configured
    def __init__(self, *, rest_client, executor: GuardedExecutor, timeout_sec: float | None = None) -> None:
        self.rest_client = rest_client
        self.executor = executor
        self.timeout_sec = timeout_sec
        self.calls = 0
        self.fallbacks = 0

    def _fallback(self, name: str) -> list[CompanyInfo]:
        self.fallbacks += 1
        print(f"[SEARCH][fallback] name={name}", flush=True)
        return [synthesize_company(name)]

    def search(self, name: str) -> list[CompanyInfo]:
        self.calls += 1
        return self.executor.execute(
            OperationKind.COMPANY_SEARCH,
            lambda: list(self.rest_client.search_companies(name)),
            fallback=lambda: self._fallback(name),
            timeout_sec=self.timeout_sec,
        )
