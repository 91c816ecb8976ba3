from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import quote as url_quote

import requests

from quotes_gateway.errors import UpstreamError
from quotes_gateway.schemas.quote import CompanyInfo
from quotes_gateway.schemas.upstream import BatchUpstreamResponse, UpstreamQuote
from quotes_gateway.services.quote_mapper import parse_company, parse_upstream_quote


class IexRestClient:
    """Thin IEX-style market data REST client (quote, batch quote, search)."""

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        session: Optional[Any] = None,
        timeout_sec: float = 5,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.session = session or requests.Session()
        self.timeout_sec = timeout_sec

    def _params(self, **extra: str) -> Dict[str, str]:
        params = dict(extra)
        if self.token:
            params["token"] = self.token
        return params

    def _get_json(self, path: str, params: Dict[str, str], *, not_found_ok: bool = False) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.get(url, params=params, timeout=self.timeout_sec)
        except requests.RequestException as exc:
            raise UpstreamError(f"request to {path} failed: {exc}") from exc

        status_code = getattr(response, "status_code", None)
        if not_found_ok and status_code == 404:
            return None
        try:
            response.raise_for_status()
        except requests.HTTPError as exc:
            raise UpstreamError(f"upstream returned {status_code} for {path}", status_code=status_code) from exc

        if not getattr(response, "content", b"x"):
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamError(f"invalid JSON from {path}: {exc}") from exc

    def get_quote(self, symbol: str) -> UpstreamQuote | None:
        payload = self._get_json(
            f"/stock/{url_quote(symbol, safe='')}/quote",
            self._params(),
            not_found_ok=True,
        )
        return parse_upstream_quote(payload)

    def get_quotes(self, symbols: Sequence[str]) -> BatchUpstreamResponse:
        payload = self._get_json(
            "/stock/market/batch",
            self._params(symbols=",".join(symbols), types="quote"),
        )
        if not isinstance(payload, dict):
            return {}

        out: BatchUpstreamResponse = {}
        for symbol, entry in payload.items():
            record = parse_upstream_quote(entry.get("quote") if isinstance(entry, dict) else None)
            if record is not None:
                out[symbol] = record
        return out

    def search_companies(self, name: str) -> List[CompanyInfo]:
        payload = self._get_json(f"/search/{url_quote(name, safe='')}", self._params())
        if not isinstance(payload, list):
            return []
        companies: List[CompanyInfo] = []
        for row in payload:
            company = parse_company(row)
            if company is not None:
                companies.append(company)
        return companies

    def close(self) -> None:
        close = getattr(self.session, "close", None)
        if callable(close):
            close()
