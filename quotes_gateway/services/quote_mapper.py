from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any

from quotes_gateway.schemas.quote import CompanyInfo, Quote, QuoteStatus
from quotes_gateway.schemas.upstream import UpstreamQuote

_ZERO = Decimal("0")


def _to_decimal(value: Any, default: Decimal = _ZERO) -> Decimal:
    if value is None or value == "" or isinstance(value, bool):
        return default
    try:
        # str() keeps the provider's printed precision for floats
        parsed = Decimal(str(value).strip())
    except (InvalidOperation, TypeError, ValueError):
        return default
    if not parsed.is_finite():
        return default
    return parsed


# no real volume has more than 31 digits
_MAX_INT_EXPONENT = 30


def _to_int(value: Any, default: int = 0) -> int:
    parsed = _to_decimal(value, default=Decimal(default))
    if parsed.adjusted() > _MAX_INT_EXPONENT:
        return default
    return int(parsed)


def _to_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_upstream_quote(payload: Any) -> UpstreamQuote | None:
    """Return the record, or None when the provider did not resolve it."""
    if not isinstance(payload, dict):
        return None
    symbol = _to_text(payload.get("symbol"))
    if symbol is None:
        return None
    return UpstreamQuote.model_validate({**payload, "symbol": symbol})


def map_upstream_quote(record: UpstreamQuote) -> Quote:
    return Quote(
        symbol=record.symbol,
        name=_to_text(record.companyName),
        currency=_to_text(record.currency),
        last_price=_to_decimal(record.latestPrice),
        change=_to_decimal(record.change),
        high=_to_decimal(record.high),
        low=_to_decimal(record.low),
        volume=_to_int(record.latestVolume),
        status=QuoteStatus.SUCCESS,
    )


def parse_company(payload: Any) -> CompanyInfo | None:
    if not isinstance(payload, dict):
        return None
    symbol = _to_text(payload.get("symbol"))
    if symbol is None:
        return None
    return CompanyInfo(
        symbol=symbol,
        name=_to_text(payload.get("name") or payload.get("securityName")),
        exchange=_to_text(payload.get("exchange")),
    )
