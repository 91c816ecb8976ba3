from __future__ import annotations

from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class QuoteStatus(str, Enum):
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


class Quote(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    symbol: str
    name: str | None = None
    currency: str | None = None
    last_price: Decimal | None = None
    change: Decimal | None = None
    high: Decimal | None = None
    low: Decimal | None = None
    volume: int | None = None
    status: QuoteStatus = QuoteStatus.SUCCESS

    @classmethod
    def failed(cls, symbol: str) -> "Quote":
        """Per-item batch miss: only the symbol is carried."""
        return cls(symbol=symbol, status=QuoteStatus.FAILED)


class CompanyInfo(BaseModel):
    symbol: str
    name: str | None = None
    exchange: str | None = None
