from __future__ import annotations

from typing import Any, Dict

from pydantic import BaseModel, ConfigDict


class UpstreamQuote(BaseModel):
    """One quote record as the provider sends it.

    Values are kept raw; numeric parsing happens in the mapper so a bad field
    never rejects the whole record.
    """

    model_config = ConfigDict(extra="ignore")

    symbol: str
    companyName: Any = None
    primaryExchange: Any = None
    currency: Any = None
    latestPrice: Any = None
    change: Any = None
    high: Any = None
    low: Any = None
    latestVolume: Any = None


BatchUpstreamResponse = Dict[str, UpstreamQuote]
