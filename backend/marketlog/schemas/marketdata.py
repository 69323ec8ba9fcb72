from __future__ import annotations

import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

_EPOCH_UTC = datetime.datetime(1970, 1, 1, tzinfo=datetime.UTC)


class Ohlc(BaseModel):
    open: float = 0.0
    high: float = 0.0
    low: float = 0.0
    close: float = 0.0
    volume: int = 0

    @field_validator("open", "high", "low", "close", "volume", mode="before")
    @classmethod
    def _null_is_zero(cls, value):
        return 0 if value is None else value


class Snapshot(BaseModel):
    """Per-instrument quote as sent by the upstream API (camelCase keys)."""

    model_config = ConfigDict(populate_by_name=True)

    timestamp: str = ""
    last_trade_time: str = Field("", alias="lastTradeTime")
    last_price: float = Field(0.0, alias="lastPrice")
    close_price: float = Field(0.0, alias="closePrice")
    last_quantity: int = Field(0, alias="lastQuantity")
    buy_quantity: float = Field(0.0, alias="buyQuantity")
    sell_quantity: float = Field(0.0, alias="sellQuantity")
    volume: int = 0
    average_price: float = Field(0.0, alias="averagePrice")
    oi: float = 0.0
    poi: float = 0.0
    oi_day_high: float = Field(0.0, alias="oiDayHigh")
    oi_day_low: float = Field(0.0, alias="oiDayLow")
    net_change: float = Field(0.0, alias="netChange")
    lower_circuit_limit: float = Field(0.0, alias="lowerCircuitLimit")
    upper_circuit_limit: float = Field(0.0, alias="upperCircuitLimit")
    yl: float = 0.0
    yh: float = 0.0
    ohlc: Optional[Ohlc] = None

    @field_validator(
        "last_price",
        "close_price",
        "last_quantity",
        "buy_quantity",
        "sell_quantity",
        "volume",
        "average_price",
        "oi",
        "poi",
        "oi_day_high",
        "oi_day_low",
        "net_change",
        "lower_circuit_limit",
        "upper_circuit_limit",
        "yl",
        "yh",
        mode="before",
    )
    @classmethod
    def _null_is_zero(cls, value):
        return 0 if value is None else value

    @field_validator("timestamp", "last_trade_time", mode="before")
    @classmethod
    def _null_is_empty(cls, value):
        return "" if value is None else value


class MarketData(BaseModel):
    request_id: str = ""
    time_in_millis: int = 0
    token_data: dict[str, Snapshot] = Field(default_factory=dict)

    @property
    def response_time(self) -> datetime.datetime:
        return _EPOCH_UTC + datetime.timedelta(milliseconds=self.time_in_millis)


class MarketEnvelope(BaseModel):
    data: MarketData
    success: bool = False


class MarketRow(BaseModel):
    model_config = ConfigDict(frozen=True)

    request_id: str
    response_time: datetime.datetime
    instrument: str
    timestamp: datetime.datetime
    last_trade_time: datetime.datetime
    last_price: float
    close_price: float
    last_quantity: int
    buy_quantity: float
    sell_quantity: float
    volume: int
    average_price: float
    oi: float
    poi: float
    oi_day_high: float
    oi_day_low: float
    net_change: float
    lower_circuit_limit: float
    upper_circuit_limit: float
    yl: float
    yh: float
    ohlc_open: float
    ohlc_high: float
    ohlc_low: float
    ohlc_close: float
    ohlc_volume: int
    # Presence flag for the ohlc_* values above; not a stored column.
    has_ohlc: bool = False


class FetchRequest(BaseModel):
    instruments: list[str] = Field(default_factory=list)
