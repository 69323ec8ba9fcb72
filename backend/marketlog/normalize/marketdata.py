from __future__ import annotations

import datetime
import logging

from marketlog.errors import FlattenError
from marketlog.schemas.marketdata import MarketEnvelope, MarketRow, Snapshot

logger = logging.getLogger(__name__)

SNAPSHOT_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"
SNAPSHOT_TIME_WIDTH = len("2025-11-07 09:15:00")

# Upstream reports "no trade yet" as epoch midnight shifted to IST (+05:30).
# Only this exact value is rewritten; anything else is parsed as sent.
NO_TRADE_TIME_SENTINEL = "1970-01-01 05:30:00"
EPOCH_LOCAL_MIDNIGHT = "1970-01-01 00:00:00"

_EPOCH = datetime.datetime(1970, 1, 1)


def parse_snapshot_time(value: str) -> datetime.datetime:
    # strptime accepts "2025-1-7 9:5:3"; upstream always sends two-digit fields.
    if len(value) != SNAPSHOT_TIME_WIDTH:
        raise ValueError(f"time data {value!r} does not match {SNAPSHOT_TIME_FORMAT!r}")
    return datetime.datetime.strptime(value, SNAPSHOT_TIME_FORMAT)


def parse_last_trade_time(value: str) -> datetime.datetime:
    if value == NO_TRADE_TIME_SENTINEL:
        value = EPOCH_LOCAL_MIDNIGHT
    try:
        return parse_snapshot_time(value)
    except ValueError:
        logger.warning("Unparsable lastTradeTime %r, storing epoch", value)
        return _EPOCH


def _flatten_snapshot(
    envelope: MarketEnvelope, instrument: str, snapshot: Snapshot
) -> MarketRow:
    try:
        timestamp = parse_snapshot_time(snapshot.timestamp)
    except ValueError as exc:
        raise FlattenError(instrument, f"invalid timestamp {snapshot.timestamp!r}") from exc

    ohlc = snapshot.ohlc
    return MarketRow(
        request_id=envelope.data.request_id,
        response_time=envelope.data.response_time,
        instrument=instrument,
        timestamp=timestamp,
        last_trade_time=parse_last_trade_time(snapshot.last_trade_time),
        last_price=snapshot.last_price,
        close_price=snapshot.close_price,
        last_quantity=snapshot.last_quantity,
        buy_quantity=snapshot.buy_quantity,
        sell_quantity=snapshot.sell_quantity,
        volume=snapshot.volume,
        average_price=snapshot.average_price,
        oi=snapshot.oi,
        poi=snapshot.poi,
        oi_day_high=snapshot.oi_day_high,
        oi_day_low=snapshot.oi_day_low,
        net_change=snapshot.net_change,
        lower_circuit_limit=snapshot.lower_circuit_limit,
        upper_circuit_limit=snapshot.upper_circuit_limit,
        yl=snapshot.yl,
        yh=snapshot.yh,
        ohlc_open=ohlc.open if ohlc else 0.0,
        ohlc_high=ohlc.high if ohlc else 0.0,
        ohlc_low=ohlc.low if ohlc else 0.0,
        ohlc_close=ohlc.close if ohlc else 0.0,
        ohlc_volume=ohlc.volume if ohlc else 0,
        has_ohlc=ohlc is not None,
    )


def flatten_envelope(envelope: MarketEnvelope) -> list[MarketRow]:
    """One row per instrument in token_data, in payload order.

    A single unparsable snapshot timestamp raises FlattenError for the whole
    envelope; no partial row list is ever returned.
    """
    return [
        _flatten_snapshot(envelope, instrument, snapshot)
        for instrument, snapshot in envelope.data.token_data.items()
    ]
