# backend/marketlog/db/models.py

import uuid

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    Float,
    Index,
    String,
    Text,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class EventRecord(Base):
    __tablename__ = "events"
    __table_args__ = (Index("ix_events_source_timestamp", "source", "timestamp"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    timestamp = Column(DateTime(timezone=True), nullable=False)
    level = Column(String, nullable=False)
    source = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    # Key-value pairs for additional event data
    context = Column(JSONB, nullable=False, default=dict)

    def __repr__(self):
        return f"<EventRecord(source='{self.source}', level='{self.level}')>"


class MarketDataRow(Base):
    __tablename__ = "market_data"
    __table_args__ = (Index("ix_market_data_instrument_timestamp", "instrument", "timestamp"),)

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)

    # Envelope fields, shared by every row of one fetch
    request_id = Column(String, nullable=False)
    response_time = Column(DateTime(timezone=True), nullable=False)

    instrument = Column(String, nullable=False)
    timestamp = Column(DateTime, nullable=False)
    last_trade_time = Column(DateTime, nullable=False)
    last_price = Column(Float, nullable=False, default=0.0)
    close_price = Column(Float, nullable=False, default=0.0)
    last_quantity = Column(BigInteger, nullable=False, default=0)
    buy_quantity = Column(Float, nullable=False, default=0.0)
    sell_quantity = Column(Float, nullable=False, default=0.0)
    volume = Column(BigInteger, nullable=False, default=0)
    average_price = Column(Float, nullable=False, default=0.0)
    oi = Column(Float, nullable=False, default=0.0)
    poi = Column(Float, nullable=False, default=0.0)
    oi_day_high = Column(Float, nullable=False, default=0.0)
    oi_day_low = Column(Float, nullable=False, default=0.0)
    net_change = Column(Float, nullable=False, default=0.0)
    lower_circuit_limit = Column(Float, nullable=False, default=0.0)
    upper_circuit_limit = Column(Float, nullable=False, default=0.0)
    yl = Column(Float, nullable=False, default=0.0)
    yh = Column(Float, nullable=False, default=0.0)

    # Zero when the snapshot carried no ohlc block
    ohlc_open = Column(Float, nullable=False, default=0.0)
    ohlc_high = Column(Float, nullable=False, default=0.0)
    ohlc_low = Column(Float, nullable=False, default=0.0)
    ohlc_close = Column(Float, nullable=False, default=0.0)
    ohlc_volume = Column(BigInteger, nullable=False, default=0)

    def __repr__(self):
        return f"<MarketDataRow(instrument='{self.instrument}', timestamp='{self.timestamp}')>"
