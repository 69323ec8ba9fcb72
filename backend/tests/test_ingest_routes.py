import asyncio
import json
from unittest.mock import Mock, patch

import pytest
from fastapi import HTTPException

from fakes import FakeRequest, FakeSession, envelope_bytes, snapshot
from marketlog.api.routes import (
    fetch_marketdata_endpoint,
    health,
    ingest_events_endpoint,
    ingest_marketdata_endpoint,
)
from marketlog.schemas.marketdata import FetchRequest

EVENT = {
    "timestamp": "2025-11-07T06:52:38Z",
    "level": "WARN",
    "source": "load-tester",
    "message": "slow response",
    "context": {"latency_ms": "812"},
}


def test_health() -> None:
    assert health() == {"status": "ok"}


def test_single_event_is_accepted() -> None:
    session = FakeSession()

    result = asyncio.run(
        ingest_events_endpoint(FakeRequest(json.dumps(EVENT).encode()), db=session)
    )

    assert result.status == "accepted"
    assert result.ingested == 1
    (stored,) = session.rows("events")
    assert stored["source"] == "load-tester"
    assert stored["context"] == {"latency_ms": "812"}


def test_event_batch_is_accepted() -> None:
    session = FakeSession()
    payload = json.dumps([EVENT, {**EVENT, "message": "recovered", "level": "INFO"}]).encode()

    result = asyncio.run(ingest_events_endpoint(FakeRequest(payload), db=session))

    assert result.ingested == 2
    assert [row["message"] for row in session.rows("events")] == ["slow response", "recovered"]


def test_malformed_events_are_rejected() -> None:
    with pytest.raises(HTTPException) as excinfo:
        asyncio.run(ingest_events_endpoint(FakeRequest(b"{oops"), db=FakeSession()))

    assert excinfo.value.status_code == 400
    assert excinfo.value.detail == {"message": "Invalid JSON format"}


def test_empty_event_array_is_rejected() -> None:
    session = FakeSession()

    with pytest.raises(HTTPException) as excinfo:
        asyncio.run(ingest_events_endpoint(FakeRequest(b"[]"), db=session))

    assert excinfo.value.status_code == 400
    assert excinfo.value.detail == {"message": "No events provided"}
    assert session.executed == 0


def test_event_write_failure_is_a_server_error() -> None:
    session = FakeSession(fail_on_execute=2)
    payload = json.dumps([EVENT, EVENT]).encode()

    with pytest.raises(HTTPException) as excinfo:
        asyncio.run(ingest_events_endpoint(FakeRequest(payload), db=session))

    assert excinfo.value.status_code == 500
    assert session.rows("events") == []


def test_two_instrument_envelope_writes_two_rows() -> None:
    session = FakeSession()
    body = envelope_bytes(
        {"NIFTY": snapshot(), "BANKNIFTY": snapshot(with_ohlc=False)},
        request_id="req-e2e",
    )

    result = asyncio.run(ingest_marketdata_endpoint(FakeRequest(body), db=session))

    assert result.ingested == 2
    nifty, banknifty = session.rows("market_data")
    assert nifty["request_id"] == banknifty["request_id"] == "req-e2e"
    assert nifty["response_time"] == banknifty["response_time"]
    assert nifty["ohlc_open"] != 0.0 and nifty["ohlc_volume"] != 0
    assert [banknifty[key] for key in ("ohlc_open", "ohlc_high", "ohlc_low", "ohlc_close", "ohlc_volume")] == [
        0.0,
        0.0,
        0.0,
        0.0,
        0,
    ]


def test_envelope_with_bad_timestamp_writes_nothing() -> None:
    session = FakeSession()
    body = envelope_bytes({"NIFTY": snapshot(), "BROKEN": snapshot(timestamp="yesterday")})

    with pytest.raises(HTTPException) as excinfo:
        asyncio.run(ingest_marketdata_endpoint(FakeRequest(body), db=session))

    assert excinfo.value.status_code == 400
    assert "BROKEN" in excinfo.value.detail["message"]
    assert session.executed == 0


def test_undecodable_envelope_is_rejected() -> None:
    with pytest.raises(HTTPException) as excinfo:
        asyncio.run(ingest_marketdata_endpoint(FakeRequest(b"[1, 2]"), db=FakeSession()))

    assert excinfo.value.status_code == 400


def test_market_write_failure_is_a_server_error() -> None:
    session = FakeSession(fail_on_commit=True)
    body = envelope_bytes({"NIFTY": snapshot()})

    with pytest.raises(HTTPException) as excinfo:
        asyncio.run(ingest_marketdata_endpoint(FakeRequest(body), db=session))

    assert excinfo.value.status_code == 500
    assert session.rollbacks == 1


def test_fetch_request_enqueues_job() -> None:
    job = Mock()
    job.id = "job-123"

    with patch("marketlog.api.routes.enqueue_market_fetch", return_value=job) as enqueue_mock:
        result = asyncio.run(
            fetch_marketdata_endpoint(FetchRequest(instruments=[" NSE_EQ|INE002A01018 ", ""]))
        )

    enqueue_mock.assert_called_once_with(
        instruments=["NSE_EQ|INE002A01018"], request_id=result.request_id
    )
    assert result.status == "queued"
    assert result.job_id == "job-123"
    assert result.request_id.startswith("manual-")


def test_fetch_request_without_instruments_is_rejected() -> None:
    with patch("marketlog.api.routes.enqueue_market_fetch") as enqueue_mock:
        with pytest.raises(HTTPException) as excinfo:
            asyncio.run(fetch_marketdata_endpoint(FetchRequest(instruments=[])))

    assert excinfo.value.status_code == 400
    assert enqueue_mock.called is False
