import asyncio
import datetime
from unittest.mock import AsyncMock, patch
from zoneinfo import ZoneInfo

from fakes import FakeSession
from marketlog.config.settings import MarketHoursSettings, settings
from marketlog.errors import FetchError
from marketlog.jobs.poller import run_fetch_cycle

IST = ZoneInfo("Asia/Kolkata")


def monday(hour: int, minute: int) -> datetime.datetime:
    return datetime.datetime(2025, 11, 10, hour, minute, tzinfo=IST)


def run_cycle(now: datetime.datetime, session: FakeSession, fetch: AsyncMock):
    hours = MarketHoursSettings(
        timezone="Asia/Kolkata",
        start_time=datetime.time(9, 15),
        end_time=datetime.time(15, 30),
    )
    with (
        patch("marketlog.jobs.poller.AsyncSessionLocal", lambda: session),
        patch("marketlog.jobs.poller.fetch_and_store", new=fetch),
        patch.object(settings, "market_hours", hours),
    ):
        return asyncio.run(run_fetch_cycle(now))


def test_closed_market_records_event_without_fetching() -> None:
    session = FakeSession()
    fetch = AsyncMock(return_value=5)

    result = run_cycle(monday(9, 14), session, fetch)

    assert result is None
    fetch.assert_not_awaited()
    (event,) = session.rows("events")
    assert event["message"] == "Market is closed. Sleeping."
    assert event["context"]["request_id"].startswith("poller-")


def test_open_market_fetches_configured_instruments() -> None:
    session = FakeSession()
    fetch = AsyncMock(return_value=5)

    result = run_cycle(monday(9, 16), session, fetch)

    assert result == 5
    instruments, request_id, source = fetch.await_args.args
    assert instruments == settings.poller.instruments
    assert request_id.startswith("poller-")
    assert source == settings.poller.source


def test_failed_cycle_returns_none_so_loop_continues() -> None:
    session = FakeSession()
    fetch = AsyncMock(side_effect=FetchError("Failed to fetch quotes: timed out"))

    assert run_cycle(monday(11, 0), session, fetch) is None
    fetch.assert_awaited_once()


def test_closed_market_survives_unreachable_database() -> None:
    session = FakeSession(
        fail_on_execute=1,
        execute_error=ConnectionRefusedError(111, "Connect call failed ('127.0.0.1', 5432)"),
    )
    fetch = AsyncMock(return_value=5)

    assert run_cycle(monday(16, 0), session, fetch) is None
    fetch.assert_not_awaited()
    assert session.rollbacks == 1
