from __future__ import annotations

import logging
import socket
from urllib.error import HTTPError, URLError
from urllib.parse import urlencode
from urllib.request import Request, urlopen

from marketlog.config.settings import settings
from marketlog.errors import FetchError

logger = logging.getLogger(__name__)


def build_quote_url(instruments: list[str]) -> str:
    base_url = settings.upstox.base_url.rstrip("/")
    params = {"i": ",".join(instruments), "interval": "1m"}
    return f"{base_url}?{urlencode(params)}"


def _build_headers(request_id: str) -> dict[str, str]:
    headers = {
        "Accept": "application/json, text/plain, */*",
        "User-Agent": settings.upstox.user_agent,
        "X-Request-ID": request_id,
    }
    if settings.upstox.access_token:
        headers["Authorization"] = f"Bearer {settings.upstox.access_token}"
    return headers


def fetch_quotes(instruments: list[str], request_id: str) -> bytes:
    """Return the raw quote envelope for `instruments` in one upstream call."""
    url = build_quote_url(instruments)
    logger.info("[%s] Fetching URL: %s", request_id, url)
    request = Request(url, headers=_build_headers(request_id))
    try:
        with urlopen(request, timeout=settings.upstox.timeout_seconds) as response:
            status = response.status
            body = response.read()
    except HTTPError as exc:
        body = exc.read().decode("utf-8", errors="replace")
        raise FetchError(
            f"Non-OK response from Upstox: {exc.code}", status_code=exc.code, body=body
        ) from exc
    except (URLError, TimeoutError, socket.timeout) as exc:
        raise FetchError(f"Failed to fetch quotes: {exc}") from exc

    if status != 200:
        text_body = body.decode("utf-8", errors="replace")
        raise FetchError(
            f"Non-OK response from Upstox: {status}", status_code=status, body=text_body
        )
    return body
