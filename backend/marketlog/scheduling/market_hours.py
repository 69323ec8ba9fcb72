from __future__ import annotations

import datetime

_WEEKEND = {5, 6}


def is_market_open(
    now: datetime.datetime,
    zone: datetime.tzinfo,
    window_start: datetime.time,
    window_end: datetime.time,
) -> bool:
    """True on weekdays strictly between window_start and window_end in zone.

    No holiday calendar is consulted.
    """
    if now.tzinfo is None:
        raise ValueError("now must be timezone-aware")
    local = now.astimezone(zone)
    if local.weekday() in _WEEKEND:
        return False
    current = local.time()
    return window_start < current < window_end
