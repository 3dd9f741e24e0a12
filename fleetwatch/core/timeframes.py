"""Timeframe strings such as ``24h``, ``7d``, ``2w`` or ``1m``."""

from __future__ import annotations

import re

_TIMEFRAME_RE = re.compile(r"^(\d+)([hdwm])$")

_HOUR_MS = 3_600_000
_UNIT_MS: dict[str, int] = {
    "h": _HOUR_MS,
    "d": 24 * _HOUR_MS,
    "w": 7 * 24 * _HOUR_MS,
    "m": 30 * 24 * _HOUR_MS,  # a month is 30 days
}


def parse_timeframe(timeframe: str | None) -> int | None:
    """Return the span of *timeframe* in milliseconds.

    Anything that does not match ``<n>h|d|w|m`` means "all time" and
    yields None.
    """
    if not timeframe:
        return None
    match = _TIMEFRAME_RE.match(timeframe.strip())
    if match is None:
        return None
    amount, unit = match.groups()
    return int(amount) * _UNIT_MS[unit]


def timeframe_cutoff(timeframe: str | None, now_ms: int) -> int | None:
    """Earliest timestamp (ms) inside *timeframe*, or None for all time."""
    span = parse_timeframe(timeframe)
    return None if span is None else now_ms - span
