"""Parsing helpers for the date and time-of-day values found in payloads."""

import re
from datetime import date, datetime, time

_HHMM = re.compile(r"^([0-1]?[0-9]|2[0-3]):([0-5][0-9])$")


def parse_hhmm(value: str | time) -> time:
    """Parse a 24h ``HH:MM`` string into a time (times pass through)."""
    if isinstance(value, time):
        return value
    match = _HHMM.match(value.strip())
    if match is None:
        raise ValueError(
            f"Invalid time of day: {value!r}\n"
            f"Expected 24h HH:MM, e.g. '09:30' or '14:00'"
        )
    return time(int(match.group(1)), int(match.group(2)))


def format_hhmm(value: time) -> str:
    return value.strftime("%H:%M")


def parse_date(value: str | date | datetime) -> date:
    """Coerce an ISO date string, date or datetime into a calendar date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = value.strip()
    if "T" not in text:
        return date.fromisoformat(text)
    # Full ISO instant ("2025-07-01T00:00:00.000Z")
    return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
