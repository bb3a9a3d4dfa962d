"""Composite ids for virtual occurrences.

An occurrence has no row of its own, so its id encodes where it came from:
``"<ruleId>-<isoInstant>"``, where the instant is midnight UTC of the firing
date, formatted the way browsers print ``Date.toISOString()``::

    3f0c9c1e-...-9b2d-2025-07-14T00:00:00.000Z

Rule ids may themselves contain hyphens, so parsing anchors on the ISO date
pattern rather than splitting on the first hyphen.
"""

import re
from dataclasses import dataclass
from datetime import date, datetime, time, timezone

_ID_PATTERN = re.compile(
    r"^(?P<rule_id>.+?)-(?P<instant>\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}(?:\.\d+)?Z)$"
)


@dataclass(frozen=True)
class OccurrenceKey:
    """Parts of a parsed occurrence id."""

    rule_id: str
    instant: datetime

    @property
    def day(self) -> date:
        return self.instant.date()


def format_instant(day: date) -> str:
    """Midnight UTC of ``day`` as ``YYYY-MM-DDT00:00:00.000Z``."""
    instant = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return instant.strftime("%Y-%m-%dT%H:%M:%S.000Z")


def occurrence_id(rule_id: str, day: date) -> str:
    return f"{rule_id}-{format_instant(day)}"


def parse_occurrence_id(value: str) -> OccurrenceKey | None:
    """Split an occurrence id into rule id and instant.

    Returns None when ``value`` does not end in an ISO instant, which is how
    one-off event ids are told apart.
    """
    match = _ID_PATTERN.match(value)
    if match is None:
        return None
    try:
        instant = datetime.fromisoformat(match.group("instant").replace("Z", "+00:00"))
    except ValueError:
        # Right shape, impossible date (e.g. month 13)
        return None
    return OccurrenceKey(rule_id=match.group("rule_id"), instant=instant)


def is_occurrence_id(value: str) -> bool:
    return parse_occurrence_id(value) is not None
