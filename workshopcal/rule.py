"""Recurrence rules (series definitions) and their intake from raw payloads."""

import logging
import uuid
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, time
from enum import Enum
from typing import Any

from workshopcal.errors import InvalidRuleWindow, InvalidTimeWindow, InvalidWeekday
from workshopcal.util import format_hhmm, parse_date, parse_hhmm

logger = logging.getLogger(__name__)

DEFAULT_NTH_OF_MONTH = 1
NTH_OF_MONTH_VALUES = frozenset({-1, 1, 2, 3, 4, 5})


class Frequency(str, Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"


# Tags written by earlier versions of the application
_FREQUENCY_ALIASES: dict[str, Frequency] = {
    "QUOTIDIENNE": Frequency.DAILY,
    "HEBDOMADAIRE": Frequency.WEEKLY,
    "MENSUELLE": Frequency.MONTHLY,
}


def parse_frequency(value: "str | Frequency | None") -> Frequency:
    """Parse a frequency tag. An empty value means weekly."""
    if isinstance(value, Frequency):
        return value
    if not value:
        return Frequency.WEEKLY
    tag = value.strip().upper()
    if tag in _FREQUENCY_ALIASES:
        return _FREQUENCY_ALIASES[tag]
    try:
        return Frequency(tag)
    except ValueError:
        valid = ", ".join(f.value for f in Frequency)
        raise ValueError(
            f"Invalid frequency: '{value}'\nValid frequencies: {valid}\n"
        ) from None


def parse_weekdays(value: str | Iterable[int]) -> tuple[int, ...]:
    """Parse weekday numbers from a list or the stored ``"1,3"`` string form.

    Raises:
        InvalidWeekday: If any number falls outside 0..6
    """
    if isinstance(value, str):
        numbers = [int(part) for part in value.split(",") if part.strip()]
    else:
        numbers = [int(part) for part in value]
    for number in numbers:
        if not 0 <= number <= 6:
            raise InvalidWeekday(
                f"Invalid weekday: {number}\nWeekdays are 0..6 with 0 = Sunday"
            )
    return tuple(sorted(set(numbers)))


def format_weekdays(weekdays: Iterable[int]) -> str:
    return ",".join(str(d) for d in weekdays)


@dataclass(frozen=True, kw_only=True)
class RecurrenceRule:
    """A series definition that expands into occurrences.

    Attributes:
        id: Opaque unique identifier (may contain hyphens, e.g. a UUID)
        title: Display text copied onto every occurrence
        start_time: Wall-clock start of each occurrence
        end_time: Wall-clock end of each occurrence, same day
        frequency: DAILY, WEEKLY or MONTHLY
        weekdays: Sorted weekday numbers, 0 = Sunday
        nth_of_month: For MONTHLY rules, which occurrence of each weekday in the
            month fires (1..5, or -1 for the last one). Ignored otherwise.
        series_start: First calendar date of the series (inclusive)
        series_end: Last calendar date of the series (inclusive, whole day)
        workshop_ids: Workshop references, first one is the primary workshop
        project_owner_id: The single agent responsible for the series
        facilitator_ids: Agents co-running the series
        excluded_dates: Dates on which the rule does not fire
    """

    id: str
    title: str
    start_time: time
    end_time: time
    frequency: Frequency
    weekdays: tuple[int, ...]
    nth_of_month: int | None = None
    series_start: date
    series_end: date
    workshop_ids: tuple[str, ...]
    project_owner_id: str
    facilitator_ids: tuple[str, ...] = ()
    excluded_dates: frozenset[date] = field(default_factory=frozenset)

    def __post_init__(self) -> None:
        if not self.weekdays:
            raise InvalidWeekday("A recurrence rule needs at least one weekday")
        for number in self.weekdays:
            if not 0 <= number <= 6:
                raise InvalidWeekday(
                    f"Invalid weekday: {number}\nWeekdays are 0..6 with 0 = Sunday"
                )
        if self.series_end <= self.series_start:
            raise InvalidRuleWindow(
                f"series_end ({self.series_end}) must be after "
                f"series_start ({self.series_start})"
            )
        if self.end_time <= self.start_time:
            raise InvalidTimeWindow(
                f"end_time ({format_hhmm(self.end_time)}) must be after "
                f"start_time ({format_hhmm(self.start_time)}); "
                f"occurrences cannot span midnight"
            )
        if not self.workshop_ids:
            raise ValueError(f"Rule {self.id!r} must reference at least one workshop")
        if self.frequency is Frequency.MONTHLY:
            if self.nth_of_month is None:
                # frozen dataclass: fill the default in place
                object.__setattr__(self, "nth_of_month", DEFAULT_NTH_OF_MONTH)
            elif self.nth_of_month not in NTH_OF_MONTH_VALUES:
                raise ValueError(
                    f"nth_of_month must be one of -1, 1..5, got {self.nth_of_month}"
                )

    @property
    def primary_workshop_id(self) -> str:
        return self.workshop_ids[0]

    def covers(self, start: date, end: date) -> bool:
        """True if the series interval overlaps [start, end]."""
        return self.series_start <= end and self.series_end >= start


def rule_from_payload(
    payload: Mapping[str, Any], *, default_nth_of_month: int = DEFAULT_NTH_OF_MONTH
) -> RecurrenceRule:
    """Build a validated RecurrenceRule from a loosely typed mapping.

    Accepts the shapes the calendar forms send:

    - ``workshop_ids`` or a single legacy ``workshop_id``
    - several candidate owners in ``project_owner_ids``; an explicit
      ``project_owner_id`` wins, otherwise the first candidate is kept
    - ``weekdays`` as a list or the stored ``"1,3"`` string
    - dates and times as strings or native objects

    A present ``nth_of_month`` forces a monthly rule; a monthly rule without
    one gets ``default_nth_of_month``.
    """
    frequency = parse_frequency(payload.get("frequency"))

    nth = payload.get("nth_of_month")
    if isinstance(nth, str):
        nth = int(nth) if nth.strip().lstrip("-").isdigit() else None
    if nth is not None and frequency is not Frequency.MONTHLY:
        logger.debug("nth_of_month=%s given, switching frequency to MONTHLY", nth)
        frequency = Frequency.MONTHLY
    if frequency is Frequency.MONTHLY and nth is None:
        nth = default_nth_of_month

    workshop_ids = tuple(payload.get("workshop_ids") or ())
    if not workshop_ids and payload.get("workshop_id"):
        workshop_ids = (payload["workshop_id"],)

    owner_id = payload.get("project_owner_id")
    if not owner_id:
        candidates = list(payload.get("project_owner_ids") or ())
        if not candidates:
            raise ValueError("At least one project owner is required")
        owner_id = candidates[0]

    return RecurrenceRule(
        id=payload.get("id") or str(uuid.uuid4()),
        title=payload["title"],
        start_time=parse_hhmm(payload["start_time"]),
        end_time=parse_hhmm(payload["end_time"]),
        frequency=frequency,
        weekdays=parse_weekdays(payload.get("weekdays") or ()),
        nth_of_month=nth if frequency is Frequency.MONTHLY else None,
        series_start=parse_date(payload["series_start"]),
        series_end=parse_date(payload["series_end"]),
        workshop_ids=workshop_ids,
        project_owner_id=owner_id,
        facilitator_ids=tuple(payload.get("facilitator_ids") or ()),
        excluded_dates=frozenset(
            parse_date(d) for d in payload.get("excluded_dates") or ()
        ),
    )
