"""Expansion of recurrence rules into calendar dates and occurrences.

Backed by python-dateutil's rrule implementation. A rule is turned into an
rrule anchored at its series start, streamed over a query window, and each
firing date is materialized into an Occurrence with a composite id.
"""

import logging
from collections.abc import Iterator
from datetime import date, datetime, time
from typing import Any
from zoneinfo import ZoneInfo

from dateutil.rrule import (
    DAILY,
    FR,
    MO,
    MONTHLY,
    SA,
    SU,
    TH,
    TU,
    WE,
    WEEKLY,
    rrule,
    weekday,
)

from workshopcal.errors import InvalidWeekday
from workshopcal.identity import occurrence_id
from workshopcal.models import Occurrence
from workshopcal.rule import Frequency, RecurrenceRule
from workshopcal.util import parse_date

logger = logging.getLogger(__name__)

# Indexed by weekday number, 0 = Sunday
_WEEKDAYS: tuple[weekday, ...] = (SU, MO, TU, WE, TH, FR, SA)

_FREQ_MAP = {
    Frequency.DAILY: DAILY,
    Frequency.WEEKLY: WEEKLY,
    Frequency.MONTHLY: MONTHLY,
}


def to_rrule_frequency(frequency: Frequency) -> int:
    return _FREQ_MAP[Frequency(frequency)]


def to_rrule_weekday(number: int, nth: int | None = None) -> weekday:
    """Map a weekday number (0 = Sunday .. 6 = Saturday) to a dateutil weekday.

    Args:
        number: Weekday number
        nth: Optional occurrence within the month (1..5, or -1 for last)

    Raises:
        InvalidWeekday: If ``number`` is outside 0..6
    """
    if not 0 <= number <= 6:
        raise InvalidWeekday(
            f"Invalid weekday: {number}\nWeekdays are 0..6 with 0 = Sunday"
        )
    wd = _WEEKDAYS[number]
    return wd(nth) if nth is not None else wd


class OccurrencePattern:
    """The firing dates of one recurrence rule.

    Stateless apart from the rule: every fetch() builds a fresh rrule iterator,
    so the same window always yields the same dates.
    """

    def __init__(self, rule: RecurrenceRule):
        self.rule: RecurrenceRule = rule

        rrule_kwargs: dict[str, Any] = {
            "freq": to_rrule_frequency(rule.frequency),
            "interval": 1,
            # Sunday-based weeks, matching the weekday numbering
            "wkst": SU,
        }
        # Monthly rules fire on the nth occurrence of each weekday only
        nth = rule.nth_of_month if rule.frequency is Frequency.MONTHLY else None
        rrule_kwargs["byweekday"] = [to_rrule_weekday(d, nth) for d in rule.weekdays]
        self.rrule_kwargs: dict[str, Any] = rrule_kwargs

    @property
    def recurrence_rule(self) -> rrule:
        """A fresh rrule anchored at the series start and bounded by its end.

        The anchor carries the rule's start time so weekly and monthly phase
        line up with the intended time of day.
        """
        return rrule(
            dtstart=datetime.combine(self.rule.series_start, self.rule.start_time),
            until=datetime.combine(self.rule.series_end, time.max),
            **self.rrule_kwargs,
        )

    def fetch(self, start: date, end: date) -> Iterator[date]:
        """Yield firing dates within [start, end], both inclusive.

        The window is clamped to the series bounds. Excluded dates are skipped.
        """
        lo = max(start, self.rule.series_start)
        hi = min(end, self.rule.series_end)
        if lo > hi:
            return

        for occurrence in self.recurrence_rule:
            day = occurrence.date()

            # Fast-forward to the window
            if day < lo:
                continue
            # rrule yields in order, so once we pass the window we're done
            if day > hi:
                break
            if day in self.rule.excluded_dates:
                continue

            yield day

    def __getitem__(self, item: slice) -> Iterator[date]:
        if item.start is None or item.stop is None:
            raise ValueError(
                "Occurrence queries need finite bounds.\n"
                "Example: list(pattern[date(2025, 7, 1):date(2025, 7, 31)])"
            )
        return self.fetch(parse_date(item.start), parse_date(item.stop))


def materialize(rule: RecurrenceRule, day: date, tz: str = "UTC") -> Occurrence:
    """Turn a firing date into an Occurrence.

    The id embeds midnight UTC of ``day``, independent of the time of day and
    of ``tz``, so resolving it later regenerates the same occurrence.
    """
    zone = ZoneInfo(tz)
    return Occurrence(
        id=occurrence_id(rule.id, day),
        title=rule.title,
        start=datetime.combine(day, rule.start_time, tzinfo=zone),
        end=datetime.combine(day, rule.end_time, tzinfo=zone),
        workshop_ids=rule.workshop_ids,
        project_owner_id=rule.project_owner_id,
        facilitator_ids=rule.facilitator_ids,
        rule_id=rule.id,
    )


def expand(
    rule: RecurrenceRule, start: date, end: date, tz: str = "UTC"
) -> Iterator[Occurrence]:
    """Occurrences of ``rule`` on the dates in [start, end]."""
    for day in OccurrencePattern(rule).fetch(start, end):
        yield materialize(rule, day, tz)
