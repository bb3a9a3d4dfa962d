"""Calendar queries over one-off events and recurring series.

Calendar answers "what happens between these two dates?" by merging one-off
events from storage with occurrences expanded from the rules that overlap the
window, and resolves a single occurrence id back to its occurrence.
"""

import logging
import uuid
from collections.abc import Iterable, Mapping
from dataclasses import replace
from datetime import date, datetime, time
from typing import Any, Literal, TypeVar
from zoneinfo import ZoneInfo

from workshopcal.config import Settings, get_settings
from workshopcal.errors import (
    OccurrenceNotFound,
    OneOffEventNotFound,
    RuleNotFound,
)
from workshopcal.identity import parse_occurrence_id
from workshopcal.models import Event, Occurrence, OneOffEvent
from workshopcal.recurrence import OccurrencePattern, expand, materialize
from workshopcal.rule import RecurrenceRule, rule_from_payload
from workshopcal.storage import Store, WriteResult

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Event)


def sorted_by_start(events: Iterable[E]) -> list[E]:
    """Events ordered by (start, end), as the export layer lists them."""
    return sorted(events, key=lambda e: (e.start, e.end))


class Calendar:
    """Read and lifecycle operations over a Store.

    Args:
        store: Storage backend
        settings: Settings to use (defaults to the environment-derived ones)
    """

    def __init__(self, store: Store, settings: Settings | None = None):
        self.store: Store = store
        self.settings: Settings = settings or get_settings()
        self.zone: ZoneInfo = ZoneInfo(self.settings.timezone)

    def _coerce_bound(
        self, bound: date | datetime, edge: Literal["start", "end"]
    ) -> datetime:
        """Convert a window bound to an aware datetime.

        A date means the start of that day for the start edge and the end of
        that day for the end edge, in the configured zone.

        Raises:
            TypeError: If bound is a naive datetime or not a date at all
        """
        if isinstance(bound, datetime):
            if bound.tzinfo is None:
                raise TypeError(
                    f"Calendar {edge} bound must be a timezone-aware datetime.\n"
                    f"Got naive datetime: {bound!r}\n"
                    f"Hint: pass a date, or add tzinfo=timezone.utc"
                )
            return bound
        if isinstance(bound, date):
            return datetime.combine(
                bound, time.min if edge == "start" else time.max, tzinfo=self.zone
            )
        raise TypeError(
            f"Calendar {edge} bound must be a date or datetime, "
            f"got {type(bound).__name__!r}: {bound!r}"
        )

    def _local_date(self, instant: datetime) -> date:
        return instant.astimezone(self.zone).date()

    def _hydrate(self, event: E) -> E:
        """Attach the agents and workshops an event references."""
        return replace(
            event,
            workshops=self.store.get_workshops(event.workshop_ids),
            project_owner=self.store.get_agent(event.project_owner_id),
            facilitators=self.store.get_agents(event.facilitator_ids),
        )

    def occurrences(
        self, rule: RecurrenceRule, start: date, end: date
    ) -> list[Occurrence]:
        """Hydrated occurrences of ``rule`` on the dates in [start, end]."""
        return [self._hydrate(o) for o in expand(rule, start, end, self.settings.timezone)]

    def list_events(
        self, start: date | datetime, end: date | datetime
    ) -> list[OneOffEvent | Occurrence]:
        """One-off events and rule occurrences falling in [start, end].

        Rules are expanded over the calendar dates the window touches and the
        occurrences are then held to the same overlap test as one-off events.
        A date ``end`` covers that whole day. The result is unordered; use
        sorted_by_start() where order matters.
        """
        window_start = self._coerce_bound(start, "start")
        window_end = self._coerce_bound(end, "end")
        first_day = self._local_date(window_start)
        last_day = self._local_date(window_end)

        one_offs = self.store.one_off_events_overlapping(window_start, window_end)
        rules = self.store.rules_overlapping(first_day, last_day)

        events: list[OneOffEvent | Occurrence] = [self._hydrate(e) for e in one_offs]
        for rule in rules:
            events.extend(
                o
                for o in self.occurrences(rule, first_day, last_day)
                if o.overlaps(window_start, window_end)
            )

        logger.debug(
            "list_events %s..%s: %d one-off, %d occurrences from %d rules",
            first_day,
            last_day,
            len(one_offs),
            len(events) - len(one_offs),
            len(rules),
        )
        return events

    def resolve_occurrence(self, occurrence_id: str) -> Occurrence:
        """Regenerate the single occurrence an id refers to.

        Raises:
            OccurrenceNotFound: If the id is not an occurrence id, or the rule
                does not fire on the encoded date (stale or fabricated id)
            RuleNotFound: If the rule no longer exists
        """
        key = parse_occurrence_id(occurrence_id)
        if key is None:
            raise OccurrenceNotFound(f"Not an occurrence id: {occurrence_id!r}")

        rule = self.store.get_rule(key.rule_id)
        if rule is None:
            raise RuleNotFound(f"Rule {key.rule_id!r} not found")

        for day in OccurrencePattern(rule).fetch(key.day, key.day):
            occurrence = materialize(rule, day, self.settings.timezone)
            if occurrence.id == occurrence_id:
                return self._hydrate(occurrence)

        logger.warning(
            "Occurrence id %s does not match a firing date of rule %s",
            occurrence_id,
            rule.id,
        )
        raise OccurrenceNotFound(
            f"Rule {rule.id!r} has no occurrence matching {occurrence_id!r}"
        )

    def get_event_by_id(self, event_id: str) -> OneOffEvent | Occurrence | None:
        """Look up an event by id, trying the occurrence id pattern first."""
        if parse_occurrence_id(event_id) is not None:
            try:
                return self.resolve_occurrence(event_id)
            except RuleNotFound:
                # Could still be a one-off id that merely looks like one
                pass
            except OccurrenceNotFound:
                return None

        event = self.store.get_one_off_event(event_id)
        return self._hydrate(event) if event is not None else None

    def create_series(
        self, rule: RecurrenceRule | Mapping[str, Any]
    ) -> WriteResult:
        """Validate and persist a recurrence rule.

        Accepts a RecurrenceRule or a raw payload (see rule_from_payload).
        Validation errors are reported through the WriteResult.
        """
        if not isinstance(rule, RecurrenceRule):
            try:
                rule = rule_from_payload(
                    rule, default_nth_of_month=self.settings.default_nth_of_month
                )
            except (KeyError, ValueError) as e:
                return WriteResult(success=False, record=None, error=e)
        return self.store.create_rule(rule)

    def update_series(self, rule: RecurrenceRule) -> WriteResult:
        """Replace a rule; every occurrence of the series changes with it."""
        return self.store.update_rule(rule)

    def delete_event(self, event_id: str) -> WriteResult:
        """Delete a one-off event, or the whole series an occurrence belongs to."""
        key = parse_occurrence_id(event_id)
        if key is not None and self.store.get_rule(key.rule_id) is not None:
            return self.store.delete_rule(key.rule_id)
        if self.store.get_one_off_event(event_id) is None:
            return WriteResult(
                success=False,
                record=None,
                error=OneOffEventNotFound(f"Event {event_id!r} not found"),
            )
        return self.store.delete_one_off_event(event_id)

    def detach_occurrence(
        self, occurrence_id: str, *, title: str | None = None
    ) -> WriteResult:
        """Turn one occurrence into an independent one-off event.

        The new event copies the occurrence's times and references. When
        ``exclude_detached_dates`` is set, the rule stops firing on that date
        so the occurrence is not listed twice.

        Raises:
            OccurrenceNotFound, RuleNotFound: If the occurrence can't be resolved
        """
        occurrence = self.resolve_occurrence(occurrence_id)
        event = OneOffEvent(
            id=str(uuid.uuid4()),
            title=title if title is not None else occurrence.title,
            start=occurrence.start,
            end=occurrence.end,
            workshop_ids=occurrence.workshop_ids,
            project_owner_id=occurrence.project_owner_id,
            facilitator_ids=occurrence.facilitator_ids,
        )
        result = self.store.create_one_off_event(event)
        if not result.success:
            return result

        if self.settings.exclude_detached_dates:
            excluded = self.store.exclude_date(occurrence.rule_id, occurrence.day)
            if not excluded.success:
                # Keep the store consistent: no detached copy without exclusion
                self.store.delete_one_off_event(event.id)
                return excluded

        logger.info("Detached %s into one-off event %s", occurrence_id, event.id)
        return result
