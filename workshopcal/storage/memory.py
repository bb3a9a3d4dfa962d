"""In-memory storage implementation.

This module provides MemoryStore, a simple store backed by dictionaries and
lists. It's useful for testing, prototyping, and ephemeral calendars.
"""

import bisect
import copy
from collections.abc import Iterable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import replace
from datetime import date, datetime

from typing_extensions import override

from workshopcal.errors import OneOffEventNotFound, RuleNotFound
from workshopcal.models import Agent, OneOffEvent, Workshop
from workshopcal.rule import RecurrenceRule
from workshopcal.storage import Store


class _EventIndex:
    """Read-only index over a static collection of one-off events.

    Internal helper class used by MemoryStore for overlap queries.
    """

    def __init__(self, events: Sequence[OneOffEvent]):
        self._events: tuple[OneOffEvent, ...] = tuple(
            sorted(events, key=lambda e: (e.start, e.end))
        )

        # Build max-end prefix array for efficient query pruning
        # max_end_prefix[i] = max(event.end for event in events[:i+1])
        self._max_end_prefix: list[datetime] = []
        for event in self._events:
            if self._max_end_prefix and self._max_end_prefix[-1] > event.end:
                self._max_end_prefix.append(self._max_end_prefix[-1])
            else:
                self._max_end_prefix.append(event.end)

    def overlapping(self, start: datetime, end: datetime) -> Iterator[OneOffEvent]:
        if not self._events:
            return

        # Everything before the first position where max_end >= start
        # ends too early to overlap
        start_idx = bisect.bisect_left(self._max_end_prefix, start)
        # First event starting after end, nothing from there on can overlap
        end_idx = bisect.bisect_right(self._events, end, key=lambda event: event.start)

        for event in self._events[start_idx:end_idx]:
            # Final filter: skip events that end before our start bound
            if event.overlaps(start, end):
                yield event


class MemoryStore(Store):
    """In-memory store.

    Rules are kept without their facilitators; facilitator links live in a
    separate list of (rule_id, agent_id) rows, as a relational backend would
    keep them in a join table, and are folded back in on read.

    Attributes:
        _agents: Agents by id
        _workshops: Workshops by id
        _rules: Rule rows by id
        _facilitator_links: (rule_id, agent_id) join rows
        _one_off_events: One-off events by id
    """

    def __init__(
        self,
        *,
        agents: Iterable[Agent] = (),
        workshops: Iterable[Workshop] = (),
    ) -> None:
        self._agents: dict[str, Agent] = {a.id: a for a in agents}
        self._workshops: dict[str, Workshop] = {w.id: w for w in workshops}
        self._rules: dict[str, RecurrenceRule] = {}
        self._facilitator_links: list[tuple[str, str]] = []
        self._one_off_events: dict[str, OneOffEvent] = {}
        self._index: _EventIndex | None = None

    @property
    def facilitator_links(self) -> list[tuple[str, str]]:
        """Snapshot of the (rule_id, agent_id) join rows."""
        return list(self._facilitator_links)

    @override
    def rules_overlapping(self, start: date, end: date) -> list[RecurrenceRule]:
        return [
            self._with_facilitators(rule)
            for rule in self._rules.values()
            if rule.covers(start, end)
        ]

    @override
    def get_rule(self, rule_id: str) -> RecurrenceRule | None:
        rule = self._rules.get(rule_id)
        return self._with_facilitators(rule) if rule is not None else None

    @override
    def one_off_events_overlapping(
        self, start: datetime, end: datetime
    ) -> list[OneOffEvent]:
        if self._index is None:
            self._index = _EventIndex(list(self._one_off_events.values()))
        return list(self._index.overlapping(start, end))

    @override
    def get_one_off_event(self, event_id: str) -> OneOffEvent | None:
        return self._one_off_events.get(event_id)

    @override
    def get_agent(self, agent_id: str) -> Agent | None:
        return self._agents.get(agent_id)

    @override
    def get_workshop(self, workshop_id: str) -> Workshop | None:
        return self._workshops.get(workshop_id)

    def _with_facilitators(self, rule: RecurrenceRule) -> RecurrenceRule:
        facilitator_ids = tuple(
            agent_id for rule_id, agent_id in self._facilitator_links if rule_id == rule.id
        )
        return replace(rule, facilitator_ids=facilitator_ids)

    @override
    @contextmanager
    def _transaction(self) -> Iterator[None]:
        """Snapshot state and restore it if the block raises."""
        snapshot = (
            dict(self._agents),
            dict(self._workshops),
            dict(self._rules),
            copy.copy(self._facilitator_links),
            dict(self._one_off_events),
        )
        try:
            yield
        except BaseException:
            (
                self._agents,
                self._workshops,
                self._rules,
                self._facilitator_links,
                self._one_off_events,
            ) = snapshot
            raise
        finally:
            self._index = None

    @override
    def _put_agent(self, agent: Agent) -> None:
        self._agents[agent.id] = agent

    @override
    def _put_workshop(self, workshop: Workshop) -> None:
        self._workshops[workshop.id] = workshop

    @override
    def _insert_rule(self, rule: RecurrenceRule) -> None:
        self._rules[rule.id] = replace(rule, facilitator_ids=())

    @override
    def _replace_rule(self, rule: RecurrenceRule) -> None:
        if rule.id not in self._rules:
            raise RuleNotFound(f"Rule {rule.id!r} not found")
        self._rules[rule.id] = replace(rule, facilitator_ids=())

    @override
    def _delete_rule(self, rule_id: str) -> None:
        if self._rules.pop(rule_id, None) is None:
            raise RuleNotFound(f"Rule {rule_id!r} not found")

    @override
    def _link_facilitator(self, rule_id: str, agent_id: str) -> None:
        if agent_id not in self._agents:
            raise ValueError(f"Facilitator {agent_id!r} does not exist")
        if (rule_id, agent_id) not in self._facilitator_links:
            self._facilitator_links.append((rule_id, agent_id))

    @override
    def _unlink_facilitators(self, rule_id: str) -> None:
        self._facilitator_links = [
            link for link in self._facilitator_links if link[0] != rule_id
        ]

    @override
    def _insert_one_off(self, event: OneOffEvent) -> None:
        self._one_off_events[event.id] = event

    @override
    def _replace_one_off(self, event: OneOffEvent) -> None:
        if event.id not in self._one_off_events:
            raise OneOffEventNotFound(f"Event {event.id!r} not found")
        self._one_off_events[event.id] = event

    @override
    def _delete_one_off(self, event_id: str) -> None:
        if self._one_off_events.pop(event_id, None) is None:
            raise OneOffEventNotFound(f"Event {event_id!r} not found")
