"""Agents, workshops and the event shapes handed to callers.

Both persisted one-off events and virtual occurrences derive from Event, so the
calendar, detail and export layers can consume them uniformly.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any

from typing_extensions import override


class AgentRole(str, Enum):
    PROJECT_OWNER = "PROJECT_OWNER"
    FACILITATOR = "FACILITATOR"
    ADMIN = "ADMIN"


@dataclass(frozen=True, kw_only=True)
class Agent:
    id: str
    last_name: str
    first_name: str
    email: str | None = None
    role: AgentRole = AgentRole.FACILITATOR
    color: str | None = None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


@dataclass(frozen=True, kw_only=True)
class Workshop:
    id: str
    title: str
    duration_minutes: int | None = None
    color: str | None = None


@dataclass(frozen=True, kw_only=True)
class Event:
    """A scheduled slot, either persisted (one-off) or derived from a rule.

    Attributes:
        id: Event id; for occurrences, the composite ``<ruleId>-<isoInstant>``
        title: Display text
        start: Timezone-aware start instant
        end: Timezone-aware end instant
        workshop_ids: Workshop references, first one is the primary workshop
        project_owner_id: The single agent responsible for the event
        facilitator_ids: Agents co-running the event
        workshops, project_owner, facilitators: Hydrated references, filled in
            by the calendar when listing (empty until then)
    """

    id: str
    title: str
    start: datetime
    end: datetime
    workshop_ids: tuple[str, ...]
    project_owner_id: str
    facilitator_ids: tuple[str, ...] = ()
    workshops: tuple[Workshop, ...] = field(default=(), compare=False)
    project_owner: Agent | None = field(default=None, compare=False)
    facilitators: tuple[Agent, ...] = field(default=(), compare=False)

    def __post_init__(self) -> None:
        for edge in ("start", "end"):
            value = getattr(self, edge)
            if value.tzinfo is None:
                raise TypeError(
                    f"Event {edge} must be a timezone-aware datetime.\n"
                    f"Got naive datetime: {value!r}\n"
                    f"Hint: add tzinfo=timezone.utc"
                )
        if self.start > self.end:
            raise ValueError(
                f"Event start ({self.start.isoformat()}) must be <= "
                f"end ({self.end.isoformat()})"
            )
        if not self.workshop_ids:
            raise ValueError(f"Event {self.id!r} must reference at least one workshop")

    @property
    def is_recurring(self) -> bool:
        return False

    @property
    def primary_workshop_id(self) -> str:
        return self.workshop_ids[0]

    @property
    def day(self) -> date:
        return self.start.date()

    def overlaps(self, start: datetime, end: datetime) -> bool:
        return self.start <= end and self.end >= start

    def as_dict(self) -> dict[str, Any]:
        """Wire shape used by the calendar UI and the export layer."""
        return {
            "id": self.id,
            "title": self.title,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "workshopIds": list(self.workshop_ids),
            "workshopId": self.primary_workshop_id,
            "projectOwnerId": self.project_owner_id,
            "facilitatorIds": list(self.facilitator_ids),
            "isRecurring": self.is_recurring,
        }

    @override
    def __str__(self) -> str:
        duration = int((self.end - self.start).total_seconds())
        return (
            f"{type(self).__name__}('{self.title}', "
            f"{self.start.isoformat()}→{self.end.isoformat()}, {duration}s)"
        )


@dataclass(frozen=True, kw_only=True)
class OneOffEvent(Event):
    """An event persisted on its own, created and deleted independently."""


@dataclass(frozen=True, kw_only=True)
class Occurrence(Event):
    """A single firing of a recurrence rule. Computed on demand, never stored."""

    rule_id: str

    @property
    @override
    def is_recurring(self) -> bool:
        return True

    @override
    def as_dict(self) -> dict[str, Any]:
        return {**super().as_dict(), "ruleId": self.rule_id}
