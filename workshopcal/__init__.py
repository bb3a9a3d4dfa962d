from .calendar import Calendar, sorted_by_start
from .config import Settings, configure_logging, get_settings
from .errors import (
    AgentNotFound,
    InvalidRuleWindow,
    InvalidTimeWindow,
    InvalidWeekday,
    NotFound,
    OccurrenceNotFound,
    OneOffEventNotFound,
    RuleNotFound,
)
from .identity import OccurrenceKey, is_occurrence_id, occurrence_id, parse_occurrence_id
from .models import Agent, AgentRole, Event, Occurrence, OneOffEvent, Workshop
from .recurrence import OccurrencePattern, expand, materialize
from .rule import Frequency, RecurrenceRule, rule_from_payload
from .storage import Store, WriteResult
from .storage.memory import MemoryStore

__all__ = [
    "Calendar",
    "sorted_by_start",
    "Settings",
    "get_settings",
    "configure_logging",
    "Agent",
    "AgentRole",
    "Workshop",
    "Event",
    "OneOffEvent",
    "Occurrence",
    "Frequency",
    "RecurrenceRule",
    "rule_from_payload",
    "OccurrencePattern",
    "expand",
    "materialize",
    "OccurrenceKey",
    "occurrence_id",
    "parse_occurrence_id",
    "is_occurrence_id",
    "Store",
    "WriteResult",
    "MemoryStore",
    "NotFound",
    "RuleNotFound",
    "OneOffEventNotFound",
    "OccurrenceNotFound",
    "AgentNotFound",
    "InvalidWeekday",
    "InvalidRuleWindow",
    "InvalidTimeWindow",
]
