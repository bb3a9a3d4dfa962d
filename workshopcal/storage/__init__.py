"""Storage collaborator for agents, workshops, rules and one-off events.

This module provides the abstract base class every backend implements, along
with the result type returned by write operations. Reads return records or
None; writes never raise, they report failures through WriteResult.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from contextlib import AbstractContextManager
from dataclasses import dataclass, replace
from datetime import date, datetime
from functools import wraps
from typing import Any, TypeVar

from workshopcal.errors import AgentNotFound, OneOffEventNotFound, RuleNotFound
from workshopcal.models import Agent, OneOffEvent, Workshop
from workshopcal.rule import RecurrenceRule

logger = logging.getLogger(__name__)

Record = RecurrenceRule | OneOffEvent | Agent | Workshop

_F = TypeVar("_F", bound=Callable[..., "WriteResult"])


@dataclass(frozen=True)
class WriteResult:
    """Result of a write operation.

    Attributes:
        success: True if the operation succeeded, False otherwise
        record: The written (or deleted) record if successful, None if failed
        error: The exception that occurred if failed, None if successful
    """

    success: bool
    record: Record | None
    error: Exception | None


def _handle_write_errors(func: _F) -> _F:
    """Decorator turning exceptions raised by a write into a failed WriteResult."""

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> WriteResult:
        try:
            return func(*args, **kwargs)
        except Exception as e:
            logger.warning("%s failed: %s", func.__name__, e)
            return WriteResult(success=False, record=None, error=e)

    return wrapper  # type: ignore[return-value]


class Store(ABC):
    """Abstract base class for storage backends.

    Provides the shared write logic (existence checks, facilitator link
    bookkeeping, transactions) with backend-specific implementations handling
    the actual reads and row writes.
    """

    # Reads

    @abstractmethod
    def rules_overlapping(self, start: date, end: date) -> list[RecurrenceRule]:
        """Rules whose series overlaps [start, end] (both inclusive)."""
        pass

    @abstractmethod
    def get_rule(self, rule_id: str) -> RecurrenceRule | None:
        pass

    @abstractmethod
    def one_off_events_overlapping(
        self, start: datetime, end: datetime
    ) -> list[OneOffEvent]:
        """One-off events with ``event.start <= end and event.end >= start``."""
        pass

    @abstractmethod
    def get_one_off_event(self, event_id: str) -> OneOffEvent | None:
        pass

    @abstractmethod
    def get_agent(self, agent_id: str) -> Agent | None:
        pass

    @abstractmethod
    def get_workshop(self, workshop_id: str) -> Workshop | None:
        pass

    def get_agents(self, agent_ids: Iterable[str]) -> tuple[Agent, ...]:
        """Agents for the given ids, in order, skipping unknown ones."""
        agents = (self.get_agent(agent_id) for agent_id in agent_ids)
        return tuple(agent for agent in agents if agent is not None)

    def get_workshops(self, workshop_ids: Iterable[str]) -> tuple[Workshop, ...]:
        workshops = (self.get_workshop(workshop_id) for workshop_id in workshop_ids)
        return tuple(workshop for workshop in workshops if workshop is not None)

    # Writes

    @_handle_write_errors
    def add_agent(self, agent: Agent) -> WriteResult:
        with self._transaction():
            self._put_agent(agent)
        return WriteResult(success=True, record=agent, error=None)

    @_handle_write_errors
    def add_workshop(self, workshop: Workshop) -> WriteResult:
        with self._transaction():
            self._put_workshop(workshop)
        return WriteResult(success=True, record=workshop, error=None)

    @_handle_write_errors
    def create_rule(self, rule: RecurrenceRule) -> WriteResult:
        """Persist a rule together with its facilitator links.

        Fails with AgentNotFound if the project owner does not exist, and with
        ValueError if a rule with the same id is already stored.
        """
        self._require_agent(rule.project_owner_id)
        if self.get_rule(rule.id) is not None:
            raise ValueError(f"Rule {rule.id!r} already exists")

        with self._transaction():
            self._insert_rule(rule)
            for agent_id in rule.facilitator_ids:
                self._link_facilitator(rule.id, agent_id)

        logger.info("Created rule %s (%r)", rule.id, rule.title)
        return WriteResult(success=True, record=rule, error=None)

    @_handle_write_errors
    def update_rule(self, rule: RecurrenceRule) -> WriteResult:
        """Replace a stored rule; its facilitator links are replaced too.

        Dates already excluded from the stored rule stay excluded, so an edit
        built from a form payload does not bring detached occurrences back.
        """
        stored = self.get_rule(rule.id)
        if stored is None:
            raise RuleNotFound(f"Rule {rule.id!r} not found")
        self._require_agent(rule.project_owner_id)
        rule = replace(rule, excluded_dates=stored.excluded_dates | rule.excluded_dates)

        with self._transaction():
            self._replace_rule(rule)
            self._unlink_facilitators(rule.id)
            for agent_id in rule.facilitator_ids:
                self._link_facilitator(rule.id, agent_id)

        logger.info("Updated rule %s", rule.id)
        return WriteResult(success=True, record=rule, error=None)

    @_handle_write_errors
    def delete_rule(self, rule_id: str) -> WriteResult:
        """Delete a rule and, in the same transaction, its facilitator links."""
        rule = self.get_rule(rule_id)
        if rule is None:
            raise RuleNotFound(f"Rule {rule_id!r} not found")

        with self._transaction():
            self._unlink_facilitators(rule_id)
            self._delete_rule(rule_id)

        logger.info("Deleted rule %s", rule_id)
        return WriteResult(success=True, record=rule, error=None)

    @_handle_write_errors
    def exclude_date(self, rule_id: str, day: date) -> WriteResult:
        """Stop a rule from firing on ``day``."""
        rule = self.get_rule(rule_id)
        if rule is None:
            raise RuleNotFound(f"Rule {rule_id!r} not found")

        updated = replace(rule, excluded_dates=rule.excluded_dates | {day})
        with self._transaction():
            self._replace_rule(updated)

        logger.debug("Excluded %s from rule %s", day, rule_id)
        return WriteResult(success=True, record=updated, error=None)

    @_handle_write_errors
    def create_one_off_event(self, event: OneOffEvent) -> WriteResult:
        self._require_agent(event.project_owner_id)
        if self.get_one_off_event(event.id) is not None:
            raise ValueError(f"Event {event.id!r} already exists")

        with self._transaction():
            self._insert_one_off(event)

        logger.info("Created one-off event %s (%r)", event.id, event.title)
        return WriteResult(success=True, record=event, error=None)

    @_handle_write_errors
    def update_one_off_event(self, event: OneOffEvent) -> WriteResult:
        if self.get_one_off_event(event.id) is None:
            raise OneOffEventNotFound(f"Event {event.id!r} not found")
        self._require_agent(event.project_owner_id)

        with self._transaction():
            self._replace_one_off(event)
        return WriteResult(success=True, record=event, error=None)

    @_handle_write_errors
    def delete_one_off_event(self, event_id: str) -> WriteResult:
        event = self.get_one_off_event(event_id)
        if event is None:
            raise OneOffEventNotFound(f"Event {event_id!r} not found")

        with self._transaction():
            self._delete_one_off(event_id)

        logger.info("Deleted one-off event %s", event_id)
        return WriteResult(success=True, record=event, error=None)

    def _require_agent(self, agent_id: str) -> None:
        if self.get_agent(agent_id) is None:
            raise AgentNotFound(f"Project owner {agent_id!r} not found")

    # Backend-specific row operations

    @abstractmethod
    def _transaction(self) -> AbstractContextManager[None]:
        """Context in which row writes apply atomically, all or none."""
        pass

    @abstractmethod
    def _put_agent(self, agent: Agent) -> None:
        pass

    @abstractmethod
    def _put_workshop(self, workshop: Workshop) -> None:
        pass

    @abstractmethod
    def _insert_rule(self, rule: RecurrenceRule) -> None:
        pass

    @abstractmethod
    def _replace_rule(self, rule: RecurrenceRule) -> None:
        pass

    @abstractmethod
    def _delete_rule(self, rule_id: str) -> None:
        pass

    @abstractmethod
    def _link_facilitator(self, rule_id: str, agent_id: str) -> None:
        pass

    @abstractmethod
    def _unlink_facilitators(self, rule_id: str) -> None:
        pass

    @abstractmethod
    def _insert_one_off(self, event: OneOffEvent) -> None:
        pass

    @abstractmethod
    def _replace_one_off(self, event: OneOffEvent) -> None:
        pass

    @abstractmethod
    def _delete_one_off(self, event_id: str) -> None:
        pass


__all__ = ["Store", "WriteResult"]
