"""Tests for MemoryStore."""

from dataclasses import replace
from datetime import date, datetime, time, timezone

from workshopcal import (
    Agent,
    AgentNotFound,
    Frequency,
    OneOffEvent,
    OneOffEventNotFound,
    RecurrenceRule,
    RuleNotFound,
    Workshop,
)
from workshopcal.storage.memory import MemoryStore


def _store() -> MemoryStore:
    return MemoryStore(
        agents=[
            Agent(id="owner", last_name="Martin", first_name="Sophie"),
            Agent(id="fac-1", last_name="Dupont", first_name="Jean"),
            Agent(id="fac-2", last_name="Dubois", first_name="Pierre"),
        ],
        workshops=[Workshop(id="ws-1", title="Initiation", duration_minutes=120)],
    )


def _rule(**overrides) -> RecurrenceRule:
    fields = dict(
        id="rule-1",
        title="Initiation",
        start_time=time(10),
        end_time=time(12),
        frequency=Frequency.WEEKLY,
        weekdays=(1,),
        series_start=date(2025, 7, 1),
        series_end=date(2025, 7, 31),
        workshop_ids=("ws-1",),
        project_owner_id="owner",
        facilitator_ids=("fac-1", "fac-2"),
    )
    fields.update(overrides)
    return RecurrenceRule(**fields)


def _event(event_id: str, day: int, start_hour: int, end_hour: int) -> OneOffEvent:
    return OneOffEvent(
        id=event_id,
        title=f"Event {event_id}",
        start=datetime(2025, 7, day, start_hour, tzinfo=timezone.utc),
        end=datetime(2025, 7, day, end_hour, tzinfo=timezone.utc),
        workshop_ids=("ws-1",),
        project_owner_id="owner",
    )


def test_create_and_get_rule():
    """Test a created rule reads back with its facilitators."""
    store = _store()

    result = store.create_rule(_rule())

    assert result.success is True
    assert result.error is None
    assert store.get_rule("rule-1") == _rule()
    assert store.facilitator_links == [("rule-1", "fac-1"), ("rule-1", "fac-2")]


def test_create_rule_requires_existing_owner():
    """Test creating a rule with an unknown owner fails without writing."""
    store = _store()

    result = store.create_rule(_rule(project_owner_id="ghost"))

    assert result.success is False
    assert isinstance(result.error, AgentNotFound)
    assert store.get_rule("rule-1") is None


def test_create_rule_is_atomic():
    """Test a failing facilitator link rolls back the whole rule."""
    store = _store()

    result = store.create_rule(_rule(facilitator_ids=("fac-1", "ghost")))

    assert result.success is False
    assert store.get_rule("rule-1") is None
    assert store.facilitator_links == []


def test_create_rule_rejects_duplicate_id():
    """Test that rule ids are unique."""
    store = _store()
    store.create_rule(_rule())

    result = store.create_rule(_rule(title="Other"))

    assert result.success is False
    assert "already exists" in str(result.error)


def test_update_rule_replaces_links():
    """Test updating a rule replaces its facilitator links."""
    store = _store()
    store.create_rule(_rule())

    result = store.update_rule(_rule(title="Renamed", facilitator_ids=("fac-2",)))

    assert result.success is True
    assert store.get_rule("rule-1").title == "Renamed"
    assert store.facilitator_links == [("rule-1", "fac-2")]


def test_update_rule_keeps_excluded_dates():
    """Test updating a rule merges in the dates already excluded."""
    store = _store()
    store.create_rule(_rule())
    store.exclude_date("rule-1", date(2025, 7, 14))

    result = store.update_rule(
        _rule(title="Renamed", excluded_dates=frozenset({date(2025, 7, 21)}))
    )

    assert result.success is True
    assert store.get_rule("rule-1").excluded_dates == frozenset(
        {date(2025, 7, 14), date(2025, 7, 21)}
    )


def test_update_missing_rule():
    """Test updating an unknown rule reports RuleNotFound."""
    result = _store().update_rule(_rule())

    assert result.success is False
    assert isinstance(result.error, RuleNotFound)


def test_delete_rule_cascades_links():
    """Test deleting a rule removes its facilitator links too."""
    store = _store()
    store.create_rule(_rule())
    store.create_rule(_rule(id="rule-2", facilitator_ids=("fac-1",)))

    result = store.delete_rule("rule-1")

    assert result.success is True
    assert result.record.id == "rule-1"
    assert store.get_rule("rule-1") is None
    assert store.facilitator_links == [("rule-2", "fac-1")]


def test_delete_missing_rule():
    """Test deleting an unknown rule reports RuleNotFound."""
    result = _store().delete_rule("nope")

    assert result.success is False
    assert isinstance(result.error, RuleNotFound)


def test_exclude_date():
    """Test excluding a date is stored on the rule."""
    store = _store()
    store.create_rule(_rule())

    result = store.exclude_date("rule-1", date(2025, 7, 14))

    assert result.success is True
    rule = store.get_rule("rule-1")
    assert rule.excluded_dates == frozenset({date(2025, 7, 14)})
    # Links are untouched
    assert rule.facilitator_ids == ("fac-1", "fac-2")


def test_rules_overlapping():
    """Test the rule overlap query is inclusive on both ends."""
    store = _store()
    store.create_rule(_rule())
    store.create_rule(
        _rule(id="rule-2", series_start=date(2025, 9, 1), series_end=date(2025, 9, 30))
    )

    def ids(rules):
        return sorted(r.id for r in rules)

    assert ids(store.rules_overlapping(date(2025, 7, 31), date(2025, 8, 31))) == ["rule-1"]
    assert ids(store.rules_overlapping(date(2025, 8, 1), date(2025, 8, 31))) == []
    assert ids(store.rules_overlapping(date(2025, 7, 1), date(2025, 9, 1))) == [
        "rule-1",
        "rule-2",
    ]


def test_one_off_overlap_query():
    """Test the one-off overlap query (start <= end and end >= start)."""
    store = _store()
    for event in [
        _event("a", 1, 9, 10),
        _event("b", 2, 9, 17),
        _event("c", 3, 9, 10),
        _event("d", 10, 9, 10),
    ]:
        assert store.create_one_off_event(event).success

    window_start = datetime(2025, 7, 2, 12, tzinfo=timezone.utc)
    window_end = datetime(2025, 7, 3, 9, tzinfo=timezone.utc)
    found = store.one_off_events_overlapping(window_start, window_end)

    # b spans the window start, c starts exactly at the window end
    assert sorted(e.id for e in found) == ["b", "c"]


def test_one_off_overlap_after_writes():
    """Test the overlap index sees later writes and deletes."""
    store = _store()
    store.create_one_off_event(_event("a", 1, 9, 10))
    start = datetime(2025, 7, 1, tzinfo=timezone.utc)
    end = datetime(2025, 7, 31, tzinfo=timezone.utc)
    assert len(store.one_off_events_overlapping(start, end)) == 1

    store.create_one_off_event(_event("b", 5, 9, 10))
    assert len(store.one_off_events_overlapping(start, end)) == 2

    store.delete_one_off_event("a")
    assert [e.id for e in store.one_off_events_overlapping(start, end)] == ["b"]


def test_one_off_requires_existing_owner():
    """Test one-off events also check their project owner."""
    store = _store()

    result = store.create_one_off_event(replace(_event("a", 1, 9, 10), project_owner_id="x"))

    assert result.success is False
    assert isinstance(result.error, AgentNotFound)


def test_update_and_delete_one_off():
    """Test one-off events can be updated and deleted independently."""
    store = _store()
    store.create_one_off_event(_event("a", 1, 9, 10))

    updated = store.update_one_off_event(replace(_event("a", 1, 9, 10), title="Moved"))
    assert updated.success
    assert store.get_one_off_event("a").title == "Moved"

    assert store.delete_one_off_event("a").success
    assert store.get_one_off_event("a") is None

    missing = store.delete_one_off_event("a")
    assert missing.success is False
    assert isinstance(missing.error, OneOffEventNotFound)


def test_get_agents_skips_unknown():
    """Test bulk lookups keep order and skip unknown ids."""
    store = _store()

    agents = store.get_agents(["fac-2", "ghost", "owner"])

    assert [a.id for a in agents] == ["fac-2", "owner"]
    assert store.get_workshops(["ws-1"])[0].title == "Initiation"
