"""Tests for the activity ledger."""

import pytest

from okra.errors import NotFound, StorageUnavailable
from okra.ledger import ActivityLedger

from conftest import T0, table_names


def test_creates_instance(ledger):
    assert table_names(ledger.conn) >= {
        "actions",
        "notes",
        "actionHierarchy",
        "activities",
        "notations",
    }


def test_creates_action(ledger):
    action = ledger.create_action("unit testing")
    assert action > 0
    assert ledger.create_action("unit testing") == action


def test_retrieves_action_name(ledger):
    action = ledger.create_action("unit testing")
    assert ledger.get_action_name(action) == "unit testing"


def test_missing_action_name(ledger):
    with pytest.raises(NotFound):
        ledger.get_action_name(7)


def test_logs_activity(ledger):
    action = ledger.create_action("unit testing")
    activity = ledger.log_activity(action)
    assert activity > 0

    logged = ledger.get_activity(activity)
    assert logged.time == T0
    assert logged.action_id == action


def test_rapid_logging_gets_distinct_ids(ledger):
    action = ledger.create_action("unit testing")
    first = ledger.log_activity(action)
    second = ledger.log_activity(action)
    assert first != second
    assert ledger.get_activity(first).time == ledger.get_activity(second).time


def test_log_activity_unknown_action(ledger):
    with pytest.raises(NotFound):
        ledger.log_activity(99)
    assert ledger.activities.count() == 0


def test_log_activity_at_time(ledger):
    action = ledger.create_action("run")
    activity = ledger.log_activity_at_time(action, 1234)
    assert ledger.get_activity(activity).time == 1234


def test_logs_activities_with_shared_timestamp(ledger, clock):
    actions = [ledger.create_action("unit testing"), ledger.create_action("linting")]
    clock.advance(500)
    activities = ledger.log_activities(actions)

    assert len(activities) == 2
    logged = [ledger.get_activity(a) for a in activities]
    assert [a.action_id for a in logged] == actions
    assert {a.time for a in logged} == {T0 + 500}


def test_log_activities_is_all_or_nothing(ledger):
    action = ledger.create_action("unit testing")
    with pytest.raises(NotFound):
        ledger.log_activities([action, 404])
    assert ledger.activities.count() == 0


def test_annotates_activities(ledger):
    action = ledger.create_action("unit testing")
    activity = ledger.log_activity(action)
    note = ledger.annotate_activity(activity, "this one passes")
    assert note > 0


def test_annotate_unknown_activity(ledger):
    with pytest.raises(NotFound):
        ledger.annotate_activity(1, "orphan")
    assert ledger.notes.count() == 0


def test_retrieves_notations(ledger):
    action = ledger.create_action("unit testing")
    activity = ledger.log_activity(action)
    note = ledger.annotate_activity(activity, "this one passes")

    notations = ledger.get_notations(activity, 0, 2)
    assert notations == [note]
    assert ledger.get_note(note) == "this one passes"

    notes = ledger.get_note_bulk([note])
    assert [(n.id, n.text) for n in notes] == [(1, "this one passes")]


def test_run_felt_great_scenario(ledger):
    run = ledger.create_action("run")
    activity = ledger.log_activity(run)
    ledger.annotate_activity(activity, "felt great")

    notations = ledger.get_notations(activity, 0, 10)
    assert len(notations) == 1
    assert ledger.get_note(notations[0]) == "felt great"


def test_notes_are_interned_across_activities(ledger):
    run = ledger.create_action("run")
    first = ledger.log_activity(run)
    second = ledger.log_activity(run)
    a = ledger.annotate_activity(first, "felt great")
    b = ledger.annotate_activity(second, "felt great")
    assert a == b
    assert ledger.get_notations(second, 0, 10) == [b]


def test_notations_paginate(ledger):
    run = ledger.create_action("run")
    activity = ledger.log_activity(run)
    notes = [ledger.annotate_activity(activity, f"note {i}") for i in range(5)]

    assert ledger.get_notations(activity, 0, 3) == notes[:3]
    assert ledger.get_notations(activity, notes[2], 3) == notes[3:]


def test_action_hierarchy(ledger):
    exercise = ledger.create_action("exercise")
    run = ledger.create_action("run")
    swim = ledger.create_action("swim")
    ledger.make_action_parent_of(exercise, run)
    ledger.make_action_parent_of(exercise, swim)

    assert ledger.get_action_children(exercise) == [run, swim]
    assert ledger.get_action_children(exercise, run) == [swim]
    assert ledger.get_action_parents(swim) == [exercise]


def test_action_hierarchy_requires_known_actions(ledger):
    run = ledger.create_action("run")
    with pytest.raises(NotFound):
        ledger.make_action_parent_of(run, 42)
    with pytest.raises(NotFound):
        ledger.make_action_parent_of(42, run)


def test_search_action_names(ledger):
    for name in ["morning run", "evening run", "swim"]:
        ledger.create_action(name)
    found = ledger.search_action_names("run", 0, 10)
    assert [a.name for a in found] == ["morning run", "evening run"]
    assert ledger.search_action_names("run", found[0].id, 10)[0].name == "evening run"


def test_search_activity_by_time(ledger):
    run = ledger.create_action("run")
    swim = ledger.create_action("swim")
    ledger.log_activity_at_time(run, 100)
    ledger.log_activity_at_time(swim, 200)
    ledger.log_activity_at_time(run, 300)

    found = ledger.search_activity_by_time(100, 300, 10)
    assert [(a.time, a.action_id) for a in found] == [(100, run), (200, swim)]
    assert ledger.search_activity_by_time(300, 100, 10) == []


def test_search_activity_by_time_pages(ledger):
    run = ledger.create_action("run")
    for _ in range(5):
        ledger.log_activity_at_time(run, 100)

    first = ledger.search_activity_by_time(0, 1000, 3)
    rest = ledger.search_activity_by_time(0, 1000, 3, after=first[-1])
    assert len(first) == 3
    assert len(rest) == 2
    assert {a.id for a in first}.isdisjoint({a.id for a in rest})


def test_ledger_persists_to_file(temp_dir, clock):
    path = temp_dir / "bob.sqlite"
    with ActivityLedger(path, clock=clock) as ledger:
        run = ledger.create_action("run")
        activity = ledger.log_activity(run)
        ledger.annotate_activity(activity, "felt great")

    with ActivityLedger(path, clock=clock) as ledger:
        assert ledger.get_action_name(run) == "run"
        assert ledger.get_note(ledger.get_notations(activity)[0]) == "felt great"


def test_closed_ledger_reports_storage_unavailable(clock):
    ledger = ActivityLedger(":memory:", clock=clock)
    ledger.close()
    with pytest.raises(StorageUnavailable):
        ledger.create_action("run")
