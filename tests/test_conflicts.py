"""Tests for the conflict-detection service."""

from datetime import date, datetime, timezone

import pytest

from dayplanner.domain.errors import SchedulingConflict
from dayplanner.domain.models import Day, Event
from dayplanner.services.conflicts import (
    assert_no_conflict,
    find_conflicts,
    first_conflict,
    has_conflict,
)


def _make_event(
    start: datetime, end: datetime, name: str = "Existing", event_id: str = "existing"
) -> Event:
    return Event(id=event_id, name=name, start_time=start, end_time=end, owner_id="u1")


def _at(hour: int, minute: int = 0) -> datetime:
    return datetime(2025, 1, 1, hour, minute, tzinfo=timezone.utc)


def test_no_overlap():
    """Events that don't overlap should not be returned as conflicts."""
    existing = [_make_event(_at(8), _at(9))]
    conflicts = find_conflicts(
        new_start=_at(10),
        new_end=_at(11),
        existing_events=existing,
    )
    assert conflicts == []


def test_partial_overlap():
    """An event that partially overlaps should be returned as a conflict."""
    existing = [_make_event(_at(9), _at(10, 30))]
    conflicts = find_conflicts(
        new_start=_at(10),
        new_end=_at(11),
        existing_events=existing,
    )
    assert len(conflicts) == 1
    assert conflicts[0].start_time == _at(9)


def test_exact_boundary_no_conflict():
    """When existing.end_time == new_start, there is no conflict (boundary touch)."""
    existing = [_make_event(_at(9), _at(10))]
    conflicts = find_conflicts(
        new_start=_at(10),
        new_end=_at(11),
        existing_events=existing,
    )
    assert conflicts == []


def test_boundary_touch_on_the_other_side():
    existing = [_make_event(_at(11), _at(13))]
    assert not has_conflict(_at(9), _at(11), None, existing)


def test_containment_is_a_conflict():
    existing = [_make_event(_at(8), _at(18))]
    assert has_conflict(_at(10), _at(11), None, existing)


def test_excluded_event_is_skipped():
    """The event being updated never conflicts with itself."""
    existing = [_make_event(_at(9), _at(11), event_id="a")]
    assert find_conflicts(_at(10), _at(12), existing, exclude_event_id="a") == []
    assert len(find_conflicts(_at(10), _at(12), existing, exclude_event_id="b")) == 1


def test_collects_every_overlapping_event():
    existing = [
        _make_event(_at(8), _at(10), name="Breakfast", event_id="a"),
        _make_event(_at(10), _at(11), name="Standup", event_id="b"),
        _make_event(_at(14), _at(15), name="Lunch walk", event_id="c"),
    ]
    conflicts = find_conflicts(_at(9), _at(12), existing)
    assert [c.id for c in conflicts] == ["a", "b"]



def test_first_conflict_returns_earliest_match_or_none():
    existing = [
        _make_event(_at(8), _at(10), name="Breakfast", event_id="a"),
        _make_event(_at(10), _at(11), name="Standup", event_id="b"),
    ]
    assert first_conflict(_at(9), _at(12), None, existing).id == "a"
    assert first_conflict(_at(9), _at(12), "a", existing).id == "b"
    assert first_conflict(_at(11), _at(12), None, existing) is None

def test_assert_no_conflict_raises_with_first_match():
    day = Day(date=date(2025, 1, 1), owner_id="u1")
    existing = [
        _make_event(_at(9), _at(11), name="Workout", event_id="a"),
        _make_event(_at(11), _at(12), name="Study", event_id="b"),
    ]
    with pytest.raises(SchedulingConflict) as excinfo:
        assert_no_conflict(_at(10), _at(12), None, day, existing)

    err = excinfo.value
    assert err.conflicting_event.name == "Workout"
    assert [c.id for c in err.conflicts] == ["a", "b"]
    assert err.day is day
    assert "Workout" in str(err)
    assert "(ID: a)" in str(err)


def test_assert_no_conflict_passes_on_empty_day():
    day = Day(date=date(2025, 1, 1), owner_id="u1")
    assert_no_conflict(_at(10), _at(12), None, day, [])
