"""Unit tests for familycal.calendar.conflicts."""

from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import pytest

from familycal.calendar.conflicts import (
    ConflictDetector,
    find_conflicts,
    intervals_overlap,
    suggest_resolutions,
)
from familycal.calendar.models import FamilyEvent
from familycal.core.event_store import InMemoryEventStore
from familycal.exceptions import ConflictCheckError, EventStoreError

pytestmark = pytest.mark.unit


def at(hour: int, minute: int = 0) -> datetime:
    return datetime(2024, 3, 5, hour, minute, tzinfo=timezone.utc)


class FailingStore:
    """Store double that always fails."""

    def __init__(self) -> None:
        self.calls = 0

    async def fetch_events(
        self,
        family_id: str,
        *,
        range_start: Optional[datetime] = None,
        range_end: Optional[datetime] = None,
    ) -> list[FamilyEvent]:
        self.calls += 1
        raise EventStoreError("connection refused")


class TestFindConflicts:
    def test_boundary_touch_then_no_conflict(self, make_event: Callable[..., FamilyEvent]) -> None:
        existing = make_event(start=at(13), end=at(14))
        assert find_conflicts(at(14), at(15), [existing]) == []

    def test_partial_overlap_then_conflict(self, make_event: Callable[..., FamilyEvent]) -> None:
        existing = make_event(id="soccer", title="Soccer", start=at(15), end=at(16))

        conflicts = find_conflicts(at(14), at(15, 30), [existing])

        assert [c.id for c in conflicts] == ["soccer"]
        assert conflicts[0].title == "Soccer"
        assert conflicts[0].start == at(15)

    def test_exclude_event_id_then_self_not_reported(self, make_event: Callable[..., FamilyEvent]) -> None:
        existing = make_event(id="evt-1", start=at(14), end=at(15))
        assert find_conflicts(at(14), at(15), [existing], exclude_event_id="evt-1") == []

    def test_degenerate_interval_then_no_conflicts(self, make_event: Callable[..., FamilyEvent]) -> None:
        existing = make_event(start=at(13), end=at(16))
        assert find_conflicts(at(14), at(14), [existing]) == []
        assert find_conflicts(at(15), at(14), [existing]) == []

    def test_containment_then_conflict(self, make_event: Callable[..., FamilyEvent]) -> None:
        existing = make_event(start=at(10), end=at(18))
        assert len(find_conflicts(at(12), at(13), [existing])) == 1

    def test_results_keep_input_order(self, make_event: Callable[..., FamilyEvent]) -> None:
        rows = [
            make_event(id="b", start=at(14, 30), end=at(15, 30)),
            make_event(id="a", start=at(13, 30), end=at(14, 30)),
        ]
        assert [c.id for c in find_conflicts(at(14), at(15), rows)] == ["b", "a"]

    def test_naive_proposed_interval_read_as_utc(self, make_event: Callable[..., FamilyEvent]) -> None:
        existing = make_event(start=at(14), end=at(15))
        conflicts = find_conflicts(datetime(2024, 3, 5, 14, 30), datetime(2024, 3, 5, 16, 0), [existing])
        assert len(conflicts) == 1


@pytest.mark.parametrize(
    ("a", "b", "expected"),
    [
        ((13, 14), (14, 15), False),
        ((14, 15), (13, 14), False),
        ((14, 16), (15, 17), True),
        ((15, 17), (14, 16), True),
        ((9, 10), (11, 12), False),
    ],
)
def test_intervals_overlap_is_symmetric(a: tuple[int, int], b: tuple[int, int], expected: bool) -> None:
    assert intervals_overlap(at(a[0]), at(a[1]), at(b[0]), at(b[1])) is expected
    assert intervals_overlap(at(b[0]), at(b[1]), at(a[0]), at(a[1])) is expected


class TestConflictDetector:
    async def test_check_when_overlap_then_reports_family_events_only(
        self, make_event: Callable[..., FamilyEvent]
    ) -> None:
        store = InMemoryEventStore(
            [
                make_event(id="mine", start=at(15), end=at(16)),
                make_event(id="other-family", family_id="fam-2", start=at(15), end=at(16)),
            ]
        )

        conflicts = await ConflictDetector(store).check("fam-1", at(14), at(15, 30))

        assert [c.id for c in conflicts] == ["mine"]

    async def test_check_when_boundary_rows_prefetched_then_filtered_exactly(
        self, make_event: Callable[..., FamilyEvent]
    ) -> None:
        # Both rows touch the proposed interval and pass the store's range filter
        store = InMemoryEventStore(
            [
                make_event(id="before", start=at(13), end=at(14)),
                make_event(id="after", start=at(15), end=at(16)),
            ]
        )

        assert await ConflictDetector(store).check("fam-1", at(14), at(15)) == []

    async def test_check_when_store_fails_then_raises_not_empty(self) -> None:
        detector = ConflictDetector(FailingStore())

        with pytest.raises(ConflictCheckError) as exc_info:
            await detector.check("fam-1", at(14), at(15))

        assert isinstance(exc_info.value.__cause__, EventStoreError)

    async def test_check_when_degenerate_then_store_not_called(self) -> None:
        store = FailingStore()

        assert await ConflictDetector(store).check("fam-1", at(15), at(14)) == []
        assert store.calls == 0

    async def test_check_recurring_row_uses_base_interval_only(
        self, make_event: Callable[..., FamilyEvent]
    ) -> None:
        store = InMemoryEventStore([make_event(start=at(14), end=at(15), recurrence_rule="FREQ=DAILY")])
        next_day_start = at(14) + timedelta(days=1)

        conflicts = await ConflictDetector(store).check("fam-1", next_day_start, next_day_start + timedelta(hours=1))

        assert conflicts == []


class TestSuggestResolutions:
    def test_suggest_when_long_overlap_then_reschedule_and_shorten(
        self, make_event: Callable[..., FamilyEvent]
    ) -> None:
        first = make_event(id="first", title="Dentist", start=at(14), end=at(15))
        second = make_event(id="second", title="Soccer", start=at(14, 30), end=at(16))

        resolutions = suggest_resolutions(first, second)

        assert [r.type for r in resolutions] == ["reschedule", "shorten"]
        assert resolutions[0].event_to_modify == "second"
        assert resolutions[0].new_start == at(15)
        assert resolutions[1].event_to_modify == "first"
        assert resolutions[1].new_duration_minutes == 30

    def test_suggest_when_short_gap_then_reschedule_only(self, make_event: Callable[..., FamilyEvent]) -> None:
        first = make_event(id="first", start=at(14), end=at(15))
        second = make_event(id="second", start=at(14, 15), end=at(16))

        resolutions = suggest_resolutions(first, second)

        assert [r.type for r in resolutions] == ["reschedule"]
