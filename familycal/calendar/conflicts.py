"""Time-window conflict detection for family events.

Two intervals conflict iff ``a_start < b_end and a_end > b_start``, so
back-to-back events (one ending exactly when the other starts) never
conflict, and an event never conflicts with itself.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from familycal.core.timezone_utils import ensure_aware
from familycal.exceptions import ConflictCheckError, EventStoreError

from .models import ConflictingEvent, ConflictResolution, FamilyEvent

if TYPE_CHECKING:
    from familycal.core.event_store import EventStore

logger = logging.getLogger(__name__)

# "shorten" is only offered when the shortened event keeps more than this
MIN_SHORTENED_DURATION_MINUTES = 15


def intervals_overlap(
    a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime
) -> bool:
    """Strict overlap test for half-open intervals [start, end)."""
    return a_start < b_end and a_end > b_start


def find_conflicts(
    proposed_start: datetime,
    proposed_end: datetime,
    candidates: Iterable[FamilyEvent],
    exclude_event_id: Optional[str] = None,
) -> list[ConflictingEvent]:
    """Return candidates overlapping the proposed interval, in input order.

    A degenerate interval (start >= end) yields no conflicts; blocking the
    save is the caller's job.
    """
    proposed_start = ensure_aware(proposed_start)
    proposed_end = ensure_aware(proposed_end)
    if proposed_start >= proposed_end:
        return []

    return [
        ConflictingEvent.from_event(candidate)
        for candidate in candidates
        if candidate.id != exclude_event_id
        and intervals_overlap(candidate.start, candidate.end, proposed_start, proposed_end)
    ]


class ConflictDetector:
    """Checks a proposed interval against a family's stored events."""

    def __init__(self, store: EventStore):
        self.store = store

    async def check(
        self,
        family_id: str,
        proposed_start: datetime,
        proposed_end: datetime,
        exclude_event_id: Optional[str] = None,
    ) -> list[ConflictingEvent]:
        """List existing events that overlap the proposed interval.

        The store is asked for rows with ``end >= proposed_start`` and
        ``start <= proposed_end``. That range is looser than the overlap
        predicate, so it only narrows the candidate set; the exact predicate
        decides what is reported.

        Raises:
            ConflictCheckError: If the events could not be fetched
        """
        proposed_start = ensure_aware(proposed_start)
        proposed_end = ensure_aware(proposed_end)
        if proposed_start >= proposed_end:
            return []

        try:
            candidates = await self.store.fetch_events(
                family_id, range_start=proposed_start, range_end=proposed_end
            )
        except EventStoreError as e:
            logger.warning("Conflict check for family %s could not fetch events: %s", family_id, e)
            raise ConflictCheckError(f"Could not verify conflicts for family {family_id}: {e}") from e

        conflicts = find_conflicts(proposed_start, proposed_end, candidates, exclude_event_id)
        logger.debug(
            "Conflict check family=%s %s..%s: %d candidates, %d conflicts",
            family_id,
            proposed_start.isoformat(),
            proposed_end.isoformat(),
            len(candidates),
            len(conflicts),
        )
        return conflicts


def suggest_resolutions(
    first: FamilyEvent | ConflictingEvent, second: FamilyEvent | ConflictingEvent
) -> list[ConflictResolution]:
    """Suggest ways to untangle two conflicting events.

    Always offers moving ``second`` to start when ``first`` ends. Offers
    shortening ``first`` to end when ``second`` starts only if that leaves
    more than MIN_SHORTENED_DURATION_MINUTES.
    """
    resolutions = [
        ConflictResolution(
            type="reschedule",
            description=f'Move "{second.title}" to start after "{first.title}" ends',
            event_to_modify=second.id,
            new_start=first.end,
        )
    ]

    shortened_minutes = int((second.start - first.start).total_seconds() // 60)
    if shortened_minutes > MIN_SHORTENED_DURATION_MINUTES:
        resolutions.append(
            ConflictResolution(
                type="shorten",
                description=f'Shorten "{first.title}" to end before "{second.title}" starts',
                event_to_modify=first.id,
                new_duration_minutes=shortened_minutes,
            )
        )
    return resolutions
