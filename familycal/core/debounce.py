"""Debounced, last-write-wins conflict checking for an editing session."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime
from typing import TYPE_CHECKING, Optional

from familycal.exceptions import ConflictCheckError

if TYPE_CHECKING:
    from familycal.calendar.conflicts import ConflictDetector
    from familycal.calendar.models import ConflictingEvent

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.5


class DebouncedConflictChecker:
    """Runs a conflict check once input has settled.

    Every submit() bumps a generation counter. A call whose generation is
    no longer current when its delay ends, or when its check returns, is
    superseded and returns None. Checks are never queued.
    """

    def __init__(self, detector: ConflictDetector, delay_seconds: float = DEFAULT_DEBOUNCE_SECONDS):
        self.detector = detector
        self.delay_seconds = delay_seconds
        self._generation = 0

    def _is_current(self, generation: int) -> bool:
        return generation == self._generation

    async def submit(
        self,
        family_id: str,
        proposed_start: datetime,
        proposed_end: datetime,
        exclude_event_id: Optional[str] = None,
    ) -> Optional[list[ConflictingEvent]]:
        """Debounce, then check the proposed interval.

        Returns:
            Conflicting events, or None if a newer submit() superseded this one

        Raises:
            ConflictCheckError: If the current (non-superseded) check failed
        """
        self._generation += 1
        generation = self._generation

        await asyncio.sleep(self.delay_seconds)
        if not self._is_current(generation):
            logger.debug("Conflict check %d superseded during debounce", generation)
            return None

        try:
            conflicts = await self.detector.check(
                family_id, proposed_start, proposed_end, exclude_event_id
            )
        except ConflictCheckError:
            if not self._is_current(generation):
                logger.debug("Discarding failure of superseded conflict check %d", generation)
                return None
            raise

        if not self._is_current(generation):
            logger.debug("Conflict check %d superseded while in flight", generation)
            return None
        return conflicts
