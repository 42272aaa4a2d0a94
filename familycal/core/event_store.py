"""Family-scoped event stores.

The conflict detector and the calendar view only need one capability:
fetch a family's events, optionally limited to rows that could intersect a
time range. Retries live here, not in the pure computations.
"""

from __future__ import annotations

import asyncio
import json
import logging
import random
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Protocol

import httpx
from pydantic import ValidationError

from familycal.calendar.models import FamilyEvent
from familycal.exceptions import EventStoreError

from .config_manager import get_config_value
from .http_client import get_request_headers, get_shared_client

logger = logging.getLogger(__name__)

# Backoff calculation constants
MAX_BACKOFF_SECONDS = 10.0
JITTER_MIN_FACTOR = 0.1
JITTER_MAX_FACTOR = 0.3

EVENT_COLUMNS = (
    "id,family_id,created_by,title,description,location,notes,start_time,end_time,"
    "color,recurrence_rule,reminder_settings,checklist"
)


class EventStore(Protocol):
    """Read access to a family's events."""

    async def fetch_events(
        self,
        family_id: str,
        *,
        range_start: Optional[datetime] = None,
        range_end: Optional[datetime] = None,
    ) -> list[FamilyEvent]:
        """Return the family's events.

        When both bounds are given, only rows with ``end >= range_start`` and
        ``start <= range_end`` are returned.

        Raises:
            EventStoreError: If the events could not be fetched
        """
        ...


def _within_range(
    event: FamilyEvent, range_start: Optional[datetime], range_end: Optional[datetime]
) -> bool:
    if range_start is not None and event.end < range_start:
        return False
    if range_end is not None and event.start > range_end:
        return False
    return True


class InMemoryEventStore:
    """List-backed store for local development and tests."""

    def __init__(self, events: Optional[list[FamilyEvent]] = None):
        self._events: list[FamilyEvent] = list(events or [])

    @classmethod
    def from_json_file(cls, path: Path) -> InMemoryEventStore:
        """Load events from a JSON file holding a list of event rows.

        Raises:
            EventStoreError: If the file cannot be read or a row is invalid
        """
        try:
            rows = json.loads(path.read_text(encoding="utf-8"))
            events = [FamilyEvent.model_validate(row) for row in rows]
        except (OSError, ValueError, TypeError) as e:
            raise EventStoreError(f"Could not load events from {path}: {e}") from e
        logger.info("Loaded %d events from %s", len(events), path)
        return cls(events)

    def add(self, event: FamilyEvent) -> None:
        self._events.append(event)

    def delete(self, event_id: str) -> bool:
        """Delete an event by id. Returns True if something was removed."""
        before = len(self._events)
        self._events = [e for e in self._events if e.id != event_id]
        return len(self._events) != before

    async def fetch_events(
        self,
        family_id: str,
        *,
        range_start: Optional[datetime] = None,
        range_end: Optional[datetime] = None,
    ) -> list[FamilyEvent]:
        return [
            event
            for event in self._events
            if event.family_id == family_id and _within_range(event, range_start, range_end)
        ]


class RestEventStore:
    """Reads the ``events`` table through a PostgREST (Supabase) endpoint.

    Network errors and timeouts are retried with jittered exponential
    backoff. HTTP status errors are not retried. Every failure surfaces as
    EventStoreError.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        settings: Any = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize the store.

        Args:
            base_url: Project URL, e.g. https://xyz.supabase.co
            api_key: Service or anon key sent as ``apikey`` and bearer token
            settings: Object or dict with max_retries, retry_backoff_factor,
                request_timeout
            client: Optional client; the shared client is used otherwise
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self._client = client

        self.max_retries = int(get_config_value(settings, "max_retries", 3))
        self.backoff_factor = float(get_config_value(settings, "retry_backoff_factor", 1.5))
        self.request_timeout = float(get_config_value(settings, "request_timeout", 15))

    @property
    def events_url(self) -> str:
        return f"{self.base_url}/rest/v1/events"

    def build_query(
        self,
        family_id: str,
        range_start: Optional[datetime] = None,
        range_end: Optional[datetime] = None,
    ) -> list[tuple[str, str]]:
        """Build PostgREST query parameters for a family/time-range fetch."""
        params = [("select", EVENT_COLUMNS), ("family_id", f"eq.{family_id}")]
        if range_start is not None:
            params.append(("end_time", f"gte.{range_start.isoformat()}"))
        if range_end is not None:
            params.append(("start_time", f"lte.{range_end.isoformat()}"))
        return params

    async def fetch_events(
        self,
        family_id: str,
        *,
        range_start: Optional[datetime] = None,
        range_end: Optional[datetime] = None,
    ) -> list[FamilyEvent]:
        params = self.build_query(family_id, range_start, range_end)
        headers = {
            **get_request_headers(),
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
        }

        try:
            response = await self._get_with_retry(params, headers)
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            logger.warning("Event fetch for family %s failed with HTTP %d", family_id, status)
            raise EventStoreError(f"Event store returned HTTP {status}", status_code=status) from e
        except (httpx.TimeoutException, httpx.NetworkError) as e:
            raise EventStoreError(f"Event store unreachable: {e}") from e
        except httpx.HTTPError as e:
            raise EventStoreError(f"Event store request failed: {e}") from e

        try:
            rows = response.json()
            if not isinstance(rows, list):
                raise TypeError(f"expected a list of rows, got {type(rows).__name__}")
            events = [FamilyEvent.model_validate(row) for row in rows]
        except (ValueError, TypeError, ValidationError) as e:
            logger.warning("Event store returned unusable rows for family %s: %s", family_id, e)
            raise EventStoreError(f"Event store returned invalid data: {e}") from e

        logger.debug("Fetched %d events for family %s", len(events), family_id)
        return events

    def _calculate_backoff(self, attempt: int) -> float:
        """Exponential backoff with jitter, capped at MAX_BACKOFF_SECONDS."""
        base_backoff = min(self.backoff_factor**attempt, MAX_BACKOFF_SECONDS)
        jitter = random.uniform(JITTER_MIN_FACTOR, JITTER_MAX_FACTOR) * base_backoff  # nosec B311 - jitter not cryptographic
        return base_backoff + jitter

    async def _get_with_retry(
        self, params: list[tuple[str, str]], headers: dict[str, str]
    ) -> httpx.Response:
        client = self._client or await get_shared_client("event_store")
        attempt = 0

        while True:
            try:
                response = await client.get(
                    self.events_url, params=params, headers=headers, timeout=self.request_timeout
                )
                response.raise_for_status()
                return response
            except httpx.HTTPStatusError:
                raise
            except (httpx.TimeoutException, httpx.NetworkError) as e:
                if attempt >= self.max_retries:
                    logger.error("All %d attempts to fetch events failed: %s", attempt + 1, e)
                    raise
                backoff_time = self._calculate_backoff(attempt)
                logger.warning(
                    "Event fetch failed (attempt %d/%d), retrying in %.1fs: %s",
                    attempt + 1,
                    self.max_retries + 1,
                    backoff_time,
                    e,
                )
                await asyncio.sleep(backoff_time)
                attempt += 1
