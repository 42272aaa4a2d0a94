"""JSON API routes for familycal."""

from __future__ import annotations

import logging
from typing import Any, Callable

from aiohttp import web

from familycal.calendar.conflicts import ConflictDetector, suggest_resolutions
from familycal.calendar.models import ConflictingEvent, DisplayWindow
from familycal.core.event_store import EventStore
from familycal.core.timezone_utils import parse_datetime, parse_window_bound, serialize_iso
from familycal.domain.calendar_view import build_calendar_view, default_display_window
from familycal.exceptions import ConflictCheckError, EventStoreError

logger = logging.getLogger(__name__)

PROPOSED_EVENT_ID = "proposed"


def _window_from_query(query: Any, time_provider: Callable[[], Any]) -> DisplayWindow:
    start_raw = query.get("start")
    end_raw = query.get("end")
    if start_raw is None and end_raw is None:
        return default_display_window(time_provider().date())
    if not start_raw or not end_raw:
        raise ValueError("both start and end are required when either is given")
    return DisplayWindow(start=parse_window_bound(start_raw), end=parse_window_bound(end_raw))


def register_api_routes(
    app: web.Application,
    store: EventStore,
    time_provider: Callable[[], Any],
) -> None:
    """Register main API routes.

    Args:
        app: aiohttp web application
        store: Family event store
        time_provider: Callable returning the current aware datetime
    """
    detector = ConflictDetector(store)

    async def health_check(_request: web.Request) -> web.Response:
        return web.json_response(
            {"status": "ok", "server_time_iso": serialize_iso(time_provider())}
        )

    async def list_events(request: web.Request) -> web.Response:
        """Family calendar items with recurring events expanded into the window."""
        family_id = request.match_info["family_id"]
        try:
            window = _window_from_query(request.query, time_provider)
        except ValueError as e:
            return web.json_response({"error": f"invalid window: {e}"}, status=400)

        try:
            events = await store.fetch_events(family_id)
        except EventStoreError as e:
            logger.warning("Could not load events for family %s: %s", family_id, e)
            return web.json_response({"error": str(e)}, status=502)

        items = build_calendar_view(events, window)
        return web.json_response(
            {
                "family_id": family_id,
                "window": {"start": serialize_iso(window.start), "end": serialize_iso(window.end)},
                "events": [item.model_dump(mode="json") for item in items],
            }
        )

    async def check_conflicts(request: web.Request) -> web.Response:
        """Check a proposed interval; a failed check is reported, never hidden."""
        family_id = request.match_info["family_id"]
        try:
            data = await request.json()
        except ValueError:
            return web.json_response({"error": "invalid json"}, status=400)
        if not isinstance(data, dict):
            return web.json_response({"error": "expected a JSON object"}, status=400)

        start_raw, end_raw = data.get("start"), data.get("end")
        if not isinstance(start_raw, str) or not isinstance(end_raw, str):
            return web.json_response({"error": "start and end are required"}, status=400)
        try:
            proposed_start = parse_datetime(start_raw)
            proposed_end = parse_datetime(end_raw)
        except ValueError as e:
            return web.json_response({"error": f"invalid timestamp: {e}"}, status=400)

        exclude_event_id = data.get("exclude_event_id")
        if exclude_event_id is not None and not isinstance(exclude_event_id, str):
            return web.json_response({"error": "exclude_event_id must be a string"}, status=400)

        try:
            conflicts = await detector.check(
                family_id, proposed_start, proposed_end, exclude_event_id
            )
        except ConflictCheckError as e:
            return web.json_response({"checked": False, "error": str(e)}, status=503)

        proposed = ConflictingEvent(
            id=exclude_event_id or PROPOSED_EVENT_ID,
            title=str(data.get("title") or "New event"),
            start=proposed_start,
            end=proposed_end,
        )
        return web.json_response(
            {
                "checked": True,
                "valid_interval": proposed_start < proposed_end,
                "conflicts": [c.model_dump(mode="json") for c in conflicts],
                "suggestions": {
                    c.id: [s.model_dump(mode="json", exclude_none=True) for s in suggest_resolutions(proposed, c)]
                    for c in conflicts
                },
            }
        )

    app.router.add_get("/api/health", health_check)
    app.router.add_get("/api/families/{family_id}/events", list_events)
    app.router.add_post("/api/families/{family_id}/conflicts/check", check_conflicts)
