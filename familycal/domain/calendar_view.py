"""Builds the merged calendar view for a family and resolves delete targets.

``DeleteTarget`` and ``resolve_delete_target`` are a client-facing helper:
the calendar UI calls them to pick the stored row behind a clicked item and
to decide whether to ask "delete the whole series?". The HTTP API has no
delete route; rows are removed through the hosted database directly.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from typing import Literal

from dateutil.relativedelta import relativedelta

from familycal.calendar.models import DisplayWindow, EventInstance, FamilyEvent
from familycal.calendar.recurrence import expand_recurring_event, parse_recurrence_rule
from familycal.exceptions import RecurrenceRuleParseError

logger = logging.getLogger(__name__)

VIEW_MONTHS_BACK = 3
VIEW_MONTHS_AHEAD = 2


def default_display_window(today: date) -> DisplayWindow:
    """First day of the month three months back through the last day of the
    month two months ahead."""
    first_of_month = today.replace(day=1)
    start = first_of_month - relativedelta(months=VIEW_MONTHS_BACK)
    end = first_of_month + relativedelta(months=VIEW_MONTHS_AHEAD + 1, days=-1)
    return DisplayWindow(start=start, end=end)


def one_time_item(event: FamilyEvent) -> EventInstance:
    """Calendar item for a non-recurring event, carrying its own details."""
    return EventInstance(
        id=event.id,
        base_event_id=event.id,
        is_virtual_instance=False,
        title=event.title,
        start=event.start,
        end=event.end,
        color=event.color,
        description=event.description or "",
        location=event.location or "",
        notes=event.notes or "",
        checklist=list(event.checklist),
        reminder_settings=list(event.reminder_settings),
    )


def _has_valid_rule(event: FamilyEvent) -> bool:
    try:
        parse_recurrence_rule(event.recurrence_rule or "")
    except RecurrenceRuleParseError:
        return False
    return True


def build_calendar_view(events: Iterable[FamilyEvent], window: DisplayWindow) -> list[EventInstance]:
    """Merge one-time events and expanded recurring events.

    Recurring events contribute only their instances inside the window. An
    event whose rule cannot be parsed is shown once, as a one-time event.
    One-time events are included as stored. Order follows the input rows.
    """
    items: list[EventInstance] = []
    recurring = 0
    for event in events:
        if event.is_recurring and _has_valid_rule(event):
            recurring += 1
            items.extend(expand_recurring_event(event, window))
        else:
            items.append(one_time_item(event))

    logger.debug("Built calendar view: %d items (%d recurring events)", len(items), recurring)
    return items


@dataclass(frozen=True)
class DeleteTarget:
    """Which stored event a delete removes, and whether it is a whole series."""

    event_id: str
    scope: Literal["series", "single"]

    @property
    def is_series(self) -> bool:
        return self.scope == "series"


def resolve_delete_target(item: EventInstance) -> DeleteTarget:
    """Deleting any virtual instance deletes its whole series."""
    if item.is_virtual_instance:
        return DeleteTarget(event_id=item.base_event_id, scope="series")
    return DeleteTarget(event_id=item.base_event_id, scope="single")
