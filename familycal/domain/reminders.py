"""Due-reminder polling table helpers.

Reminders are rows with a ``send_at`` time and a status. A periodic job
selects due rows, hands them to a sender and records the outcome. There is
no queue beyond this table.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import datetime, timedelta

from familycal.calendar.models import FamilyEvent, ReminderQueueItem, ReminderStatus

logger = logging.getLogger(__name__)

DUE_BATCH_LIMIT = 50
MAX_DELIVERY_ATTEMPTS = 3

_DUE_STATUSES = frozenset({ReminderStatus.PENDING, ReminderStatus.READY_TO_SEND})


def plan_event_reminders(event: FamilyEvent, user_id: str) -> list[ReminderQueueItem]:
    """One pending queue row per reminder setting on the event."""
    items = []
    for setting in event.reminder_settings:
        send_at = event.start - timedelta(minutes=setting.minutes_before)
        items.append(
            ReminderQueueItem(
                id=f"{event.id}-{user_id}-{setting.method}-{setting.minutes_before}",
                user_id=user_id,
                event_id=event.id,
                message=f'Reminder: "{event.title}" starts at {event.start.strftime("%H:%M")}',
                send_at=send_at,
            )
        )
    return items


def select_due_reminders(
    items: Iterable[ReminderQueueItem], now: datetime, limit: int = DUE_BATCH_LIMIT
) -> list[ReminderQueueItem]:
    """Rows waiting to be sent whose send time has passed, in input order."""
    due = []
    for item in items:
        if len(due) >= limit:
            break
        if item.status in _DUE_STATUSES and item.send_at <= now:
            due.append(item)
    logger.debug("Selected %d due reminders", len(due))
    return due


def mark_processing(item: ReminderQueueItem) -> ReminderQueueItem:
    return item.model_copy(update={"status": ReminderStatus.PROCESSING})


def mark_sent(item: ReminderQueueItem, now: datetime) -> ReminderQueueItem:
    return item.model_copy(update={"status": ReminderStatus.SENT, "sent_at": now})


def mark_failed(item: ReminderQueueItem, error: str) -> ReminderQueueItem:
    """Record a failed delivery; give up after MAX_DELIVERY_ATTEMPTS."""
    attempts = item.attempts + 1
    status = ReminderStatus.FAILED if attempts >= MAX_DELIVERY_ATTEMPTS else ReminderStatus.PENDING
    if status is ReminderStatus.FAILED:
        logger.warning("Reminder %s failed %d times; giving up: %s", item.id, attempts, error)
    return item.model_copy(update={"status": status, "attempts": attempts, "last_error": error})
