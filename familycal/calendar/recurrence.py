"""Recurring-event expansion for the family calendar.

Supports the FREQ/UNTIL subset written by the event editor. Expansion is a
pure function of (event, window): occurrence starts come from a bounded
generator, are filtered by the window and become virtual EventInstances.
"""

from collections.abc import Iterator
from datetime import date, datetime, timedelta, timezone
import logging
import re
from typing import Optional

from dateutil.relativedelta import relativedelta

from familycal.exceptions import RecurrenceRuleParseError

from .models import (
    RECURRING_TITLE_MARKER,
    DisplayWindow,
    EventInstance,
    FamilyEvent,
    Frequency,
    RecurrenceRule,
)

logger = logging.getLogger(__name__)

# Hard bound on steps walked per recurring event, counting steps before the
# window. Not configurable.
MAX_RECURRENCE_STEPS = 100

_UNTIL_DIGITS_RE = re.compile(r"^(\d{8})")

_STEP_UNITS: dict[Frequency, str] = {
    Frequency.DAILY: "days",
    Frequency.WEEKLY: "weeks",
    Frequency.MONTHLY: "months",
    Frequency.YEARLY: "years",
}


def parse_recurrence_rule(rule_string: str) -> RecurrenceRule:
    """Parse a recurrence rule string into a RecurrenceRule.

    Args:
        rule_string: Rule such as "FREQ=WEEKLY" or "FREQ=DAILY;UNTIL=20240115".
            An "RRULE:" prefix is accepted. Only the first eight digits of
            UNTIL are read, so "20240115T000000Z" means 2024-01-15.

    Returns:
        Parsed RecurrenceRule

    Raises:
        RecurrenceRuleParseError: If the rule is empty or FREQ is missing,
            empty or unsupported
    """
    if not rule_string or not rule_string.strip():
        raise RecurrenceRuleParseError("Empty recurrence rule")

    text = rule_string.strip()
    if text.upper().startswith("RRULE:"):
        text = text[len("RRULE:"):]

    parts: dict[str, str] = {}
    for part in text.split(";"):
        if "=" not in part:
            continue
        key, value = part.split("=", 1)
        parts[key.strip().upper()] = value.strip()

    freq_value = parts.get("FREQ", "").upper()
    if not freq_value:
        raise RecurrenceRuleParseError(f"Recurrence rule missing FREQ: {rule_string!r}")
    try:
        frequency = Frequency(freq_value)
    except ValueError as e:
        raise RecurrenceRuleParseError(f"Unsupported FREQ {freq_value!r} in {rule_string!r}") from e

    until = _parse_until(parts.get("UNTIL"), rule_string)
    return RecurrenceRule(frequency=frequency, until=until)


def _parse_until(value: Optional[str], rule_string: str) -> Optional[date]:
    if not value:
        return None
    match = _UNTIL_DIGITS_RE.match(value)
    if match is None:
        logger.warning("Ignoring malformed UNTIL in recurrence rule %r", rule_string)
        return None
    digits = match.group(1)
    try:
        return date(int(digits[:4]), int(digits[4:6]), int(digits[6:8]))
    except ValueError:
        logger.warning("Ignoring out-of-range UNTIL in recurrence rule %r", rule_string)
        return None


def build_recurrence_rule(frequency: Frequency | str, until: Optional[date] = None) -> str:
    """Render a rule string the way the event editor stores it.

    >>> build_recurrence_rule("weekly", date(2024, 1, 15))
    'FREQ=WEEKLY;UNTIL=20240115'
    """
    freq = Frequency(frequency.upper()) if isinstance(frequency, str) else frequency
    rule = f"FREQ={freq.value}"
    if until is not None:
        rule += f";UNTIL={until.strftime('%Y%m%d')}"
    return rule


def iter_occurrence_starts(start: datetime, frequency: Frequency) -> Iterator[datetime]:
    """Yield candidate occurrence starts, at most MAX_RECURRENCE_STEPS of them.

    Each value is computed from the original start with relativedelta, so
    month and year steps clamp to the last valid day of the target month
    (Jan 31 -> Feb 29 -> Mar 31) without drifting or skipping months.
    Wall-clock time is preserved in the start's timezone, so a 19:00 event
    stays at 19:00 after a DST change.
    """
    unit = _STEP_UNITS[frequency]
    for step in range(MAX_RECURRENCE_STEPS):
        yield start + relativedelta(**{unit: step})


def expand_recurring_event(event: FamilyEvent, window: DisplayWindow) -> list[EventInstance]:
    """Expand a recurring event into virtual instances inside a display window.

    Args:
        event: Base event carrying a recurrence rule
        window: Inclusive display window

    Returns:
        Virtual instances in chronological order. Empty when the event has no
        rule, the rule cannot be parsed or the window is inverted.
    """
    if not event.recurrence_rule:
        return []

    try:
        rule = parse_recurrence_rule(event.recurrence_rule)
    except RecurrenceRuleParseError as e:
        logger.debug("Treating event %s as non-recurring: %s", event.id, e)
        return []

    if window.is_inverted:
        logger.debug("Inverted display window %s..%s; no instances", window.start, window.end)
        return []

    duration = event.end.astimezone(timezone.utc) - event.start.astimezone(timezone.utc)
    instances: list[EventInstance] = []

    for occurrence in iter_occurrence_starts(event.start, rule.frequency):
        if rule.until is not None and occurrence.date() > rule.until:
            break
        if not window.contains_until_end(occurrence):
            break
        if window.contains_from_start(occurrence):
            instances.append(_make_instance(event, occurrence, _instance_end(occurrence, duration)))

    logger.debug(
        "Expanded event %s (%s): %d instances in window %s..%s",
        event.id,
        rule.frequency.value,
        len(instances),
        window.start,
        window.end,
    )
    return instances


def _instance_end(start: datetime, duration: timedelta) -> datetime:
    # Elapsed time, not wall clock: an instance spanning a DST change keeps its real length
    return (start.astimezone(timezone.utc) + duration).astimezone(start.tzinfo)


def _make_instance(event: FamilyEvent, start: datetime, end: datetime) -> EventInstance:
    return EventInstance(
        id=f"{event.id}-{start.isoformat()}",
        base_event_id=event.id,
        is_virtual_instance=True,
        title=f"{RECURRING_TITLE_MARKER} {event.title}",
        start=start,
        end=end,
        color=event.color,
        description=event.description or "",
        location=event.location or "",
    )
