"""Time helpers shared by the store, the API and the reminder job."""

from __future__ import annotations

import datetime
import logging
import os
import re

from dateutil import parser as dateutil_parser

logger = logging.getLogger(__name__)

_DATE_ONLY_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def now_utc() -> datetime.datetime:
    """Return the current UTC time, honouring FAMILYCAL_TEST_TIME.

    Tests set FAMILYCAL_TEST_TIME to an ISO timestamp to freeze "now".
    """
    test_time = os.environ.get("FAMILYCAL_TEST_TIME")
    if test_time:
        try:
            return ensure_aware(dateutil_parser.isoparse(test_time))
        except (ValueError, OverflowError) as e:
            logger.warning("Invalid FAMILYCAL_TEST_TIME=%r: %s", test_time, e)
    return datetime.datetime.now(datetime.timezone.utc)


def ensure_aware(dt: datetime.datetime) -> datetime.datetime:
    """Attach UTC to naive datetimes; leave aware ones untouched."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=datetime.timezone.utc)
    return dt


def parse_datetime(value: str) -> datetime.datetime:
    """Parse an ISO 8601 timestamp into an aware datetime.

    Raises:
        ValueError: If the value is not a valid timestamp
    """
    try:
        return ensure_aware(dateutil_parser.isoparse(value.strip()))
    except OverflowError as e:
        raise ValueError(f"Timestamp out of range: {value!r}") from e


def parse_window_bound(value: str) -> datetime.date | datetime.datetime:
    """Parse a display-window bound.

    ``YYYY-MM-DD`` yields a plain date (compared by calendar day), anything
    else is parsed as a timestamp.
    """
    value = value.strip()
    if _DATE_ONLY_RE.match(value):
        return datetime.date.fromisoformat(value)
    return parse_datetime(value)


def serialize_iso(value: datetime.date | datetime.datetime | None) -> str | None:
    """Serialize a date or datetime to ISO format, passing None through."""
    if value is None:
        return None
    return value.isoformat()
