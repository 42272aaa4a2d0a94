"""Exception hierarchy for familycal.

Callers distinguish "the computation ran and found nothing" from "the
computation could not run" by catching these types rather than inspecting
empty results.
"""


class FamilyCalError(Exception):
    """Base exception for all familycal errors."""


class RecurrenceRuleParseError(FamilyCalError):
    """A recurrence rule string could not be parsed.

    Raised when:
    - The rule is empty
    - FREQ is missing or empty
    - FREQ names an unsupported frequency

    The recurrence expander catches this and treats the event as
    non-recurring.
    """


class EventStoreError(FamilyCalError):
    """Fetching events from the family event store failed."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ConflictCheckError(FamilyCalError):
    """A conflict check could not be completed.

    Never equivalent to "no conflicts": the caller must treat the proposed
    interval as unverified.
    """
