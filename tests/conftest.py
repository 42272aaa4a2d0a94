"""Shared fixtures for familycal tests."""

from collections.abc import AsyncIterator, Callable, Generator
from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any

import pytest

from familycal.calendar.models import FamilyEvent
from familycal.core.http_client import close_all_clients


def pytest_configure(config: Any) -> None:
    config.addinivalue_line("markers", "unit: fast isolated tests")
    config.addinivalue_line("markers", "integration: tests exercising several components together")


@pytest.fixture
def simple_settings() -> SimpleNamespace:
    """Small deterministic store settings used by the REST store tests."""
    return SimpleNamespace(
        request_timeout=5,
        max_retries=2,
        retry_backoff_factor=1.5,
    )


@pytest.fixture
def make_event() -> Callable[..., FamilyEvent]:
    """Build a FamilyEvent with sensible defaults; override any field by keyword."""

    def builder(**overrides: Any) -> FamilyEvent:
        fields: dict[str, Any] = {
            "id": "evt-1",
            "family_id": "fam-1",
            "title": "Piano lesson",
            "start": datetime(2024, 1, 1, 19, 0, tzinfo=timezone.utc),
            "end": datetime(2024, 1, 1, 20, 0, tzinfo=timezone.utc),
        }
        fields.update(overrides)
        return FamilyEvent(**fields)

    return builder


@pytest.fixture(autouse=True)
def clean_test_environment(monkeypatch: Any) -> Generator[None, Any, None]:
    """Clear environment variables that change time or logging between tests."""
    for name in ("FAMILYCAL_TEST_TIME", "FAMILYCAL_DEBUG", "FAMILYCAL_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture(autouse=True)
async def cleanup_shared_http_clients() -> AsyncIterator[None]:
    """Close shared httpx clients after every test."""
    yield
    await close_all_clients()
