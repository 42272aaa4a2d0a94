"""Integration tests for CLI argument handling and server startup wiring."""

import json
from pathlib import Path
from typing import Any

import pytest

import familycal
from familycal.__main__ import _create_parser
from familycal.api import server as server_module
from familycal.core.event_store import InMemoryEventStore

pytestmark = pytest.mark.integration


def test_parser_accepts_port_and_debug() -> None:
    args = _create_parser().parse_args(["--port", "3000", "--debug"])
    assert args.port == 3000
    assert args.debug is True


def test_parser_defaults() -> None:
    args = _create_parser().parse_args([])
    assert args.port is None
    assert args.debug is False


def test_run_server_applies_env_and_cli_overrides(monkeypatch: Any, tmp_path: Path) -> None:
    captured: dict[str, Any] = {}
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("FAMILYCAL_WEB_HOST", "0.0.0.0")
    monkeypatch.setenv("FAMILYCAL_WEB_PORT", "9000")
    monkeypatch.setattr(server_module, "start_server", lambda cfg: captured.update(cfg))

    familycal.run_server(_create_parser().parse_args(["--port", "3000", "--debug"]))

    assert captured["server_bind"] == "0.0.0.0"
    assert captured["server_port"] == 3000
    assert captured["debug_logging"] is True


async def test_build_store_from_events_file(tmp_path: Path) -> None:
    path = tmp_path / "events.json"
    path.write_text(
        json.dumps(
            [
                {
                    "id": "swim",
                    "family_id": "fam-1",
                    "title": "Swim",
                    "start_time": "2024-01-06T09:00:00Z",
                    "end_time": "2024-01-06T10:00:00Z",
                    "recurrence_rule": "FREQ=WEEKLY",
                }
            ]
        ),
        encoding="utf-8",
    )

    store = server_module.build_store({"events_file": str(path)})

    assert isinstance(store, InMemoryEventStore)
    assert [e.id for e in await store.fetch_events("fam-1")] == ["swim"]
