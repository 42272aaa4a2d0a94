"""aiohttp server wiring for familycal."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from pathlib import Path
from typing import Any, Callable, Optional

from aiohttp import web

from familycal.api.middleware.correlation_id import correlation_id_middleware
from familycal.api.routes import register_api_routes
from familycal.core.config_manager import (
    DEFAULT_SERVER_BIND,
    DEFAULT_SERVER_PORT,
    ConfigManager,
    get_config_value,
)
from familycal.core.event_store import EventStore, InMemoryEventStore, RestEventStore
from familycal.core.http_client import close_all_clients
from familycal.core.timezone_utils import now_utc
from familycal.logging_config import configure_logging

logger = logging.getLogger(__name__)


def _build_default_config_from_env() -> dict[str, Any]:
    """Build a default config dict from FAMILYCAL_* environment variables.

    A ``.env`` file in the working directory supplies defaults for keys that
    are not already set in the environment.
    """
    return ConfigManager().load_full_config()


def build_store(config: Any) -> EventStore:
    """Pick the event store for the given config.

    The hosted REST store is used when both a base URL and API key are
    configured. Otherwise events are served from ``events_file`` (or an empty
    store when no file is configured).
    """
    supabase_url = get_config_value(config, "supabase_url")
    supabase_key = get_config_value(config, "supabase_key")
    if supabase_url and supabase_key:
        logger.info("Using REST event store at %s", supabase_url)
        return RestEventStore(supabase_url, supabase_key, settings=config)

    events_file = get_config_value(config, "events_file")
    if events_file:
        logger.info("Using in-memory event store loaded from %s", events_file)
        return InMemoryEventStore.from_json_file(Path(events_file))

    logger.warning("No event store configured; serving an empty calendar")
    return InMemoryEventStore()


async def _close_http_clients(_app: web.Application) -> None:
    await close_all_clients()
    logger.debug("Shared HTTP clients cleaned up")


def _make_app(
    config: Any,
    store: EventStore,
    time_provider: Optional[Callable[[], Any]] = None,
) -> web.Application:
    """Create the aiohttp application with API routes wired to ``store``."""
    app = web.Application(middlewares=[correlation_id_middleware])
    app["config"] = config
    register_api_routes(app, store, time_provider or now_utc)
    app.on_cleanup.append(_close_http_clients)
    logger.debug("Web application created")
    return app


async def _serve(config: Any, external_stop_event: Optional[asyncio.Event] = None) -> None:
    """Run the server until signalled to stop.

    Args:
        config: Server configuration object/dict.
        external_stop_event: Optional event to signal shutdown. If provided,
            signal handlers are NOT registered (caller owns signal handling).
    """
    stop_event = external_stop_event or asyncio.Event()
    store = build_store(config)
    app = _make_app(config, store)

    runner = web.AppRunner(app)
    await runner.setup()

    host = get_config_value(config, "server_bind", DEFAULT_SERVER_BIND)
    port = int(get_config_value(config, "server_port", DEFAULT_SERVER_PORT))
    site = web.TCPSite(runner, host=host, port=port)
    try:
        await site.start()
    except OSError:
        logger.exception("Failed to start server on %s:%d", host, port)
        await runner.cleanup()
        raise
    logger.info("familycal listening on http://%s:%d", host, port)

    if external_stop_event is None:
        loop = asyncio.get_running_loop()

        def _on_signal() -> None:
            logger.info("Shutdown signal received")
            stop_event.set()

        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError):
                loop.add_signal_handler(sig, _on_signal)

    await stop_event.wait()
    logger.info("Stop event received, shutting down")
    await runner.cleanup()
    logger.info("Server shutdown complete")


def start_server(config: Any) -> None:
    """Run the HTTP server, blocking until SIGINT/SIGTERM.

    Args:
        config: dict or attribute-style object with keys:
            - server_bind: host to bind (str)
            - server_port: port (int)
            - supabase_url / supabase_key: hosted REST store credentials
            - events_file: JSON file of events for the in-memory store
            - request_timeout, max_retries, retry_backoff_factor: REST store tuning
            - debug_logging: enable debug logging for familycal modules (bool)
    """
    configure_logging(debug_mode=bool(get_config_value(config, "debug_logging", False)))

    try:
        asyncio.run(_serve(config))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
