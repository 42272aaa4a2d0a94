"""familycal - shared family calendar backend.

Imports stay light here so the package can be inspected without starting the
server.
"""

__version__ = "0.1.0"

from typing import Optional


def _init_logging(level_name: Optional[str]) -> None:
    """Initialize root logging to stream to console.

    Honors FAMILYCAL_DEBUG (truthy values: "1", "true", "yes", "on"), which
    forces DEBUG verbosity regardless of ``level_name``.
    """
    import logging
    import os
    import sys

    from colorlog import ColoredFormatter

    debug_env = os.environ.get("FAMILYCAL_DEBUG", "")
    if debug_env.strip().lower() in ("1", "true", "yes", "on"):
        level_name = "DEBUG"

    root = logging.getLogger()
    # Only configure a handler if none is present to avoid duplicate output.
    if not root.handlers:
        handler = logging.StreamHandler(stream=sys.stderr)
        # HH:MM:SS  LEVEL   logger.name: message; only the level is colorized
        fmt = "%(asctime)s %(log_color)s%(levelname)-7s%(reset)s %(name)s: %(message)s"
        log_colors = {
            "DEBUG": "cyan",
            "INFO": "green",
            "WARNING": "yellow",
            "ERROR": "red",
            "CRITICAL": "bold_red",
        }
        handler.setFormatter(ColoredFormatter(fmt, datefmt="%H:%M:%S", log_colors=log_colors))
        root.addHandler(handler)

    level = logging.INFO
    if isinstance(level_name, str):
        level = getattr(logging, level_name.upper(), logging.INFO)
    root.setLevel(level)
    logging.getLogger(__name__).debug(
        "Logging initialized at level %s", logging.getLevelName(level)
    )


def run_server(args: Optional[object] = None) -> None:
    """Start the familycal server.

    Args:
        args: Optional command line arguments namespace containing --port and --debug

    Behavior:
    - Initialize console logging early using FAMILYCAL_LOG_LEVEL (env) if present.
    - Build config from the environment (and .env), then apply command line overrides.
    - Delegate to ``familycal.api.server.start_server`` and block until shutdown.
    """
    import logging
    import os

    _init_logging(os.environ.get("FAMILYCAL_LOG_LEVEL"))
    logger = logging.getLogger(__name__)

    from familycal.api import server

    cfg = server._build_default_config_from_env()

    if args is not None:
        port = getattr(args, "port", None)
        if port is not None:
            cfg["server_port"] = int(port)
            logger.debug("Applied command line port override: %d", cfg["server_port"])
        if getattr(args, "debug", False):
            cfg["debug_logging"] = True

    cfg_level = cfg.get("log_level")
    if isinstance(cfg_level, str):
        logger.info("Applying configured log_level=%s", cfg_level)
        logging.getLogger().setLevel(getattr(logging, cfg_level.upper(), logging.INFO))

    # Only surface a small set of config keys to avoid leaking secrets into logs.
    logger.debug(
        "Resolved configuration (diagnostic): %s",
        {k: cfg.get(k) for k in ("log_level", "server_bind", "server_port", "events_file")},
    )

    server.start_server(cfg)
