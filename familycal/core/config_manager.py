"""Server configuration from FAMILYCAL_* environment variables and a .env file."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_SERVER_BIND = "127.0.0.1"
DEFAULT_SERVER_PORT = 8080

# env var -> (config key, type)
_ENV_KEYS: dict[str, tuple[str, type]] = {
    "FAMILYCAL_SUPABASE_URL": ("supabase_url", str),
    "FAMILYCAL_SUPABASE_KEY": ("supabase_key", str),
    "FAMILYCAL_EVENTS_FILE": ("events_file", str),
    "FAMILYCAL_WEB_HOST": ("server_bind", str),
    "FAMILYCAL_WEB_PORT": ("server_port", int),
    "FAMILYCAL_REQUEST_TIMEOUT": ("request_timeout", int),
    "FAMILYCAL_MAX_RETRIES": ("max_retries", int),
    "FAMILYCAL_LOG_LEVEL": ("log_level", str),
}


def parse_env_file(path: Path) -> dict[str, str]:
    """Read KEY=VALUE pairs from a dotenv file.

    Blank lines, ``#`` comments and lines without ``=`` are skipped, and one
    layer of single or double quotes is stripped from values. A missing or
    unreadable file yields an empty mapping.
    """
    try:
        lines = path.read_text(encoding="utf-8").splitlines()
    except FileNotFoundError:
        return {}
    except OSError:
        logger.debug("Could not read %s; ignoring", path, exc_info=True)
        return {}

    pairs: dict[str, str] = {}
    for line in (raw.strip() for raw in lines):
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        key = key.strip()
        if sep and key:
            pairs[key] = value.strip().strip('"').strip("'")
    return pairs


class ConfigManager:
    """Builds the server config dict.

    Values already present in the environment win over the ``.env`` file,
    which only fills gaps.
    """

    def __init__(self, env_file_path: Path | None = None):
        self.env_file_path = env_file_path or Path.cwd() / ".env"

    def load_env_file(self) -> list[str]:
        """Copy unset keys from the .env file into ``os.environ``.

        Returns:
            Names of the variables that were filled in
        """
        filled = []
        for key, value in parse_env_file(self.env_file_path).items():
            if key in os.environ:
                continue
            os.environ[key] = value
            filled.append(key)

        if filled:
            logger.debug("Filled %d variables from %s: %s", len(filled), self.env_file_path, ", ".join(filled))
        return filled

    def build_config_from_env(self) -> dict[str, Any]:
        """Map FAMILYCAL_* variables to config keys.

        Unset or empty variables are left out. Numeric settings that do not
        parse are logged and left out.
        """
        config: dict[str, Any] = {}
        for env_key, (config_key, cast) in _ENV_KEYS.items():
            raw = os.environ.get(env_key)
            if not raw:
                continue
            try:
                config[config_key] = cast(raw)
            except ValueError:
                logger.warning("Invalid %s=%r; ignoring", env_key, raw)
        return config

    def load_full_config(self) -> dict[str, Any]:
        self.load_env_file()
        return self.build_config_from_env()


def get_config_value(config: Any, key: str, default: Any = None) -> Any:
    """Look up ``key`` on a dict or attribute-style config, falling back to ``default``."""
    if config is None:
        return default
    if isinstance(config, dict):
        return config.get(key, default)
    return getattr(config, key, default)
