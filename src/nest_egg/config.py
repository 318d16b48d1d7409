"""Configuration file management for nest-egg.

Reads and writes ~/.nest-egg/config.json for settings that don't belong in the DB
(database location, the time zone that defines a "day").
"""
from __future__ import annotations

import json
import logging
from datetime import tzinfo
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from nest_egg.clock import system_timezone

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH: Path = Path.home() / ".nest-egg" / "config.json"


def load_config(config_path: Path | None = None) -> dict:
    """Load config from JSON file. Returns {} if file missing or invalid."""
    path = config_path or DEFAULT_CONFIG_PATH
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError):
        return {}
    return data if isinstance(data, dict) else {}


def save_config(data: dict, config_path: Path | None = None) -> None:
    """Write config dict to JSON file. Creates parent dirs if needed."""
    path = config_path or DEFAULT_CONFIG_PATH
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")


def get_db_path(config_path: Path | None = None) -> Path | None:
    """Return the configured database path, or None for the default."""
    raw = load_config(config_path).get("db_path")
    if raw:
        return Path(raw).expanduser()
    return None


def get_timezone(config_path: Path | None = None) -> tzinfo:
    """Return the configured zone, falling back to the system zone."""
    name = load_config(config_path).get("timezone")
    if name:
        try:
            return ZoneInfo(name)
        except (ZoneInfoNotFoundError, ValueError):
            logger.warning("Unknown time zone %r in config, using system zone", name)
    return system_timezone()


def set_timezone(name: str, config_path: Path | None = None) -> None:
    """Persist an IANA time zone name. Raises ZoneInfoNotFoundError if unknown."""
    ZoneInfo(name)
    config = load_config(config_path)
    config["timezone"] = name
    save_config(config, config_path)
