"""Configuration loader for LifeOS.

Handles loading, saving, and default creation of config.json.
Resolves platform-appropriate data directories:
  - macOS:   ~/Library/Application Support/LifeOS
  - Windows: %APPDATA%/LifeOS
  - Other:   ~/.lifeos
"""

import json
import logging
import os
import sys
from pathlib import Path
from typing import Any

from lifeos.core.models import TimerSettings

logger = logging.getLogger(__name__)


def get_data_directory() -> Path:
    """Return the platform-appropriate data directory for LifeOS."""
    if sys.platform == "darwin":
        base = Path.home() / "Library" / "Application Support"
    elif sys.platform == "win32":
        appdata = os.environ.get("APPDATA")
        base = Path(appdata) if appdata else Path.home() / "AppData" / "Roaming"
    else:
        base = Path.home()
        return base / ".lifeos"
    return base / "LifeOS"


def get_default_config() -> dict[str, Any]:
    """Return the default configuration dictionary."""
    data_dir = get_data_directory()
    return {
        "timer": {
            "pomodoro_minutes": 25,
            "short_break_minutes": 5,
            "long_break_minutes": 15,
            "long_break_interval": 4,
        },
        "gamification": {
            "xp_per_minute": 10,
        },
        "notifications": {
            "enabled": True,
        },
        "calendar": {
            "max_instances": 365,
            "agenda_days": 7,
        },
        "dashboard": {
            "port": 5555,
        },
        "report": {
            "user_name": "",
            "output_directory": "~/lifeos-reports",
        },
        "database_path": str(data_dir / "lifeos.db"),
    }


def get_default_config_path() -> Path:
    """Return the default path for config.json."""
    return get_data_directory() / "config.json"


def load_config(path: str | Path | None = None) -> dict[str, Any]:
    """Load configuration from a JSON file.

    If *path* is ``None``, the platform default location is used.
    A missing file is created with the defaults.  Invalid JSON is logged
    and the defaults are returned.  Sections or keys absent from an
    older file are filled in from the defaults; unknown keys are kept.
    """
    config_path = Path(path) if path is not None else get_default_config_path()

    if not config_path.exists():
        logger.info("Config file not found at %s; creating defaults.", config_path)
        defaults = get_default_config()
        save_config(defaults, config_path)
        return defaults

    try:
        with open(config_path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
        if not isinstance(data, dict):
            raise ValueError("Top-level JSON value must be an object")
    except (json.JSONDecodeError, ValueError, OSError) as exc:
        logger.error("Failed to load config from %s: %s; using defaults.", config_path, exc)
        return get_default_config()
    return _merge_defaults(data, get_default_config())


def _merge_defaults(data: dict[str, Any], defaults: dict[str, Any]) -> dict[str, Any]:
    merged = dict(data)
    for key, default in defaults.items():
        if key not in merged:
            merged[key] = default
        elif isinstance(merged[key], dict) and isinstance(default, dict):
            merged[key] = _merge_defaults(merged[key], default)
    return merged


def save_config(config: dict[str, Any], path: str | Path | None = None) -> None:
    """Write *config* to a JSON file.

    If *path* is ``None``, the platform default location is used.
    Parent directories are created automatically.
    """
    config_path = Path(path) if path is not None else get_default_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)

    with open(config_path, "w", encoding="utf-8") as fh:
        json.dump(config, fh, indent=2, ensure_ascii=False)
        fh.write("\n")


def get_timer_settings(config: dict[str, Any]) -> TimerSettings:
    """Build TimerSettings from the ``timer`` and ``gamification`` sections.

    Missing or non-positive values fall back to the defaults.
    """
    defaults = TimerSettings()
    timer = config.get("timer", {}) or {}
    gamification = config.get("gamification", {}) or {}

    def _positive(section: dict, key: str, fallback: int) -> int:
        value = section.get(key, fallback)
        try:
            value = int(value)
        except (TypeError, ValueError):
            logger.warning("Invalid %s=%r in config; using %d", key, value, fallback)
            return fallback
        return value if value > 0 else fallback

    return TimerSettings(
        pomodoro_minutes=_positive(timer, "pomodoro_minutes", defaults.pomodoro_minutes),
        short_break_minutes=_positive(timer, "short_break_minutes", defaults.short_break_minutes),
        long_break_minutes=_positive(timer, "long_break_minutes", defaults.long_break_minutes),
        long_break_interval=_positive(timer, "long_break_interval", defaults.long_break_interval),
        xp_per_minute=_positive(gamification, "xp_per_minute", defaults.xp_per_minute),
    )
