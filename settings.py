"""Simulator defaults kept between runs in ~/.swoop_sim.json.

Flags given on the command line win over anything stored here; --save-config
writes the resolved values back.
"""

import json
import logging
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULTS = {
    "rounds": 100,
    "bot1": "aggressive",
    "bot2": "balanced",
    "max_turns": 1000,
    "workers": 1,
    "report_dir": ".",
}


def _settings_path(path):
    return Path(path) if path is not None else Path.home() / ".swoop_sim.json"


def _known_keys(data: dict) -> dict:
    """DEFAULTS overlaid with the recognised entries of ``data``."""
    merged = dict(DEFAULTS)
    merged.update((key, data[key]) for key in DEFAULTS if key in data)
    return merged


def load_settings(path=None) -> dict:
    """Read simulator defaults, never raising.

    A missing file quietly yields DEFAULTS. An unreadable file, bad JSON or a
    top-level value that is not an object is logged and also yields DEFAULTS.
    """
    path = _settings_path(path)
    try:
        data = json.loads(path.read_text())
    except FileNotFoundError:
        return dict(DEFAULTS)
    except (json.JSONDecodeError, OSError) as exc:
        logger.warning("Ignoring unreadable settings file %s: %s", path, exc)
        return dict(DEFAULTS)
    if not isinstance(data, dict):
        logger.warning("Ignoring settings file %s: expected a JSON object", path)
        return dict(DEFAULTS)
    return _known_keys(data)


def save_settings(settings: dict, path=None) -> None:
    """Persist the recognised keys of ``settings``; a failed write is only logged."""
    path = _settings_path(path)
    try:
        path.write_text(json.dumps(_known_keys(settings), indent=2))
    except OSError as exc:
        logger.warning("Could not save settings to %s: %s", path, exc)
