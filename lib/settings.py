#!/usr/bin/env python3
"""
Persist and load viewer settings to/from a JSON file.
Settings are saved when they change (call save_settings from callbacks).

Module-specific defaults are collected from modules via registry.collect_module_defaults().
Only core app defaults are defined here. Calibrations live in their own file (see lib.calibration).
"""

import json
import logging
import pathlib

logger = logging.getLogger("microscope_viewer.settings")

# Settings file in app directory (parent of lib/)
SETTINGS_DIR = pathlib.Path(__file__).resolve().parent.parent
SETTINGS_FILE = SETTINGS_DIR / "settings.json"

# Core app defaults only (module defaults are collected from modules at runtime)
CORE_DEFAULTS = {
    "integration_level": 1,
    "scale_bar_visible": False,
    "show_fps_overlay": True,
    "calibrations_file": "calibrations.json",
    "disp_max_fps": 30,
}

# Built at runtime by combining CORE_DEFAULTS with module defaults; set by get_all_defaults() on first call
_DEFAULTS_CACHE = None


def get_all_defaults(modules=None) -> dict:
    """
    Return combined defaults: core app defaults + module defaults.
    Modules are discovered if not provided. Cached after first call.
    """
    global _DEFAULTS_CACHE
    if _DEFAULTS_CACHE is not None:
        return _DEFAULTS_CACHE

    # Lazy import to avoid circular dependency
    from modules.registry import discover_modules, collect_module_defaults
    if modules is None:
        modules = discover_modules()

    defaults = dict(CORE_DEFAULTS)
    defaults.update(collect_module_defaults(modules))
    _DEFAULTS_CACHE = defaults
    return defaults


def _resolve(path) -> pathlib.Path:
    return pathlib.Path(path) if path is not None else SETTINGS_FILE


def _read(path: pathlib.Path) -> dict:
    """Raw dict from disk; {} when missing or unreadable."""
    if not path.exists():
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning("Ignoring unreadable settings file %s: %s", path, e)
        return {}
    if not isinstance(data, dict):
        logger.warning("Ignoring settings file %s: top level is not an object", path)
        return {}
    return data


def load_settings(extra_keys=None, path=None) -> dict:
    """Load settings from disk. Returns dict with defaults plus any extra_keys from file."""
    defaults = get_all_defaults()
    out = dict(defaults)
    data = _read(_resolve(path))
    for k in defaults:
        if k in data:
            out[k] = data[k]
    if extra_keys:
        for k in extra_keys:
            if k in data:
                out[k] = data[k]
    return out


def save_settings(settings_dict: dict, extra_keys=None, path=None) -> None:
    """Write settings to disk. Merges with existing file so we never drop keys."""
    path = _resolve(path)
    allowed = set(get_all_defaults())
    if extra_keys:
        allowed |= set(extra_keys)
    existing = _read(path)
    for k in allowed:
        if k in settings_dict:
            existing[k] = settings_dict[k]
    try:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(existing, f, indent=2)
    except OSError as e:
        logger.error("Failed to save settings to %s: %s", path, e)


def reset_settings(path=None) -> dict:
    """Overwrite the settings file with defaults. Returns the defaults."""
    defaults = dict(get_all_defaults())
    path = _resolve(path)
    try:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(defaults, f, indent=2)
        logger.info("Settings reset to defaults")
    except OSError as e:
        logger.error("Failed to reset settings at %s: %s", path, e)
    return defaults


def calibrations_path(settings_dict: dict) -> pathlib.Path:
    """Calibration store file; relative names resolve next to the settings file."""
    p = pathlib.Path(settings_dict.get("calibrations_file") or CORE_DEFAULTS["calibrations_file"])
    return p if p.is_absolute() else SETTINGS_DIR / p
