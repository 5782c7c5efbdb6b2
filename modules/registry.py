"""
Discover frame source modules and their metadata.
Modules live under modules/detector/<name>/. Each declares MODULE_INFO and optionally
get_setting_keys() / get_default_settings(); the GUI uses this to pick the frame source and to
load/save module-specific settings without editing gui.py.
"""

import importlib
import logging
import pkgutil
import sys
from typing import Any, Optional

logger = logging.getLogger("microscope_viewer.modules")

MODULES_PACKAGE = "modules"
_TYPE_SUBPACKAGES = ("detector",)


def _discover_entries() -> list[tuple[str, str]]:
    """Return list of (name, import_path) for all leaf modules under modules/<type>/."""
    entries: list[tuple[str, str]] = []
    mod = sys.modules.get(MODULES_PACKAGE)
    if mod is None:
        try:
            mod = importlib.import_module(MODULES_PACKAGE)
        except ImportError as e:
            logger.warning("Module package %s not importable: %s", MODULES_PACKAGE, e)
            return []
    if getattr(mod, "__path__", None) is None:
        return []
    for type_name in _TYPE_SUBPACKAGES:
        try:
            submod = importlib.import_module(f"{MODULES_PACKAGE}.{type_name}")
        except ImportError as e:
            logger.warning("Module type %s not importable: %s", type_name, e)
            continue
        subpath = getattr(submod, "__path__", None)
        if subpath is None:
            continue
        for _importer, name, _ispkg in pkgutil.iter_modules(subpath):
            if name.startswith("_"):
                continue
            entries.append((name, f"{MODULES_PACKAGE}.{type_name}.{name}"))
    return sorted(entries, key=lambda x: x[0])


def get_module_info(import_path: str) -> dict[str, Any]:
    """
    Import by import_path and return MODULE_INFO (or defaults).
    Returns dict with: display_name, description, type, default_enabled, camera_priority,
    setting_keys (list).
    """
    name = import_path.split(".")[-1] if "." in import_path else import_path
    defaults = {
        "display_name": name.replace("_", " ").title(),
        "description": "",
        "type": "detector",
        "default_enabled": False,
        "camera_priority": 0,
        "setting_keys": [],
    }
    try:
        mod = importlib.import_module(import_path)
    except Exception as e:
        logger.warning("Skipping module %s: %s", import_path, e)
        return defaults
    info = getattr(mod, "MODULE_INFO", None)
    if isinstance(info, dict):
        defaults.update(info)
    get_sk = getattr(mod, "get_setting_keys", None)
    if callable(get_sk):
        keys = get_sk()
        if isinstance(keys, (list, tuple)):
            defaults["setting_keys"] = list(keys)
    return defaults


def discover_modules() -> list[dict[str, Any]]:
    """
    Return list of module info dicts for all discovered packages under modules/<type>/.
    Each dict has: name, import_path, display_name, description, type, default_enabled,
    camera_priority, setting_keys.
    """
    result = []
    for name, import_path in _discover_entries():
        info = get_module_info(import_path)
        info["name"] = name
        info["import_path"] = import_path
        result.append(info)
    return result


def all_extra_settings_keys(modules: list[dict[str, Any]]) -> set[str]:
    """Return set of all setting keys to persist: load_<name>_module plus each module's setting_keys."""
    keys = set()
    for m in modules:
        keys.add(f"load_{m['name']}_module")
        keys.update(m.get("setting_keys") or [])
    return keys


def collect_module_defaults(modules: list[dict[str, Any]]) -> dict[str, Any]:
    """Collect default settings from all modules (load flags plus get_default_settings())."""
    defaults = {}
    for m in modules:
        name = m["name"]
        import_path = m.get("import_path", f"{MODULES_PACKAGE}.{name}")
        defaults[f"load_{name}_module"] = m.get("default_enabled", False)
        try:
            mod = importlib.import_module(import_path)
        except Exception as e:
            logger.warning("Skipping defaults of %s: %s", import_path, e)
            continue
        get_defaults = getattr(mod, "get_default_settings", None)
        if callable(get_defaults):
            module_defaults = get_defaults()
            if isinstance(module_defaults, dict):
                defaults.update(module_defaults)
    return defaults


def pick_camera_module(modules: list[dict[str, Any]], settings: dict, prefer: str = None) -> Optional[dict[str, Any]]:
    """
    Frame source to load: `prefer` if it was discovered, else the enabled detector with the
    highest camera_priority. None if nothing is enabled.
    """
    detectors = [m for m in modules if m.get("type") == "detector"]
    if prefer:
        for m in detectors:
            if m["name"] == prefer:
                return m
    enabled = [
        m for m in detectors
        if settings.get(f"load_{m['name']}_module", m.get("default_enabled", False))
    ]
    if not enabled:
        return None
    return max(enabled, key=lambda m: m.get("camera_priority", 0))
