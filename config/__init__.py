from __future__ import annotations

import json
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

_SETTINGS_PATH = Path(__file__).with_name("settings.json")


@lru_cache(maxsize=1)
def get_settings() -> Dict[str, Any]:
    """Return the parsed settings.json contents.

    The configuration is cached for subsequent lookups to avoid
    redundant file I/O, while still allowing tests to reset the cache by
    clearing ``get_settings.cache_clear()``.
    """
    with _SETTINGS_PATH.open("r", encoding="utf-8") as handle:
        return json.load(handle)


def get_app_version() -> str:
    version = get_settings().get("app", {}).get("version")
    return str(version) if version else "0.0.0"


def get_policy_preset(name: str) -> Optional[Dict[str, Any]]:
    """Return a copy of the named policy preset, or ``None`` when unknown."""
    presets = get_settings().get("policyPresets", {})
    preset = presets.get(name)
    if not isinstance(preset, dict):
        return None
    return dict(preset)


__all__ = ["get_settings", "get_app_version", "get_policy_preset"]
