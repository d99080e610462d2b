"""Small helpers for reading values out of the YAML config."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict

DEFAULT_CONFIG = "phasebuild.yaml"
DEFAULT_BUILDFILE = "build.py"


def _get(d: Dict, *keys, default=None):
    cur = d
    for k in keys:
        if not isinstance(cur, dict):
            return default
        cur = cur.get(k)
        if cur is None:
            return default
    return cur


def type_name(value: Any) -> str:
    return "None" if value is None else type(value).__name__


def phases_definition(p: Dict) -> Dict | None:
    return _get(p, "phases")


def log_level(p: Dict) -> str | None:
    level = _get(p, "log_level")
    return str(level).upper() if level is not None else None


def buildfile_path(p: Dict, config_path: Path) -> Path:
    """Buildfile named in the config, relative to the config's directory."""
    path = Path(_get(p, "buildfile", default=DEFAULT_BUILDFILE))
    if not path.is_absolute():
        path = config_path.parent / path
    return path
