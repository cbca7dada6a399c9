# Ethan Doughty
# config.py
"""Settings store for the headless host.

Settings are read from a JSON file shaped like an editor settings file.
Both nested and dotted keys are accepted:

    {"arcane": {"serverPath": "/opt/bin/arcane-lsp"}}
    {"arcane.serverPath": "/opt/bin/arcane-lsp"}
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from runtime.errors import SettingsError

logger = logging.getLogger(__name__)

SECTION = "arcane"


def load_settings(path: Optional[Path]) -> Dict[str, Any]:
    """Read a settings JSON file.

    A missing file yields empty settings; malformed content raises
    SettingsError so the user sees why their override was ignored.
    """
    if path is None:
        return {}
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.debug("Settings file %s not found, using defaults", path)
        return {}
    except OSError as e:
        raise SettingsError(f"Cannot read settings file {path}: {e}") from e
    try:
        data = json.loads(raw) if raw.strip() else {}
    except json.JSONDecodeError as e:
        raise SettingsError(f"Invalid JSON in settings file {path}: {e}") from e
    if not isinstance(data, dict):
        raise SettingsError(f"Settings file {path} must contain a JSON object")
    return data


class WorkspaceConfiguration:
    """Read-only view of one settings section (``arcane`` by default)."""

    def __init__(self, settings: Optional[Mapping[str, Any]] = None, section: str = SECTION):
        self.section = section
        self._values: Dict[str, Any] = {}
        settings = settings or {}

        nested = settings.get(section)
        if isinstance(nested, Mapping):
            self._values.update(nested)

        # Dotted keys win over the nested object, as in editor settings files
        prefix = section + "."
        for key, value in settings.items():
            if isinstance(key, str) and key.startswith(prefix):
                self._values[key[len(prefix):]] = value

    @classmethod
    def from_file(cls, path: Optional[Path], section: str = SECTION) -> "WorkspaceConfiguration":
        return cls(load_settings(path), section=section)

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def with_overrides(self, **overrides: Any) -> "WorkspaceConfiguration":
        """Return a copy with non-None *overrides* applied (used for CLI flags)."""
        values = dict(self._values)
        for key, value in overrides.items():
            if value is not None:
                values[key] = value
        return WorkspaceConfiguration({self.section: values}, section=self.section)

    def __repr__(self) -> str:
        return f"WorkspaceConfiguration({self.section!r}, {self._values!r})"
