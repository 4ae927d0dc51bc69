"""Persisted user settings (schema version, last files, custom formulas)."""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from .schema import SchemaVersion
from .session import CustomFormula, Files

logger = logging.getLogger(__name__)


def default_path() -> Path:
    base = os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config"
    return Path(base) / "wheeltelem" / "settings.json"


@dataclass
class Settings:
    version: SchemaVersion = SchemaVersion.V2
    files: Files | None = None
    custom: list[CustomFormula] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "version": int(self.version),
            "files": self.files.to_dict() if self.files is not None else None,
            "custom": [c.to_dict() for c in self.custom],
        }

    @classmethod
    def from_dict(cls, d: dict) -> Settings:
        files = d.get("files")
        return cls(
            version=SchemaVersion(d.get("version", SchemaVersion.V2)),
            files=Files.from_dict(files) if files else None,
            custom=[CustomFormula.from_dict(c) for c in d.get("custom", [])],
        )


def load(path: str | Path | None = None) -> Settings:
    """Read settings; a missing or unreadable file yields defaults."""
    path = Path(path) if path is not None else default_path()
    try:
        with open(path, encoding="utf-8") as f:
            return Settings.from_dict(json.load(f))
    except FileNotFoundError:
        return Settings()
    except (OSError, ValueError, KeyError, TypeError) as e:
        logger.warning("ignoring settings file %s: %s", path, e)
        return Settings()


def save(settings: Settings, path: str | Path | None = None) -> None:
    path = Path(path) if path is not None else default_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(settings.to_dict(), f, indent=2)
