"""Current-session holder for an interactive front end.

The front end owns one Workbench and calls into it when the user picks a
folder, drops one onto the window, switches schema version or edits the
custom channel list.  Each open replaces the session wholesale.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

from .decoder import LogError
from .schema import SchemaVersion
from .session import CustomFormula, Files, Session, find_files, open_files
from .settings import Settings

logger = logging.getLogger(__name__)


class Workbench:

    def __init__(self, version: SchemaVersion = SchemaVersion.V2,
                 custom: Sequence[CustomFormula] = ()):
        self.version = SchemaVersion(version)
        self.custom: list[CustomFormula] = list(custom)
        self.files: Files | None = None
        self.session: Session | None = None
        self.error: LogError | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> Workbench:
        wb = cls(settings.version, settings.custom)
        wb.files = settings.files
        return wb

    def to_settings(self) -> Settings:
        return Settings(self.version, self.files, list(self.custom))

    def open_dir(self, path: str | Path) -> bool:
        """Discover segments in *path* and open them.  Returns success."""
        try:
            files = find_files(path)
        except LogError as e:
            logger.error("cannot list %s: %s", path, e.reason)
            self.session = None
            self.error = e
            return False
        return self.try_open(files)

    def try_open(self, files: Files) -> bool:
        """Open *files*; on failure the previous session is dropped."""
        self.files = files
        try:
            self.session = open_files(files, self.version, self.custom)
            self.error = None
        except LogError as e:
            logger.error("failed to open session: %s", e)
            self.session = None
            self.error = e
        return self.session is not None

    def reopen(self) -> bool:
        if self.files is None:
            return False
        return self.try_open(self.files)

    def set_version(self, version: SchemaVersion) -> bool:
        """Switch schema version and re-decode the current files."""
        self.version = SchemaVersion(version)
        return self.reopen()

    def set_custom(self, custom: Sequence[CustomFormula]) -> None:
        """Replace the custom formulas; logs are not decoded again."""
        self.custom = list(custom)
        if self.session is not None:
            self.session = self.session.with_custom(self.custom)
