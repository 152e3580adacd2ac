"""Per-file processing state kept beside the journal.

The sidecar (``.state.json`` in the journal directory) records the date each
processing stage completed for each file. A non-empty date is the only
completion signal; file content is never inspected for markers.
"""

from __future__ import annotations

import logging
import os
from datetime import date
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError, model_serializer

from sessionpress.journal.models import MARKDOWN_EXT

logger = logging.getLogger(__name__)

STATE_FILENAME = ".state.json"
CURRENT_VERSION = 1

STAGE_EXPORTED = "exported"
STAGE_ENRICHED = "enriched"
STAGE_NORMALIZED = "normalized"
STAGE_FENCES_VERIFIED = "fences_verified"
VALID_STAGES = (STAGE_EXPORTED, STAGE_ENRICHED, STAGE_NORMALIZED, STAGE_FENCES_VERIFIED)


class FileState(BaseModel):
    """Completion dates (``YYYY-MM-DD``) for one journal file; empty means not done."""

    exported: str = ""
    enriched: str = ""
    normalized: str = ""
    fences_verified: str = ""

    @model_serializer(mode="wrap")
    def _omit_pending(self, handler):
        return {stage: done for stage, done in handler(self).items() if done}


class JournalState(BaseModel):
    """Repository over the sidecar document.

    Load once per run, pass it to whatever needs it, save once at the end.
    """

    version: int = CURRENT_VERSION
    entries: dict[str, FileState] = Field(default_factory=dict)

    @classmethod
    def load(cls, journal_dir: Path) -> JournalState:
        """Load the sidecar, or an empty state when it is missing or corrupt."""
        state_path = journal_dir / STATE_FILENAME
        if not state_path.exists():
            return cls()
        try:
            state = cls.model_validate_json(state_path.read_text(encoding="utf-8"))
        except (OSError, ValidationError, ValueError) as exc:
            logger.warning("Corrupt journal state at %s, starting fresh: %s", state_path, exc)
            return cls()
        return state

    def save(self, journal_dir: Path) -> Path:
        """Write the sidecar via a temp file and rename."""
        state_path = journal_dir / STATE_FILENAME
        tmp_path = state_path.with_name(STATE_FILENAME + ".tmp")
        snapshot = self.model_copy(update={"entries": dict(sorted(self.entries.items()))})
        try:
            tmp_path.write_text(snapshot.model_dump_json(indent=2) + "\n", encoding="utf-8")
            os.replace(tmp_path, state_path)
        except BaseException:
            tmp_path.unlink(missing_ok=True)
            raise
        return state_path

    def stage_value(self, filename: str, stage: str) -> str:
        if stage not in VALID_STAGES:
            raise ValueError(f"unknown stage {stage!r}")
        fs = self.entries.get(filename)
        return getattr(fs, stage) if fs is not None else ""

    def mark(self, filename: str, stage: str, on: date | None = None) -> bool:
        """Record ``stage`` as completed today. Returns False for an unknown stage."""
        if stage not in VALID_STAGES:
            return False
        fs = self.entries.setdefault(filename, FileState())
        setattr(fs, stage, (on or date.today()).isoformat())
        return True

    def mark_exported(self, filename: str) -> None:
        self.mark(filename, STAGE_EXPORTED)

    def mark_enriched(self, filename: str) -> None:
        self.mark(filename, STAGE_ENRICHED)

    def mark_normalized(self, filename: str) -> None:
        self.mark(filename, STAGE_NORMALIZED)

    def mark_fences_verified(self, filename: str) -> None:
        self.mark(filename, STAGE_FENCES_VERIFIED)

    def rename(self, old_name: str, new_name: str) -> None:
        """Move a file's record to its new name."""
        fs = self.entries.pop(old_name, None)
        if fs is not None:
            self.entries[new_name] = fs

    def is_exported(self, filename: str) -> bool:
        return bool(self.stage_value(filename, STAGE_EXPORTED))

    def is_enriched(self, filename: str) -> bool:
        return bool(self.stage_value(filename, STAGE_ENRICHED))

    def is_normalized(self, filename: str) -> bool:
        return bool(self.stage_value(filename, STAGE_NORMALIZED))

    def is_fences_verified(self, filename: str) -> bool:
        return bool(self.stage_value(filename, STAGE_FENCES_VERIFIED))

    def count_unenriched(self, journal_dir: Path) -> int:
        """Number of ``*.md`` files in ``journal_dir`` not yet marked enriched."""
        try:
            paths = list(journal_dir.iterdir())
        except OSError:
            return 0
        return sum(
            1
            for path in paths
            if path.suffix == MARKDOWN_EXT and path.is_file() and not self.is_enriched(path.name)
        )
