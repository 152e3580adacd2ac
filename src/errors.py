"""Errors and per-run reporting for the generation pipelines.

Setup problems that make a run pointless raise a ``JournalError``. Anything
scoped to a single file is recorded on a ``PipelineReport`` and the run
carries on.
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

EXPORT_HINT = "Run the session export first"


class JournalError(Exception):
    """Base class for errors that abort a whole run."""


class JournalDirNotFoundError(JournalError):
    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"no journal directory found at {path}\n{EXPORT_HINT}")


class NoJournalEntriesError(JournalError):
    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"no journal entries found in {path}\n{EXPORT_HINT}")


class SiteToolNotFoundError(JournalError):
    def __init__(self, binary: str) -> None:
        self.binary = binary
        super().__init__(f"{binary} not found. Install with: pipx install {binary}")


class UnknownStageError(JournalError):
    def __init__(self, stage: str, valid: tuple[str, ...]) -> None:
        self.stage = stage
        super().__init__(f"unknown stage {stage!r}; valid: {', '.join(valid)}")


MAX_LISTED_PROBLEMS = 5


class PipelineError(BaseModel):
    """One file that could not be read, normalized or written."""

    stage: str
    source: str = ""
    error_type: str = "unknown"
    message: str = ""
    timestamp: datetime = Field(default_factory=datetime.now)
    recoverable: bool = True

    def describe(self) -> str:
        return f"{self.source or self.stage}: {self.message}"


class PipelineReport(BaseModel):
    """What a site or vault run produced and which files gave trouble.

    ``items_processed`` is keyed by kind (``entries`` scanned, ``pages``
    rendered) and ``outputs_written`` holds every path the run wrote, in
    write order.
    """

    started_at: datetime = Field(default_factory=datetime.now)
    finished_at: datetime | None = None
    stages_completed: list[str] = Field(default_factory=list)
    errors: list[PipelineError] = Field(default_factory=list)
    items_processed: dict[str, int] = Field(default_factory=dict)
    outputs_written: list[str] = Field(default_factory=list)

    def add_error(
        self,
        stage: str,
        message: str,
        *,
        source: str = "",
        error_type: str = "unknown",
        recoverable: bool = True,
    ) -> None:
        problem = PipelineError(
            stage=stage, source=source, error_type=error_type, message=message, recoverable=recoverable
        )
        logger.debug("Recorded %s in %s: %s", error_type, stage, problem.describe())
        self.errors.append(problem)

    def mark_stage_complete(self, stage: str) -> None:
        if stage not in self.stages_completed:
            self.stages_completed.append(stage)

    def record_output(self, path: Path) -> None:
        self.outputs_written.append(str(path))

    def finish(self) -> None:
        self.finished_at = datetime.now()

    @property
    def success(self) -> bool:
        """Per-file problems are recoverable; any other kind fails the run."""
        return all(err.recoverable for err in self.errors)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    @property
    def elapsed(self) -> float | None:
        """Seconds between start and ``finish()``, or None while running."""
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()

    def problem_lines(self, limit: int = MAX_LISTED_PROBLEMS) -> list[str]:
        """One line per problem, capped at ``limit`` with an overflow note."""
        lines = [err.describe() for err in self.errors[:limit]]
        hidden = self.error_count - limit
        if hidden > 0:
            lines.append(f"... and {hidden} more")
        return lines

    def summary_text(self) -> str:
        header = "Run completed" if self.success else "Run failed"
        if self.elapsed is not None:
            header += f" after {self.elapsed:.1f}s"
        lines = [header]

        if self.stages_completed:
            lines.append("Stages: " + ", ".join(self.stages_completed))
        counts = ", ".join(f"{kind}: {n}" for kind, n in self.items_processed.items())
        if counts:
            lines.append("Processed: " + counts)
        if self.outputs_written:
            lines.append(f"Wrote {len(self.outputs_written)} files")
        if self.errors:
            lines.append(f"Problems: {self.error_count}")
            lines.extend(f"  - {line}" for line in self.problem_lines())
        return "\n".join(lines)
