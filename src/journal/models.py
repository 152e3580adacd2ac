"""Data models for journal entries and their aggregations."""

from __future__ import annotations

import datetime as dt
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from sessionpress.journal.patterns import is_multipart_continuation

MARKDOWN_EXT = ".md"
DATE_PREFIX_LEN = 10
MONTH_PREFIX_LEN = 7
TIME_PREFIX_LEN = 5


def _coerce_str_list(value: Any) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, (list, tuple, set)):
        # A lone scalar; YAML may hand back a date, bool or mapping here
        return [str(value)]
    return [str(item) for item in value if item is not None and str(item).strip()]


class Frontmatter(BaseModel):
    """Typed view of the YAML block at the top of an enriched entry.

    YAML 1.1 turns an unquoted ``2026-01-23`` into a date and an unquoted
    ``14:30:00`` into a base-60 integer; both are folded back into strings.
    Unknown keys are ignored.
    """

    model_config = ConfigDict(extra="ignore")

    title: str = ""
    date: str = ""
    time: str = ""
    project: str = ""
    session_id: str = ""
    type: str = ""
    outcome: str = ""
    topics: list[str] = Field(default_factory=list)
    key_files: list[str] = Field(default_factory=list)
    technologies: list[str] = Field(default_factory=list)
    summary: str = ""

    @field_validator(
        "title", "project", "session_id", "type", "outcome", "summary", mode="before"
    )
    @classmethod
    def _scalar_to_str(cls, value: Any) -> str:
        if value is None:
            return ""
        return str(value).strip()

    @field_validator("date", mode="before")
    @classmethod
    def _date_to_str(cls, value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, (dt.date, dt.datetime)):
            return value.strftime("%Y-%m-%d")
        return str(value).strip()

    @field_validator("time", mode="before")
    @classmethod
    def _time_to_str(cls, value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, dt.time):
            return value.strftime("%H:%M:%S")
        if isinstance(value, int) and not isinstance(value, bool):
            hours, rest = divmod(value, 3600)
            minutes, seconds = divmod(rest, 60)
            return f"{hours:02d}:{minutes:02d}:{seconds:02d}"
        return str(value).strip()

    @field_validator("topics", "key_files", "technologies", mode="before")
    @classmethod
    def _to_str_list(cls, value: Any) -> list[str]:
        return _coerce_str_list(value)


class JournalEntry(BaseModel):
    """One exported session file, rebuilt from disk on every run."""

    filename: str
    path: Path
    title: str = ""
    date: str = ""
    time: str = ""
    project: str = ""
    session_id: str = ""
    size: int = 0
    suggestive: bool = False
    topics: list[str] = Field(default_factory=list)
    type: str = ""
    outcome: str = ""
    key_files: list[str] = Field(default_factory=list)
    summary: str = ""

    @property
    def slug(self) -> str:
        """Filename without the ``.md`` extension, used as the link target."""
        return self.filename.removesuffix(MARKDOWN_EXT)

    @property
    def month(self) -> str:
        return self.date[:MONTH_PREFIX_LEN] if len(self.date) >= MONTH_PREFIX_LEN else ""

    @property
    def short_time(self) -> str:
        return self.time[:TIME_PREFIX_LEN] if len(self.time) >= TIME_PREFIX_LEN else ""

    @property
    def sort_key(self) -> str:
        return f"{self.date} {self.time}"

    @property
    def is_continuation(self) -> bool:
        return is_multipart_continuation(self.filename)

    @property
    def is_regular(self) -> bool:
        """Not a suggestion-mode run and not part 2+ of a split session."""
        return not self.suggestive and not self.is_continuation


class TopicData(BaseModel):
    """Entries sharing one topic."""

    name: str
    entries: list[JournalEntry] = Field(default_factory=list)
    popular: bool = False

    @property
    def key(self) -> str:
        return self.name


class KeyFileData(BaseModel):
    """Entries that touched one file path."""

    path: str
    entries: list[JournalEntry] = Field(default_factory=list)
    popular: bool = False

    @property
    def key(self) -> str:
        return self.path


class TypeData(BaseModel):
    """Entries of one session type."""

    name: str
    entries: list[JournalEntry] = Field(default_factory=list)
    popular: bool = False

    @property
    def key(self) -> str:
        return self.name
