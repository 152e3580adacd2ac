"""Aggregation of journal entries by topic, touched file and session type."""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from typing import TypeVar

from sessionpress.journal.models import JournalEntry, KeyFileData, TopicData, TypeData

POPULARITY_THRESHOLD = 2

_SLUG_UNSAFE_RE = re.compile(r"[^A-Za-z0-9_-]")

GroupT = TypeVar("GroupT", TopicData, KeyFileData, TypeData)


def filter_regular_entries(entries: Iterable[JournalEntry]) -> list[JournalEntry]:
    """Drop suggestion-mode runs and part 2+ of split sessions."""
    return [e for e in entries if e.is_regular]


def filter_entries_with_topics(entries: Iterable[JournalEntry]) -> list[JournalEntry]:
    return [e for e in entries if e.is_regular and e.topics]


def filter_entries_with_key_files(entries: Iterable[JournalEntry]) -> list[JournalEntry]:
    return [e for e in entries if e.is_regular and e.key_files]


def filter_entries_with_type(entries: Iterable[JournalEntry]) -> list[JournalEntry]:
    return [e for e in entries if e.is_regular and e.type]


def _group(
    entries: Iterable[JournalEntry],
    keys_of: Callable[[JournalEntry], Iterable[str]],
) -> dict[str, list[JournalEntry]]:
    groups: dict[str, list[JournalEntry]] = {}
    for entry in entries:
        seen: set[str] = set()
        for key in keys_of(entry):
            if not key or key in seen:
                continue
            seen.add(key)
            groups.setdefault(key, []).append(entry)
    return groups


def _sorted_groups(
    groups: dict[str, list[JournalEntry]],
    make: Callable[[str, list[JournalEntry], bool], GroupT],
) -> list[GroupT]:
    ordered = sorted(groups.items(), key=lambda item: (-len(item[1]), item[0]))
    return [
        make(key, members, len(members) >= POPULARITY_THRESHOLD)
        for key, members in ordered
    ]


def build_topic_index(entries: Iterable[JournalEntry]) -> list[TopicData]:
    """Group entries by topic, most shared first, then alphabetically."""
    return _sorted_groups(
        _group(entries, lambda e: e.topics),
        lambda key, members, popular: TopicData(name=key, entries=members, popular=popular),
    )


def build_key_file_index(entries: Iterable[JournalEntry]) -> list[KeyFileData]:
    """Group entries by the files they touched."""
    return _sorted_groups(
        _group(entries, lambda e: e.key_files),
        lambda key, members, popular: KeyFileData(path=key, entries=members, popular=popular),
    )


def build_type_index(entries: Iterable[JournalEntry]) -> list[TypeData]:
    """Group entries by session type."""
    return _sorted_groups(
        _group(entries, lambda e: [e.type]),
        lambda key, members, popular: TypeData(name=key, entries=members, popular=popular),
    )


def build_topic_lookup(entries: Iterable[JournalEntry]) -> dict[str, list[JournalEntry]]:
    """Map each topic to the entries carrying it, for related-session lookups."""
    return _group(entries, lambda e: e.topics)


def group_by_month(entries: Iterable[JournalEntry]) -> tuple[dict[str, list[JournalEntry]], list[str]]:
    """Group entries by ``YYYY-MM``, keeping months in first-seen order.

    Entries whose date is too short to carry a month are skipped.
    """
    months: dict[str, list[JournalEntry]] = {}
    order: list[str] = []
    for entry in entries:
        month = entry.month
        if not month:
            continue
        if month not in months:
            months[month] = []
            order.append(month)
        months[month].append(entry)
    return months, order


def key_file_slug(path: str) -> str:
    """Turn a file path into a page name: ``cmd/main.go`` -> ``cmd_main_go``."""
    return _SLUG_UNSAFE_RE.sub("_", path.replace("*", "x"))


def split_popular(groups: list[GroupT]) -> tuple[list[GroupT], list[GroupT]]:
    popular = [g for g in groups if g.popular]
    longtail = [g for g in groups if not g.popular]
    return popular, longtail


def count_unique_sessions(groups: Iterable[TopicData | KeyFileData | TypeData]) -> int:
    return len({e.filename for g in groups for e in g.entries})
