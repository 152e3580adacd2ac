"""Journal entry scanning, normalization, indexing and state.

Each exported session is a Markdown file. This package reads them into
``JournalEntry`` records, cleans their text and groups them for the site
and vault generators.
"""

from sessionpress.journal.models import JournalEntry, KeyFileData, TopicData, TypeData
from sessionpress.journal.normalize import normalize_source
from sessionpress.journal.sanitize import normalize_site_content
from sessionpress.journal.scanner import scan_journal_entries
from sessionpress.journal.state import FileState, JournalState

__all__ = [
    "FileState",
    "JournalEntry",
    "JournalState",
    "KeyFileData",
    "TopicData",
    "TypeData",
    "normalize_site_content",
    "normalize_source",
    "scan_journal_entries",
]
