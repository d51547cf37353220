"""Journal entries: durable storage and mood/tag classification."""

from whisperwell.journal.classifier import (
    EMOTION_VOCABULARY,
    detect_mood,
    extract_common_themes,
    extract_tags,
    generate_prompt,
)
from whisperwell.journal.models import JournalEntry, Outcome, OutcomeStatus
from whisperwell.journal.store import (
    JOURNAL_STORAGE_KEY,
    EntryStore,
    FileKeyValueStore,
    KeyValueStore,
    MemoryKeyValueStore,
)

__all__ = [
    "EMOTION_VOCABULARY",
    "JOURNAL_STORAGE_KEY",
    "EntryStore",
    "FileKeyValueStore",
    "JournalEntry",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "Outcome",
    "OutcomeStatus",
    "detect_mood",
    "extract_common_themes",
    "extract_tags",
    "generate_prompt",
]
