"""On-this-day memory scheduling."""

from __future__ import annotations

import logging
import random
from datetime import datetime, timedelta

from whisperwell.chat.models import PendingRecall
from whisperwell.journal.models import JournalEntry
from whisperwell.journal.store import EntryStore

logger = logging.getLogger(__name__)

PREVIEW_CHARS = 100


def format_memory(entry: JournalEntry, now: datetime) -> str:
    """Quote the start of a past entry with a reflective framing sentence."""
    years_ago = now.year - entry.date.year
    unit = "year" if years_ago == 1 else "years"
    preview = entry.content[:PREVIEW_CHARS]
    if len(entry.content) > PREVIEW_CHARS:
        preview += "..."
    return (
        f'💫 On this day {years_ago} {unit} ago, you wrote: "{preview}" '
        "Isn't it interesting to see how things change?"
    )


class RecallScheduler:
    """Picks at most one anniversary entry per session start."""

    def __init__(
        self,
        store: EntryStore,
        *,
        delay_seconds: float = 2.0,
        rng: random.Random | None = None,
    ) -> None:
        self._store = store
        self._delay = timedelta(seconds=delay_seconds)
        self._rng = rng or random.Random()

    def schedule(self, now: datetime) -> PendingRecall | None:
        """Return a memory turn due after the configured delay, if any."""
        candidates = self._store.list_on_this_day()
        if not candidates:
            return None
        entry = self._rng.choice(candidates)
        logger.debug("Scheduling on-this-day memory from %s", entry.date.date())
        return PendingRecall(
            content=format_memory(entry, now),
            due_at=now + self._delay,
            entry_date=entry.date,
        )
