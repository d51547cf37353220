"""Mood, tag, and prompt derivation for journal entries.

Tag extraction is an offline keyword scan. Mood detection and prompt
generation call the completion service and always fall back to fixed text
when it fails; they never raise.
"""

from __future__ import annotations

import logging
from collections import Counter
from collections.abc import Sequence
from datetime import datetime
from typing import Protocol

from whisperwell.errors import ClassificationError, CompletionError, ConfigError
from whisperwell.journal.models import MAX_TAGS, JournalEntry, Outcome, OutcomeStatus
from whisperwell.journal.prompts import (
    JOURNAL_PROMPT_SYSTEM_PROMPT,
    MOOD_FALLBACK,
    MOOD_SYSTEM_PROMPT,
    PROMPT_FALLBACK,
    render_journal_prompt_request,
)

logger = logging.getLogger(__name__)

EMOTION_VOCABULARY: tuple[str, ...] = (
    "happy",
    "sad",
    "angry",
    "anxious",
    "excited",
    "tired",
    "grateful",
    "frustrated",
    "calm",
    "overwhelmed",
    "hopeful",
    "motivated",
    "inspired",
    "worried",
    "content",
    "stressed",
    "relaxed",
    "proud",
    "disappointed",
)


class Completer(Protocol):
    """Anything that can turn a message list into text."""

    def complete(
        self,
        messages: Sequence[dict[str, str]],
        *,
        max_tokens: int | None = None,
        label: str = "chat",
    ) -> str: ...


def extract_tags(text: str) -> list[str]:
    """Return up to three vocabulary words found in ``text``.

    Matching is a case-insensitive substring test, so "unhappy" yields
    "happy". Results follow vocabulary order, not the order in the text.
    """
    lowered = text.lower()
    return [word for word in EMOTION_VOCABULARY if word in lowered][:MAX_TAGS]


def _classify(
    client: Completer,
    system_prompt: str,
    user_prompt: str,
    *,
    fallback: str,
    label: str,
) -> Outcome:
    try:
        text = client.complete(
            [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            max_tokens=150,
            label=label,
        )
    except ConfigError as exc:
        logger.warning("Skipping %s: %s", label, exc)
        return Outcome(status=OutcomeStatus.FATAL, value=fallback, error=str(exc))
    except CompletionError as exc:
        error = ClassificationError(f"{label} failed: {exc}")
        logger.warning("%s, using fallback", error)
        return Outcome(status=OutcomeStatus.DEGRADED, value=fallback, error=str(error))

    text = text.strip()
    if not text:
        return Outcome(
            status=OutcomeStatus.DEGRADED,
            value=fallback,
            error=f"{label} returned no text",
        )
    return Outcome(status=OutcomeStatus.SUCCESS, value=text)


def detect_mood(text: str, client: Completer) -> Outcome:
    """Describe the emotional tone of ``text`` in one warm sentence."""
    return _classify(
        client,
        MOOD_SYSTEM_PROMPT,
        text,
        fallback=MOOD_FALLBACK,
        label="mood detection",
    )


def generate_prompt(
    previous_entries: Sequence[JournalEntry],
    client: Completer,
    now: datetime | None = None,
) -> Outcome:
    """Produce one journaling prompt informed by the weekday and past moods."""
    now = now or datetime.now()
    moods = [e.mood for e in previous_entries if e.mood]
    return _classify(
        client,
        JOURNAL_PROMPT_SYSTEM_PROMPT,
        render_journal_prompt_request(now.strftime("%A"), moods),
        fallback=PROMPT_FALLBACK,
        label="journal prompt",
    )


def extract_common_themes(entries: Sequence[JournalEntry]) -> list[str]:
    """Return tags that appear in more than one entry, in first-seen order."""
    counts = Counter(tag for entry in entries for tag in entry.tags)
    return [tag for tag, count in counts.items() if count > 1]
