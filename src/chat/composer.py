"""System message and completion request construction.

Journal content only reaches the completion service when the current
utterance asks for it: a weekly summary on Sundays, or a past-self
reflection. Every other request carries the persona alone.
"""

from __future__ import annotations

import json
from collections.abc import Sequence
from datetime import datetime, timedelta

from whisperwell.chat.models import ChatMessage, Role
from whisperwell.journal.models import JournalEntry

PERSONA = """\
You are Whisper Well, a warm and thoughtful journaling companion. You help \
the user reflect on their day, notice patterns in how they feel, and \
remember what mattered to them.

Guidelines:
- Keep a gentle, encouraging tone. Be concise.
- Use emoji sparingly, at most one or two per reply.
- Never diagnose or lecture; ask open questions when it helps reflection.
- End every reply with exactly one hashtag naming the emotional tone of the \
conversation (for example #hopeful)."""

WEEKLY_SUMMARY_HEADER = """\
The user is asking for a summary of their week. Here are their journal \
entries from the past seven days. Summarize the recurring moods and themes \
kindly and point out one thing worth celebrating."""

PAST_SELF_HEADER = """\
The user wants to reflect on who they were in the past. Here are their \
journal entries. Describe how their moods and concerns have changed over \
time, quoting sparingly."""

DEFAULT_WEEKLY_TRIGGER_WORDS: tuple[str, ...] = ("week",)

PAST_SELF_PHRASES: tuple[str, ...] = ("what was i like", "summarize", "past entries")

SUNDAY = 6


def is_weekly_summary_request(
    utterance: str,
    now: datetime,
    trigger_words: Sequence[str] = DEFAULT_WEEKLY_TRIGGER_WORDS,
) -> bool:
    """True on Sundays when the utterance mentions one of the trigger words."""
    if now.weekday() != SUNDAY:
        return False
    lowered = utterance.lower()
    return any(word.lower() in lowered for word in trigger_words)


def is_past_self_request(utterance: str) -> bool:
    lowered = utterance.lower()
    return any(phrase in lowered for phrase in PAST_SELF_PHRASES)


def render_entries_block(entries: Sequence[JournalEntry]) -> str:
    """Serialize entries (date, content, mood) as a JSON array."""
    payload = [
        {
            "date": entry.date.isoformat(),
            "content": entry.content,
            "mood": entry.mood,
        }
        for entry in entries
    ]
    return json.dumps(payload, indent=2, ensure_ascii=False)


def build_system_message(
    entries: Sequence[JournalEntry],
    utterance: str,
    now: datetime | None = None,
    weekly_trigger_words: Sequence[str] = DEFAULT_WEEKLY_TRIGGER_WORDS,
) -> str:
    """Build the system message for one completion request.

    Args:
        entries: All journal entries, most recent first.
        utterance: The user message being answered. Only this message is
            checked for triggers, never earlier turns.
        now: Current local time.
        weekly_trigger_words: Words that request a weekly summary on Sundays.

    Returns:
        The persona, followed by an entry block when a trigger fires.
    """
    now = now or datetime.now()
    sections = [PERSONA]

    if is_weekly_summary_request(utterance, now, weekly_trigger_words):
        week_ago = now - timedelta(days=7)
        recent = [e for e in entries if week_ago <= e.date <= now]
        sections.append(WEEKLY_SUMMARY_HEADER)
        sections.append(render_entries_block(recent))
    elif is_past_self_request(utterance):
        sections.append(PAST_SELF_HEADER)
        sections.append(render_entries_block(entries))

    return "\n\n".join(sections)


def build_completion_request(
    system_message: str,
    history: Sequence[ChatMessage],
    utterance: str,
) -> list[dict[str, str]]:
    """Order the request: system message, prior history, then the new turn."""
    messages = [ChatMessage(role=Role.SYSTEM, content=system_message).to_wire()]
    messages.extend(message.to_wire() for message in history)
    messages.append(ChatMessage(role=Role.USER, content=utterance).to_wire())
    return messages
