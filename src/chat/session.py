"""Conversation orchestration.

``ConversationService`` applies user actions to an explicit ``Session``:
each call takes the session, appends to it, and returns a ``TurnResult``
describing the transition. Sessions are independent of each other; the
service holds only collaborators.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime

from whisperwell.chat.composer import (
    DEFAULT_WEEKLY_TRIGGER_WORDS,
    build_completion_request,
    build_system_message,
)
from whisperwell.chat.models import (
    ConversationTurn,
    ErrorKind,
    Role,
    Session,
    SessionState,
    TurnResult,
)
from whisperwell.chat.recall import RecallScheduler
from whisperwell.config import WhisperWellConfig
from whisperwell.errors import CompletionError, ConfigError, PersistenceError
from whisperwell.journal.classifier import Completer, detect_mood, extract_tags, generate_prompt
from whisperwell.journal.store import EntryStore

logger = logging.getLogger(__name__)

WELCOME_PREFIX = "Welcome to your journal."
WELCOME_FALLBACK = "Welcome to your journal. How are you feeling today?"
JOURNAL_MODE_NOTICE = "Journal mode activated. Your next message will be saved as a journal entry."
BUSY_NOTICE = "Still waiting for the previous reply."
SAVE_FAILED_NOTICE = "Failed to save journal entry. Your message was kept; try again."


class ConversationService:
    """Runs the turn-by-turn state machine for chat sessions."""

    def __init__(
        self,
        store: EntryStore,
        client: Completer,
        *,
        config: WhisperWellConfig | None = None,
        clock: Callable[[], datetime] = datetime.now,
        rng: random.Random | None = None,
    ) -> None:
        config = config or WhisperWellConfig()
        self._store = store
        self._client = client
        self._clock = clock
        self._weekly_trigger_words = tuple(
            config.prompts.weekly_trigger_words or DEFAULT_WEEKLY_TRIGGER_WORDS
        )
        self._recall = RecallScheduler(
            store,
            delay_seconds=config.recall.delay_seconds,
            rng=rng,
        )

    @contextmanager
    def _in_flight(self, session: Session) -> Iterator[None]:
        session.state = SessionState.AWAITING_RESPONSE
        try:
            yield
        finally:
            session.state = SessionState.IDLE

    # ── Session start ────────────────────────────────────────────

    def start(self, session: Session) -> list[ConversationTurn]:
        """Open a session: welcome prompt and on-this-day recall.

        The welcome turn is only added to an empty session with no entries
        written today. The recall turn is scheduled, not appended; it shows
        up through ``deliver_due_recalls``.

        Returns:
            Turns appended by this call.
        """
        now = self._clock()
        appended: list[ConversationTurn] = []

        if not session.turns and not self._store.list_today():
            with self._in_flight(session):
                outcome = generate_prompt(self._store.list(), self._client, now)
            if outcome.ok:
                content = f"{WELCOME_PREFIX} {outcome.value}"
            else:
                content = WELCOME_FALLBACK
            appended.append(session.record(Role.ASSISTANT, content, self._clock()))

        pending = self._recall.schedule(now)
        if pending is not None:
            session.pending_recalls.append(pending)

        return appended

    def deliver_due_recalls(
        self, session: Session, now: datetime | None = None
    ) -> list[ConversationTurn]:
        """Append every scheduled recall whose delay has elapsed."""
        now = now or self._clock()
        due = [p for p in session.pending_recalls if p.due_at <= now]
        if not due:
            return []
        session.pending_recalls = [p for p in session.pending_recalls if p.due_at > now]
        return [session.record(Role.ASSISTANT, p.content, now) for p in due]

    # ── User actions ─────────────────────────────────────────────

    def toggle_journal_mode(self, session: Session) -> TurnResult:
        """Flip journal mode. Turning it on yields a one-time notice."""
        session.journal_mode = not session.journal_mode
        return TurnResult(
            accepted=True,
            journal_mode=session.journal_mode,
            notice=JOURNAL_MODE_NOTICE if session.journal_mode else None,
        )

    def submit(self, session: Session, text: str) -> TurnResult:
        """Handle one user message.

        In journal mode the message becomes a journal entry and the reply is
        its detected mood; otherwise it is answered by the completion service.
        Blank input and input sent while a reply is pending are ignored.
        """
        content = text.strip()
        if not content:
            return TurnResult(accepted=False, journal_mode=session.journal_mode)
        if session.is_busy:
            logger.warning("Rejected input while awaiting a response")
            return TurnResult(
                accepted=False,
                journal_mode=session.journal_mode,
                notice=BUSY_NOTICE,
            )

        if session.journal_mode:
            return self._capture(session, content)
        return self._converse(session, content)

    # ── Transitions ──────────────────────────────────────────────

    def _converse(self, session: Session, content: str) -> TurnResult:
        now = self._clock()
        prior_history = list(session.history)
        user_turn = session.record(Role.USER, content, now)

        try:
            with self._in_flight(session):
                system_message = build_system_message(
                    self._store.list(),
                    content,
                    now,
                    self._weekly_trigger_words,
                )
                request = build_completion_request(system_message, prior_history, content)
                reply = self._client.complete(request, label="chat")
        except ConfigError as exc:
            logger.error("Completion unavailable: %s", exc)
            return TurnResult(
                accepted=True,
                journal_mode=session.journal_mode,
                user_turn=user_turn,
                notice=str(exc),
                error_kind=ErrorKind.CONFIG,
            )
        except CompletionError as exc:
            logger.warning("Completion failed: %s", exc)
            return TurnResult(
                accepted=True,
                journal_mode=session.journal_mode,
                user_turn=user_turn,
                notice=str(exc),
                error_kind=ErrorKind.COMPLETION,
            )

        assistant_turn = session.record(Role.ASSISTANT, reply, self._clock())
        return TurnResult(
            accepted=True,
            journal_mode=session.journal_mode,
            user_turn=user_turn,
            assistant_turn=assistant_turn,
        )

    def _capture(self, session: Session, content: str) -> TurnResult:
        now = self._clock()
        user_turn = session.record(Role.USER, content, now)

        with self._in_flight(session):
            mood = detect_mood(content, self._client)
        tags = extract_tags(content)

        try:
            entry = self._store.append(content, mood=mood.value, tags=tags, date=now)
        except PersistenceError as exc:
            logger.error("Error saving journal entry: %s", exc)
            return TurnResult(
                accepted=True,
                journal_mode=session.journal_mode,
                user_turn=user_turn,
                notice=SAVE_FAILED_NOTICE,
                error_kind=ErrorKind.PERSISTENCE,
            )

        assistant_turn = session.record(
            Role.ASSISTANT, mood.value, self._clock(), tags=list(entry.tags)
        )
        session.journal_mode = False
        return TurnResult(
            accepted=True,
            journal_mode=session.journal_mode,
            user_turn=user_turn,
            assistant_turn=assistant_turn,
            entry=entry,
        )
