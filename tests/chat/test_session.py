"""Tests for ConversationService: the per-turn session state machine."""

import random
from datetime import datetime, timedelta
from unittest.mock import MagicMock, patch

import anthropic
import httpx
import pytest
from whisperwell.chat.composer import PERSONA
from whisperwell.chat.models import ErrorKind, Role, Session, SessionState
from whisperwell.chat.session import (
    JOURNAL_MODE_NOTICE,
    WELCOME_FALLBACK,
    ConversationService,
)
from whisperwell.config import ModelSectionConfig, WhisperWellConfig
from whisperwell.errors import CompletionError, ConfigError
from whisperwell.journal.prompts import MOOD_FALLBACK
from whisperwell.journal.store import EntryStore, MemoryKeyValueStore
from whisperwell.llm import CompletionClient

SUNDAY = datetime(2025, 6, 15, 18, 0)
TUESDAY = datetime(2025, 6, 17, 18, 0)


class _Clock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class _FailingBackend(MemoryKeyValueStore):
    def set(self, key: str, value: str) -> None:
        raise OSError("disk full")


def _service(now: datetime = TUESDAY, backend=None, **kwargs):
    clock = _Clock(now)
    store = EntryStore(backend or MemoryKeyValueStore(), clock=clock)
    client = MagicMock()
    service = ConversationService(store, client, clock=clock, **kwargs)
    return service, store, client, clock


def _assert_mirrored(session: Session) -> None:
    assert len(session.history) == len(session.turns)
    for turn, message in zip(session.turns, session.history):
        assert (turn.role, turn.content) == (message.role, message.content)


class TestJournalCapture:
    def test_capture_scenario(self):
        service, store, client, _ = _service()
        client.complete.return_value = "You sound thankful, with a flicker of worry 💛"
        session = Session()

        service.toggle_journal_mode(session)
        result = service.submit(session, "I feel grateful and a bit anxious today")

        entries = store.list()
        assert len(entries) == 1
        assert entries[0].tags == ["anxious", "grateful"]
        assert entries[0].mood == "You sound thankful, with a flicker of worry 💛"
        assert result.entry == entries[0]
        assert result.journal_mode is False
        assert session.journal_mode is False
        assert result.assistant_turn is not None
        assert result.assistant_turn.role == Role.ASSISTANT
        assert result.assistant_turn.tags == entries[0].tags
        assert result.assistant_turn.content == entries[0].mood
        assert [t.role for t in session.turns] == [Role.USER, Role.ASSISTANT]
        _assert_mirrored(session)

    def test_capture_is_one_shot(self):
        service, store, client, _ = _service()
        client.complete.side_effect = ["Calm 🌊", "Sure! #curious"]
        session = Session()

        service.toggle_journal_mode(session)
        service.submit(session, "A calm evening")
        second = service.submit(session, "What should I read next?")

        assert len(store.list()) == 1
        assert second.entry is None
        assert second.assistant_turn.content == "Sure! #curious"

    def test_mood_failure_still_captures(self):
        service, store, client, _ = _service()
        client.complete.side_effect = CompletionError("overloaded")
        session = Session(journal_mode=True)

        result = service.submit(session, "Tired but proud")

        assert not result.failed
        assert store.list()[0].mood == MOOD_FALLBACK
        assert result.assistant_turn.content == MOOD_FALLBACK
        assert result.assistant_turn.tags == ["tired", "proud"]
        assert session.journal_mode is False

    def test_missing_credential_still_captures(self):
        service, store, client, _ = _service()
        client.complete.side_effect = ConfigError("ANTHROPIC_API_KEY is not configured")
        session = Session(journal_mode=True)

        result = service.submit(session, "Quiet day")

        assert result.entry is not None
        assert len(store.list()) == 1

    @patch("whisperwell.llm.anthropic.Anthropic")
    def test_malformed_api_response_still_captures(self, mock_cls: MagicMock):
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        mock_cls.return_value.messages.create.side_effect = anthropic.APIResponseValidationError(
            response=httpx.Response(200, request=request),
            body=None,
        )
        clock = _Clock(TUESDAY)
        store = EntryStore(MemoryKeyValueStore(), clock=clock)
        client = CompletionClient(ModelSectionConfig(api_key="sk-test"))
        service = ConversationService(store, client, clock=clock)
        session = Session(journal_mode=True)

        result = service.submit(session, "I feel grateful")

        assert not result.failed
        assert [e.content for e in store.list()] == ["I feel grateful"]
        assert result.assistant_turn.content == MOOD_FALLBACK
        assert session.journal_mode is False

    def test_persistence_failure_keeps_journal_mode(self):
        service, store, client, _ = _service(backend=_FailingBackend())
        client.complete.return_value = "Calm 🌊"
        session = Session(journal_mode=True)

        result = service.submit(session, "Trying to save this")

        assert result.error_kind == ErrorKind.PERSISTENCE
        assert result.notice
        assert result.entry is None
        assert result.assistant_turn is None
        assert session.journal_mode is True
        assert [t.role for t in session.turns] == [Role.USER]
        _assert_mirrored(session)

    def test_awaiting_response_during_mood_call(self):
        service, _, client, _ = _service()
        session = Session(journal_mode=True)
        seen: list[SessionState] = []

        def _complete(*args, **kwargs):
            seen.append(session.state)
            return "Calm 🌊"

        client.complete.side_effect = _complete
        service.submit(session, "breathing")

        assert seen == [SessionState.AWAITING_RESPONSE]
        assert session.state == SessionState.IDLE


class TestConversation:
    def test_reply_appended_and_mirrored(self):
        service, _, client, _ = _service()
        client.complete.return_value = "Hello there! #warm"
        session = Session()

        result = service.submit(session, "  Hi  ")

        assert result.user_turn.content == "Hi"
        assert result.assistant_turn.content == "Hello there! #warm"
        assert result.entry is None
        _assert_mirrored(session)

    def test_weather_on_tuesday_has_no_entries(self):
        service, store, client, _ = _service(TUESDAY)
        store.append("Secret diary text", date=TUESDAY - timedelta(days=1))
        client.complete.return_value = "Sunny! #cheerful"

        service.submit(Session(), "How's the weather?")

        request = client.complete.call_args[0][0]
        assert request[0] == {"role": "system", "content": PERSONA}
        assert "Secret diary text" not in request[0]["content"]

    def test_weekly_summary_on_sunday(self):
        service, store, client, _ = _service(SUNDAY)
        store.append("Planted tomatoes", mood="Proud 🌻", date=SUNDAY - timedelta(days=2))
        client.complete.return_value = "What a week! #proud"

        service.submit(Session(), "Can I get my week summary?")

        system = client.complete.call_args[0][0][0]["content"]
        assert "Planted tomatoes" in system
        assert "Proud 🌻" in system

    def test_request_uses_prior_history(self):
        service, _, client, _ = _service()
        client.complete.side_effect = ["First reply", "Second reply"]
        session = Session()

        service.submit(session, "one")
        service.submit(session, "two")

        request = client.complete.call_args[0][0]
        assert [m["content"] for m in request[1:]] == ["one", "First reply", "two"]

    def test_completion_error_keeps_user_turn(self):
        service, _, client, _ = _service()
        client.complete.side_effect = CompletionError("Invalid request")
        session = Session()

        result = service.submit(session, "Hello?")

        assert result.error_kind == ErrorKind.COMPLETION
        assert result.notice == "Invalid request"
        assert result.assistant_turn is None
        assert [t.content for t in session.turns] == ["Hello?"]
        assert session.state == SessionState.IDLE
        _assert_mirrored(session)

    def test_retry_after_failure_has_no_duplicate(self):
        service, _, client, _ = _service()
        client.complete.side_effect = [CompletionError("timeout"), "Back again #relieved"]
        session = Session()

        service.submit(session, "Hello?")
        service.submit(session, "Hello?")

        request = client.complete.call_args[0][0]
        assert [m["content"] for m in request[1:]] == ["Hello?", "Hello?"]
        assert len(session.turns) == 3
        _assert_mirrored(session)

    def test_config_error_is_blocking_kind(self):
        service, _, client, _ = _service()
        client.complete.side_effect = ConfigError("ANTHROPIC_API_KEY is not configured")

        result = service.submit(Session(), "Hi")

        assert result.error_kind == ErrorKind.CONFIG
        assert "ANTHROPIC_API_KEY" in result.notice

    @pytest.mark.parametrize("text", ["", "   ", "\n"])
    def test_blank_input_rejected_silently(self, text):
        service, _, client, _ = _service()
        session = Session()

        result = service.submit(session, text)

        assert result.accepted is False
        assert result.notice is None
        assert session.turns == []
        client.complete.assert_not_called()

    def test_input_rejected_while_awaiting(self):
        service, _, client, _ = _service()
        session = Session(state=SessionState.AWAITING_RESPONSE)

        result = service.submit(session, "again")

        assert result.accepted is False
        assert session.turns == []
        client.complete.assert_not_called()

    def test_turn_ids_strictly_increase(self):
        service, _, client, _ = _service()
        client.complete.return_value = "ok"
        session = Session()

        service.submit(session, "a")
        service.submit(session, "b")

        ids = [int(t.id) for t in session.turns]
        assert ids == sorted(ids)
        assert len(set(ids)) == len(ids)


class TestToggle:
    def test_on_then_off(self):
        service, _, _, _ = _service()
        session = Session()

        on = service.toggle_journal_mode(session)
        off = service.toggle_journal_mode(session)

        assert on.journal_mode is True
        assert on.notice == JOURNAL_MODE_NOTICE
        assert off.journal_mode is False
        assert off.notice is None
        assert session.turns == []


class TestStart:
    def test_welcome_with_generated_prompt(self):
        service, _, client, _ = _service()
        client.complete.return_value = "What are you looking forward to?"
        session = Session()

        turns = service.start(session)

        assert len(turns) == 1
        assert turns[0].content == "Welcome to your journal. What are you looking forward to?"
        assert session.turns == turns
        _assert_mirrored(session)

    def test_welcome_fallback(self):
        service, _, client, _ = _service()
        client.complete.side_effect = CompletionError("offline")
        session = Session()

        turns = service.start(session)

        assert [t.content for t in turns] == [WELCOME_FALLBACK]

    def test_no_welcome_when_written_today(self):
        service, store, client, clock = _service()
        store.append("Morning pages", date=clock.now.replace(hour=7))
        session = Session()

        assert service.start(session) == []
        client.complete.assert_not_called()

    def test_no_welcome_when_session_has_turns(self):
        service, _, client, clock = _service()
        session = Session()
        session.record(Role.USER, "already talking", clock.now)

        assert service.start(session) == []
        client.complete.assert_not_called()

    def test_recall_delivered_after_delay(self):
        config = WhisperWellConfig()
        config.recall.delay_seconds = 2.0
        service, store, client, clock = _service(
            SUNDAY, config=config, rng=random.Random(1)
        )
        store.append("Graduation day!", date=datetime(2023, 6, 15, 12, 0))
        client.complete.return_value = "How are you today?"
        session = Session()

        turns = service.start(session)
        assert len(turns) == 1
        assert len(session.pending_recalls) == 1

        assert service.deliver_due_recalls(session, SUNDAY + timedelta(seconds=1)) == []

        delivered = service.deliver_due_recalls(session, SUNDAY + timedelta(seconds=2))
        assert len(delivered) == 1
        assert "On this day 2 years ago" in delivered[0].content
        assert "Graduation day!" in delivered[0].content
        assert session.pending_recalls == []
        assert session.turns[-1] == delivered[0]
        _assert_mirrored(session)

        assert service.deliver_due_recalls(session, SUNDAY + timedelta(minutes=5)) == []

    def test_no_recall_without_anniversary(self):
        service, _, client, _ = _service(SUNDAY)
        client.complete.return_value = "Prompt"
        session = Session()

        service.start(session)

        assert session.pending_recalls == []
