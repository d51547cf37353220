"""Conversation models: pure data, no I/O.

A Session holds the ordered turns shown to the user and the mirrored
role/content history sent to the completion service. Both only grow by
append, in the same order.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from whisperwell.journal.models import JournalEntry


class Role(StrEnum):
    """Author of a message."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


class SessionState(StrEnum):
    """Request state of a session."""

    IDLE = "idle"
    AWAITING_RESPONSE = "awaiting-response"


class ErrorKind(StrEnum):
    """Failure class surfaced to the user by a session operation."""

    CONFIG = "config"
    COMPLETION = "completion"
    PERSISTENCE = "persistence"


class ChatMessage(BaseModel):
    """A role/content pair as sent to the completion service."""

    role: Role
    content: str

    def to_wire(self) -> dict[str, str]:
        return {"role": self.role.value, "content": self.content}


class ConversationTurn(BaseModel):
    """One message in the conversation, as shown to the user."""

    model_config = ConfigDict(frozen=True)

    id: str
    role: Role
    content: str
    timestamp: datetime
    tags: list[str] | None = None

    def to_message(self) -> ChatMessage:
        return ChatMessage(role=self.role, content=self.content)


class PendingRecall(BaseModel):
    """A memory turn waiting for its delivery time."""

    content: str
    due_at: datetime
    entry_date: datetime


class Session(BaseModel):
    """In-memory state of one conversation."""

    turns: list[ConversationTurn] = Field(default_factory=list)
    history: list[ChatMessage] = Field(default_factory=list)
    journal_mode: bool = False
    state: SessionState = SessionState.IDLE
    pending_recalls: list[PendingRecall] = Field(default_factory=list)
    _last_turn_id: int = PrivateAttr(default=0)

    @property
    def is_busy(self) -> bool:
        return self.state == SessionState.AWAITING_RESPONSE

    def next_turn_id(self, now: datetime) -> str:
        """Millisecond timestamp id, bumped so ids strictly increase."""
        candidate = int(now.timestamp() * 1000)
        if candidate <= self._last_turn_id:
            candidate = self._last_turn_id + 1
        self._last_turn_id = candidate
        return str(candidate)

    def record(
        self,
        role: Role,
        content: str,
        now: datetime,
        tags: list[str] | None = None,
    ) -> ConversationTurn:
        """Append a turn and mirror it into history."""
        turn = ConversationTurn(
            id=self.next_turn_id(now),
            role=role,
            content=content,
            timestamp=now,
            tags=tags,
        )
        self.turns.append(turn)
        self.history.append(turn.to_message())
        return turn


class TurnResult(BaseModel):
    """What a single session operation produced."""

    accepted: bool
    journal_mode: bool
    user_turn: ConversationTurn | None = None
    assistant_turn: ConversationTurn | None = None
    entry: JournalEntry | None = None
    notice: str | None = None
    error_kind: ErrorKind | None = None

    @property
    def failed(self) -> bool:
        return self.error_kind is not None
