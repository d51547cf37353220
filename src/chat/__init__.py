"""Chat sessions: turns, prompt composition, recall, orchestration."""

from whisperwell.chat.composer import build_completion_request, build_system_message
from whisperwell.chat.models import (
    ChatMessage,
    ConversationTurn,
    ErrorKind,
    PendingRecall,
    Role,
    Session,
    SessionState,
    TurnResult,
)
from whisperwell.chat.recall import RecallScheduler
from whisperwell.chat.session import ConversationService

__all__ = [
    "ChatMessage",
    "ConversationService",
    "ConversationTurn",
    "ErrorKind",
    "PendingRecall",
    "RecallScheduler",
    "Role",
    "Session",
    "SessionState",
    "TurnResult",
    "build_completion_request",
    "build_system_message",
]
