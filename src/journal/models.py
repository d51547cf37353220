"""Journal domain models: pure Pydantic v2 data types, no I/O."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator

MAX_TAGS = 3


class JournalEntry(BaseModel):
    """A persisted block of user writing with its derived mood and tags.

    Entries are immutable once created.
    """

    model_config = ConfigDict(frozen=True)

    content: str
    date: datetime
    mood: str | None = None
    tags: list[str] = Field(default_factory=list)

    @field_validator("content")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("journal entry content must not be empty")
        return value

    @field_validator("date")
    @classmethod
    def _to_local(cls, value: datetime) -> datetime:
        # Day filters compare against naive local time.
        if value.tzinfo is not None:
            return value.astimezone().replace(tzinfo=None)
        return value

    @field_validator("tags")
    @classmethod
    def _dedupe_tags(cls, value: list[str]) -> list[str]:
        return list(dict.fromkeys(value))[:MAX_TAGS]


class OutcomeStatus(StrEnum):
    """Which path a best-effort remote call took."""

    SUCCESS = "success"
    DEGRADED = "degraded"
    FATAL = "fatal"


class Outcome(BaseModel):
    """Result of a best-effort remote call.

    ``value`` is always usable: on ``DEGRADED`` and ``FATAL`` it holds the
    fixed fallback text, and ``error`` explains what went wrong.
    """

    status: OutcomeStatus
    value: str
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.status == OutcomeStatus.SUCCESS
