"""Completion service client.

Wraps the Anthropic Messages API behind a single ``complete()`` call that
takes an ordered list of ``{role, content}`` messages, system first.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import anthropic

from whisperwell.config import ModelSectionConfig
from whisperwell.errors import CompletionError, ConfigError

logger = logging.getLogger(__name__)

GENERIC_FAILURE = "Failed to generate response"

# The Messages API wants the conversation to open with a user message.
_OPENER = "(conversation start)"


def _error_message(exc: anthropic.APIStatusError) -> str:
    """Pull the human-readable message out of a structured API error."""
    body = exc.body
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
    return exc.message or GENERIC_FAILURE


def to_api_messages(
    messages: Sequence[dict[str, str]],
) -> tuple[str, list[dict[str, str]]]:
    """Split out the system prompt and normalize the turn sequence.

    Consecutive same-role messages are merged (a failed request leaves a user
    turn without a reply). Order is preserved.

    Returns:
        Tuple of (system prompt, conversation messages).
    """
    system_parts: list[str] = []
    turns: list[dict[str, str]] = []

    for message in messages:
        role = message["role"]
        content = message["content"]
        if role == "system":
            system_parts.append(content)
            continue
        if turns and turns[-1]["role"] == role:
            turns[-1] = {"role": role, "content": f"{turns[-1]['content']}\n\n{content}"}
        else:
            turns.append({"role": role, "content": content})

    if turns and turns[0]["role"] == "assistant":
        turns.insert(0, {"role": "user", "content": _OPENER})

    return "\n\n".join(system_parts), turns


class CompletionClient:
    """Calls the remote completion service."""

    def __init__(self, config: ModelSectionConfig) -> None:
        self._config = config
        self._client: anthropic.Anthropic | None = None

    def _get_client(self) -> anthropic.Anthropic:
        if self._client is None:
            api_key = self._config.api_key.strip()
            if not api_key:
                raise ConfigError("ANTHROPIC_API_KEY is not configured")
            self._client = anthropic.Anthropic(api_key=api_key, timeout=self._config.timeout)
        return self._client

    def complete(
        self,
        messages: Sequence[dict[str, str]],
        *,
        max_tokens: int | None = None,
        label: str = "chat",
    ) -> str:
        """Send a message list and return the generated text.

        Args:
            messages: Ordered ``{role, content}`` messages, system first.
            max_tokens: Optional override of the configured limit.
            label: Label for logging.

        Returns:
            The response text (stripped).

        Raises:
            ConfigError: If no API credential is configured.
            CompletionError: On a non-success or malformed response, or a
                network failure.
        """
        client = self._get_client()
        system, turns = to_api_messages(messages)

        kwargs: dict[str, object] = {
            "model": self._config.name,
            "max_tokens": max_tokens or self._config.max_tokens,
            "temperature": self._config.temperature,
            "messages": turns,
        }
        if system.strip():
            kwargs["system"] = system

        logger.debug("Calling completion service model=%s (%s)", self._config.name, label)

        try:
            response = client.messages.create(**kwargs)  # type: ignore[arg-type]
        except anthropic.APIStatusError as exc:
            logger.error("Completion service error %s (%s)", exc.status_code, label)
            raise CompletionError(_error_message(exc)) from exc
        except anthropic.APIConnectionError as exc:
            logger.error("Completion service unreachable (%s): %s", label, exc)
            raise CompletionError(GENERIC_FAILURE) from exc
        except anthropic.APIError as exc:
            logger.error("Completion service returned an unusable response (%s): %s", label, exc)
            raise CompletionError(GENERIC_FAILURE) from exc

        text = "".join(block.text for block in response.content if block.type == "text").strip()
        if not text:
            raise CompletionError(f"Completion service returned an empty response ({label})")
        return text
