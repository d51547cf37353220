"""Error taxonomy for Whisper Well.

Every failure the session layer knows how to recover from is one of these.
"""


class WhisperWellError(Exception):
    """Base error for the package."""


class ConfigError(WhisperWellError):
    """Required configuration (the API credential) is missing."""


class CompletionError(WhisperWellError):
    """The completion service returned a non-success response or was unreachable."""


class ClassificationError(WhisperWellError):
    """Mood or prompt generation failed. Always recovered with a fallback."""


class PersistenceError(WhisperWellError):
    """The durable entry store could not be read or written."""
