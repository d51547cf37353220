"""Whisper Well: a journaling companion backed by a language model."""

__version__ = "0.1.0"
