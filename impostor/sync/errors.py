"""Exception types raised by the synchronization core."""

from __future__ import annotations


class ImpostorError(Exception):
    """Base class for errors surfaced to the local participant."""


class RoundStartError(ImpostorError):
    """A round could not be started; the session is left unchanged."""


class TopicProviderError(ImpostorError):
    """A topic provider could not produce a category/topic pair."""
