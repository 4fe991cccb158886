"""Custom exception hierarchy for the private player.

This module provides a structured exception hierarchy for consistent
error handling across the application, plus the advisory notice kinds the
session publishes when it recovers from a condition locally.
"""

from enum import Enum


class PrivatePlayerError(Exception):
    """Base exception for all private player errors."""

    pass


class PlaybackError(PrivatePlayerError):
    """Errors related to audio playback."""

    pass


class EngineLoadFailed(PlaybackError):
    """The engine could not load a track reference (bad or unreadable URI)."""

    def __init__(self, uri: str, reason: str = ""):
        self.uri = uri
        self.reason = reason
        message = f"Failed to load {uri}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class QueueError(PrivatePlayerError):
    """Errors related to queue operations."""

    pass


class ConfigurationError(PrivatePlayerError):
    """Errors related to configuration."""

    pass


class NoticeKind(Enum):
    """Advisory conditions reported outward on EventBus.NOTICE.

    None of these is fatal; the session has already recovered to a
    well-defined state by the time the notice is published.
    """

    ENGINE_LOAD_FAILED = "engine_load_failed"
    ENGINE_ERROR = "engine_error"
    QUEUE_EXHAUSTED = "queue_exhausted"
    INVALID_SEEK_TARGET = "invalid_seek_target"
    ACTIVE_TRACK_REMOVED = "active_track_removed"
    NOTHING_TO_RESUME = "nothing_to_resume"
