"""Stealth presentation filter.

Pure functions that turn the real session into what outside observers
(desktop media widgets, notifications, list views) are allowed to see. With
stealth on, the player looks like a generic background notification: fixed
title and artist, no duration or position, and no transport controls.
"""

from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Optional

from privateplayer.app_state import PlaybackSession, PlaybackState
from privateplayer.metadata import Track

MASKED_TITLE = "Notification"
# Ideographic space: renders blank but is not an empty string, so
# presenters do not fall back to showing the file name.
MASKED_ARTIST = "　"
APP_IDENTITY = "Private Player"
MASKED_IDENTITY = "System Service"


class Action(Enum):
    """Transport capabilities advertised to presenters."""

    PLAY = "play"
    PAUSE = "pause"
    SEEK = "seek"
    SKIP_NEXT = "skip_next"
    SKIP_PREVIOUS = "skip_previous"


FULL_ACTIONS: FrozenSet[Action] = frozenset(Action)
NO_ACTIONS: FrozenSet[Action] = frozenset()


@dataclass(frozen=True)
class PresentedMetadata:
    title: str
    artist: str
    duration_millis: Optional[int]
    allowed_actions: FrozenSet[Action]


@dataclass(frozen=True)
class PresenterSnapshot:
    """Everything a presenter renders, pushed on each change and poller tick."""

    presented: PresentedMetadata
    state: PlaybackState
    position_millis: Optional[int]
    stealth: bool

    @property
    def identity(self) -> str:
        return MASKED_IDENTITY if self.stealth else APP_IDENTITY

    def allows(self, action: Action) -> bool:
        return action in self.presented.allowed_actions


def present(session: PlaybackSession, stealth: bool) -> PresentedMetadata:
    """Map the real session to presentable metadata and capabilities."""
    if stealth:
        return PresentedMetadata(
            title=MASKED_TITLE,
            artist=MASKED_ARTIST,
            duration_millis=None,
            allowed_actions=NO_ACTIONS,
        )
    track = session.active_track
    return PresentedMetadata(
        title=track.display_name if track else "",
        artist=(track.artist or "") if track else "",
        duration_millis=session.duration_millis,
        allowed_actions=FULL_ACTIONS,
    )


def snapshot(session: PlaybackSession) -> PresenterSnapshot:
    """Build the presenter snapshot for a session, honoring its stealth flag."""
    return PresenterSnapshot(
        presented=present(session, session.stealth),
        state=session.state,
        position_millis=None if session.stealth else session.position_millis,
        stealth=session.stealth,
    )


def display_label(track: Track, position: int, privacy_names: bool) -> str:
    """
    Label for a list row.

    Args:
        track: Track shown in the row
        position: Zero-based row position
        privacy_names: Replace names with the 1-based row number

    Returns:
        ``0001``-style label when hiding names, otherwise the display name
    """
    if privacy_names:
        return "%04d" % (position + 1)
    return track.display_name


def format_time(millis: Optional[int]) -> str:
    """Format milliseconds as ``m:ss``; unknown values render as ``--:--``."""
    if millis is None:
        return "--:--"
    seconds = max(0, millis) // 1000
    return "%d:%02d" % (seconds // 60, seconds % 60)
