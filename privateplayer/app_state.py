"""Playback session state shared between the session and its readers."""

# ============================================================================
# Standard Library Imports (alphabetical)
# ============================================================================
from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

# ============================================================================
# Third-Party Imports (alphabetical, with version requirements)
# ============================================================================
# None

# ============================================================================
# Local Imports (grouped by package, alphabetical)
# ============================================================================
from privateplayer.metadata import Track


class PlaybackState(Enum):
    """State machine for playback operations."""

    STOPPED = "stopped"  # Nothing loaded
    PLAYING = "playing"  # Track loaded and producing output
    PAUSED = "paused"  # Track loaded, output suspended


@dataclass
class PlaybackSession:
    """
    The canonical playback state.

    Only SessionStateMachine mutates the instance it owns; everything else
    receives copies from ``copy()``.
    """

    state: PlaybackState = PlaybackState.STOPPED
    active_track: Optional[Track] = None
    position_millis: int = 0
    # None means unknown (not reported yet, or hidden by stealth mode)
    duration_millis: Optional[int] = None
    stealth: bool = False

    def copy(self, **changes) -> "PlaybackSession":
        return replace(self, **changes)

    @property
    def is_active(self) -> bool:
        return self.state is not PlaybackState.STOPPED
