"""Saved playlist: a user-curated track list independent of the queue."""

from typing import List, Optional

from privateplayer.events import EventBus
from privateplayer.logging import get_logger
from privateplayer.metadata import Track

logger = get_logger(__name__)


class PlaylistStore:
    """In-memory playlist. Holds each track id at most once."""

    def __init__(self, event_bus: Optional[EventBus] = None) -> None:
        self._events = event_bus
        self._items: List[Track] = []

    def __len__(self) -> int:
        return len(self._items)

    @property
    def items(self) -> List[Track]:
        """Get the playlist (copy)."""
        return list(self._items)

    def contains(self, track: Track) -> bool:
        return track in self._items

    def add(self, track: Track) -> bool:
        """
        Append a track unless one with the same id is already present.

        Returns:
            True if the track was added
        """
        if self.contains(track):
            return False
        self._items.append(track)
        self._publish()
        return True

    def remove_at(self, index: int) -> Optional[Track]:
        """Remove and return the track at ``index``, or None if out of range."""
        if not 0 <= index < len(self._items):
            logger.warning("Ignoring playlist removal at %d (size %d)", index, len(self._items))
            return None
        track = self._items.pop(index)
        self._publish()
        return track

    def reorder(self, from_index: int, to_index: int) -> None:
        """Move a track from one position to another."""
        size = len(self._items)
        if not (0 <= from_index < size and 0 <= to_index < size):
            logger.warning("Ignoring playlist move %d -> %d (size %d)", from_index, to_index, size)
            return
        if from_index == to_index:
            return
        track = self._items.pop(from_index)
        self._items.insert(to_index, track)
        self._publish()

    def clear(self) -> None:
        self._items.clear()
        self._publish()

    def _publish(self) -> None:
        if self._events:
            self._events.publish(EventBus.PLAYLIST_CHANGED, {"items": self.items})
