"""Play queue: ordered tracks, the active index and repeat policies."""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Sequence

from privateplayer.events import EventBus
from privateplayer.exceptions import QueueError
from privateplayer.logging import get_logger
from privateplayer.metadata import Track

logger = get_logger(__name__)


class PlayMode(Enum):
    """Repeat policy for automatic advancement. Values are what settings store."""

    NONE = 0
    REPEAT_ONE = 1
    REPEAT_ALL = 2

    def cycle(self) -> 'PlayMode':
        """Next mode in NONE -> REPEAT_ONE -> REPEAT_ALL -> NONE order."""
        members = list(PlayMode)
        return members[(members.index(self) + 1) % len(members)]


@dataclass(frozen=True)
class NextTrack:
    """A candidate queue position, not yet committed."""

    index: int
    track: Track


class QueueManager:
    """Owns the play queue and its current index.

    ``advance`` and ``retreat`` only compute a candidate; the session commits
    it with ``commit`` once the engine has actually started the track.
    """

    def __init__(self, event_bus: Optional[EventBus] = None) -> None:
        self._events = event_bus
        self._items: List[Track] = []
        self._current_index: Optional[int] = None

    def __len__(self) -> int:
        return len(self._items)

    @property
    def items(self) -> List[Track]:
        """Get the queue (copy)."""
        return list(self._items)

    @property
    def current_index(self) -> Optional[int]:
        return self._current_index

    @property
    def current_track(self) -> Optional[Track]:
        if self._current_index is None:
            return None
        return self._items[self._current_index]

    def track_at(self, index: int) -> Track:
        if not 0 <= index < len(self._items):
            raise QueueError(f"Queue index {index} out of range (size {len(self._items)})")
        return self._items[index]

    def set_queue(self, tracks: Sequence[Track], start_index: Optional[int] = None) -> None:
        """
        Replace the queue and current index in one step.

        Args:
            tracks: New queue contents, order taken verbatim
            start_index: Index of the active item, or None
        """
        tracks = list(tracks)
        if start_index is not None and not 0 <= start_index < len(tracks):
            raise QueueError(
                f"Start index {start_index} out of range (size {len(tracks)})"
            )
        self._items = tracks
        self._current_index = start_index
        self._publish_queue()

    def append(self, track: Track) -> None:
        self._items.append(track)
        self._publish_queue()

    def clear(self) -> None:
        self._items.clear()
        self._current_index = None
        self._publish_queue()

    def commit(self, index: int) -> None:
        """Make ``index`` the current one."""
        if not 0 <= index < len(self._items):
            raise QueueError(f"Cannot commit index {index} (size {len(self._items)})")
        if index != self._current_index:
            self._current_index = index
            self._publish_index()

    def advance(self, mode: PlayMode) -> Optional[NextTrack]:
        """
        Compute the track that follows the current one under ``mode``.

        Does not change the current index.

        Returns:
            The candidate, or None when the queue is exhausted
        """
        size = len(self._items)
        if size == 0:
            return None
        current = self._current_index
        if mode is PlayMode.REPEAT_ONE:
            if current is None:
                return None
            index = current
        elif mode is PlayMode.REPEAT_ALL:
            index = 0 if current is None else (current + 1) % size
        else:
            index = 0 if current is None else current + 1
            if index >= size:
                return None
        return NextTrack(index, self._items[index])

    def retreat(self) -> Optional[NextTrack]:
        """Step back one item, wrapping to the end. Repeat mode does not apply."""
        size = len(self._items)
        if size == 0:
            return None
        current = -1 if self._current_index is None else self._current_index
        index = current - 1 if current - 1 >= 0 else size - 1
        return NextTrack(index, self._items[index])

    def remove_at(self, index: int) -> bool:
        """
        Remove the item at ``index``.

        Returns:
            True if the removed item was the current one; the caller must
            stop playback because the active track no longer exists.
        """
        if not 0 <= index < len(self._items):
            logger.warning("Ignoring queue removal at %d (size %d)", index, len(self._items))
            return False
        self._items.pop(index)
        removed_current = False
        if self._current_index is not None:
            if index < self._current_index:
                self._current_index -= 1
            elif index == self._current_index:
                self._current_index = None
                removed_current = True
        self._publish_queue()
        return removed_current

    def reorder(self, from_index: int, to_index: int) -> None:
        """
        Move a track from one position to another.

        The current index keeps pointing at the same queue entry, including
        when that entry is the one being moved.
        """
        size = len(self._items)
        if not (0 <= from_index < size and 0 <= to_index < size):
            logger.warning("Ignoring queue move %d -> %d (size %d)", from_index, to_index, size)
            return
        if from_index == to_index:
            return
        track = self._items.pop(from_index)
        self._items.insert(to_index, track)
        current = self._current_index
        if current is not None:
            if current == from_index:
                self._current_index = to_index
            elif from_index < current <= to_index:
                self._current_index = current - 1
            elif to_index <= current < from_index:
                self._current_index = current + 1
        self._publish_queue()

    def index_of_track(self, track: Track) -> Optional[int]:
        """First index holding ``track`` (by id), or None."""
        for index, item in enumerate(self._items):
            if item == track:
                return index
        return None

    def resync(self, track: Optional[Track]) -> Optional[int]:
        """
        Point the current index at ``track`` if it has drifted.

        The current index is trusted as long as it still holds the same
        track, so duplicates keep their position.
        """
        if track is None:
            return self._current_index
        if self.current_track == track:
            return self._current_index
        index = self.index_of_track(track)
        if index is not None:
            self.commit(index)
        return index

    def _publish_queue(self) -> None:
        if self._events:
            self._events.publish(
                EventBus.QUEUE_CHANGED,
                {"items": self.items, "current_index": self._current_index},
            )

    def _publish_index(self) -> None:
        if self._events:
            self._events.publish(
                EventBus.CURRENT_INDEX_CHANGED, {"current_index": self._current_index}
            )
