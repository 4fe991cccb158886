"""Centralized event bus for decoupled component communication."""

from typing import Any, Callable, Dict, List

from privateplayer.logging import get_logger

logger = get_logger(__name__)


class EventBus:
    """Publish-subscribe event system. Components publish/subscribe without knowing each other.

    Event flow:
    - Core objects (SessionStateMachine, QueueManager, PlaylistStore) publish
      *_CHANGED events and advisory NOTICE events
    - Presenters (MPRIS2 bridge, console output) subscribe to PRESENTATION_CHANGED
    - The entry point subscribes to SETTINGS_CHANGED and persists the settings
    Commands never travel over the bus; they are method calls on the session,
    which serializes them itself.
    """

    # Session state (published by SessionStateMachine)
    # {"session": PlaybackSession}
    SESSION_CHANGED = "session.changed"
    # {"snapshot": PresenterSnapshot}
    PRESENTATION_CHANGED = "session.presentation_changed"
    # {"track": Track, "error": EngineLoadFailed}
    PLAYBACK_FAILED = "session.playback_failed"
    # {"kind": NoticeKind, "message": str}
    NOTICE = "session.notice"
    # {"mode": PlayMode}
    PLAY_MODE_CHANGED = "session.play_mode_changed"
    # {"settings": PlayerSettings}
    SETTINGS_CHANGED = "settings.changed"

    # Queue state (published by QueueManager)
    # {"items": List[Track], "current_index": Optional[int]}
    QUEUE_CHANGED = "queue.changed"
    # {"current_index": Optional[int]}
    CURRENT_INDEX_CHANGED = "queue.current_index_changed"

    # Playlist state (published by PlaylistStore)
    # {"items": List[Track]}
    PLAYLIST_CHANGED = "playlist.changed"

    def __init__(self):
        self._subscribers: Dict[str, List[Callable[[Any], None]]] = {}

    def subscribe(self, event: str, callback: Callable[[Any], None]) -> None:
        self._subscribers.setdefault(event, []).append(callback)

    def unsubscribe(self, event: str, callback: Callable[[Any], None]) -> None:
        if event in self._subscribers:
            try:
                self._subscribers[event].remove(callback)
            except ValueError:
                pass

    def publish(self, event: str, data: Any = None) -> None:
        # Copy so a callback may unsubscribe itself while being notified
        for callback in list(self._subscribers.get(event, [])):
            try:
                callback(data)
            except Exception as e:
                logger.error(
                    "Error in event callback for %s: %s", event, e, exc_info=True
                )
