"""Position poller - periodic read-only sampling of the session for displays."""

from typing import List, Optional

import gi
gi.require_version("GLib", "2.0")
from gi.repository import GLib

from privateplayer.app_state import PlaybackSession
from privateplayer.logging import get_logger
from privateplayer.metadata import Track
from privateplayer.session import SessionStateMachine

logger = get_logger(__name__)

DEFAULT_INTERVAL_MS = 1000


class SessionObserver:
    """Receives poller samples. Override one or both hooks."""

    def on_tick(self, session: PlaybackSession) -> None:
        """Incremental update: position, duration and state."""

    def on_track_changed(self, session: PlaybackSession) -> None:
        """Full refresh: the active track differs from the previous tick."""
        self.on_tick(session)


class PositionPoller:
    """
    Samples the session on a fixed GLib timeout while anyone is watching.

    The first registered observer starts the timeout and the last one to
    unregister cancels it; registering again restarts it. Ticks only read
    ``SessionStateMachine.sample()``, so they never contend with commands.
    """

    def __init__(self, machine: SessionStateMachine, interval_ms: int = DEFAULT_INTERVAL_MS):
        self._machine = machine
        self._interval_ms = interval_ms
        self._observers: List[SessionObserver] = []
        self._source_id: Optional[int] = None
        self._last_track: Optional[Track] = None

    @property
    def running(self) -> bool:
        return self._source_id is not None

    @property
    def interval_ms(self) -> int:
        return self._interval_ms

    def register(self, observer: SessionObserver) -> None:
        if observer in self._observers:
            return
        self._observers.append(observer)
        if not self.running:
            self._start()

    def unregister(self, observer: SessionObserver) -> None:
        try:
            self._observers.remove(observer)
        except ValueError:
            return
        if not self._observers:
            self._cancel()

    def _start(self) -> None:
        # Forget the last track so the first tick after a restart is a full refresh
        self._last_track = None
        self._source_id = GLib.timeout_add(self._interval_ms, self._tick)
        logger.debug("Position poller started (%d ms)", self._interval_ms)

    def _cancel(self) -> None:
        if self._source_id is not None:
            GLib.source_remove(self._source_id)
            self._source_id = None
            logger.debug("Position poller stopped")

    def _tick(self) -> bool:
        """Sample once and notify observers. Returns False to end the timeout."""
        if not self._observers:
            self._source_id = None
            return False

        sample = self._machine.sample()
        track_changed = sample.active_track != self._last_track
        self._last_track = sample.active_track

        for observer in list(self._observers):
            try:
                if track_changed:
                    observer.on_track_changed(sample)
                else:
                    observer.on_tick(sample)
            except Exception as e:
                logger.error("Error in poller observer %r: %s", observer, e, exc_info=True)
        return True
