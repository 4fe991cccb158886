"""Session state machine - the single owner of playback state.

Every command (UI calls, transport controls, engine completion and error
callbacks) is appended to one command queue and executed in order; no two
mutations interleave, even when a command is submitted from inside another
one (an engine that reports completion synchronously during ``start``) or
from another thread. Readers such as the position poller only ever receive
copies of the session.
"""

import threading
from collections import deque
from dataclasses import replace
from typing import Any, Callable, Deque, Optional, Sequence, Tuple

from privateplayer.app_state import PlaybackSession, PlaybackState
from privateplayer.config import PlayerSettings
from privateplayer.engine import PlaybackEngine
from privateplayer.events import EventBus
from privateplayer.exceptions import NoticeKind, PlaybackError, QueueError
from privateplayer.logging import get_logger
from privateplayer.metadata import Track
from privateplayer.presentation import snapshot
from privateplayer.queue_manager import PlayMode, QueueManager

logger = get_logger(__name__)

Command = Tuple[Callable[..., None], Tuple[Any, ...]]


class SessionStateMachine:
    """Orchestrates the queue and the engine; publishes state events."""

    def __init__(
        self,
        engine: PlaybackEngine,
        queue: QueueManager,
        event_bus: EventBus,
        settings: Optional[PlayerSettings] = None,
    ):
        self._engine = engine
        self._queue = queue
        self._events = event_bus
        self._settings = replace(settings) if settings else PlayerSettings()
        self._session = PlaybackSession(stealth=self._settings.stealth)

        self._commands: Deque[Command] = deque()
        self._lock = threading.Lock()
        self._draining = False

        self._engine.on_completion = self.on_engine_completion
        self._engine.on_error = self.on_engine_error

    # =========================================================================
    # Read side (copies only)
    # =========================================================================

    @property
    def session(self) -> PlaybackSession:
        return self._session.copy()

    @property
    def settings(self) -> PlayerSettings:
        return replace(self._settings)

    @property
    def play_mode(self) -> PlayMode:
        return self._settings.play_mode

    @property
    def queue(self) -> QueueManager:
        """The queue, for reads. Mutate it through this object's commands."""
        return self._queue

    def sample(self) -> PlaybackSession:
        """
        Copy of the session with the live engine position while playing.

        Reads the engine but never writes the session, so it is safe to call
        between commands (the position poller does this on every tick).
        """
        current = self._session.copy()
        if current.state is PlaybackState.PLAYING:
            current.position_millis = max(0, self._engine.current_position())
        if current.is_active and current.duration_millis is None and not current.stealth:
            current.duration_millis = self._engine.duration()
        return current

    # =========================================================================
    # Commands
    # =========================================================================

    def play(self, track: Track) -> None:
        """Load and start ``track``; resyncs the queue index if it is queued."""
        self._submit(self._do_play, track)

    def play_queue_index(self, index: int) -> None:
        self._submit(self._do_play_queue_index, index)

    def play_from_source(self, track: Track, source: Sequence[Track]) -> None:
        """Replace the queue with ``source`` and start ``track`` from it."""
        self._submit(self._do_play_from_source, track, list(source))

    def pause(self) -> None:
        self._submit(self._do_pause)

    def resume(self) -> None:
        self._submit(self._do_resume)

    def toggle_play_pause(self) -> None:
        self._submit(self._do_toggle_play_pause)

    def stop(self) -> None:
        self._submit(self._do_stop)

    def seek(self, position_millis: int) -> None:
        self._submit(self._do_seek, int(position_millis))

    def skip_next(self) -> None:
        self._submit(self._do_skip_next)

    def skip_previous(self) -> None:
        self._submit(self._do_skip_previous)

    def set_stealth(self, enabled: bool) -> None:
        self._submit(self._do_set_stealth, bool(enabled))

    def set_play_mode(self, mode: PlayMode) -> None:
        self._submit(self._do_set_play_mode, PlayMode(mode))

    def cycle_play_mode(self) -> None:
        self._submit(self._do_cycle_play_mode)

    def set_privacy_names(self, enabled: bool) -> None:
        self._submit(self._do_set_privacy_names, bool(enabled))

    def set_queue(self, tracks: Sequence[Track], start_index: Optional[int] = None) -> None:
        self._submit(self._do_set_queue, list(tracks), start_index)

    def enqueue(self, track: Track) -> None:
        self._submit(self._queue.append, track)

    def remove_from_queue(self, index: int) -> None:
        self._submit(self._do_remove_from_queue, index)

    def reorder_queue(self, from_index: int, to_index: int) -> None:
        self._submit(self._queue.reorder, from_index, to_index)

    def on_engine_completion(self) -> None:
        """Engine callback: the loaded track played to its end."""
        self._submit(self._do_completion)

    def on_engine_error(self, message: str) -> None:
        """Engine callback: playback failed after a successful load."""
        self._submit(self._do_engine_error, message)

    def publish_initial_state(self) -> None:
        """Publish current state so presenters can sync without polling."""
        self._submit(self._do_publish_initial_state)

    def shutdown(self) -> None:
        """Stop playback and release the engine for good."""
        self._submit(self._do_shutdown)

    # =========================================================================
    # Command queue
    # =========================================================================

    def _submit(self, handler: Callable[..., None], *args: Any) -> None:
        with self._lock:
            self._commands.append((handler, args))
            if self._draining:
                # The draining caller runs it after the current command
                return
            self._draining = True
        self._drain()

    def _drain(self) -> None:
        try:
            while True:
                with self._lock:
                    if not self._commands:
                        self._draining = False
                        return
                    handler, args = self._commands.popleft()
                try:
                    handler(*args)
                except Exception as e:
                    logger.error(
                        "Error running session command %s: %s",
                        getattr(handler, "__name__", handler), e, exc_info=True,
                    )
        except BaseException:
            # Interrupted mid-command: hand the queue to the next submitter
            with self._lock:
                self._draining = False
            raise

    # =========================================================================
    # Command handlers (run only from _drain)
    # =========================================================================

    def _do_play(self, track: Track) -> None:
        if self._queue.current_track == track:
            index = self._queue.current_index
        else:
            index = self._queue.index_of_track(track)
        self._start(track, index)

    def _do_play_queue_index(self, index: int) -> None:
        try:
            track = self._queue.track_at(index)
        except QueueError as e:
            logger.warning("Cannot play queue entry: %s", e)
            return
        self._start(track, index)

    def _do_play_from_source(self, track: Track, source: Sequence[Track]) -> None:
        try:
            index = source.index(track)
        except ValueError:
            logger.warning("Track %s is not in its source list", track.id)
            return
        self._queue.set_queue(source, None)
        self._start(track, index)

    def _do_pause(self) -> None:
        if self._session.state is not PlaybackState.PLAYING:
            logger.debug("Pause ignored in state %s", self._session.state.value)
            return
        self._engine.pause()
        self._session.position_millis = max(0, self._engine.current_position())
        self._session.state = PlaybackState.PAUSED
        self._refresh_duration()
        self._publish_state()

    def _do_resume(self) -> None:
        state = self._session.state
        if state is PlaybackState.PLAYING:
            return
        if state is PlaybackState.STOPPED:
            self._notice(NoticeKind.NOTHING_TO_RESUME, "Nothing to resume")
            return
        try:
            self._engine.start()
        except PlaybackError as e:
            logger.error("Resume failed: %s", e)
            self._notice(NoticeKind.ENGINE_ERROR, str(e))
            self._do_stop()
            return
        self._session.state = PlaybackState.PLAYING
        self._refresh_duration()
        self._publish_state()

    def _do_toggle_play_pause(self) -> None:
        if self._session.state is PlaybackState.PLAYING:
            self._do_pause()
        else:
            self._do_resume()

    def _do_stop(self) -> None:
        self._engine.stop()
        was_active = self._session.is_active
        self._reset_to_stopped()
        if was_active:
            logger.info("Playback stopped")
        self._publish_state()

    def _do_seek(self, position_millis: int) -> None:
        if not self._session.is_active:
            logger.debug("Seek ignored while stopped")
            return
        self._refresh_duration()
        duration = self._session.duration_millis
        if duration is None:
            # Unknown duration (including stealth mode): nothing to clamp against
            self._notice(NoticeKind.INVALID_SEEK_TARGET, "Seek unavailable: duration unknown")
            return
        clamped = max(0, min(position_millis, duration))
        if clamped != position_millis:
            self._notice(
                NoticeKind.INVALID_SEEK_TARGET,
                "Seek target %d ms clamped to %d ms" % (position_millis, clamped),
            )
        self._engine.seek_to(clamped)
        self._session.position_millis = clamped
        self._publish_state()

    def _do_skip_next(self) -> None:
        self._queue.resync(self._session.active_track)
        upcoming = self._queue.advance(self._settings.play_mode)
        if upcoming is None:
            logger.debug("Skip next ignored: end of queue")
            return
        self._start(upcoming.track, upcoming.index)

    def _do_skip_previous(self) -> None:
        self._queue.resync(self._session.active_track)
        previous = self._queue.retreat()
        if previous is None:
            return
        self._start(previous.track, previous.index)

    def _do_completion(self) -> None:
        if self._session.state is PlaybackState.STOPPED:
            # Completion from a track that was already stopped or replaced
            return
        self._queue.resync(self._session.active_track)
        upcoming = self._queue.advance(self._settings.play_mode)
        if upcoming is None:
            self._notice(NoticeKind.QUEUE_EXHAUSTED, "End of queue")
            self._do_stop()
            return
        self._start(upcoming.track, upcoming.index)

    def _do_engine_error(self, message: str) -> None:
        self._notice(NoticeKind.ENGINE_ERROR, message)
        self._do_stop()

    def _do_shutdown(self) -> None:
        self._do_stop()
        self._engine.cleanup()

    def _do_set_stealth(self, enabled: bool) -> None:
        if self._session.stealth == enabled:
            return
        self._session.stealth = enabled
        self._settings.stealth = enabled
        if enabled:
            self._session.duration_millis = None
        elif self._session.is_active:
            self._session.duration_millis = self._engine.duration()
        logger.info("Stealth mode %s", "enabled" if enabled else "disabled")
        self._publish_settings()
        self._publish_state()

    def _do_set_play_mode(self, mode: PlayMode) -> None:
        if self._settings.play_mode is mode:
            return
        self._settings.play_mode = mode
        self._events.publish(EventBus.PLAY_MODE_CHANGED, {"mode": mode})
        self._publish_settings()

    def _do_cycle_play_mode(self) -> None:
        self._do_set_play_mode(self._settings.play_mode.cycle())

    def _do_set_privacy_names(self, enabled: bool) -> None:
        if self._settings.privacy_names == enabled:
            return
        self._settings.privacy_names = enabled
        self._publish_settings()

    def _do_set_queue(self, tracks: Sequence[Track], start_index: Optional[int]) -> None:
        try:
            self._queue.set_queue(tracks, start_index)
        except QueueError as e:
            logger.warning("Queue not replaced: %s", e)

    def _do_remove_from_queue(self, index: int) -> None:
        if self._queue.remove_at(index) and self._session.is_active:
            self._notice(NoticeKind.ACTIVE_TRACK_REMOVED, "Playing track removed from queue")
            self._do_stop()

    def _do_publish_initial_state(self) -> None:
        self._events.publish(EventBus.PLAY_MODE_CHANGED, {"mode": self._settings.play_mode})
        self._publish_state()

    # =========================================================================
    # Helpers
    # =========================================================================

    def _start(self, track: Track, index: Optional[int]) -> bool:
        """Load and start ``track``; commit ``index`` only once it is playing."""
        # At most one loaded resource: release before loading the next one
        self._engine.stop()
        try:
            duration = self._engine.load(track.id)
            self._engine.start()
        except PlaybackError as e:
            logger.warning("Playback failed: %s", e)
            self._engine.stop()
            self._reset_to_stopped()
            self._events.publish(EventBus.PLAYBACK_FAILED, {"track": track, "error": e})
            self._notice(NoticeKind.ENGINE_LOAD_FAILED, str(e))
            self._publish_state()
            return False

        if index is not None:
            self._queue.commit(index)
        session = self._session
        session.state = PlaybackState.PLAYING
        session.active_track = track
        session.position_millis = 0
        session.duration_millis = None if session.stealth else duration
        logger.debug("Playing %s (queue index %s)", track.id, index)
        self._publish_state()
        return True

    def _reset_to_stopped(self) -> None:
        session = self._session
        session.state = PlaybackState.STOPPED
        session.active_track = None
        session.position_millis = 0
        session.duration_millis = None

    def _refresh_duration(self) -> None:
        """Pick up a duration the engine learned after load."""
        session = self._session
        if session.duration_millis is None and not session.stealth and session.is_active:
            session.duration_millis = self._engine.duration()

    def _notice(self, kind: NoticeKind, message: str) -> None:
        logger.info("Notice [%s]: %s", kind.value, message)
        self._events.publish(EventBus.NOTICE, {"kind": kind, "message": message})

    def _publish_settings(self) -> None:
        self._events.publish(EventBus.SETTINGS_CHANGED, {"settings": self.settings})

    def _publish_state(self) -> None:
        current = self._session.copy()
        self._events.publish(EventBus.SESSION_CHANGED, {"session": current})
        self._events.publish(EventBus.PRESENTATION_CHANGED, {"snapshot": snapshot(current)})
