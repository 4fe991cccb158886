"""Playback engine contract and its GStreamer implementation.

The session drives an engine through a small contract: load a URI, start,
pause, stop, seek, and report position/duration. Completion and runtime
errors come back through callbacks. At most one URI is loaded at a time;
``load`` releases whatever was loaded before.
"""

from abc import ABC, abstractmethod
from typing import Callable, Optional

import gi
gi.require_version('Gst', '1.0')
from gi.repository import Gst

from privateplayer.exceptions import EngineLoadFailed, PlaybackError
from privateplayer.logging import get_logger
from privateplayer.metadata import probe_duration_millis, uri_to_path

logger = get_logger(__name__)

# GStreamer playbin flags: audio + software volume, no video/subtitles
GST_FLAG_AUDIO = 0x02
GST_FLAG_SOFT_VOLUME = 0x10

# Upper bound on waiting for the pipeline to preroll a new URI (seconds)
PREROLL_TIMEOUT = 5


class PlaybackEngine(ABC):
    """Contract between the session and the decode/output backend."""

    def __init__(self) -> None:
        self.on_completion: Optional[Callable[[], None]] = None
        self.on_error: Optional[Callable[[str], None]] = None

    @abstractmethod
    def load(self, uri: str) -> Optional[int]:
        """
        Release the current resource and load ``uri``.

        Returns:
            Duration in milliseconds, or None if unknown

        Raises:
            EngineLoadFailed: the URI cannot be loaded
        """

    @abstractmethod
    def start(self) -> None:
        """Start or resume output of the loaded URI."""

    @abstractmethod
    def pause(self) -> None:
        """Pause output, keeping the resource loaded."""

    @abstractmethod
    def stop(self) -> None:
        """Stop output and release the loaded resource."""

    @abstractmethod
    def seek_to(self, position_millis: int) -> None:
        """Jump to an absolute position."""

    @abstractmethod
    def current_position(self) -> int:
        """Current position in milliseconds (0 when nothing is loaded)."""

    @abstractmethod
    def duration(self) -> Optional[int]:
        """Duration of the loaded URI in milliseconds, or None if unknown."""

    def cleanup(self) -> None:
        """Release everything; the engine is not used afterwards."""
        self.stop()

    def _emit_completion(self) -> None:
        if self.on_completion:
            self.on_completion()

    def _emit_error(self, message: str) -> None:
        if self.on_error:
            self.on_error(message)


class GstEngine(PlaybackEngine):
    """
    GStreamer ``playbin`` engine for local audio files.

    Bus messages are delivered on the GLib main loop, so ``on_completion``
    and ``on_error`` fire on the main loop thread.
    """

    def __init__(self) -> None:
        super().__init__()
        if not Gst.is_initialized():
            Gst.init(None)

        self._loaded_uri: Optional[str] = None
        self._duration: Optional[int] = None

        self.playbin = Gst.ElementFactory.make("playbin", "privateplayer-playbin")
        if not self.playbin:
            raise PlaybackError("Failed to create GStreamer playbin")
        try:
            self.playbin.set_property("flags", GST_FLAG_AUDIO | GST_FLAG_SOFT_VOLUME)
        except (AttributeError, TypeError):
            # Older playbin builds without the flags property
            pass

        bus = self.playbin.get_bus()
        bus.add_signal_watch()
        bus.connect("message", self._on_message)

    @property
    def loaded_uri(self) -> Optional[str]:
        return self._loaded_uri

    def _on_message(self, bus, message) -> bool:
        """
        Handle GStreamer bus messages.

        Returns:
            True to continue receiving messages
        """
        msg_type = message.type

        if msg_type == Gst.MessageType.EOS:
            if self._loaded_uri is not None:
                logger.debug("End of stream: %s", self._loaded_uri)
                self._emit_completion()

        elif msg_type == Gst.MessageType.ERROR:
            err, debug = message.parse_error()
            if self._loaded_uri is None:
                # Late error from a URI that was already released
                return True
            logger.error("Playback error: %s", err.message)
            if debug:
                logger.debug("GStreamer debug: %s", debug)
            self.stop()
            self._emit_error(err.message)

        elif msg_type == Gst.MessageType.DURATION_CHANGED:
            queried = self._query_duration()
            if queried is not None:
                self._duration = queried

        return True

    def _query_duration(self) -> Optional[int]:
        success, duration = self.playbin.query_duration(Gst.Format.TIME)
        if success and duration > 0:
            return duration // Gst.MSECOND
        return None

    def _pop_error_reason(self) -> str:
        bus = self.playbin.get_bus()
        message = bus.pop_filtered(Gst.MessageType.ERROR) if bus else None
        if message is None:
            return "pipeline refused to preroll"
        err, _debug = message.parse_error()
        return err.message

    def load(self, uri: str) -> Optional[int]:
        self.stop()

        path = uri_to_path(uri)
        if path is not None and not path.is_file():
            raise EngineLoadFailed(uri, "file not found")

        self.playbin.set_property("uri", uri)
        ret = self.playbin.set_state(Gst.State.PAUSED)
        if ret == Gst.StateChangeReturn.ASYNC:
            ret, _state, _pending = self.playbin.get_state(PREROLL_TIMEOUT * Gst.SECOND)
        if ret == Gst.StateChangeReturn.FAILURE:
            reason = self._pop_error_reason()
            self.playbin.set_state(Gst.State.NULL)
            raise EngineLoadFailed(uri, reason)

        self._loaded_uri = uri
        self._duration = self._query_duration()
        if self._duration is None:
            self._duration = probe_duration_millis(uri)
        return self._duration

    def start(self) -> None:
        if self._loaded_uri is None:
            raise PlaybackError("Nothing loaded")
        ret = self.playbin.set_state(Gst.State.PLAYING)
        if ret == Gst.StateChangeReturn.FAILURE:
            raise PlaybackError(f"Failed to start playback of {self._loaded_uri}")

    def pause(self) -> None:
        if self._loaded_uri is not None:
            self.playbin.set_state(Gst.State.PAUSED)

    def stop(self) -> None:
        self.playbin.set_state(Gst.State.NULL)
        self._loaded_uri = None
        self._duration = None

    def seek_to(self, position_millis: int) -> None:
        if self._loaded_uri is None:
            return
        success = self.playbin.seek_simple(
            Gst.Format.TIME,
            Gst.SeekFlags.FLUSH | Gst.SeekFlags.KEY_UNIT,
            int(position_millis) * Gst.MSECOND,
        )
        if not success:
            logger.warning("Seek failed for position %d ms", position_millis)

    def current_position(self) -> int:
        if self._loaded_uri is None:
            return 0
        success, position = self.playbin.query_position(Gst.Format.TIME)
        if success and position > 0:
            return position // Gst.MSECOND
        return 0

    def duration(self) -> Optional[int]:
        if self._loaded_uri is None:
            return None
        if self._duration is None:
            self._duration = self._query_duration()
        return self._duration

    def cleanup(self) -> None:
        """
        Clean up resources.

        Stops playback, removes the bus watch, and drops the playbin.
        """
        self.stop()
        try:
            bus = self.playbin.get_bus()
            if bus:
                bus.remove_signal_watch()
        except (AttributeError, RuntimeError):
            # Bus may already be destroyed
            pass
