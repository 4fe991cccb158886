"""Pytest configuration and fixtures."""

import shutil
import sys
import tempfile
import types
from pathlib import Path
from typing import Dict, List, Optional, Set
from unittest.mock import MagicMock

import pytest

# Mock GStreamer/GLib before imports
sys.modules['gi'] = MagicMock()
sys.modules['gi.repository'] = MagicMock()
sys.modules['gi.repository.Gst'] = MagicMock()
sys.modules['gi.repository.GLib'] = MagicMock()


# Mock dbus-python: plain base class and pass-through decorators so the
# exported methods stay callable in tests
class _FakeDBusException(Exception):
    def __init__(self, *args, name=None, **kwargs):
        super().__init__(*args)
        self._dbus_error_name = name

    def get_dbus_name(self):
        return self._dbus_error_name


class _FakeServiceObject:
    def __init__(self, *args, **kwargs):
        pass

    def remove_from_connection(self, *args, **kwargs):
        pass


def _passthrough(*args, **kwargs):
    return lambda func: func


_dbus_exceptions = types.ModuleType('dbus.exceptions')
_dbus_exceptions.DBusException = _FakeDBusException
_dbus_service = types.ModuleType('dbus.service')
_dbus_service.Object = _FakeServiceObject
_dbus_service.method = _passthrough
_dbus_service.signal = _passthrough
_dbus_service.BusName = MagicMock()
_dbus = MagicMock()
_dbus.exceptions = _dbus_exceptions
_dbus.service = _dbus_service
sys.modules['dbus'] = _dbus
sys.modules['dbus.exceptions'] = _dbus_exceptions
sys.modules['dbus.service'] = _dbus_service
sys.modules['dbus.mainloop'] = MagicMock()
sys.modules['dbus.mainloop.glib'] = MagicMock()

from privateplayer.config import Config, PlayerSettings  # noqa: E402
from privateplayer.engine import PlaybackEngine  # noqa: E402
from privateplayer.events import EventBus  # noqa: E402
from privateplayer.exceptions import EngineLoadFailed  # noqa: E402
from privateplayer.metadata import Track  # noqa: E402
from privateplayer.queue_manager import QueueManager  # noqa: E402
from privateplayer.session import SessionStateMachine  # noqa: E402


class FakeEngine(PlaybackEngine):
    """Scripted engine: fixed durations per URI, URIs that fail to load."""

    def __init__(self, durations: Optional[Dict[str, int]] = None):
        super().__init__()
        self.durations: Dict[str, Optional[int]] = dict(durations or {})
        self.failing: Set[str] = set()
        self.loaded: Optional[str] = None
        self.playing = False
        self.position = 0
        self.load_calls: List[str] = []
        self.seeks: List[int] = []
        self.cleaned_up = False

    def load(self, uri):
        assert self.loaded is None, "previous resource was not released"
        self.load_calls.append(uri)
        if uri in self.failing:
            raise EngineLoadFailed(uri, "unreadable")
        self.loaded = uri
        self.position = 0
        return self.durations.get(uri)

    def start(self):
        self.playing = True

    def pause(self):
        self.playing = False

    def stop(self):
        self.loaded = None
        self.playing = False
        self.position = 0

    def seek_to(self, position_millis):
        self.seeks.append(position_millis)
        self.position = position_millis

    def current_position(self):
        return self.position if self.loaded else 0

    def duration(self):
        return self.durations.get(self.loaded) if self.loaded else None

    def cleanup(self):
        self.stop()
        self.cleaned_up = True

    def finish(self):
        """Simulate natural end of the loaded track."""
        self.playing = False
        self._emit_completion()


class EventRecorder:
    """Collects published payloads per event name."""

    def __init__(self, bus: EventBus, *events: str):
        self.received: Dict[str, List] = {event: [] for event in events}
        for event in events:
            bus.subscribe(event, self.received[event].append)

    def __getitem__(self, event: str) -> List:
        return self.received[event]


def make_track(name: str) -> Track:
    return Track(id="file:///music/%s.mp3" % name, display_name="%s.mp3" % name)


@pytest.fixture
def temp_dir():
    """Create a temporary directory for tests."""
    temp_path = Path(tempfile.mkdtemp())
    yield temp_path
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def isolated_config(monkeypatch, temp_dir):
    """Config singleton rooted in temporary XDG directories."""
    monkeypatch.setenv('XDG_CONFIG_HOME', str(temp_dir / 'config'))
    monkeypatch.setenv('XDG_DATA_HOME', str(temp_dir / 'data'))
    Config.reset_instance()
    yield Config.get_instance()
    Config.reset_instance()


@pytest.fixture
def tracks():
    return [make_track(name) for name in ("a", "b", "c")]


@pytest.fixture
def event_bus():
    return EventBus()


@pytest.fixture
def engine(tracks):
    return FakeEngine({track.id: 180_000 + i * 1000 for i, track in enumerate(tracks)})


@pytest.fixture
def queue(event_bus):
    return QueueManager(event_bus)


@pytest.fixture
def settings():
    return PlayerSettings()


@pytest.fixture
def machine(engine, queue, event_bus, settings):
    return SessionStateMachine(engine, queue, event_bus, settings)


@pytest.fixture
def recorder(event_bus):
    return EventRecorder(
        event_bus,
        EventBus.SESSION_CHANGED,
        EventBus.PRESENTATION_CHANGED,
        EventBus.PLAYBACK_FAILED,
        EventBus.NOTICE,
        EventBus.SETTINGS_CHANGED,
        EventBus.PLAY_MODE_CHANGED,
        EventBus.QUEUE_CHANGED,
    )
