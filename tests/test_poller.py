"""Tests for the position poller."""

from unittest.mock import patch

import pytest

from privateplayer.app_state import PlaybackState
from privateplayer.poller import PositionPoller, SessionObserver


class RecordingObserver(SessionObserver):
    def __init__(self):
        self.calls = []

    def on_tick(self, session):
        self.calls.append(("tick", session))

    def on_track_changed(self, session):
        self.calls.append(("track", session))


@pytest.fixture
def glib():
    with patch('privateplayer.poller.GLib') as mock_glib:
        mock_glib.timeout_add.return_value = 17
        yield mock_glib


class TestPositionPoller:
    """Test PositionPoller lifecycle and ticks."""

    def test_starts_with_first_observer(self, machine, glib):
        """Test starts with first observer."""
        poller = PositionPoller(machine, 250)
        assert not poller.running
        poller.register(RecordingObserver())
        poller.register(RecordingObserver())
        assert poller.running
        glib.timeout_add.assert_called_once_with(250, poller._tick)

    def test_cancels_with_last_observer(self, machine, glib):
        """Test cancels with last observer."""
        poller = PositionPoller(machine)
        first, second = RecordingObserver(), RecordingObserver()
        poller.register(first)
        poller.register(second)
        poller.unregister(first)
        assert poller.running
        poller.unregister(second)
        assert not poller.running
        glib.source_remove.assert_called_once_with(17)

    def test_restart_is_full_refresh(self, machine, glib, tracks):
        """Test restart is full refresh."""
        poller = PositionPoller(machine)
        observer = RecordingObserver()
        machine.play(tracks[0])
        poller.register(observer)
        poller._tick()
        poller._tick()
        poller.unregister(observer)
        poller.register(observer)
        poller._tick()
        assert [kind for kind, _ in observer.calls] == ["track", "tick", "track"]
        assert glib.timeout_add.call_count == 2

    def test_tick_samples_live_position(self, machine, engine, glib, tracks):
        """Test tick samples live position."""
        poller = PositionPoller(machine)
        observer = RecordingObserver()
        poller.register(observer)
        machine.play(tracks[0])
        engine.position = 7_000
        assert poller._tick() is True
        kind, session = observer.calls[-1]
        assert kind == "track"
        assert session.state is PlaybackState.PLAYING
        assert session.position_millis == 7_000
        assert session.duration_millis == 180_000

    def test_track_change_triggers_full_refresh(self, machine, engine, glib, tracks):
        """Test track change triggers full refresh."""
        poller = PositionPoller(machine)
        observer = RecordingObserver()
        poller.register(observer)
        machine.set_queue(tracks)
        machine.play_queue_index(0)
        poller._tick()
        engine.finish()
        poller._tick()
        poller._tick()
        kinds = [kind for kind, _ in observer.calls]
        assert kinds == ["track", "track", "tick"]
        assert observer.calls[1][1].active_track == tracks[1]

    def test_tick_without_observers_ends_timeout(self, machine, glib):
        """Test tick without observers ends timeout."""
        poller = PositionPoller(machine)
        assert poller._tick() is False
        assert not poller.running

    def test_observer_errors_are_isolated(self, machine, glib):
        """Test observer errors are isolated."""
        class Broken(SessionObserver):
            def on_tick(self, session):
                raise RuntimeError("display gone")

        poller = PositionPoller(machine)
        good = RecordingObserver()
        poller.register(Broken())
        poller.register(good)
        assert poller._tick() is True
        assert len(good.calls) == 1

    def test_default_track_changed_calls_tick(self, machine, glib):
        """Test default track changed calls tick."""
        ticks = []

        class TickOnly(SessionObserver):
            def on_tick(self, session):
                ticks.append(session)

        poller = PositionPoller(machine)
        poller.register(TickOnly())
        poller._tick()
        poller._tick()
        assert len(ticks) == 2

    def test_ticks_never_mutate_session(self, machine, engine, glib, tracks):
        """Test ticks never mutate session."""
        poller = PositionPoller(machine)
        poller.register(RecordingObserver())
        machine.play(tracks[0])
        engine.position = 90_000
        poller._tick()
        assert machine.session.position_millis == 0
