"""Tests for the MPRIS2 bridge."""

import dbus.exceptions
import pytest
from unittest.mock import patch

from privateplayer.app_state import PlaybackSession, PlaybackState
from privateplayer.metadata import Track
from privateplayer.mpris2 import (
    MPRIS2_PLAYER_INTERFACE,
    MPRIS2_ROOT_INTERFACE,
    NO_TRACK_PATH,
    TRACK_OBJECT_PATH,
    MPRIS2Manager,
    MPRIS2Service,
    build_metadata,
    build_player_properties,
    build_root_properties,
)
from privateplayer.presentation import MASKED_IDENTITY, MASKED_TITLE, snapshot


@pytest.fixture
def playing_session():
    track = Track(id='file:///music/song.ogg', display_name='song.ogg', artist='Band')
    return PlaybackSession(
        state=PlaybackState.PLAYING,
        active_track=track,
        position_millis=3_000,
        duration_millis=200_000,
    )


@pytest.fixture
def manager(machine, event_bus):
    mpris = MPRIS2Manager(machine, event_bus)
    yield mpris
    mpris.cleanup()


class TestProperties:
    """Test MPRIS property builders."""

    def test_stopped_has_no_track(self):
        """Test stopped has no track."""
        assert build_metadata(snapshot(PlaybackSession())) == {'mpris:trackid': NO_TRACK_PATH}

    def test_playing_metadata(self, playing_session):
        """Test playing metadata."""
        metadata = build_metadata(snapshot(playing_session))
        assert metadata['mpris:trackid'] == TRACK_OBJECT_PATH
        assert metadata['xesam:title'] == 'song.ogg'
        assert metadata['xesam:artist'] == ['Band']
        assert metadata['mpris:length'] == 200_000_000

    def test_playing_player_properties(self, playing_session):
        """Test playing player properties."""
        props = build_player_properties(snapshot(playing_session))
        assert props['PlaybackStatus'] == 'Playing'
        assert props['Position'] == 3_000_000
        assert props['CanSeek'] is True
        assert props['CanControl'] is True

    @pytest.mark.parametrize('state', list(PlaybackState))
    def test_stealth_masks_properties(self, playing_session, state):
        """Test stealth masks properties."""
        snap = snapshot(playing_session.copy(state=state, stealth=True, duration_millis=None))
        metadata = build_metadata(snap)
        assert metadata['xesam:title'] == MASKED_TITLE
        assert 'mpris:length' not in metadata
        props = build_player_properties(snap)
        assert props['Position'] == 0
        for name in ('CanGoNext', 'CanGoPrevious', 'CanPlay', 'CanPause', 'CanSeek', 'CanControl'):
            assert props[name] is False
        assert build_root_properties(snap)['Identity'] == MASKED_IDENTITY


class TestMPRIS2Service:
    """Test MPRIS2Service command gating and change signals."""

    def test_registers_service(self, manager):
        """Test registers service."""
        assert isinstance(manager.service, MPRIS2Service)
        assert manager.observers == [manager.service]

    def test_state_change_emits_properties(self, manager, machine, tracks):
        """Test state change emits properties."""
        with patch.object(MPRIS2Service, 'PropertiesChanged') as changed:
            machine.play(tracks[0])
        interfaces = [call[0][0] for call in changed.call_args_list]
        assert MPRIS2_PLAYER_INTERFACE in interfaces
        player_changes = [
            call[0][1] for call in changed.call_args_list
            if call[0][0] == MPRIS2_PLAYER_INTERFACE
        ][-1]
        assert 'PlaybackStatus' in player_changes
        assert 'Metadata' in player_changes
        assert 'Position' not in player_changes

    def test_stealth_changes_identity(self, manager, machine):
        """Test stealth changes identity."""
        with patch.object(MPRIS2Service, 'PropertiesChanged') as changed:
            machine.set_stealth(True)
        root_changes = [
            call[0][1] for call in changed.call_args_list
            if call[0][0] == MPRIS2_ROOT_INTERFACE
        ]
        assert root_changes and 'Identity' in root_changes[0]

    def test_transport_controls(self, manager, machine, tracks):
        """Test transport controls."""
        machine.set_queue(tracks)
        machine.play_queue_index(0)
        manager.service.Next()
        assert machine.session.active_track == tracks[1]
        manager.service.Previous()
        assert machine.session.active_track == tracks[0]
        manager.service.PlayPause()
        assert machine.session.state is PlaybackState.PAUSED
        manager.service.PlayPause()
        assert machine.session.state is PlaybackState.PLAYING
        manager.service.Stop()
        assert machine.session.state is PlaybackState.STOPPED

    def test_stealth_refuses_controls(self, manager, machine, tracks):
        """Test stealth refuses controls."""
        machine.set_queue(tracks)
        machine.play_queue_index(0)
        machine.set_stealth(True)
        manager.service.Next()
        manager.service.Pause()
        manager.service.Stop()
        manager.service.Seek(5_000_000)
        session = machine.session
        assert session.active_track == tracks[0]
        assert session.state is PlaybackState.PLAYING
        assert session.position_millis == 0

    def test_seek_is_relative(self, manager, machine, engine, tracks):
        """Test seek is relative."""
        machine.play(tracks[0])
        machine.seek(10_000)
        manager.service.Seek(5_000_000)
        assert machine.session.position_millis == 15_000

    def test_set_position_checks_track(self, manager, machine, tracks):
        """Test set position checks track."""
        machine.play(tracks[0])
        manager.service.SetPosition('/some/other/track', 20_000_000)
        assert machine.session.position_millis == 0
        manager.service.SetPosition(TRACK_OBJECT_PATH, 20_000_000)
        assert machine.session.position_millis == 20_000

    def test_get_unknown_property(self, manager):
        """Test get unknown property."""
        with pytest.raises(dbus.exceptions.DBusException):
            manager.service.Get(MPRIS2_PLAYER_INTERFACE, 'Volume')
        with pytest.raises(dbus.exceptions.DBusException):
            manager.service.GetAll('org.example.Nothing')

    def test_properties_are_read_only(self, manager):
        """Test properties are read only."""
        with pytest.raises(dbus.exceptions.DBusException):
            manager.service.Set(MPRIS2_PLAYER_INTERFACE, 'Rate', 2.0)

    def test_cleanup_unsubscribes(self, machine, event_bus, tracks):
        """Test cleanup unsubscribes."""
        mpris = MPRIS2Manager(machine, event_bus)
        service = mpris.service
        mpris.cleanup()
        assert mpris.observers == []
        with patch.object(MPRIS2Service, 'PropertiesChanged') as changed:
            machine.play(tracks[0])
        changed.assert_not_called()
        assert service is not None
