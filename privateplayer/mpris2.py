"""MPRIS2 (Media Player Remote Interfacing Specification) D-Bus bridge.

Publishes the presenter snapshot to desktop media widgets and lock screens,
and turns their transport requests (media keys, widget buttons) into session
commands. Everything exported goes through the stealth presentation filter:
in stealth mode the player shows up under a masked identity with masked
metadata and no controls, and transport requests are refused.
"""

from typing import Any, Dict, List, Optional

import dbus
import dbus.exceptions
import dbus.service
from dbus.mainloop.glib import DBusGMainLoop

from privateplayer.app_state import PlaybackSession, PlaybackState
from privateplayer.events import EventBus
from privateplayer.logging import get_logger
from privateplayer.poller import SessionObserver
from privateplayer.presentation import Action, PresenterSnapshot, snapshot
from privateplayer.session import SessionStateMachine

logger = get_logger(__name__)


MPRIS2_BUS_NAME = 'org.mpris.MediaPlayer2.privateplayer'
MPRIS2_OBJECT_PATH = '/org/mpris/MediaPlayer2'
MPRIS2_ROOT_INTERFACE = 'org.mpris.MediaPlayer2'
MPRIS2_PLAYER_INTERFACE = 'org.mpris.MediaPlayer2.Player'
PROPERTIES_INTERFACE = 'org.freedesktop.DBus.Properties'

TRACK_OBJECT_PATH = '/org/privateplayer/Track/current'
NO_TRACK_PATH = '/org/mpris/MediaPlayer2/TrackList/NoTrack'

SUPPORTED_MIME_TYPES = ['audio/mpeg', 'audio/flac', 'audio/ogg', 'audio/mp4', 'audio/x-wav']

STATUS_NAMES = {
    PlaybackState.PLAYING: 'Playing',
    PlaybackState.PAUSED: 'Paused',
    PlaybackState.STOPPED: 'Stopped',
}


def build_metadata(snap: PresenterSnapshot) -> Dict[str, Any]:
    """MPRIS metadata map with plain Python values (lengths in microseconds)."""
    if snap.state is PlaybackState.STOPPED and not snap.stealth:
        return {'mpris:trackid': NO_TRACK_PATH}
    presented = snap.presented
    metadata: Dict[str, Any] = {
        'mpris:trackid': TRACK_OBJECT_PATH,
        'xesam:title': presented.title,
        'xesam:artist': [presented.artist],
    }
    if presented.duration_millis is not None:
        metadata['mpris:length'] = presented.duration_millis * 1000
    return metadata


def build_root_properties(snap: PresenterSnapshot) -> Dict[str, Any]:
    return {
        'CanQuit': False,
        'CanRaise': False,
        'HasTrackList': False,
        'Identity': snap.identity,
        'SupportedUriSchemes': ['file'],
        'SupportedMimeTypes': list(SUPPORTED_MIME_TYPES),
    }


def build_player_properties(snap: PresenterSnapshot) -> Dict[str, Any]:
    """Player interface properties with plain Python values."""
    position = snap.position_millis
    return {
        'PlaybackStatus': STATUS_NAMES[snap.state],
        'Rate': 1.0,
        'MinimumRate': 1.0,
        'MaximumRate': 1.0,
        'Metadata': build_metadata(snap),
        'Position': (position or 0) * 1000,
        'CanGoNext': snap.allows(Action.SKIP_NEXT),
        'CanGoPrevious': snap.allows(Action.SKIP_PREVIOUS),
        'CanPlay': snap.allows(Action.PLAY),
        'CanPause': snap.allows(Action.PAUSE),
        'CanSeek': snap.allows(Action.SEEK),
        'CanControl': bool(snap.presented.allowed_actions),
    }


def _to_dbus(name: str, value: Any) -> Any:
    """Wrap a plain property value in the D-Bus type MPRIS expects."""
    if name == 'Metadata':
        wrapped = {}
        for key, item in value.items():
            if key == 'mpris:trackid':
                wrapped[key] = dbus.ObjectPath(item)
            elif key == 'mpris:length':
                wrapped[key] = dbus.Int64(item)
            elif isinstance(item, list):
                wrapped[key] = dbus.Array(item, signature='s')
            else:
                wrapped[key] = dbus.String(item)
        return dbus.Dictionary(wrapped, signature='sv')
    if name == 'Position':
        return dbus.Int64(value)
    if isinstance(value, list):
        return dbus.Array(value, signature='s')
    if isinstance(value, bool):
        return dbus.Boolean(value)
    if isinstance(value, float):
        return dbus.Double(value)
    return dbus.String(value)


class MPRIS2Service(dbus.service.Object, SessionObserver):
    """Root + Player interfaces on one object, fed by presenter snapshots."""

    def __init__(self, bus_name, machine: SessionStateMachine):
        dbus.service.Object.__init__(self, bus_name, MPRIS2_OBJECT_PATH)
        self._machine = machine
        self._snapshot: PresenterSnapshot = snapshot(machine.session)

    # =========================================================================
    # Snapshot intake
    # =========================================================================

    def publish(self, snap: PresenterSnapshot) -> None:
        """Adopt a new snapshot and signal the properties that changed."""
        old_root = build_root_properties(self._snapshot)
        old_player = build_player_properties(self._snapshot)
        self._snapshot = snap
        self._emit_changes(MPRIS2_ROOT_INTERFACE, old_root, build_root_properties(snap))
        self._emit_changes(MPRIS2_PLAYER_INTERFACE, old_player, build_player_properties(snap))

    def on_presentation_changed(self, data: Optional[Dict[str, Any]]) -> None:
        if data and 'snapshot' in data:
            self.publish(data['snapshot'])

    def on_tick(self, session: PlaybackSession) -> None:
        # Position is polled by clients, not signalled
        self._snapshot = snapshot(session)

    def _emit_changes(self, interface: str, old: Dict[str, Any], new: Dict[str, Any]) -> None:
        changed = {
            name: _to_dbus(name, value)
            for name, value in new.items()
            if name != 'Position' and old.get(name) != value
        }
        if changed:
            self.PropertiesChanged(interface, changed, [])

    def _allowed(self, action: Action) -> bool:
        if self._snapshot.allows(action):
            return True
        logger.debug("MPRIS2: %s refused (not advertised)", action.value)
        return False

    # =========================================================================
    # org.mpris.MediaPlayer2
    # =========================================================================

    @dbus.service.method(MPRIS2_ROOT_INTERFACE, in_signature='', out_signature='')
    def Raise(self):
        logger.debug("MPRIS2: Raise requested (no window)")

    @dbus.service.method(MPRIS2_ROOT_INTERFACE, in_signature='', out_signature='')
    def Quit(self):
        logger.debug("MPRIS2: Quit requested (not supported)")

    # =========================================================================
    # org.mpris.MediaPlayer2.Player
    # =========================================================================

    @dbus.service.method(MPRIS2_PLAYER_INTERFACE, in_signature='', out_signature='')
    def Next(self):
        if self._allowed(Action.SKIP_NEXT):
            self._machine.skip_next()

    @dbus.service.method(MPRIS2_PLAYER_INTERFACE, in_signature='', out_signature='')
    def Previous(self):
        if self._allowed(Action.SKIP_PREVIOUS):
            self._machine.skip_previous()

    @dbus.service.method(MPRIS2_PLAYER_INTERFACE, in_signature='', out_signature='')
    def Pause(self):
        if self._allowed(Action.PAUSE):
            self._machine.pause()

    @dbus.service.method(MPRIS2_PLAYER_INTERFACE, in_signature='', out_signature='')
    def Play(self):
        if self._allowed(Action.PLAY):
            self._machine.resume()

    @dbus.service.method(MPRIS2_PLAYER_INTERFACE, in_signature='', out_signature='')
    def PlayPause(self):
        if self._snapshot.state is PlaybackState.PLAYING:
            self.Pause()
        else:
            self.Play()

    @dbus.service.method(MPRIS2_PLAYER_INTERFACE, in_signature='', out_signature='')
    def Stop(self):
        if self._snapshot.presented.allowed_actions:
            self._machine.stop()

    @dbus.service.method(MPRIS2_PLAYER_INTERFACE, in_signature='x', out_signature='')
    def Seek(self, offset):
        """Seek by ``offset`` microseconds relative to the current position."""
        if not self._allowed(Action.SEEK):
            return
        current = self._machine.sample().position_millis
        self._machine.seek(current + int(offset) // 1000)

    @dbus.service.method(MPRIS2_PLAYER_INTERFACE, in_signature='ox', out_signature='')
    def SetPosition(self, track_id, position):
        """Absolute seek in microseconds; ignored for a stale track id."""
        if not self._allowed(Action.SEEK):
            return
        if str(track_id) != TRACK_OBJECT_PATH:
            return
        self._machine.seek(int(position) // 1000)

    @dbus.service.method(MPRIS2_PLAYER_INTERFACE, in_signature='s', out_signature='')
    def OpenUri(self, uri):
        logger.debug("MPRIS2: OpenUri not supported")

    @dbus.service.signal(MPRIS2_PLAYER_INTERFACE, signature='x')
    def Seeked(self, position):
        pass

    # =========================================================================
    # org.freedesktop.DBus.Properties
    # =========================================================================

    def _properties(self, interface: str) -> Dict[str, Any]:
        if interface == MPRIS2_ROOT_INTERFACE:
            return build_root_properties(self._snapshot)
        if interface == MPRIS2_PLAYER_INTERFACE:
            return build_player_properties(self._snapshot)
        raise dbus.exceptions.DBusException(
            'Unknown interface %s' % interface,
            name='org.freedesktop.DBus.Error.UnknownInterface',
        )

    @dbus.service.method(PROPERTIES_INTERFACE, in_signature='ss', out_signature='v')
    def Get(self, interface, prop):
        properties = self._properties(interface)
        if prop not in properties:
            raise dbus.exceptions.DBusException(
                'Unknown property %s' % prop,
                name='org.freedesktop.DBus.Error.UnknownProperty',
            )
        return _to_dbus(prop, properties[prop])

    @dbus.service.method(PROPERTIES_INTERFACE, in_signature='s', out_signature='a{sv}')
    def GetAll(self, interface):
        properties = self._properties(interface)
        return dbus.Dictionary(
            {name: _to_dbus(name, value) for name, value in properties.items()},
            signature='sv',
        )

    @dbus.service.method(PROPERTIES_INTERFACE, in_signature='ssv', out_signature='')
    def Set(self, interface, prop, value):
        raise dbus.exceptions.DBusException(
            'Property %s is read-only' % prop,
            name='org.freedesktop.DBus.Error.PropertyReadOnly',
        )

    @dbus.service.signal(PROPERTIES_INTERFACE, signature='sa{sv}as')
    def PropertiesChanged(self, interface, changed, invalidated):
        pass


class MPRIS2Manager:
    """Owns the bus name and the exported service object."""

    def __init__(self, machine: SessionStateMachine, event_bus: EventBus):
        self._events = event_bus
        self.service: Optional[MPRIS2Service] = None
        self._bus_name = None

        DBusGMainLoop(set_as_default=True)
        try:
            self._bus_name = dbus.service.BusName(MPRIS2_BUS_NAME, bus=dbus.SessionBus())
            self.service = MPRIS2Service(self._bus_name, machine)
        except dbus.exceptions.DBusException as e:
            logger.warning("MPRIS2: Session bus unavailable: %s", e)
            return

        event_bus.subscribe(EventBus.PRESENTATION_CHANGED, self.service.on_presentation_changed)
        logger.info("MPRIS2: Registered as %s", MPRIS2_BUS_NAME)

    @property
    def observers(self) -> List[SessionObserver]:
        """Poller observers to register (empty when the bus is unavailable)."""
        return [self.service] if self.service else []

    def cleanup(self) -> None:
        """Release the bus name and stop listening for snapshots."""
        if self.service is None:
            return
        self._events.unsubscribe(EventBus.PRESENTATION_CHANGED, self.service.on_presentation_changed)
        try:
            self.service.remove_from_connection()
        except (LookupError, dbus.exceptions.DBusException) as e:
            logger.debug("MPRIS2: Object already unexported: %s", e)
        self.service = None
        self._bus_name = None
        logger.info("MPRIS2: Cleaned up")
