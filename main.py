#!/usr/bin/env python3
"""Private Player - Main entry point."""

import argparse
import signal
import sys

import gi
gi.require_version('GLib', '2.0')
gi.require_version('Gst', '1.0')
from gi.repository import GLib, Gst

from privateplayer.app_state import PlaybackSession, PlaybackState
from privateplayer.config import PlayerSettings, get_config
from privateplayer.engine import GstEngine
from privateplayer.events import EventBus
from privateplayer.exceptions import NoticeKind, PlaybackError
from privateplayer.logging import LinuxLogger, get_logger
from privateplayer.metadata import Track
from privateplayer.playlist_store import PlaylistStore
from privateplayer.poller import PositionPoller, SessionObserver
from privateplayer.presentation import display_label, format_time, snapshot
from privateplayer.queue_manager import PlayMode, QueueManager
from privateplayer.session import SessionStateMachine

logger = get_logger(__name__)

MODE_NAMES = {
    'none': PlayMode.NONE,
    'one': PlayMode.REPEAT_ONE,
    'all': PlayMode.REPEAT_ALL,
}


class ConsoleObserver(SessionObserver):
    """Prints the presented track and position to stdout once per tick."""

    def __init__(self, machine: SessionStateMachine):
        self._machine = machine

    def on_track_changed(self, session: PlaybackSession) -> None:
        snap = snapshot(session)
        if session.active_track is None:
            print("[stopped]")
            return
        if snap.stealth:
            label = snap.presented.title
        else:
            queue = self._machine.queue
            index = queue.current_index if queue.current_index is not None else 0
            label = display_label(session.active_track, index, self._machine.settings.privacy_names)
        print("> %s" % label)
        self.on_tick(session)

    def on_tick(self, session: PlaybackSession) -> None:
        snap = snapshot(session)
        if snap.state is PlaybackState.STOPPED:
            return
        print(
            "  %s %s / %s" % (
                snap.state.value,
                format_time(snap.position_millis),
                format_time(snap.presented.duration_millis),
            )
        )


def parse_args(argv):
    parser = argparse.ArgumentParser(prog='privateplayer', description='Private audio player')
    parser.add_argument('paths', nargs='+', help='Audio files to queue in order')
    parser.add_argument('--stealth', action='store_true', default=None,
                        help='Start with stealth mode on (persisted)')
    parser.add_argument('--mode', choices=sorted(MODE_NAMES),
                        help='Repeat mode (persisted)')
    parser.add_argument('--no-mpris', action='store_true',
                        help='Do not export the player over MPRIS2')
    return parser.parse_args(argv)


def main(argv=None):
    """Main entry point."""
    args = parse_args(sys.argv[1:] if argv is None else argv)

    # Initialize config (creates directories, loads settings)
    config = get_config()

    # Initialize logging (uses config for log directory)
    LinuxLogger(log_dir=config.log_dir)

    Gst.init(None)

    settings = PlayerSettings.from_config(config)
    events = EventBus()
    queue = QueueManager(events)
    playlist = PlaylistStore(events)
    try:
        engine = GstEngine()
    except PlaybackError as e:
        logger.error("Cannot start: %s", e)
        return 1

    machine = SessionStateMachine(engine, queue, events, settings)
    events.subscribe(
        EventBus.SETTINGS_CHANGED, lambda data: data["settings"].save_to(config)
    )

    loop = GLib.MainLoop()

    def on_notice(data):
        if data["kind"] is not NoticeKind.QUEUE_EXHAUSTED:
            print("! %s" % data["message"], file=sys.stderr)

    def on_session_changed(data):
        if data["session"].state is PlaybackState.STOPPED and loop.is_running():
            # Nothing left to play: exit once the stop has been published
            GLib.idle_add(loop.quit)

    events.subscribe(EventBus.NOTICE, on_notice)

    if args.stealth is not None:
        machine.set_stealth(args.stealth)
    if args.mode:
        machine.set_play_mode(MODE_NAMES[args.mode])

    tracks = [Track.from_path(path) for path in args.paths]
    for track in tracks:
        playlist.add(track)

    poller = PositionPoller(machine, settings.poll_interval_ms)
    poller.register(ConsoleObserver(machine))

    mpris = None
    if not args.no_mpris:
        from privateplayer.mpris2 import MPRIS2Manager
        mpris = MPRIS2Manager(machine, events)
        for observer in mpris.observers:
            poller.register(observer)

    GLib.unix_signal_add(GLib.PRIORITY_DEFAULT, signal.SIGINT, lambda: loop.quit() or False)

    machine.publish_initial_state()
    machine.play_from_source(playlist.items[0], playlist.items)
    if machine.session.state is PlaybackState.STOPPED:
        logger.error("Nothing playable among %d file(s)", len(tracks))
    else:
        events.subscribe(EventBus.SESSION_CHANGED, on_session_changed)
        loop.run()

    machine.shutdown()
    if mpris:
        mpris.cleanup()
    return 0


if __name__ == '__main__':
    sys.exit(main())
