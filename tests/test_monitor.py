"""Tests for the watchdog-backed monitor."""

from pathlib import Path

from watchdog.events import (
    DirCreatedEvent,
    FileClosedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from activebuild.events import EventKind, RawEvent
from activebuild.monitor import WatchdogMonitor, _EventTranslator, translate


class TestTranslate:
    def test_simple_events(self):
        assert translate(FileCreatedEvent("/proj/src/a.erl")) == [
            RawEvent(Path("/proj/src/a.erl"), (EventKind.CREATED,))
        ]
        assert translate(FileModifiedEvent("/proj/src/a.erl"))[0].kinds == (EventKind.MODIFIED,)
        assert translate(FileDeletedEvent("/proj/src/a.erl"))[0].kinds == (EventKind.DELETED,)

    def test_move_becomes_delete_and_rename(self):
        events = translate(FileMovedEvent("/proj/ebin/foo.bea#", "/proj/ebin/foo.beam"))
        assert events == [
            RawEvent(Path("/proj/ebin/foo.bea#"), (EventKind.DELETED,)),
            RawEvent(Path("/proj/ebin/foo.beam"), (EventKind.RENAMED,)),
        ]

    def test_other_event_types_are_unknown(self):
        assert translate(FileClosedEvent("/proj/src/a.erl"))[0].kinds == (EventKind.UNKNOWN,)


class TestWatchdogMonitor:
    def test_reports_renames(self, tmp_path):
        monitor = WatchdogMonitor(tmp_path)
        assert EventKind.RENAMED in monitor.known_event_vocabulary()
        assert monitor.root_path() == tmp_path

    def test_root_is_normalised(self, tmp_path):
        (tmp_path / "a").mkdir()
        assert WatchdogMonitor(tmp_path / "a" / "..").root_path() == tmp_path

    def test_subscribers_receive_translated_events(self, tmp_path):
        monitor = WatchdogMonitor(tmp_path)
        received = []
        monitor.subscribe(received.append)
        monitor.subscribe(received.append)
        handler = _EventTranslator(monitor.publish)

        handler.dispatch(FileCreatedEvent(str(tmp_path / "src" / "a.erl")))
        handler.dispatch(DirCreatedEvent(str(tmp_path / "src")))

        assert received == [RawEvent(tmp_path / "src" / "a.erl", (EventKind.CREATED,))]

        monitor.unsubscribe(received.append)
        handler.dispatch(FileCreatedEvent(str(tmp_path / "src" / "b.erl")))
        assert len(received) == 1

    def test_start_and_stop(self, tmp_path):
        monitor = WatchdogMonitor(tmp_path)
        monitor.start()
        monitor.stop()
        monitor.stop()

    def test_missing_root_is_not_watched(self, tmp_path, caplog):
        monitor = WatchdogMonitor(tmp_path / "missing")
        with caplog.at_level("WARNING"):
            monitor.start()
        assert "does not exist" in caplog.text
        monitor.stop()


class TestEventKind:
    def test_parse_unknown_value(self):
        assert EventKind.parse("attrib") is EventKind.UNKNOWN
        assert EventKind.parse("renamed") is EventKind.RENAMED

    def test_raw_event_of_accepts_strings(self):
        event = RawEvent.of("/proj/src/a.erl", ["modified", "xattr"])
        assert event.kinds == (EventKind.MODIFIED, EventKind.UNKNOWN)
