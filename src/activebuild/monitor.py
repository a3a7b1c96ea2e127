"""Filesystem monitor interface and its watchdog-backed implementation."""
from __future__ import annotations

import logging
import os
import threading
from pathlib import Path
from typing import Callable, FrozenSet, List, Optional, Protocol

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from .events import EventKind, RawEvent

logger = logging.getLogger(__name__)

EventCallback = Callable[[RawEvent], None]


class FilesystemMonitor(Protocol):
    def subscribe(self, callback: EventCallback) -> None:
        ...

    def unsubscribe(self, callback: EventCallback) -> None:
        ...

    def root_path(self) -> Path:
        ...

    def known_event_vocabulary(self) -> FrozenSet[EventKind]:
        ...

    def start(self) -> None:
        ...

    def stop(self) -> None:
        ...


_KIND_BY_WATCHDOG_TYPE = {
    "created": EventKind.CREATED,
    "modified": EventKind.MODIFIED,
    "deleted": EventKind.DELETED,
}


class _EventTranslator(FileSystemEventHandler):
    """Converts watchdog events into raw events for subscribers."""

    def __init__(self, publish: EventCallback):
        super().__init__()
        self._publish = publish

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        for raw in translate(event):
            self._publish(raw)


def translate(event: FileSystemEvent) -> List[RawEvent]:
    src = Path(os.fsdecode(event.src_path))
    if event.event_type == "moved":
        dest = Path(os.fsdecode(event.dest_path))
        return [
            RawEvent(path=src, kinds=(EventKind.DELETED,)),
            RawEvent(path=dest, kinds=(EventKind.RENAMED,)),
        ]
    kind = _KIND_BY_WATCHDOG_TYPE.get(event.event_type, EventKind.UNKNOWN)
    return [RawEvent(path=src, kinds=(kind,))]


class WatchdogMonitor:
    """Watches a directory tree recursively and fans events out to subscribers."""

    VOCABULARY: FrozenSet[EventKind] = frozenset(
        {EventKind.CREATED, EventKind.MODIFIED, EventKind.DELETED, EventKind.RENAMED, EventKind.UNKNOWN}
    )

    def __init__(self, root: Path, *, recursive: bool = True):
        self._root = Path(os.path.abspath(root))
        self._recursive = recursive
        self._subscribers: List[EventCallback] = []
        self._lock = threading.Lock()
        self._observer: Optional[Observer] = None

    def root_path(self) -> Path:
        return self._root

    def known_event_vocabulary(self) -> FrozenSet[EventKind]:
        return self.VOCABULARY

    def subscribe(self, callback: EventCallback) -> None:
        with self._lock:
            if callback not in self._subscribers:
                self._subscribers.append(callback)

    def unsubscribe(self, callback: EventCallback) -> None:
        with self._lock:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

    def publish(self, event: RawEvent) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            callback(event)

    def start(self) -> None:
        if self._observer is not None:
            return
        if not self._root.exists():
            logger.warning("Root path %s does not exist; nothing to watch", self._root)
            return
        observer = Observer()
        observer.schedule(_EventTranslator(self.publish), str(self._root), recursive=self._recursive)
        observer.start()
        self._observer = observer
        logger.info("Watching %s (recursive=%s)", self._root, self._recursive)

    def stop(self) -> None:
        if self._observer is None:
            return
        self._observer.stop()
        self._observer.join(timeout=5.0)
        self._observer = None
        logger.info("Stopped watching %s", self._root)
