"""Event models shared across watcher components."""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable, Tuple


class EventKind(str, Enum):
    """Tags a filesystem monitor may attach to a change."""

    CREATED = "created"
    MODIFIED = "modified"
    RENAMED = "renamed"
    DELETED = "deleted"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: str) -> "EventKind":
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


TRIGGERING_KINDS = frozenset({EventKind.CREATED, EventKind.MODIFIED, EventKind.RENAMED})


@dataclass(frozen=True)
class RawEvent:
    """A single change reported by the filesystem monitor."""

    path: Path
    kinds: Tuple[EventKind, ...]

    @classmethod
    def of(cls, path, kinds: Iterable) -> "RawEvent":
        return cls(
            path=Path(path),
            kinds=tuple(k if isinstance(k, EventKind) else EventKind.parse(str(k)) for k in kinds),
        )


class Outcome(str, Enum):
    """Result recorded for each processed message."""

    OK = "ok"
    IGNORED = "ignored"
    BUILT = "built"
    BUILD_FAILED = "build_failed"
    RELOADED = "reloaded"
    LOAD_FAILED = "load_failed"
    DEFERRED = "deferred"
    UNHANDLED = "unhandled"
    UNKNOWN_ARTIFACT = "unknown_artifact"
