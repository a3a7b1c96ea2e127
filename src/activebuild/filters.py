"""Turning a single raw event into an action verdict."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from fnmatch import fnmatch
from typing import Iterable, Optional, Sequence, Union

from .classifier import Components, NamedUnit, PathClassifier, Scope, UnknownScope
from .config import LayoutConfig
from .events import TRIGGERING_KINDS, EventKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Ignore:
    pass


@dataclass(frozen=True)
class Reload:
    unit: str


@dataclass(frozen=True)
class DeferredReload:
    """A rename is in progress; the final artifact shows up later."""

    unit: str


@dataclass(frozen=True)
class Rebuild:
    scope: Scope


@dataclass(frozen=True)
class Unhandled:
    components: Components


@dataclass(frozen=True)
class UnknownArtifact:
    filename: str


Verdict = Union[Ignore, Reload, DeferredReload, Rebuild, Unhandled, UnknownArtifact]


def first_triggering_kind(kinds: Iterable[EventKind]) -> Optional[EventKind]:
    for kind in kinds:
        if kind in TRIGGERING_KINDS:
            return kind
    return None


class EventFilter:
    """Decides what, if anything, a change under the root should cause."""

    def __init__(
        self,
        layout: LayoutConfig,
        classifier: PathClassifier,
        *,
        handles_renames: bool,
        log: Optional[logging.Logger] = None,
    ):
        self._layout = layout
        self._classifier = classifier
        self._handles_renames = handles_renames
        self._log = log or logger
        self._ignored_dirs = frozenset(layout.ignored_dirs)
        self._ignored_files = frozenset(layout.ignored_files)
        self._source_dirs = frozenset(layout.source_dirs)

    def evaluate(self, components: Sequence[str], kinds: Iterable[EventKind]) -> Verdict:
        comps = tuple(components)
        if first_triggering_kind(kinds) is None:
            return Ignore()
        if not self.path_filter(comps):
            self._log.debug("Filtered noise: %s", "/".join(comps))
            return Ignore()

        classification = self._classifier.classify(comps)
        if isinstance(classification.scope, UnknownScope):
            self._log.warning("Unhandled path: %s", "/".join(comps))
            return Unhandled(comps)
        return self._unit_event(classification.scope, classification.rest, comps)

    def path_filter(self, components: Components) -> bool:
        """Return ``True`` when the path is worth acting on."""

        if not components:
            return False
        if any(part in self._ignored_dirs for part in components):
            return False
        last = components[-1]
        if last in self._ignored_files:
            return False
        return not any(fnmatch(last, pattern) for pattern in self._layout.ignored_patterns)

    def parse_artifact(self, filename: str) -> Verdict:
        tokens = [token for token in filename.split(".") if token]
        if len(tokens) == 2:
            name, extension = tokens
            if extension == self._layout.artifact_extension:
                return Reload(name)
            if extension == self._layout.rename_sentinel:
                if self._handles_renames:
                    return Ignore()
                return DeferredReload(name)
        self._log.warning("Unknown artifact file: %s", filename)
        return UnknownArtifact(filename)

    def _unit_event(self, scope: NamedUnit, rest: Components, comps: Components) -> Verdict:
        if len(rest) >= 2 and rest[0] == self._layout.artifact_dir:
            return self.parse_artifact(rest[1])
        if rest and rest[0] in self._source_dirs:
            return Rebuild(scope)
        self._log.warning("Unit %s: unhandled path: %s", scope.name, "/".join(rest) or "<unit root>")
        return Unhandled(comps)
