"""Mapping of project-relative paths onto build scopes."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import PurePath
from typing import Callable, List, Optional, Sequence, Tuple, Union

from .config import LayoutConfig

Components = Tuple[str, ...]


@dataclass(frozen=True)
class TopLevel:
    """The whole project."""


@dataclass(frozen=True)
class NamedUnit:
    """A single sub-project (or the root project's own unit)."""

    name: str


@dataclass(frozen=True)
class UnknownScope:
    """A path whose structure matches no known layout."""


Scope = Union[TopLevel, NamedUnit, UnknownScope]


@dataclass(frozen=True)
class Classification:
    scope: Scope
    rest: Components  # path relative to the unit directory


def split_path(path) -> Components:
    return tuple(PurePath(path).parts)


def shorten_components(components: Sequence[str]) -> Components:
    """Resolve "." and ".." segments lexically.

    ("/", "a", "b", "..") -> ("/", "a")
    """

    result: List[str] = []
    for part in components:
        if part == ".":
            continue
        if part == "..":
            if len(result) > 1 or (result and not PurePath(result[0]).anchor):
                result.pop()
            continue
        result.append(part)
    return tuple(result)


def relative_components(root: Components, path) -> Optional[Components]:
    """Strip the root prefix from ``path``; ``None`` when outside the root."""

    parts = split_path(path)
    if parts[: len(root)] != tuple(root):
        return None
    return parts[len(root):]


Rule = Tuple[Callable[[Components], bool], Callable[[Components], Classification]]


class PathClassifier:
    """Table-driven classifier for paths relative to the watched root."""

    def __init__(self, layout: LayoutConfig, top_level_unit: str):
        self._layout = layout
        self._top_level_unit = top_level_unit
        containers = frozenset(layout.containers)
        top_dirs = frozenset(layout.top_level_dirs)
        self._rules: List[Rule] = [
            (
                lambda c: len(c) >= 2 and c[0] in containers,
                lambda c: Classification(NamedUnit(c[1]), c[2:]),
            ),
            (
                lambda c: len(c) >= 1 and c[0] in top_dirs,
                lambda c: Classification(NamedUnit(self._top_level_unit), c),
            ),
        ]

    @property
    def top_level_unit(self) -> str:
        return self._top_level_unit

    def classify(self, components: Sequence[str]) -> Classification:
        comps = tuple(components)
        for matches, build in self._rules:
            if matches(comps):
                return build(comps)
        return Classification(UnknownScope(), comps)

    @classmethod
    def for_root(cls, layout: LayoutConfig, root: Components) -> "PathClassifier":
        return cls(layout, top_level_unit=root[-1] if root else "")
