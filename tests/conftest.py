"""Pytest configuration and shared fixtures.

Fakes for the monitor, build backend, unit loader and timers live here so
the pipeline can be driven deterministically without touching the disk.
"""

import os
from pathlib import Path
from typing import Callable, List, Optional

import pytest

from activebuild.actions import ActionDispatcher, BuildConfiguration
from activebuild.classifier import PathClassifier, split_path
from activebuild.config import LayoutConfig
from activebuild.events import EventKind
from activebuild.filters import EventFilter
from activebuild.session import WatchSession


class FakeMonitor:
    def __init__(self, root="/proj", vocabulary=None):
        self.root = Path(root)
        self.vocabulary = frozenset(vocabulary if vocabulary is not None else {EventKind.CREATED, EventKind.MODIFIED})
        self.subscribers: List[Callable] = []
        self.started = False
        self.stopped = False

    def subscribe(self, callback):
        self.subscribers.append(callback)

    def unsubscribe(self, callback):
        if callback in self.subscribers:
            self.subscribers.remove(callback)

    def root_path(self):
        return self.root

    def known_event_vocabulary(self):
        return self.vocabulary

    def start(self):
        self.started = True

    def stop(self):
        self.stopped = True


class FakeBackend:
    def __init__(self, error: Optional[Exception] = None, chdir_to: Optional[Path] = None):
        self.error = error
        self.chdir_to = chdir_to
        self.calls: List[tuple] = []

    def default_configuration(self, root_dir):
        return BuildConfiguration(root_dir=Path(root_dir), base_dir=Path("/"))

    def run_build(self, commands, configuration):
        self.calls.append((list(commands), configuration))
        if self.chdir_to is not None:
            os.chdir(self.chdir_to)
        if self.error is not None:
            raise self.error
        return "ok"


class FakeLoader:
    def __init__(self, error: Optional[Exception] = None, result=True):
        self.error = error
        self.result = result
        self.loaded: List[str] = []

    def load(self, unit):
        self.loaded.append(unit)
        if self.error is not None:
            raise self.error
        return self.result


class FakeTimer:
    def __init__(self, delay, callback):
        self.delay = delay
        self.callback = callback
        self.started = False
        self.cancelled = False

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        self.callback()


class TimerRecorder:
    def __init__(self):
        self.timers: List[FakeTimer] = []

    def __call__(self, delay, callback):
        timer = FakeTimer(delay, callback)
        self.timers.append(timer)
        return timer


@pytest.fixture
def layout() -> LayoutConfig:
    return LayoutConfig()


@pytest.fixture
def classifier(layout) -> PathClassifier:
    return PathClassifier.for_root(layout, split_path("/proj"))


@pytest.fixture
def event_filter(layout, classifier) -> EventFilter:
    return EventFilter(layout, classifier, handles_renames=False)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def loader() -> FakeLoader:
    return FakeLoader()


@pytest.fixture
def timers() -> TimerRecorder:
    return TimerRecorder()


@pytest.fixture
def monitor() -> FakeMonitor:
    return FakeMonitor()


@pytest.fixture
def dispatcher(backend, loader) -> ActionDispatcher:
    return ActionDispatcher(backend, loader, root_dir=Path("/proj"))


@pytest.fixture
def session(monitor, dispatcher, layout, timers) -> WatchSession:
    return WatchSession(monitor, dispatcher, layout=layout, timer_factory=timers)
