"""The watch session: a single-threaded actor reacting to file events."""
from __future__ import annotations

import logging
import os
import queue
import threading
from concurrent.futures import Future
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Tuple, Union

from .actions import ActionDispatcher
from .classifier import PathClassifier, TopLevel, relative_components, shorten_components, split_path
from .config import LayoutConfig
from .debounce import DebounceGate, TimerFactory, daemon_timer
from .events import EventKind, Outcome, RawEvent
from .filters import DeferredReload, EventFilter, Reload, Verdict
from .monitor import FilesystemMonitor

logger = logging.getLogger(__name__)

LOW_PRIORITY_INCREMENT = 10


@dataclass(frozen=True)
class BuildRequest:
    """A user-triggered full build; ``reply`` is set for synchronous callers."""

    reply: Optional["Future[Outcome]"] = None


@dataclass(frozen=True)
class DeferredLoad:
    unit: str
    token: int


class _Shutdown:
    pass


_SHUTDOWN = _Shutdown()


@dataclass(frozen=True)
class Fresh:
    pass


@dataclass(frozen=True)
class UserSyncBuild:
    result: Outcome


@dataclass(frozen=True)
class UserBuild:
    result: Outcome


@dataclass(frozen=True)
class EventHandled:
    path: Path
    kinds: Tuple[EventKind, ...]
    result: Outcome


@dataclass(frozen=True)
class LoadRequested:
    unit: str
    result: Outcome


@dataclass(frozen=True)
class UnknownSignal:
    message: Any


LastAction = Union[Fresh, UserSyncBuild, UserBuild, EventHandled, LoadRequested, UnknownSignal]


@dataclass
class SessionState:
    root_path: Path
    last: LastAction = field(default_factory=Fresh)


@dataclass
class SessionStats:
    """Counters logged when the session stops."""

    messages: int = 0
    builds: int = 0
    reloads: int = 0
    failures: int = 0

    def record(self, outcome: Optional[Outcome]) -> None:
        self.messages += 1
        if outcome in (Outcome.BUILT, Outcome.BUILD_FAILED):
            self.builds += 1
        elif outcome in (Outcome.RELOADED, Outcome.LOAD_FAILED):
            self.reloads += 1
        if outcome in (Outcome.BUILD_FAILED, Outcome.LOAD_FAILED):
            self.failures += 1


class WatchSession:
    """Feeds monitor events through filter, debounce gate and dispatcher.

    All messages (file events, build requests, deferred reloads) are handled
    one at a time on the session thread, in arrival order. A build blocks the
    thread, so events arriving meanwhile wait in the queue.
    """

    def __init__(
        self,
        monitor: FilesystemMonitor,
        dispatcher: ActionDispatcher,
        *,
        layout: Optional[LayoutConfig] = None,
        debounce_ms: int = 500,
        handles_renames: Optional[bool] = None,
        low_priority: bool = False,
        timer_factory: TimerFactory = daemon_timer,
        log: Optional[logging.Logger] = None,
    ):
        self._monitor = monitor
        self._dispatcher = dispatcher
        self._log = log or logger
        self._layout = layout or LayoutConfig()
        self._low_priority = low_priority

        self._root = shorten_components(split_path(monitor.root_path()))
        if handles_renames is None:
            handles_renames = EventKind.RENAMED in monitor.known_event_vocabulary()
        self.handles_renames = handles_renames

        classifier = PathClassifier.for_root(self._layout, self._root)
        self._filter = EventFilter(self._layout, classifier, handles_renames=handles_renames, log=self._log)
        self._gate = DebounceGate(
            lambda unit, token: self.send(DeferredLoad(unit, token)),
            delay_ms=debounce_ms,
            timer_factory=timer_factory,
            log=self._log,
        )

        self.state = SessionState(root_path=Path(*self._root) if self._root else Path())
        self.stats = SessionStats()
        self._queue: "queue.Queue[Any]" = queue.Queue()
        self._thread: Optional[threading.Thread] = None

    @property
    def gate(self) -> DebounceGate:
        return self._gate

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._monitor.subscribe(self.send)
        self._thread = threading.Thread(target=self._loop, name="activebuild-session", daemon=True)
        self._thread.start()
        self._monitor.start()
        self._log.info(
            "Session started for %s (atomic renames: %s)", self.state.root_path, self.handles_renames
        )

    def stop(self, timeout: Optional[float] = None) -> None:
        self._monitor.unsubscribe(self.send)
        self._monitor.stop()
        thread = self._thread
        if thread is None:
            self._gate.cancel_all()
        else:
            # the session thread cancels pending timers itself on shutdown
            self._queue.put(_SHUTDOWN)
            thread.join(timeout)
            if thread.is_alive():
                self._log.warning("Session thread still busy after %ss; it will stop once idle", timeout)
            else:
                self._thread = None
        self._log.info(
            "Session stopped after %s messages: %s builds, %s reloads, %s failures",
            self.stats.messages,
            self.stats.builds,
            self.stats.reloads,
            self.stats.failures,
        )

    def run(self) -> None:
        """Run until interrupted."""

        self.start()
        try:
            while self.running:
                self._thread.join(0.5)
        except KeyboardInterrupt:
            self._log.info("Session interrupted by user")
        finally:
            self.stop()

    def send(self, message: Any) -> None:
        self._queue.put(message)

    def trigger_build_async(self) -> None:
        self.send(BuildRequest())

    def trigger_build_sync(self, timeout: Optional[float] = None) -> Outcome:
        if not self.running:
            raise RuntimeError("session is not running")
        if threading.current_thread() is self._thread:
            raise RuntimeError("trigger_build_sync called from the session thread")
        reply: "Future[Outcome]" = Future()
        self.send(BuildRequest(reply=reply))
        return reply.result(timeout)

    def process(self, message: Any) -> Optional[Outcome]:
        """Handle one message on the calling thread."""

        if isinstance(message, RawEvent):
            outcome = self._handle_event(message)
        elif isinstance(message, BuildRequest):
            outcome = self._dispatcher.build(TopLevel())
            if message.reply is not None:
                self.state.last = UserSyncBuild(outcome)
                message.reply.set_result(outcome)
            else:
                self.state.last = UserBuild(outcome)
        elif isinstance(message, DeferredLoad):
            outcome = Outcome.IGNORED
            if self._gate.consume(message.unit, message.token):
                outcome = self._dispatcher.dispatch(Reload(message.unit))
            self.state.last = LoadRequested(message.unit, outcome)
        else:
            self._log.debug("Unknown message ignored: %r", message)
            self.state.last = UnknownSignal(message)
            outcome = None
        self.stats.record(outcome)
        return outcome

    def _handle_event(self, event: RawEvent) -> Outcome:
        components = relative_components(self._root, event.path)
        if components is None:
            outcome = Outcome.OK
        else:
            outcome = self._apply(self._filter.evaluate(components, event.kinds))
        self.state.last = EventHandled(event.path, event.kinds, outcome)
        return outcome

    def _apply(self, verdict: Verdict) -> Outcome:
        if isinstance(verdict, Reload):
            self._gate.cancel(verdict.unit)
        elif isinstance(verdict, DeferredReload):
            self._gate.schedule(verdict.unit)
        return self._dispatcher.dispatch(verdict)

    def _loop(self) -> None:
        if self._low_priority:
            _lower_priority(self._log)
        while True:
            message = self._queue.get()
            if message is _SHUTDOWN:
                self._gate.cancel_all()
                break
            try:
                self.process(message)
            except Exception:
                self._log.exception("Failed to process %r", message)
                if isinstance(message, BuildRequest) and message.reply is not None and not message.reply.done():
                    message.reply.set_result(Outcome.BUILD_FAILED)


def _lower_priority(log: logging.Logger) -> None:
    if not hasattr(os, "nice"):
        log.info("Lowering priority is not supported on this platform")
        return
    try:
        niceness = os.nice(LOW_PRIORITY_INCREMENT)
    except OSError as exc:
        log.warning("Could not lower session priority: %s", exc)
        return
    log.debug("Session thread niceness is now %s", niceness)
