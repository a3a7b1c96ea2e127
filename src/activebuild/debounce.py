"""Per-unit suppression of split-phase artifact renames."""
from __future__ import annotations

import itertools
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Mapping, Optional

logger = logging.getLogger(__name__)

FireCallback = Callable[[str, int], None]
TimerFactory = Callable[[float, Callable[[], None]], Any]


def daemon_timer(delay: float, callback: Callable[[], None]) -> threading.Timer:
    timer = threading.Timer(delay, callback)
    timer.daemon = True
    return timer


@dataclass
class DebounceEntry:
    """A deferred reload waiting for its delay to expire."""

    unit: str
    scheduled_at: float
    handle: Any
    token: int


class DebounceGate:
    """One-shot timers keyed by unit name.

    Timers never act on their own. When one expires, ``on_fire(unit, token)``
    is called from the timer thread; the owner is expected to queue that
    back into its own message stream and call :meth:`consume`, which only
    succeeds if the entry has not been cancelled or replaced meanwhile.
    Every other method must be called from the owning thread.
    """

    def __init__(
        self,
        on_fire: FireCallback,
        *,
        delay_ms: int = 500,
        timer_factory: TimerFactory = daemon_timer,
        log: Optional[logging.Logger] = None,
    ):
        self._on_fire = on_fire
        self._delay = delay_ms / 1000.0
        self._timer_factory = timer_factory
        self._log = log or logger
        self._entries: Dict[str, DebounceEntry] = {}
        self._tokens = itertools.count(1)

    @property
    def pending(self) -> Mapping[str, DebounceEntry]:
        return dict(self._entries)

    def schedule(self, unit: str) -> DebounceEntry:
        self.cancel(unit)
        token = next(self._tokens)
        handle = self._timer_factory(self._delay, lambda: self._on_fire(unit, token))
        entry = DebounceEntry(unit=unit, scheduled_at=time.monotonic(), handle=handle, token=token)
        self._entries[unit] = entry
        handle.start()
        self._log.debug("Deferred reload of %s scheduled in %.3fs", unit, self._delay)
        return entry

    def cancel(self, unit: str) -> bool:
        entry = self._entries.pop(unit, None)
        if entry is None:
            return False
        entry.handle.cancel()
        self._log.debug("Deferred reload of %s cancelled", unit)
        return True

    def consume(self, unit: str, token: int) -> bool:
        """Claim a fired timer; ``False`` if it is stale."""

        entry = self._entries.get(unit)
        if entry is None or entry.token != token:
            return False
        del self._entries[unit]
        return True

    def cancel_all(self) -> None:
        for unit in list(self._entries):
            self.cancel(unit)
