"""Pacing policies applied between consecutive historic year fetches."""

from __future__ import annotations

import time
from threading import Event
from typing import Callable, Protocol


class Pacer(Protocol):
    def wait(self, cancel_event: Event | None = None) -> None: ...


class FixedIntervalPacer:
    def __init__(self, delay_ms: float, *, sleep: Callable[[float], None] = time.sleep) -> None:
        if delay_ms < 0:
            raise ValueError(f"delay_ms must be >= 0, got {delay_ms}")
        self.delay_ms = delay_ms
        self.sleep = sleep

    def wait(self, cancel_event: Event | None = None) -> None:
        if self.delay_ms <= 0:
            return
        seconds = self.delay_ms / 1000.0
        if cancel_event is not None:
            # Wakes early when the batch is cancelled.
            cancel_event.wait(seconds)
            return
        self.sleep(seconds)
