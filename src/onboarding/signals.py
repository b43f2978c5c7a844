"""
Onboarding Signals.

Minimal synchronous publish/subscribe used by the tour engine and the identity
session to notify the overlay, the access gate and the web layer of changes.
One Signal per kind of change, owned by the object that emits it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class Subscription:
    """Handle returned by Signal.subscribe; cancel() detaches the handler."""
    signal: "Signal[Any]"
    handler: Callable[[Any], None]
    active: bool = True

    def cancel(self) -> None:
        if self.active:
            self.active = False
            self.signal._detach(self)


class Signal(Generic[T]):
    """Synchronous signal with error isolation between handlers."""

    def __init__(self, name: str) -> None:
        self.name = name
        self._subs: list[Subscription] = []

    def subscribe(self, handler: Callable[[T], None]) -> Subscription:
        sub = Subscription(signal=self, handler=handler)
        self._subs.append(sub)
        return sub

    def publish(self, payload: T) -> None:
        # Snapshot first so handlers may (un)subscribe while we dispatch
        for sub in list(self._subs):
            if not sub.active:
                continue
            try:
                sub.handler(payload)
            except Exception:
                logger.exception(f"Handler for signal '{self.name}' failed")

    def subscriber_count(self) -> int:
        return len(self._subs)

    def _detach(self, sub: Subscription) -> None:
        self._subs = [s for s in self._subs if s is not sub]
