"""
Tour Engine.

State machine behind the guided product tour:

    Inactive --maybe_auto_start/start--> Active(0)
    Active(p) --advance--> Active(p+1)        (p < last)
    Active(last) --advance--> complete()
    Active(p) --retreat--> Active(p-1)        (p > 0)
    Active(p) --skip/complete--> Inactive     (writes the completion flag)

Every operation is safe to call in any state: a transition that does not
apply is a no-op. Changes are published on `changed`; a completion by an
identity whose profile is known to be incomplete is published on
`needs_profile` so the caller can send the user to the profile form once the
tour is out of the way.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Protocol, Sequence

from .flags import FlagStore, completion_flag_key
from .signals import Signal
from .steps import TOUR_STEPS, TourStep, validate_steps

logger = logging.getLogger(__name__)

DEFAULT_AUTO_START_DELAY = 1.0  # seconds; lets the host page finish its first paint


class IdentitySource(Protocol):
    """What the engine needs to know about the signed-in user."""

    @property
    def identity_id(self) -> str | None: ...

    @property
    def loading(self) -> bool: ...

    @property
    def profile_complete(self) -> bool | None: ...


Scheduler = Callable[[float, Callable[[], None]], Any]


def call_later(delay: float, callback: Callable[[], None]) -> Any:
    """
    Run `callback` after `delay` seconds on the running event loop.

    Without a running loop there is nothing to defer to, so the callback runs
    immediately. Returns a handle with cancel(), or None when already run.
    """
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        callback()
        return None
    return loop.call_later(delay, callback)


@dataclass(frozen=True)
class TourRunState:
    active: bool = False
    position: int = 0


@dataclass(frozen=True)
class TourSnapshot:
    """Read-only view of the engine published to subscribers."""
    active: bool
    position: int
    total: int
    step: TourStep | None
    progress_fraction: float

    @property
    def is_first(self) -> bool:
        return self.active and self.position == 0

    @property
    def is_last(self) -> bool:
        return self.active and self.position == self.total - 1


class TourEngine:
    """
    Owns the tour's run state for one viewing session.

    Args:
        identity: Source of the current identity and its profile predicate
        flags: Store holding the per-identity completion flag
        steps: Ordered step table (defaults to TOUR_STEPS)
        auto_start_delay: Seconds between auto-start and activation
        scheduler: Deferred-call primitive, `call_later` by default
    """

    def __init__(
        self,
        identity: IdentitySource,
        flags: FlagStore,
        steps: Sequence[TourStep] = TOUR_STEPS,
        auto_start_delay: float = DEFAULT_AUTO_START_DELAY,
        scheduler: Scheduler = call_later,
    ) -> None:
        validate_steps(list(steps))
        self.identity = identity
        self.flags = flags
        self.steps: tuple[TourStep, ...] = tuple(steps)
        self.auto_start_delay = auto_start_delay
        self._schedule = scheduler

        self._state = TourRunState()
        self._pending: Any = None
        self._auto_start_for: str | None = None
        # Identities that reached a completion event through this engine.
        # Guards against re-auto-starting when the flag write was lost.
        self._completed_ids: set[str] = set()

        self.changed: Signal[TourSnapshot] = Signal("tour.changed")
        self.needs_profile: Signal[str] = Signal("tour.needs_profile")

    # =========================================================================
    # Outputs
    # =========================================================================

    @property
    def active(self) -> bool:
        return self._state.active

    @property
    def position(self) -> int:
        return self._state.position

    @property
    def total(self) -> int:
        return len(self.steps)

    @property
    def current_step(self) -> TourStep | None:
        if not self._state.active:
            return None
        return self.steps[self._state.position]

    @property
    def progress_fraction(self) -> float:
        if not self._state.active:
            return 0.0
        return (self._state.position + 1) / len(self.steps)

    @property
    def auto_start_pending(self) -> bool:
        return self._auto_start_for is not None

    def snapshot(self) -> TourSnapshot:
        return TourSnapshot(
            active=self._state.active,
            position=self._state.position,
            total=len(self.steps),
            step=self.current_step,
            progress_fraction=self.progress_fraction,
        )

    def has_completed(self, identity_id: str | None = None) -> bool:
        """Whether the identity (default: current) has a completion on record."""
        identity_id = identity_id or self.identity.identity_id
        if not identity_id:
            return False
        if identity_id in self._completed_ids:
            return True
        return self.flags.is_set(completion_flag_key(identity_id))

    # =========================================================================
    # Transitions
    # =========================================================================

    def maybe_auto_start(self) -> bool:
        """
        Start the tour for a first-time identity.

        Safe to call on every render: returns True only when this call
        scheduled (or performed) the activation.
        """
        if not self._can_auto_start():
            return False

        identity_id = self.identity.identity_id
        self._auto_start_for = identity_id
        if self.auto_start_delay <= 0:
            self._run_auto_start()
        else:
            logger.debug(f"Tour auto-start scheduled for {identity_id} in {self.auto_start_delay}s")
            self._pending = self._schedule(self.auto_start_delay, self._run_auto_start)
        return True

    def start(self) -> None:
        """Manual replay. Ignores the completion flag and leaves it untouched."""
        self._cancel_pending()
        self._set_state(TourRunState(active=True, position=0))

    def advance(self) -> None:
        if not self._state.active:
            return
        if self._state.position >= len(self.steps) - 1:
            self.complete()
            return
        self._set_state(TourRunState(active=True, position=self._state.position + 1))

    def retreat(self) -> None:
        if not self._state.active or self._state.position <= 0:
            return
        self._set_state(TourRunState(active=True, position=self._state.position - 1))

    def skip(self) -> None:
        if not self._state.active:
            return
        logger.info(f"Tour skipped at step {self._state.position + 1}/{len(self.steps)}")
        self.complete()

    def complete(self) -> None:
        """
        End the tour and record completion for the current identity.

        The profile check runs only here, after the overlay is gone, so a new
        user is never pulled into the profile form mid-tour.
        """
        if not self._state.active:
            return
        self._cancel_pending()
        self._set_state(TourRunState(active=False, position=0))

        identity_id = self.identity.identity_id
        if not identity_id:
            return

        self._completed_ids.add(identity_id)
        self.flags.set(completion_flag_key(identity_id), True)
        logger.info(f"Tour completed for {identity_id}")

        if self.identity.profile_complete is False:
            self.needs_profile.publish(identity_id)

    def reset(self) -> None:
        """Drop run state without recording completion (e.g. on sign-out)."""
        self._cancel_pending()
        if self._state.active:
            self._set_state(TourRunState(active=False, position=0))

    # =========================================================================
    # Internals
    # =========================================================================

    def _can_auto_start(self) -> bool:
        identity_id = self.identity.identity_id
        if not identity_id or self.identity.loading:
            return False
        if self._state.active or self._auto_start_for is not None:
            return False
        return not self.has_completed(identity_id)

    def _run_auto_start(self) -> None:
        expected = self._auto_start_for
        self._auto_start_for = None
        self._pending = None
        # Identity may have changed or the tour may have been started while we waited
        if expected is None or expected != self.identity.identity_id:
            return
        if self._state.active or self.has_completed(expected):
            return
        logger.info(f"Auto-starting tour for {expected}")
        self._set_state(TourRunState(active=True, position=0))

    def _cancel_pending(self) -> None:
        if self._pending is not None:
            cancel = getattr(self._pending, "cancel", None)
            if cancel is not None:
                cancel()
        self._pending = None
        self._auto_start_for = None

    def _set_state(self, state: TourRunState) -> None:
        if state == self._state:
            return
        self._state = state
        self.changed.publish(self.snapshot())
