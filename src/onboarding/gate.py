"""
Access Gate.

Navigation-time decision: render, send to sign-in, or send to the profile
form. The profile redirect and the tour both target new users, so the order
is fixed here in one function instead of in competing callbacks:

1. identity still loading      -> LOADING (no decision yet)
2. no identity                 -> REDIRECT_AUTH
3. profile predicate unknown   -> ALLOW, decision deferred
   already decided this session-> ALLOW
   profile complete            -> ALLOW (final)
   tour never finished/skipped -> ALLOW, the tour redirects on completion
   already on the profile page -> ALLOW (final)
   otherwise                   -> REDIRECT_PROFILE (final)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from .flags import FlagStore, completion_flag_key

logger = logging.getLogger(__name__)

AUTH_PATH = "/auth"
PROFILE_PATH = "/profile"


class GateAction(str, Enum):
    LOADING = "loading"
    REDIRECT_AUTH = "redirect_auth"
    REDIRECT_PROFILE = "redirect_profile"
    ALLOW = "allow"


@dataclass(frozen=True)
class GateInputs:
    identity_loading: bool
    identity_id: str | None
    profile_complete: bool | None
    tour_completed: bool
    already_decided: bool = False
    on_profile_page: bool = False


@dataclass(frozen=True)
class GateDecision:
    action: GateAction
    location: str | None = None
    # True once the profile check for this identity is settled for the session
    final: bool = False

    @property
    def is_redirect(self) -> bool:
        return self.location is not None


def decide_access(inputs: GateInputs) -> GateDecision:
    """Pure decision over all gate inputs. See module docstring for the order."""
    if inputs.identity_loading:
        return GateDecision(GateAction.LOADING)

    if not inputs.identity_id:
        return GateDecision(GateAction.REDIRECT_AUTH, location=AUTH_PATH)

    if inputs.profile_complete is None:
        return GateDecision(GateAction.ALLOW)

    if inputs.already_decided:
        return GateDecision(GateAction.ALLOW, final=True)

    if inputs.profile_complete:
        return GateDecision(GateAction.ALLOW, final=True)

    if not inputs.tour_completed:
        return GateDecision(GateAction.ALLOW)

    if inputs.on_profile_page:
        return GateDecision(GateAction.ALLOW, final=True)

    return GateDecision(GateAction.REDIRECT_PROFILE, location=PROFILE_PATH, final=True)


class GateIdentity(Protocol):
    @property
    def identity_id(self) -> str | None: ...

    @property
    def loading(self) -> bool: ...

    @property
    def profile_complete(self) -> bool | None: ...


class AccessGate:
    """
    Per-session gate. Remembers which identities have had their profile
    check settled so a redirect is issued at most once.
    """

    def __init__(self, flags: FlagStore, profile_path: str = PROFILE_PATH) -> None:
        self.flags = flags
        self.profile_path = profile_path
        self._decided: set[str] = set()

    def evaluate(self, identity: GateIdentity, path: str | None = None) -> GateDecision:
        identity_id = identity.identity_id
        tour_completed = bool(identity_id) and self.flags.is_set(completion_flag_key(identity_id))

        decision = decide_access(
            GateInputs(
                identity_loading=identity.loading,
                identity_id=identity_id,
                profile_complete=identity.profile_complete,
                tour_completed=tour_completed,
                already_decided=identity_id in self._decided if identity_id else False,
                on_profile_page=_same_path(path, self.profile_path),
            )
        )

        if decision.final and identity_id:
            self._decided.add(identity_id)
        if decision.action is GateAction.REDIRECT_PROFILE:
            logger.info(f"Redirecting {identity_id} to profile completion")
        return decision

    def mark_decided(self, identity_id: str) -> None:
        """Record that the profile redirect was already issued elsewhere (tour completion)."""
        self._decided.add(identity_id)

    def is_decided(self, identity_id: str) -> bool:
        return identity_id in self._decided

    def reset(self) -> None:
        self._decided.clear()


def _same_path(path: str | None, target: str) -> bool:
    if not path:
        return False
    return path.split("?", 1)[0].rstrip("/") == target.rstrip("/")
