"""
VisaMate - Identity Session.

Who the viewer is and what their profile row says. Wraps Supabase auth and the
`profiles` table; exposes the loading flag and the tri-state profile
completeness predicate the onboarding engine and access gate consume.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Literal

from onboarding.flags import FlagStore, remember_me_key
from onboarding.gate import PROFILE_PATH
from onboarding.signals import Signal
from visamate.db.client import create_auth_client, fetch_profile, get_service_client, upsert_profile

logger = logging.getLogger(__name__)

REQUIRED_PROFILE_FIELD = "residence_country"

ProfileState = Literal["unknown", "resolved"]


class AuthError(Exception):
    """Sign-in, sign-up or token validation failed."""


@dataclass(frozen=True)
class Identity:
    id: str
    email: str | None
    access_token: str | None = None
    refresh_token: str | None = None


def is_profile_complete(profile: dict | None) -> bool:
    """A profile is complete once its residence country is filled in."""
    if not profile:
        return False
    value = profile.get(REQUIRED_PROFILE_FIELD)
    if isinstance(value, str):
        return bool(value.strip())
    return value is not None


class IdentitySession:
    """
    Current identity plus its profile record.

    `profile_complete` is None until the profile fetch has resolved; a failed
    fetch keeps it None so callers defer rather than guess.
    """

    def __init__(self, flags: FlagStore) -> None:
        self.flags = flags
        self._identity: Identity | None = None
        self._loading = False
        self._profile: dict | None = None
        self._profile_state: ProfileState = "unknown"
        self.changed: Signal[IdentitySession] = Signal("identity.changed")

    # =========================================================================
    # State
    # =========================================================================

    @property
    def identity(self) -> Identity | None:
        return self._identity

    @property
    def identity_id(self) -> str | None:
        return self._identity.id if self._identity else None

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def profile(self) -> dict | None:
        return self._profile

    @property
    def profile_state(self) -> ProfileState:
        return self._profile_state

    @property
    def profile_complete(self) -> bool | None:
        if self._identity is None or self._profile_state != "resolved":
            return None
        return is_profile_complete(self._profile)

    @property
    def remember_me(self) -> bool:
        if self._identity is None:
            return False
        return self.flags.is_set(remember_me_key(self._identity.id))

    def check_profile_redirect(self) -> str | None:
        """Profile page path when signed in with a known-incomplete profile."""
        if self._identity is not None and self.profile_complete is False:
            return PROFILE_PATH
        return None

    # =========================================================================
    # Auth operations
    # =========================================================================

    async def sign_in(self, email: str, password: str, remember_me: bool | None = None) -> Identity:
        """Password sign-in, then load the profile."""
        self._begin_loading()
        try:
            client = create_auth_client()
            try:
                response = client.auth.sign_in_with_password({"email": email, "password": password})
            except Exception as e:
                logger.warning(f"Sign-in failed for {email}: {e}")
                raise AuthError("Invalid email or password") from e

            if not response or not response.user:
                raise AuthError("Invalid email or password")

            self._identity = _identity_from_response(response)
            if remember_me is not None:
                self.flags.set(remember_me_key(self._identity.id), remember_me)
            self._load_profile()
            logger.info(f"Signed in {self._identity.id}")
            return self._identity
        finally:
            self._end_loading()

    async def sign_up(self, email: str, password: str, full_name: str, redirect_to: str | None = None) -> str | None:
        """
        Register a new account.

        Returns the new user's id. The viewer stays signed out until the
        confirmation email is followed and they sign in.
        """
        client = create_auth_client()
        options: dict[str, Any] = {"data": {"full_name": full_name}}
        if redirect_to:
            options["email_redirect_to"] = redirect_to
        try:
            response = client.auth.sign_up({"email": email, "password": password, "options": options})
        except Exception as e:
            logger.warning(f"Sign-up failed for {email}: {e}")
            raise AuthError(str(e)) from e
        return response.user.id if response and response.user else None

    async def restore(self, access_token: str) -> Identity:
        """Adopt an existing Supabase access token (e.g. after OAuth)."""
        self._begin_loading()
        try:
            try:
                response = get_service_client().auth.get_user(access_token)
            except Exception as e:
                logger.warning(f"Token validation failed: {e}")
                raise AuthError("Invalid or expired token") from e

            if not response or not response.user:
                raise AuthError("Invalid or expired token")

            user = response.user
            self._identity = Identity(id=user.id, email=user.email, access_token=access_token)
            self._load_profile()
            return self._identity
        finally:
            self._end_loading()

    async def sign_out(self) -> None:
        """Forget the identity and the remember-me preference."""
        identity = self._identity
        if identity is not None:
            self.flags.remove(remember_me_key(identity.id))
        self._identity = None
        self._profile = None
        self._profile_state = "unknown"
        if identity and identity.access_token:
            try:
                get_service_client().auth.admin.sign_out(identity.access_token)
            except Exception as e:
                logger.warning(f"Remote sign-out failed for {identity.id}: {e}")
        self.changed.publish(self)

    # =========================================================================
    # Profile operations
    # =========================================================================

    async def refresh_profile(self) -> dict | None:
        self._load_profile()
        self.changed.publish(self)
        return self._profile

    async def update_profile(self, fields: dict) -> dict:
        """Write profile fields and adopt the stored row."""
        if self._identity is None:
            raise AuthError("Not signed in")
        row = upsert_profile(self._identity.id, fields)
        self._profile = row
        self._profile_state = "resolved"
        self.changed.publish(self)
        return row

    def _load_profile(self) -> None:
        if self._identity is None:
            return
        try:
            self._profile = fetch_profile(self._identity.id)
            # No row yet is a known, empty profile
            self._profile_state = "resolved"
        except Exception as e:
            logger.error(f"Error fetching profile for {self._identity.id}: {e}")
            self._profile = None
            self._profile_state = "unknown"

    def _begin_loading(self) -> None:
        self._loading = True
        self.changed.publish(self)

    def _end_loading(self) -> None:
        self._loading = False
        self.changed.publish(self)


def _identity_from_response(response: Any) -> Identity:
    user = response.user
    session = getattr(response, "session", None)
    return Identity(
        id=user.id,
        email=user.email,
        access_token=getattr(session, "access_token", None),
        refresh_token=getattr(session, "refresh_token", None),
    )
