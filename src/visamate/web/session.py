"""
Viewer session management.

One ViewerSession per browser session, keyed by a random cookie token. Each
owns its own identity, tour engine, access gate and overlay; nothing about the
tour is shared between viewers.
"""

import logging
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from fastapi import HTTPException, Request

from onboarding.engine import TourEngine
from onboarding.flags import FlagStore
from onboarding.gate import AccessGate
from onboarding.overlay import TourOverlay
from onboarding.signals import Subscription
from visamate.config import get_settings
from visamate.db.flags import get_flag_store
from visamate.identity import IdentitySession

logger = logging.getLogger(__name__)


@dataclass
class ViewerSession:
    session_id: str
    identity: IdentitySession
    engine: TourEngine
    gate: AccessGate
    overlay: TourOverlay
    expires_at: datetime
    pending_redirect: str | None = None
    _subscriptions: list[Subscription] = field(default_factory=list, repr=False)

    @property
    def is_expired(self) -> bool:
        return self.expires_at <= datetime.now()

    def take_redirect(self) -> str | None:
        """Pop the redirect queued by the tour's completion, if any."""
        redirect, self.pending_redirect = self.pending_redirect, None
        return redirect

    def close(self) -> None:
        for sub in self._subscriptions:
            sub.cancel()
        self._subscriptions.clear()
        self.engine.reset()
        self.overlay.close()

    def _on_needs_profile(self, identity_id: str) -> None:
        self.pending_redirect = self.gate.profile_path
        # The tour issued the redirect; the gate must not issue it again
        self.gate.mark_decided(identity_id)

    def _on_identity_changed(self, identity: IdentitySession) -> None:
        if identity.identity_id is None:
            self.engine.reset()
            self.gate.reset()
            self.pending_redirect = None


# In-memory session store (sessions die with the process)
sessions: dict[str, ViewerSession] = {}


def create_viewer_session(flags: FlagStore | None = None, session_id: str | None = None) -> ViewerSession:
    """Build a fully wired, unauthenticated viewer session."""
    settings = get_settings()
    flags = flags or get_flag_store()

    identity = IdentitySession(flags)
    engine = TourEngine(identity, flags, auto_start_delay=settings.tour_auto_start_delay)
    viewer = ViewerSession(
        session_id=session_id or secrets.token_urlsafe(32),
        identity=identity,
        engine=engine,
        gate=AccessGate(flags),
        overlay=TourOverlay(engine),
        expires_at=datetime.now() + timedelta(days=settings.session_days),
    )
    viewer._subscriptions.append(engine.needs_profile.subscribe(viewer._on_needs_profile))
    viewer._subscriptions.append(identity.changed.subscribe(viewer._on_identity_changed))
    return viewer


def register_session(viewer: ViewerSession) -> str:
    sessions[viewer.session_id] = viewer
    return viewer.session_id


def drop_session(session_id: str | None) -> None:
    viewer = sessions.pop(session_id, None) if session_id else None
    if viewer is not None:
        viewer.close()


def get_viewer(request: Request) -> ViewerSession | None:
    """Get the viewer session from the cookie, discarding expired ones."""
    session_id = request.cookies.get(get_settings().session_cookie_name)
    if not session_id:
        return None
    viewer = sessions.get(session_id)
    if viewer is None:
        return None
    if viewer.is_expired:
        logger.info("Dropping expired viewer session")
        drop_session(session_id)
        return None
    return viewer


def require_viewer(request: Request) -> ViewerSession:
    """Require a signed-in viewer or raise 401."""
    viewer = get_viewer(request)
    if viewer is None or viewer.identity.identity_id is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return viewer


def viewer_or_anonymous(request: Request) -> ViewerSession:
    """Existing viewer, or a throwaway unauthenticated one (never stored)."""
    viewer = get_viewer(request)
    if viewer is not None:
        return viewer
    return create_viewer_session()
