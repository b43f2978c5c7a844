"""
VisaMate Web - FastAPI application.

Uses Supabase Auth for identity and cookie-keyed viewer sessions for the
per-viewer onboarding state.
"""

import logging
from typing import Literal

from fastapi import Depends, FastAPI, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from onboarding.api import router as tour_router
from onboarding.gate import GateAction
from visamate import __version__
from visamate.config import get_settings
from visamate.identity import AuthError
from visamate.llm.client import LLMNotConfigured, generate_document
from visamate.web.session import (
    ViewerSession,
    create_viewer_session,
    drop_session,
    get_viewer,
    register_session,
    require_viewer,
    viewer_or_anonymous,
)

logger = logging.getLogger(__name__)

app = FastAPI(title="VisaMate", version=__version__)


@app.on_event("startup")
async def startup_event():
    """Log configuration on startup."""
    settings = get_settings()
    logger.info("VisaMate starting up...")
    logger.info(f"  Environment: {settings.visamate_env}")
    logger.info(f"  Flag store: {settings.flag_store}")
    logger.info(f"  Tour auto-start delay: {settings.tour_auto_start_delay}s")
    logger.info(f"  Document generation: {'enabled' if settings.openai_api_key else 'disabled'}")


# CORS middleware for the React frontend dev server
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(tour_router, prefix="/api")


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": __version__}


# =============================================================================
# Models
# =============================================================================


class LoginRequest(BaseModel):
    email: str
    password: str
    remember_me: bool | None = None


class SignupRequest(BaseModel):
    email: str
    password: str = Field(min_length=6)
    full_name: str = ""
    redirect_to: str | None = None


class RestoreRequest(BaseModel):
    access_token: str
    remember_me: bool | None = None


class ProfileUpdate(BaseModel):
    full_name: str | None = None
    residence_country: str | None = None
    target_country: str | None = None
    phone: str | None = None


class GenerateRequest(BaseModel):
    document_type: Literal["sop", "cover_letter"]
    prompt: str = ""
    country: str | None = None
    university: str | None = None


# =============================================================================
# Cookie helpers
# =============================================================================


def set_session_cookie(response: Response, viewer: ViewerSession, remember_me: bool) -> None:
    settings = get_settings()
    response.set_cookie(
        key=settings.session_cookie_name,
        value=viewer.session_id,
        httponly=True,
        # Without remember-me the cookie dies with the browser session
        max_age=60 * 60 * 24 * settings.session_days if remember_me else None,
        samesite="lax",
        secure=settings.is_production,
    )


def describe_viewer(viewer: ViewerSession) -> dict:
    identity = viewer.identity
    profile = identity.profile or {}
    return {
        "user_id": identity.identity_id,
        "email": identity.identity.email if identity.identity else None,
        "display_name": profile.get("full_name") or (identity.identity.email or "").split("@")[0] or "User",
        "profile_complete": identity.profile_complete,
        "remember_me": identity.remember_me,
    }


# =============================================================================
# Auth Endpoints
# =============================================================================


@app.post("/api/auth/login")
async def login(req: LoginRequest, request: Request, response: Response):
    """Sign in with email and password."""
    drop_session(request.cookies.get(get_settings().session_cookie_name))

    viewer = create_viewer_session()
    try:
        await viewer.identity.sign_in(req.email, req.password, remember_me=req.remember_me)
    except AuthError as e:
        viewer.close()
        raise HTTPException(status_code=401, detail=str(e))

    register_session(viewer)
    set_session_cookie(response, viewer, remember_me=bool(req.remember_me))
    return {"success": True, **describe_viewer(viewer)}


@app.post("/api/auth/session")
async def restore_session(req: RestoreRequest, request: Request, response: Response):
    """Start a viewer session from an existing Supabase access token."""
    drop_session(request.cookies.get(get_settings().session_cookie_name))

    viewer = create_viewer_session()
    try:
        await viewer.identity.restore(req.access_token)
    except AuthError as e:
        viewer.close()
        raise HTTPException(status_code=401, detail=str(e))

    register_session(viewer)
    set_session_cookie(response, viewer, remember_me=bool(req.remember_me))
    return {"success": True, **describe_viewer(viewer)}


@app.post("/api/auth/signup")
async def signup(req: SignupRequest):
    """Register a new account (email confirmation required before login)."""
    viewer = create_viewer_session()
    try:
        user_id = await viewer.identity.sign_up(req.email, req.password, req.full_name, req.redirect_to)
    except AuthError as e:
        raise HTTPException(status_code=400, detail=str(e))
    finally:
        viewer.close()
    return {"success": True, "user_id": user_id}


@app.post("/api/auth/logout")
async def logout(request: Request, response: Response):
    """Sign out and clear the viewer session."""
    settings = get_settings()
    viewer = get_viewer(request)
    if viewer is not None:
        await viewer.identity.sign_out()
        drop_session(viewer.session_id)
    response.delete_cookie(settings.session_cookie_name)
    return {"success": True}


@app.get("/api/me")
async def get_me(viewer: ViewerSession = Depends(require_viewer)):
    """Get current user info."""
    return describe_viewer(viewer)


# =============================================================================
# Navigation
# =============================================================================


@app.get("/api/navigate")
async def navigate(path: str = "/", viewer: ViewerSession = Depends(viewer_or_anonymous)):
    """
    Gate decision for a client-side navigation to `path`.

    Also gives the tour its chance to auto-start, and hands over a profile
    redirect queued by a tour that just finished.
    """
    decision = viewer.gate.evaluate(viewer.identity, path=path)
    action, location = decision.action, decision.location

    if action is GateAction.ALLOW:
        viewer.engine.maybe_auto_start()
        queued = viewer.take_redirect()
        if queued and queued.rstrip("/") != path.split("?", 1)[0].rstrip("/"):
            action, location = GateAction.REDIRECT_PROFILE, queued

    return {
        "action": action.value,
        "location": location,
        "tour_active": viewer.engine.active,
        "tour_pending": viewer.engine.auto_start_pending,
    }


# =============================================================================
# Profile
# =============================================================================


@app.get("/api/profile")
async def get_profile(viewer: ViewerSession = Depends(require_viewer)):
    profile = await viewer.identity.refresh_profile()
    return {"profile": profile, "profile_complete": viewer.identity.profile_complete}


@app.put("/api/profile")
async def update_profile(req: ProfileUpdate, viewer: ViewerSession = Depends(require_viewer)):
    fields = req.model_dump(exclude_none=True)
    try:
        profile = await viewer.identity.update_profile(fields)
    except AuthError as e:
        raise HTTPException(status_code=401, detail=str(e))
    except Exception:
        logger.exception("Profile update failed")
        raise HTTPException(status_code=500, detail="Failed to save profile")
    return {"profile": profile, "profile_complete": viewer.identity.profile_complete}


# =============================================================================
# Documents
# =============================================================================


@app.post("/api/documents/generate")
async def generate(req: GenerateRequest, viewer: ViewerSession = Depends(require_viewer)):
    """Generate an SOP or cover letter."""
    try:
        text = await generate_document(req.document_type, req.prompt, req.country, req.university)
    except LLMNotConfigured as e:
        raise HTTPException(status_code=503, detail=str(e))
    except Exception as e:
        logger.exception("Document generation error")
        raise HTTPException(status_code=502, detail=f"Document generation failed: {e}")
    return {"generated_text": text}
