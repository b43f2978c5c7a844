"""
Onboarding API Endpoints.

Tour router mounted by the host app under /api. Every endpoint works on the
caller's own ViewerSession; transitions that do not apply in the current
state are no-ops and simply return the unchanged state.
"""

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from visamate.web.session import ViewerSession, require_viewer

from .locator import AnchorPlacement, LayoutSnapshot, Rect, SnapshotElement, Viewport
from .steps import TourStep

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/tour", tags=["tour"])


# =============================================================================
# Request/Response Models
# =============================================================================


class StepModel(BaseModel):
    id: str
    title: str
    body: str
    anchor: str | None = None

    @classmethod
    def from_step(cls, step: TourStep) -> "StepModel":
        return cls(id=step.id, title=step.title, body=step.body, anchor=step.anchor)


class PlacementModel(BaseModel):
    mode: str
    top: float
    left: float
    card_width: float
    card_height: float
    centered: bool

    @classmethod
    def from_placement(cls, placement: AnchorPlacement) -> "PlacementModel":
        return cls(
            mode=placement.mode.value,
            top=placement.top,
            left=placement.left,
            card_width=placement.card_width,
            card_height=placement.card_height,
            centered=placement.is_centered,
        )


class HighlightModel(BaseModel):
    """Styles the client should apply to the anchored element."""
    marker: str
    style: dict[str, str]
    scroll_into_view: bool


class OverlayViewModel(BaseModel):
    step_label: str
    progress_percent: int
    can_go_back: bool
    primary_label: str
    placement: PlacementModel
    highlight: HighlightModel | None = None


class TourStateResponse(BaseModel):
    active: bool
    position: int
    total: int
    progress_fraction: float
    auto_start_pending: bool
    completed: bool
    step: StepModel | None = None
    view: OverlayViewModel | None = None
    redirect: str | None = None


class RectModel(BaseModel):
    top: float
    left: float
    width: float = Field(ge=0)
    height: float = Field(ge=0)


class ViewportModel(BaseModel):
    width: float = Field(gt=0)
    height: float = Field(gt=0)


class LayoutRequest(BaseModel):
    """Viewport plus the rectangles of every `data-tutorial` marker on screen."""
    viewport: ViewportModel
    anchors: dict[str, RectModel] = Field(default_factory=dict)


# =============================================================================
# Helpers
# =============================================================================


def build_state(viewer: ViewerSession) -> TourStateResponse:
    engine = viewer.engine
    step = engine.current_step
    view = viewer.overlay.view()

    view_model = None
    if view is not None:
        highlight = None
        element = viewer.overlay.highlighter.element
        if isinstance(element, SnapshotElement):
            highlight = HighlightModel(
                marker=element.marker,
                style=dict(element.style),
                scroll_into_view=element.scroll_requested,
            )
        view_model = OverlayViewModel(
            step_label=view.step_label,
            progress_percent=view.progress_percent,
            can_go_back=view.can_go_back,
            primary_label=view.primary_label,
            placement=PlacementModel.from_placement(view.placement),
            highlight=highlight,
        )

    return TourStateResponse(
        active=engine.active,
        position=engine.position,
        total=engine.total,
        progress_fraction=engine.progress_fraction,
        auto_start_pending=engine.auto_start_pending,
        completed=engine.has_completed(),
        step=StepModel.from_step(step) if step else None,
        view=view_model,
        redirect=viewer.take_redirect(),
    )


# =============================================================================
# Endpoints
# =============================================================================


@router.get("", response_model=TourStateResponse)
async def get_tour_state(viewer: ViewerSession = Depends(require_viewer)) -> TourStateResponse:
    """Current tour state; auto-starts the tour for first-time viewers."""
    viewer.engine.maybe_auto_start()
    return build_state(viewer)


@router.get("/steps", response_model=list[StepModel])
async def get_tour_steps(viewer: ViewerSession = Depends(require_viewer)) -> list[StepModel]:
    return [StepModel.from_step(step) for step in viewer.engine.steps]


@router.post("/start", response_model=TourStateResponse)
async def start_tour(viewer: ViewerSession = Depends(require_viewer)) -> TourStateResponse:
    """Replay the tour from the first step."""
    viewer.engine.start()
    return build_state(viewer)


@router.post("/next", response_model=TourStateResponse)
async def next_step(viewer: ViewerSession = Depends(require_viewer)) -> TourStateResponse:
    viewer.engine.advance()
    return build_state(viewer)


@router.post("/prev", response_model=TourStateResponse)
async def previous_step(viewer: ViewerSession = Depends(require_viewer)) -> TourStateResponse:
    viewer.engine.retreat()
    return build_state(viewer)


@router.post("/skip", response_model=TourStateResponse)
async def skip_tour(viewer: ViewerSession = Depends(require_viewer)) -> TourStateResponse:
    viewer.engine.skip()
    return build_state(viewer)


@router.post("/complete", response_model=TourStateResponse)
async def complete_tour(viewer: ViewerSession = Depends(require_viewer)) -> TourStateResponse:
    viewer.engine.complete()
    return build_state(viewer)


@router.post("/layout", response_model=TourStateResponse)
async def report_layout(request: LayoutRequest, viewer: ViewerSession = Depends(require_viewer)) -> TourStateResponse:
    """
    Re-run placement against the page the browser is showing.

    Called on step change and on viewport resize.
    """
    page = LayoutSnapshot(
        {
            marker: Rect(top=rect.top, left=rect.left, width=rect.width, height=rect.height)
            for marker, rect in request.anchors.items()
        }
    )
    viewport = Viewport(width=request.viewport.width, height=request.viewport.height)
    viewer.overlay.update_layout(page, viewport)
    return build_state(viewer)
