"""
Tour Overlay.

Binds a TourEngine to a StepHighlighter: every engine change and every
viewport resize re-runs the locator for the current step, and the highlight is
released as soon as the tour goes inactive or the overlay is closed.
"""

from __future__ import annotations

from dataclasses import dataclass

from .engine import TourEngine, TourSnapshot
from .locator import AnchorPlacement, LayoutSnapshot, Page, StepHighlighter, Viewport, centered_placement
from .signals import Subscription

DEFAULT_VIEWPORT = Viewport(width=1280, height=800)


@dataclass(frozen=True)
class OverlayView:
    """Everything the tour card needs to render one step."""
    step_id: str
    title: str
    body: str
    step_label: str
    progress_percent: int
    can_go_back: bool
    primary_label: str
    placement: AnchorPlacement
    highlighted_anchor: str | None


class TourOverlay:
    def __init__(
        self,
        engine: TourEngine,
        highlighter: StepHighlighter | None = None,
        page: Page | None = None,
        viewport: Viewport = DEFAULT_VIEWPORT,
    ) -> None:
        self.engine = engine
        self.highlighter = highlighter or StepHighlighter()
        self.page: Page = page or LayoutSnapshot()
        self.viewport = viewport
        self.placement: AnchorPlacement = centered_placement(viewport)
        self._subscription: Subscription | None = engine.changed.subscribe(self._on_change)
        self._refresh()

    def resize(self, viewport: Viewport) -> None:
        self.viewport = viewport
        self._refresh()

    def update_layout(self, page: Page, viewport: Viewport | None = None) -> None:
        """Adopt a new page layout (and optionally viewport) and re-locate."""
        self.page = page
        if viewport is not None:
            self.viewport = viewport
        self._refresh()

    def close(self) -> None:
        """Host teardown: stop listening and drop any live highlight."""
        if self._subscription is not None:
            self._subscription.cancel()
            self._subscription = None
        self.highlighter.release()

    def view(self) -> OverlayView | None:
        step = self.engine.current_step
        if step is None:
            return None
        position, total = self.engine.position, self.engine.total
        return OverlayView(
            step_id=step.id,
            title=step.title,
            body=step.body,
            step_label=f"Step {position + 1} of {total}",
            progress_percent=round(self.engine.progress_fraction * 100),
            can_go_back=position > 0,
            primary_label="Get Started" if position == total - 1 else "Next",
            placement=self.placement,
            highlighted_anchor=self.highlighter.anchor,
        )

    def _on_change(self, snapshot: TourSnapshot) -> None:
        self._refresh()

    def _refresh(self) -> None:
        step = self.engine.current_step
        if step is None:
            self.highlighter.release()
            self.placement = centered_placement(self.viewport)
            return
        self.placement = self.highlighter.focus(step.anchor, self.page, self.viewport)
