"""
Tour Target Locator.

Maps a step's anchor selector to a live page element, computes where the tour
card goes relative to it, and highlights the element while the step is
current.

Placement is a pure function of (anchor rect, viewport). Highlighting is a
scoped acquisition: highlight() returns a handle whose release() restores the
element's previous styles, and StepHighlighter guarantees the previous handle
is released before the next step is looked up, on every path.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterator, MutableMapping, Protocol

from .steps import TUTORIAL_MARKER

logger = logging.getLogger(__name__)

# Layout constants (CSS pixels)
MOBILE_BREAKPOINT = 768
DESKTOP_CARD_WIDTH = 400
DESKTOP_CARD_HEIGHT = 300
MOBILE_CARD_MAX_WIDTH = 350
MOBILE_CARD_HEIGHT = 280
CARD_GAP = 20
EDGE_MARGIN = 20
MOBILE_INSET = 10

HIGHLIGHT_STYLE: dict[str, str] = {
    "position": "relative",
    "z-index": "50",
    "box-shadow": "0 0 0 4px rgba(59, 130, 246, 0.5)",
    "border-radius": "8px",
}


# =============================================================================
# Geometry
# =============================================================================


@dataclass(frozen=True)
class Viewport:
    width: float
    height: float

    @property
    def is_mobile(self) -> bool:
        return self.width < MOBILE_BREAKPOINT


@dataclass(frozen=True)
class Rect:
    """Element bounding box in viewport coordinates."""
    top: float
    left: float
    width: float
    height: float

    @property
    def bottom(self) -> float:
        return self.top + self.height

    @property
    def right(self) -> float:
        return self.left + self.width


class PlacementMode(str, Enum):
    ANCHORED = "anchored"
    CENTERED = "centered"
    TARGET_NOT_FOUND = "target_not_found"


@dataclass(frozen=True)
class AnchorPlacement:
    mode: PlacementMode
    top: float = 0.0
    left: float = 0.0
    card_width: float = DESKTOP_CARD_WIDTH
    card_height: float = DESKTOP_CARD_HEIGHT

    @property
    def is_centered(self) -> bool:
        """A missing target renders exactly like an unanchored step."""
        return self.mode is not PlacementMode.ANCHORED


def card_size(viewport: Viewport) -> tuple[float, float]:
    if viewport.is_mobile:
        # Degenerate viewports narrower than both insets get a zero-width card
        width = max(min(MOBILE_CARD_MAX_WIDTH, viewport.width - 2 * MOBILE_INSET), 0)
        return width, MOBILE_CARD_HEIGHT
    return DESKTOP_CARD_WIDTH, DESKTOP_CARD_HEIGHT


def centered_placement(viewport: Viewport, mode: PlacementMode = PlacementMode.CENTERED) -> AnchorPlacement:
    width, height = card_size(viewport)
    return AnchorPlacement(
        mode=mode,
        top=max((viewport.height - height) / 2, 0),
        left=max((viewport.width - width) / 2, 0),
        card_width=width,
        card_height=height,
    )


def compute_placement(rect: Rect, viewport: Viewport) -> AnchorPlacement:
    """
    Position the card below the anchor, flipping above when it would overflow.

    Mobile pins the card to a fixed left inset; desktop centres it on the
    anchor and clamps it inside the horizontal edges.
    """
    width, height = card_size(viewport)
    top = rect.bottom + CARD_GAP

    if viewport.is_mobile:
        left = MOBILE_INSET
        if top + height > viewport.height - CARD_GAP:
            top = max(rect.top - height - CARD_GAP, MOBILE_INSET)
    else:
        left = rect.left + rect.width / 2 - width / 2
        if left + width > viewport.width:
            left = viewport.width - width - EDGE_MARGIN
        if left < EDGE_MARGIN:
            left = EDGE_MARGIN
        if top + height > viewport.height:
            top = max(rect.top - height - CARD_GAP, EDGE_MARGIN)

    return AnchorPlacement(
        mode=PlacementMode.ANCHORED,
        top=top,
        left=left,
        card_width=width,
        card_height=height,
    )


# =============================================================================
# Page abstraction
# =============================================================================


class PageElement(Protocol):
    style: MutableMapping[str, str]

    def bounding_rect(self) -> Rect: ...

    def scroll_into_view(self) -> None: ...


class Page(Protocol):
    def query_selector(self, selector: str) -> PageElement | None: ...


_MARKER_SELECTOR = re.compile(
    r"""^\[\s*""" + re.escape(TUTORIAL_MARKER) + r"""\s*=\s*["']?([^"'\]]+)["']?\s*\]$"""
)


def marker_from_selector(selector: str) -> str | None:
    """`[data-tutorial="sop"]` -> `sop`; anything else -> None."""
    match = _MARKER_SELECTOR.match(selector.strip())
    return match.group(1).strip() if match else None


@dataclass
class SnapshotElement:
    """Element reported by the client; records style edits and scroll requests."""
    marker: str
    rect: Rect
    style: dict[str, str] = field(default_factory=dict)
    scroll_requested: bool = False

    def bounding_rect(self) -> Rect:
        return self.rect

    def scroll_into_view(self) -> None:
        self.scroll_requested = True


class LayoutSnapshot:
    """
    Page built from the marker rectangles the browser reports.

    Only `data-tutorial` marker selectors are resolvable; that is the whole
    contract between the tour and the host page.
    """

    def __init__(self, markers: dict[str, Rect] | None = None) -> None:
        self.elements: dict[str, SnapshotElement] = {
            marker: SnapshotElement(marker=marker, rect=rect)
            for marker, rect in (markers or {}).items()
        }

    def query_selector(self, selector: str) -> SnapshotElement | None:
        marker = marker_from_selector(selector)
        if marker is None:
            logger.debug(f"Unsupported selector: {selector}")
            return None
        return self.elements.get(marker)

    def __iter__(self) -> Iterator[SnapshotElement]:
        return iter(self.elements.values())


# =============================================================================
# Lookup and highlight
# =============================================================================


def locate(
    anchor: str | None, page: Page, viewport: Viewport
) -> tuple[AnchorPlacement, PageElement | None]:
    """Resolve `anchor` on `page`; no anchor or no match yields a centred card."""
    if not anchor:
        return centered_placement(viewport), None

    element = page.query_selector(anchor)
    if element is None:
        logger.warning(f"Tour anchor not found on page: {anchor}")
        return centered_placement(viewport, PlacementMode.TARGET_NOT_FOUND), None

    return compute_placement(element.bounding_rect(), viewport), element


class HighlightHandle:
    """Release handle for one applied highlight. release() is idempotent."""

    def __init__(self, element: PageElement, previous: dict[str, str | None]) -> None:
        self.element = element
        self._previous = previous
        self.released = False

    def release(self) -> None:
        if self.released:
            return
        self.released = True
        for key, value in self._previous.items():
            if value is None:
                self.element.style.pop(key, None)
            else:
                self.element.style[key] = value

    def __enter__(self) -> "HighlightHandle":
        return self

    def __exit__(self, *exc: object) -> None:
        self.release()


def highlight(element: PageElement) -> HighlightHandle:
    """Apply the highlight style, scroll the element into view, return the handle."""
    previous = {key: element.style.get(key) for key in HIGHLIGHT_STYLE}
    element.style.update(HIGHLIGHT_STYLE)
    element.scroll_into_view()
    return HighlightHandle(element, previous)


class StepHighlighter:
    """Owns at most one live highlight at a time."""

    def __init__(self) -> None:
        self._handle: HighlightHandle | None = None
        self.anchor: str | None = None

    @property
    def element(self) -> PageElement | None:
        return self._handle.element if self._handle else None

    def focus(self, anchor: str | None, page: Page, viewport: Viewport) -> AnchorPlacement:
        """Release the previous step's highlight, then locate and highlight `anchor`."""
        self.release()
        placement, element = locate(anchor, page, viewport)
        if element is not None:
            self._handle = highlight(element)
            self.anchor = anchor
        return placement

    def release(self) -> None:
        handle, self._handle = self._handle, None
        self.anchor = None
        if handle is not None:
            handle.release()
