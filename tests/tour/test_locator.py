"""
Tests for tour card placement and anchor highlighting.
"""

import pytest

from onboarding.locator import (
    CARD_GAP,
    DESKTOP_CARD_HEIGHT,
    DESKTOP_CARD_WIDTH,
    EDGE_MARGIN,
    HIGHLIGHT_STYLE,
    MOBILE_INSET,
    LayoutSnapshot,
    PlacementMode,
    Rect,
    StepHighlighter,
    Viewport,
    compute_placement,
    highlight,
    locate,
    marker_from_selector,
)
from onboarding.steps import anchor_for

DESKTOP = Viewport(width=1280, height=800)
MOBILE = Viewport(width=375, height=667)


class TestComputePlacement:
    def test_desktop_below_and_centred_on_anchor(self):
        rect = Rect(top=100, left=400, width=200, height=40)
        placement = compute_placement(rect, DESKTOP)
        assert placement.mode is PlacementMode.ANCHORED
        assert placement.top == rect.bottom + CARD_GAP
        assert placement.left == 400 + 100 - DESKTOP_CARD_WIDTH / 2

    def test_desktop_clamped_at_right_edge(self):
        rect = Rect(top=100, left=1200, width=60, height=40)
        placement = compute_placement(rect, DESKTOP)
        assert placement.left + placement.card_width <= DESKTOP.width
        assert placement.left == DESKTOP.width - DESKTOP_CARD_WIDTH - EDGE_MARGIN

    def test_desktop_clamped_at_left_edge(self):
        rect = Rect(top=100, left=0, width=40, height=40)
        placement = compute_placement(rect, DESKTOP)
        assert placement.left == EDGE_MARGIN

    def test_desktop_flips_above_when_no_room_below(self):
        rect = Rect(top=600, left=400, width=200, height=40)
        placement = compute_placement(rect, DESKTOP)
        assert placement.top == 600 - DESKTOP_CARD_HEIGHT - CARD_GAP

    def test_desktop_flip_never_leaves_viewport_top(self):
        tall = Viewport(width=1280, height=320)
        placement = compute_placement(Rect(top=50, left=400, width=200, height=40), tall)
        assert placement.top == EDGE_MARGIN

    @pytest.mark.parametrize("left", [0, 150, 300])
    def test_mobile_uses_fixed_inset(self, left):
        placement = compute_placement(Rect(top=100, left=left, width=60, height=40), MOBILE)
        assert placement.left == MOBILE_INSET

    def test_mobile_card_fits_narrow_screen(self):
        narrow = Viewport(width=320, height=640)
        placement = compute_placement(Rect(top=100, left=10, width=60, height=40), narrow)
        assert placement.card_width == 300

    def test_mobile_card_width_never_negative(self):
        tiny = Viewport(width=12, height=600)
        placement = compute_placement(Rect(top=0, left=0, width=5, height=5), tiny)
        assert placement.card_width == 0
        assert placement.left >= 0

    def test_mobile_flip_is_clamped_to_inset(self):
        placement = compute_placement(Rect(top=500, left=10, width=60, height=40), MOBILE)
        assert placement.top == 500 - 280 - CARD_GAP

        placement = compute_placement(Rect(top=200, left=10, width=60, height=300), Viewport(375, 500))
        assert placement.top == MOBILE_INSET


class TestSelectors:
    @pytest.mark.parametrize(
        "selector",
        ['[data-tutorial="sop"]', "[data-tutorial='sop']", "[data-tutorial=sop]", ' [data-tutorial = "sop"] '],
    )
    def test_marker_forms(self, selector):
        assert marker_from_selector(selector) == "sop"

    def test_other_selectors_unsupported(self):
        assert marker_from_selector("#sidebar .item") is None
        assert LayoutSnapshot({"sop": Rect(0, 0, 1, 1)}).query_selector("#sidebar") is None


class TestLocate:
    def test_absent_anchor_is_centered(self):
        placement, element = locate(None, LayoutSnapshot(), DESKTOP)
        assert placement.mode is PlacementMode.CENTERED
        assert element is None

    def test_missing_target_degrades_to_centered(self, caplog):
        placement, element = locate(anchor_for("resume"), LayoutSnapshot(), DESKTOP)
        assert placement.mode is PlacementMode.TARGET_NOT_FOUND
        assert placement.is_centered is True
        assert element is None
        assert "not found" in caplog.text

    def test_found_target(self):
        page = LayoutSnapshot({"sop": Rect(top=10, left=10, width=100, height=30)})
        placement, element = locate(anchor_for("sop"), page, DESKTOP)
        assert placement.mode is PlacementMode.ANCHORED
        assert element is page.elements["sop"]


class TestHighlight:
    def test_apply_and_release_restores_previous_styles(self):
        page = LayoutSnapshot({"sop": Rect(0, 0, 10, 10)})
        element = page.elements["sop"]
        element.style["position"] = "sticky"

        handle = highlight(element)
        assert element.style["position"] == "relative"
        assert element.style["z-index"] == HIGHLIGHT_STYLE["z-index"]
        assert element.scroll_requested is True

        handle.release()
        assert element.style == {"position": "sticky"}

    def test_release_is_idempotent(self):
        element = LayoutSnapshot({"sop": Rect(0, 0, 10, 10)}).elements["sop"]
        handle = highlight(element)
        handle.release()
        element.style["z-index"] = "7"
        handle.release()
        assert element.style == {"z-index": "7"}

    def test_context_manager_releases(self):
        element = LayoutSnapshot({"sop": Rect(0, 0, 10, 10)}).elements["sop"]
        with highlight(element):
            assert "box-shadow" in element.style
        assert element.style == {}


class TestStepHighlighter:
    def test_moving_between_steps_moves_highlight(self):
        page = LayoutSnapshot({"sop": Rect(0, 0, 10, 10), "resume": Rect(20, 0, 10, 10)})
        highlighter = StepHighlighter()

        highlighter.focus(anchor_for("sop"), page, DESKTOP)
        highlighter.focus(anchor_for("resume"), page, DESKTOP)

        assert page.elements["sop"].style == {}
        assert page.elements["resume"].style["z-index"] == "50"
        assert highlighter.anchor == anchor_for("resume")

    def test_missing_next_target_still_releases_previous(self):
        page = LayoutSnapshot({"sop": Rect(0, 0, 10, 10)})
        highlighter = StepHighlighter()
        highlighter.focus(anchor_for("sop"), page, DESKTOP)

        placement = highlighter.focus(anchor_for("resume"), page, DESKTOP)

        assert placement.is_centered is True
        assert page.elements["sop"].style == {}
        assert highlighter.element is None

    def test_failing_lookup_still_releases_previous(self):
        page = LayoutSnapshot({"sop": Rect(0, 0, 10, 10)})
        highlighter = StepHighlighter()
        highlighter.focus(anchor_for("sop"), page, DESKTOP)

        class BrokenPage:
            def query_selector(self, selector):
                raise RuntimeError("detached document")

        with pytest.raises(RuntimeError):
            highlighter.focus(anchor_for("resume"), BrokenPage(), DESKTOP)
        assert page.elements["sop"].style == {}
