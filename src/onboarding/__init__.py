"""
VisaMate Onboarding System.

Isolated module for first-run guidance. Runs the guided product tour and
decides, per navigation, whether a viewer may proceed, must sign in, or must
complete their profile first.

Pieces:
1. Steps - static, ordered tour content anchored to `data-tutorial` markers
2. Flags - durable per-user booleans (tour completed, remember-me)
3. Engine - the tour state machine and its completion side effect
4. Locator/Overlay - card placement and scoped element highlighting
5. Gate - redirect decisions ordered after the tour

The HTTP router lives in onboarding.api and is mounted by the host app.
"""

from .engine import TourEngine, TourSnapshot
from .flags import FlagStore, JsonFileFlagStore, MemoryFlagStore, SupabaseFlagStore, completion_flag_key
from .gate import AccessGate, GateAction, GateDecision, GateInputs, decide_access
from .locator import AnchorPlacement, LayoutSnapshot, Rect, StepHighlighter, Viewport, compute_placement
from .overlay import OverlayView, TourOverlay
from .steps import TOUR_STEPS, TourStep

__all__ = [
    "TourEngine",
    "TourSnapshot",
    "FlagStore",
    "MemoryFlagStore",
    "JsonFileFlagStore",
    "SupabaseFlagStore",
    "completion_flag_key",
    "AccessGate",
    "GateAction",
    "GateDecision",
    "GateInputs",
    "decide_access",
    "AnchorPlacement",
    "LayoutSnapshot",
    "Rect",
    "StepHighlighter",
    "Viewport",
    "compute_placement",
    "OverlayView",
    "TourOverlay",
    "TOUR_STEPS",
    "TourStep",
]
