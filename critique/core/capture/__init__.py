"""Region capture from rendering surfaces."""

from critique.core.capture.engine import CaptureEngine, CaptureOutcome
from critique.core.capture.selection import (
    SelectionRect,
    normalize_selection,
    validate_selection,
)
from critique.core.capture.strategies import (
    CaptureContext,
    CaptureStrategy,
    DirectSurfaceRead,
    DomRasterization,
    PlaceholderSynthesis,
    StrategyName,
    StrategyResult,
    default_strategies,
)
from critique.core.capture.surfaces import ImageSurface, PlaywrightSurface, RenderSurface

__all__ = [
    "CaptureContext",
    "CaptureEngine",
    "CaptureOutcome",
    "CaptureStrategy",
    "DirectSurfaceRead",
    "DomRasterization",
    "ImageSurface",
    "PlaceholderSynthesis",
    "PlaywrightSurface",
    "RenderSurface",
    "SelectionRect",
    "StrategyName",
    "StrategyResult",
    "default_strategies",
    "normalize_selection",
    "validate_selection",
]
