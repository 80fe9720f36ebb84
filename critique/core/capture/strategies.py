"""Capture strategies, tried in priority order by the capture engine."""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

import structlog
from PIL import Image

from critique.core.capture.placeholder import GRADIENT_STOPS, render_placeholder
from critique.core.capture.selection import SelectionRect
from critique.core.capture.surfaces import RenderSurface

logger = structlog.get_logger(__name__)


class StrategyName(str, Enum):
    """Identifiers recorded on captured screenshots."""

    DIRECT_SURFACE_READ = "direct_surface_read"
    DOM_RASTERIZATION = "dom_rasterization"
    PLACEHOLDER = "placeholder"


@dataclass(frozen=True)
class CaptureContext:
    """Facts about the capture that a placeholder needs to show."""

    model_label: str
    captured_at: datetime


@dataclass(frozen=True)
class StrategyResult:
    """Outcome of one strategy attempt."""

    strategy: StrategyName
    image: Image.Image | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.image is not None

    @classmethod
    def failure(cls, strategy: StrategyName, error: str) -> "StrategyResult":
        return cls(strategy=strategy, error=error)


class CaptureStrategy(ABC):
    """A single way of turning a selection into pixels."""

    name: StrategyName
    unavailable_reason = "strategy produced no image"

    async def attempt(
        self,
        surface: RenderSurface,
        rect: SelectionRect,
        context: CaptureContext,
        timeout: float | None = None,
    ) -> StrategyResult:
        """
        Run the strategy and report the outcome as a result value.

        Errors raised by the surface (security errors, browser failures,
        timeouts) become failed results.
        """
        try:
            image = await asyncio.wait_for(self.capture(surface, rect, context), timeout=timeout)
        except asyncio.TimeoutError:
            return StrategyResult.failure(self.name, f"timed out after {timeout}s")
        except Exception as e:
            return StrategyResult.failure(self.name, f"{type(e).__name__}: {e}")
        if image is None:
            return StrategyResult.failure(self.name, self.unavailable_reason)
        return StrategyResult(strategy=self.name, image=image)

    @abstractmethod
    async def capture(
        self, surface: RenderSurface, rect: SelectionRect, context: CaptureContext
    ) -> Image.Image | None:
        """Produce the selection's image, or None when not applicable."""


class DirectSurfaceRead(CaptureStrategy):
    """Copy the selection pixel-for-pixel out of the surface's pixel buffer."""

    name = StrategyName.DIRECT_SURFACE_READ
    unavailable_reason = "surface exposes no readable pixel buffer"

    async def capture(
        self, surface: RenderSurface, rect: SelectionRect, context: CaptureContext
    ) -> Image.Image | None:
        pixels = await surface.read_pixels()
        if pixels is None:
            return None
        return pixels.crop(rect.box)


class DomRasterization(CaptureStrategy):
    """Rasterize the DOM region under the selection."""

    name = StrategyName.DOM_RASTERIZATION

    async def capture(
        self, surface: RenderSurface, rect: SelectionRect, context: CaptureContext
    ) -> Image.Image | None:
        return await surface.rasterize(rect)


class PlaceholderSynthesis(CaptureStrategy):
    """Draw a labelled placeholder of the selection's size. Never fails."""

    name = StrategyName.PLACEHOLDER

    async def attempt(
        self,
        surface: RenderSurface,
        rect: SelectionRect,
        context: CaptureContext,
        timeout: float | None = None,
    ) -> StrategyResult:
        try:
            image = render_placeholder(rect.size, context.model_label, context.captured_at)
        except Exception as e:
            logger.error("placeholder_render_failed", error=str(e))
            image = Image.new("RGB", rect.size, GRADIENT_STOPS[-1][1])
        return StrategyResult(strategy=self.name, image=image)

    async def capture(
        self, surface: RenderSurface, rect: SelectionRect, context: CaptureContext
    ) -> Image.Image | None:
        return render_placeholder(rect.size, context.model_label, context.captured_at)


def default_strategies() -> list[CaptureStrategy]:
    """Strategies in fixed priority order."""
    return [DirectSurfaceRead(), DomRasterization(), PlaceholderSynthesis()]
