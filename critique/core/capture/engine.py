"""Capture engine: selection handling plus the strategy fallback chain."""

from dataclasses import dataclass, field
from datetime import datetime, timezone

import structlog
from PIL import Image

from critique.config import settings
from critique.core.capture.selection import (
    SelectionRect,
    normalize_selection,
    validate_selection,
)
from critique.core.capture.strategies import (
    CaptureContext,
    CaptureStrategy,
    PlaceholderSynthesis,
    StrategyName,
    StrategyResult,
    default_strategies,
)
from critique.core.capture.surfaces import RenderSurface
from critique.utils.exceptions import CaptureError

logger = structlog.get_logger(__name__)


@dataclass
class CaptureOutcome:
    """Image produced for a selection and how it was obtained."""

    image: Image.Image
    rect: SelectionRect
    strategy: StrategyName
    attempts: list[StrategyResult] = field(default_factory=list)
    captured_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def degraded(self) -> bool:
        """True when the image is not a faithful copy of rendered pixels."""
        return self.strategy is not StrategyName.DIRECT_SURFACE_READ


class CaptureEngine:
    """
    Produce an image for a selection over a rendering surface.

    Strategies run in order until one yields an image. The last resort is a
    synthesized placeholder, so a valid selection always produces an image of
    exactly the selection's size.
    """

    def __init__(
        self,
        strategies: list[CaptureStrategy] | None = None,
        min_selection_px: int | None = None,
        strategy_timeout: float | None = None,
    ) -> None:
        """
        Initialize the engine.

        Args:
            strategies: Strategy list in priority order (defaults to direct read,
                DOM rasterization, placeholder)
            min_selection_px: Minimum selection side (defaults to settings.min_selection_px)
            strategy_timeout: Seconds per strategy (defaults to settings.capture_timeout_seconds)
        """
        self.strategies = strategies if strategies is not None else default_strategies()
        self.min_selection_px = min_selection_px or settings.min_selection_px
        self.strategy_timeout = (
            strategy_timeout
            if strategy_timeout is not None
            else settings.capture_timeout_seconds
        )
        self._fallback = PlaceholderSynthesis()

    def prepare(
        self, surface: RenderSurface, x1: float, y1: float, x2: float, y2: float
    ) -> SelectionRect:
        """
        Normalize drag corners against a surface and validate the result.

        Raises:
            SelectionTooSmallError: If the clamped selection is below the minimum
            CaptureError: If even the placeholder fallback produced no image
        """
        rect = normalize_selection(x1, y1, x2, y2, surface.width, surface.height)
        return validate_selection(rect, self.min_selection_px)

    async def capture_region(
        self,
        surface: RenderSurface,
        x1: float,
        y1: float,
        x2: float,
        y2: float,
        model_label: str,
    ) -> CaptureOutcome:
        """Normalize, validate and capture a drag selection."""
        rect = self.prepare(surface, x1, y1, x2, y2)
        return await self.capture(surface, rect, model_label)

    async def capture(
        self,
        surface: RenderSurface,
        rect: SelectionRect,
        model_label: str,
        captured_at: datetime | None = None,
    ) -> CaptureOutcome:
        """
        Capture a selection rectangle.

        The rectangle is clamped to the surface and validated before any
        strategy runs.

        Raises:
            SelectionTooSmallError: If the clamped selection is below the minimum
        """
        rect = self.prepare(surface, rect.x, rect.y, rect.right, rect.bottom)
        context = CaptureContext(
            model_label=model_label,
            captured_at=captured_at or datetime.now().astimezone(),
        )

        attempts: list[StrategyResult] = []
        for strategy in self.strategies:
            result = await strategy.attempt(surface, rect, context, timeout=self.strategy_timeout)
            attempts.append(result)
            if result.ok:
                break
            logger.warning(
                "capture_strategy_failed",
                strategy=result.strategy.value,
                error=result.error,
                surface=surface.name,
            )
        else:
            result = await self._fallback.attempt(surface, rect, context)
            attempts.append(result)

        if result.image is None:
            raise CaptureError(f"No capture strategy produced an image: {result.error}")
        image = self._conform(result.image, rect)
        logger.info(
            "capture_complete",
            strategy=result.strategy.value,
            width=rect.width,
            height=rect.height,
            attempts=len(attempts),
        )
        return CaptureOutcome(
            image=image,
            rect=rect,
            strategy=result.strategy,
            attempts=attempts,
            captured_at=context.captured_at,
        )

    @staticmethod
    def _conform(image: Image.Image, rect: SelectionRect) -> Image.Image:
        """Resize an image that came back at a different scale than the selection."""
        if image.size == rect.size:
            return image
        logger.debug(
            "capture_resized",
            from_size=f"{image.width}x{image.height}",
            to_size=f"{rect.width}x{rect.height}",
        )
        return image.resize(rect.size)
