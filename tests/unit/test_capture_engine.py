"""Unit tests for the capture engine and its strategy chain."""

import asyncio
from datetime import datetime, timezone

import pytest
from PIL import Image

from critique.core.capture import (
    CaptureEngine,
    CaptureStrategy,
    DirectSurfaceRead,
    DomRasterization,
    ImageSurface,
    SelectionRect,
    StrategyName,
)
from critique.utils.exceptions import CaptureError, SelectionTooSmallError

CAPTURED_AT = datetime(2024, 6, 1, 14, 30, 5, tzinfo=timezone.utc)


class BrokenSurface:
    """Surface whose pixel buffer and DOM both raise."""

    name = "broken"
    width = 200
    height = 100

    def __init__(self) -> None:
        self.read_calls = 0
        self.rasterize_calls = 0

    async def read_pixels(self) -> Image.Image | None:
        self.read_calls += 1
        raise PermissionError("SecurityError: canvas is tainted")

    async def rasterize(self, rect: SelectionRect) -> Image.Image:
        self.rasterize_calls += 1
        raise CaptureError("rasterizer crashed")


class SlowSurface:
    """Surface that never answers in time."""

    name = "slow"
    width = 200
    height = 100

    async def read_pixels(self) -> Image.Image | None:
        await asyncio.sleep(10)
        return None

    async def rasterize(self, rect: SelectionRect) -> Image.Image:
        await asyncio.sleep(10)
        raise AssertionError("unreachable")


class HiDpiSurface:
    """Surface whose DOM rasterizer returns device pixels at 2x scale."""

    name = "hidpi"
    width = 200
    height = 100

    async def read_pixels(self) -> Image.Image | None:
        return None

    async def rasterize(self, rect: SelectionRect) -> Image.Image:
        return Image.new("RGB", (rect.width * 2, rect.height * 2), (0, 128, 0))


@pytest.fixture
def engine() -> CaptureEngine:
    return CaptureEngine(min_selection_px=10, strategy_timeout=1.0)


@pytest.mark.asyncio
async def test_direct_read_copies_pixels(engine, frame):
    """A readable surface yields its own pixels at the selection size."""
    surface = ImageSurface(frame)

    outcome = await engine.capture_region(surface, 90, 10, 110, 30, "chair-v3.glb")

    assert outcome.strategy is StrategyName.DIRECT_SURFACE_READ
    assert not outcome.degraded
    assert outcome.image.size == (20, 20)
    assert outcome.image.getpixel((0, 0)) == (255, 0, 0)
    assert outcome.image.getpixel((19, 19)) == (0, 0, 255)
    assert len(outcome.attempts) == 1


@pytest.mark.asyncio
async def test_falls_back_to_dom_rasterization(engine, frame):
    """An unreadable buffer falls through to the DOM rasterizer."""
    dom = Image.new("RGB", frame.size, (10, 20, 30))
    surface = ImageSurface(frame, readable=False, dom_frame=dom)

    outcome = await engine.capture_region(surface, 0, 0, 50, 40, "chair")

    assert outcome.strategy is StrategyName.DOM_RASTERIZATION
    assert outcome.degraded
    assert outcome.image.size == (50, 40)
    assert outcome.image.getpixel((5, 5)) == (10, 20, 30)
    assert [a.strategy for a in outcome.attempts] == [
        StrategyName.DIRECT_SURFACE_READ,
        StrategyName.DOM_RASTERIZATION,
    ]
    assert outcome.attempts[0].error == "surface exposes no readable pixel buffer"


@pytest.mark.asyncio
async def test_placeholder_when_everything_fails(engine):
    """Failures in both real strategies still produce an exactly sized image."""
    surface = BrokenSurface()

    outcome = await engine.capture(
        surface, SelectionRect(x=10, y=10, width=120, height=80), "chair", CAPTURED_AT
    )

    assert outcome.strategy is StrategyName.PLACEHOLDER
    assert outcome.image.size == (120, 80)
    assert surface.read_calls == 1
    assert surface.rasterize_calls == 1
    assert "SecurityError" in (outcome.attempts[0].error or "")
    assert "rasterizer crashed" in (outcome.attempts[1].error or "")


@pytest.mark.asyncio
async def test_strategy_timeouts_degrade():
    """Hanging strategies are cut off and the placeholder is used."""
    engine = CaptureEngine(strategy_timeout=0.05)

    outcome = await engine.capture_region(SlowSurface(), 0, 0, 40, 40, "chair")

    assert outcome.strategy is StrategyName.PLACEHOLDER
    assert all("timed out" in (a.error or "") for a in outcome.attempts[:2])


@pytest.mark.asyncio
async def test_image_resized_to_selection(engine):
    """Images returned at device-pixel scale are resized to the selection."""
    outcome = await engine.capture_region(HiDpiSurface(), 0, 0, 60, 30, "chair")

    assert outcome.strategy is StrategyName.DOM_RASTERIZATION
    assert outcome.image.size == (60, 30)


@pytest.mark.asyncio
async def test_small_selection_runs_no_strategy(engine):
    """Selections below the minimum are rejected before any capture attempt."""
    surface = BrokenSurface()

    with pytest.raises(SelectionTooSmallError):
        await engine.capture_region(surface, 10, 10, 15, 60, "chair")

    assert surface.read_calls == 0
    assert surface.rasterize_calls == 0


@pytest.mark.asyncio
async def test_capture_clamps_out_of_bounds_rect(engine, frame):
    outcome = await engine.capture(
        ImageSurface(frame), SelectionRect(x=150, y=50, width=100, height=100), "chair"
    )

    assert outcome.rect == SelectionRect(x=150, y=50, width=50, height=50)
    assert outcome.image.size == (50, 50)


@pytest.mark.asyncio
async def test_placeholder_appended_when_chain_has_none(frame):
    """A custom chain without a placeholder still never fails."""
    engine = CaptureEngine(strategies=[DirectSurfaceRead(), DomRasterization()])
    surface = ImageSurface(frame, readable=False)

    outcome = await engine.capture_region(surface, 0, 0, 30, 30, "chair")

    assert outcome.strategy is StrategyName.PLACEHOLDER
    assert len(outcome.attempts) == 3


@pytest.mark.asyncio
async def test_strategy_returning_none_is_a_failure():
    class Empty(CaptureStrategy):
        name = StrategyName.DOM_RASTERIZATION

        async def capture(self, surface, rect, context):
            return None

    result = await Empty().attempt(
        BrokenSurface(), SelectionRect(0, 0, 20, 20), context=None  # type: ignore[arg-type]
    )

    assert not result.ok
    assert result.error == "strategy produced no image"


@pytest.mark.asyncio
async def test_missing_fallback_image_raises_capture_error(frame):
    class Empty(CaptureStrategy):
        name = StrategyName.PLACEHOLDER

        async def capture(self, surface, rect, context):
            return None

    engine = CaptureEngine(strategies=[])
    engine._fallback = Empty()

    with pytest.raises(CaptureError, match="No capture strategy produced an image"):
        await engine.capture_region(ImageSurface(frame), 0, 0, 30, 30, "chair")
