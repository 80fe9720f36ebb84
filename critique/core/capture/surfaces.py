"""Rendering surfaces the capture engine can read from."""

from typing import Protocol

import structlog
from PIL import Image
from playwright.async_api import Page

from critique.core.capture.selection import SelectionRect
from critique.utils.exceptions import CaptureError
from critique.utils.imaging import decode_image, from_data_uri

logger = structlog.get_logger(__name__)

# Looks for the WebGL canvas in the viewer element or its shadow root.
CANVAS_EXPORT_JS = """
(element) => {
    const canvas = element.querySelector('canvas')
        || (element.shadowRoot && element.shadowRoot.querySelector('canvas'));
    if (!canvas) {
        return null;
    }
    return canvas.toDataURL('image/png');
}
"""


class RenderSurface(Protocol):
    """Something a selection can be captured from."""

    name: str

    @property
    def width(self) -> int: ...

    @property
    def height(self) -> int: ...

    async def read_pixels(self) -> Image.Image | None:
        """Return the full pixel buffer in selection coordinates, or None if not exposed."""
        ...

    async def rasterize(self, rect: SelectionRect) -> Image.Image:
        """Rasterize the DOM region under a selection."""
        ...


class ImageSurface:
    """
    Surface backed by an already rendered frame.

    ``readable=False`` models a renderer whose pixel buffer cannot be read
    (cross-origin or sandboxed); ``dom_frame`` is what a DOM rasterizer would
    see in that case.
    """

    name = "image"

    def __init__(
        self,
        frame: Image.Image,
        readable: bool = True,
        dom_frame: Image.Image | None = None,
    ) -> None:
        self.frame = frame
        self.readable = readable
        self.dom_frame = dom_frame

    @property
    def width(self) -> int:
        return self.frame.width

    @property
    def height(self) -> int:
        return self.frame.height

    async def read_pixels(self) -> Image.Image | None:
        return self.frame if self.readable else None

    async def rasterize(self, rect: SelectionRect) -> Image.Image:
        if self.dom_frame is None:
            raise CaptureError("No DOM rasterization available for a static frame")
        return self.dom_frame.crop(rect.box)


class PlaywrightSurface:
    """Surface backed by the viewer element of a live Playwright page."""

    name = "playwright"

    def __init__(self, page: Page, selector: str, width: int, height: int) -> None:
        self.page = page
        self.selector = selector
        self._width = width
        self._height = height

    @classmethod
    async def attach(cls, page: Page, selector: str) -> "PlaywrightSurface":
        """
        Create a surface sized to the viewer element's bounding box.

        Raises:
            CaptureError: If the element is not rendered
        """
        box = await page.locator(selector).first.bounding_box()
        if box is None:
            raise CaptureError(f"Viewer element '{selector}' is not visible")
        return cls(page, selector, int(box["width"]), int(box["height"]))

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    async def read_pixels(self) -> Image.Image | None:
        data_uri = await self.page.locator(self.selector).first.evaluate(CANVAS_EXPORT_JS)
        if not data_uri:
            logger.debug("viewer_canvas_not_found", selector=self.selector)
            return None
        _, data = from_data_uri(data_uri)
        frame = decode_image(data)
        if frame.size != (self.width, self.height):
            # Canvas backing store is in device pixels; selection is in CSS pixels.
            frame = frame.resize((self.width, self.height))
        return frame

    async def rasterize(self, rect: SelectionRect) -> Image.Image:
        box = await self.page.locator(self.selector).first.bounding_box()
        if box is None:
            raise CaptureError(f"Viewer element '{self.selector}' is not visible")
        png = await self.page.screenshot(
            clip={
                "x": box["x"] + rect.x,
                "y": box["y"] + rect.y,
                "width": rect.width,
                "height": rect.height,
            }
        )
        return decode_image(png)
