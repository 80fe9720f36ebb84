"""Selection rectangle normalization and validation."""

from dataclasses import dataclass

from critique.utils.exceptions import SelectionTooSmallError


@dataclass(frozen=True)
class SelectionRect:
    """A drag selection in surface pixel coordinates."""

    x: int
    y: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    @property
    def size(self) -> tuple[int, int]:
        return (self.width, self.height)

    @property
    def box(self) -> tuple[int, int, int, int]:
        """Pillow crop box (left, upper, right, lower)."""
        return (self.x, self.y, self.right, self.bottom)


def _clamp(value: float, upper: int) -> int:
    return int(round(min(max(value, 0), upper)))


def normalize_selection(
    x1: float,
    y1: float,
    x2: float,
    y2: float,
    surface_width: int,
    surface_height: int,
) -> SelectionRect:
    """
    Normalize two drag corners into a rectangle clamped to the surface.

    The drag may run in any direction; the result always has its origin at the
    top-left corner and never extends past [0, surface_width] x [0, surface_height].
    """
    left = _clamp(min(x1, x2), surface_width)
    right = _clamp(max(x1, x2), surface_width)
    top = _clamp(min(y1, y2), surface_height)
    bottom = _clamp(max(y1, y2), surface_height)
    return SelectionRect(x=left, y=top, width=right - left, height=bottom - top)


def validate_selection(rect: SelectionRect, min_size: int = 10) -> SelectionRect:
    """
    Reject selections narrower or shorter than min_size.

    Raises:
        SelectionTooSmallError: If either side is below min_size
    """
    if rect.width < min_size or rect.height < min_size:
        raise SelectionTooSmallError(rect.width, rect.height, min_size)
    return rect
