"""Unit tests for selection normalization and validation."""

import pytest

from critique.core.capture.selection import SelectionRect, normalize_selection, validate_selection
from critique.utils.exceptions import AnnotationValidationError, SelectionTooSmallError


def test_normalize_forward_drag():
    rect = normalize_selection(10, 20, 110, 70, 200, 100)

    assert rect == SelectionRect(x=10, y=20, width=100, height=50)
    assert rect.box == (10, 20, 110, 70)


def test_normalize_reverse_drag():
    """Dragging up-left gives the same rectangle as dragging down-right."""
    assert normalize_selection(110, 70, 10, 20, 200, 100) == normalize_selection(
        10, 20, 110, 70, 200, 100
    )


def test_normalize_clamps_to_surface():
    rect = normalize_selection(-30, -5, 250, 140, 200, 100)

    assert rect == SelectionRect(x=0, y=0, width=200, height=100)


def test_normalize_rounds_fractional_coordinates():
    rect = normalize_selection(10.4, 10.6, 30.5, 40.2, 200, 100)

    assert (rect.x, rect.y) == (10, 11)
    assert rect.right == 30
    assert rect.bottom == 40


def test_validate_accepts_minimum_size():
    rect = SelectionRect(x=0, y=0, width=10, height=10)

    assert validate_selection(rect, min_size=10) is rect


@pytest.mark.parametrize("width,height", [(9, 50), (50, 9), (5, 5), (0, 0)])
def test_validate_rejects_small_selection(width, height):
    with pytest.raises(SelectionTooSmallError) as exc_info:
        validate_selection(SelectionRect(x=0, y=0, width=width, height=height), min_size=10)

    assert exc_info.value.width == width
    assert exc_info.value.height == height
    assert "at least 10x10px" in str(exc_info.value)


def test_selection_error_is_validation_error():
    with pytest.raises(AnnotationValidationError):
        validate_selection(SelectionRect(x=0, y=0, width=3, height=3))


def test_clamping_can_make_selection_too_small():
    """A drag mostly outside the surface is judged on its visible part."""
    rect = normalize_selection(195, 10, 400, 80, 200, 100)

    assert rect.width == 5
    with pytest.raises(SelectionTooSmallError):
        validate_selection(rect)
