"""Custom exceptions for Critique application."""


class CritiqueError(Exception):
    """Base exception for all Critique errors."""

    pass


class AnnotationValidationError(CritiqueError):
    """Exception raised when user input is rejected before any state changes."""

    pass


class SelectionTooSmallError(AnnotationValidationError):
    """Exception raised when a capture selection is below the minimum size."""

    def __init__(self, width: int, height: int, minimum: int) -> None:
        super().__init__(
            f"Selection too small ({width}x{height}px). "
            f"Please select an area of at least {minimum}x{minimum}px."
        )
        self.width = width
        self.height = height
        self.minimum = minimum


class PermissionDeniedError(CritiqueError):
    """Exception raised when the acting role lacks a capability."""

    pass


class ScreenshotNotFoundError(CritiqueError):
    """Exception raised when a screenshot id is not part of the session."""

    pass


class TagNotFoundError(CritiqueError):
    """Exception raised when a tag id is not in the catalog."""

    pass


class StorageUnavailableError(CritiqueError):
    """Exception raised when the image persistence service cannot be reached."""

    pass


class CaptureError(CritiqueError):
    """Exception raised by a single capture strategy."""

    pass
