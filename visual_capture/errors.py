"""
Centralized Error Handling Module for Visual Capture

Provides the exception hierarchy, troubleshooting hints and a context
manager that re-raises driver failures as capture errors.
"""

import logging
from typing import Any, Dict, Optional

logger = logging.getLogger("visual_capture")


# =============================================================================
# ERROR HINTS - User-friendly troubleshooting suggestions
# =============================================================================

ERROR_HINTS = {
    "COORDINATES_TYPE_CONVERSION_ERROR": {
        "message": "Unsupported coordinates conversion",
        "hint": "Convert the region to the screenshot coordinate space first, or pass a supported coordinates type.",
    },
    "OUT_OF_BOUNDS_ERROR": {
        "message": "Region is not visible in the screenshot",
        "hint": "Capture the target with fully=True, or scroll it into the viewport before checking.",
    },
    "DRIVER_OPERATION_ERROR": {
        "message": "Browser driver call failed",
        "hint": "The page may have navigated or the session was closed. Check that the driver session is still alive.",
    },
    "SCREENSHOT_CAPTURE_ERROR": {
        "message": "Failed to capture screenshot",
        "hint": "The frame may be hidden or have zero size. Make sure the target frame is displayed.",
    },
    "ELEMENT_NOT_FOUND": {
        "message": "Element or frame not found",
        "hint": "Verify the selector, frame index or frame name. The element may not be attached yet.",
    },
    "VIEWPORT_SIZE_ERROR": {
        "message": "Failed to set viewport size",
        "hint": "The requested viewport may be larger than the screen. Try a smaller size or a headless browser.",
    },
}


def get_error_with_hint(error_code: str, original_message: str = "") -> dict:
    """
    Get error message with troubleshooting hint.

    Args:
        error_code: Key from ERROR_HINTS dictionary
        original_message: Original error message to include

    Returns:
        Dict with error and hint
    """
    hint_info = ERROR_HINTS.get(error_code, {})
    return {
        "error": original_message or hint_info.get("message", "Unknown error"),
        "hint": hint_info.get("hint", ""),
    }


class VisualCaptureError(Exception):
    """Base exception for all Visual Capture errors"""

    def __init__(
        self,
        message: str,
        code: str = "UNKNOWN_ERROR",
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)

    @property
    def hint(self) -> str:
        return ERROR_HINTS.get(self.code, {}).get("hint", "")


class CoordinatesTypeConversionError(VisualCaptureError):
    """Raised when a location cannot be converted between two coordinate spaces"""

    def __init__(self, from_type: Any, to_type: Any = None):
        if to_type is None:
            message = f"Unknown coordinates type: '{from_type}'"
        else:
            message = f"Cannot convert from '{from_type}' to '{to_type}'"
        super().__init__(
            message,
            code="COORDINATES_TYPE_CONVERSION_ERROR",
            details={"from": str(from_type), "to": str(to_type) if to_type is not None else None},
        )


class OutOfBoundsError(VisualCaptureError):
    """Raised when a location or region is not visible in a screenshot"""

    def __init__(self, message: str, region: Optional[Any] = None):
        super().__init__(
            message, code="OUT_OF_BOUNDS_ERROR", details={"region": repr(region) if region else None}
        )


class EyesDriverOperationError(VisualCaptureError):
    """Raised when a remote driver call fails; the original error is chained as __cause__"""

    def __init__(self, message: str, operation: Optional[str] = None):
        super().__init__(
            message, code="DRIVER_OPERATION_ERROR", details={"operation": operation}
        )


class ScreenshotCaptureError(VisualCaptureError):
    """Raised when screenshot capture fails"""

    def __init__(self, message: str, screenshot_type: Optional[str] = None):
        super().__init__(
            message, code="SCREENSHOT_CAPTURE_ERROR", details={"screenshot_type": screenshot_type}
        )


class ElementNotFoundError(VisualCaptureError):
    """Raised when an element or frame reference cannot be resolved"""

    def __init__(self, reference: Any = None, message: Optional[str] = None):
        message = message or f"Element '{reference}' not found"
        super().__init__(
            message, code="ELEMENT_NOT_FOUND", details={"reference": str(reference)}
        )


class ViewportSizeError(VisualCaptureError):
    """Raised when the viewport cannot be resized to the requested size"""

    def __init__(self, message: str, required: Any = None, actual: Any = None):
        super().__init__(
            message,
            code="VIEWPORT_SIZE_ERROR",
            details={"required": str(required), "actual": str(actual)},
        )


def get_user_friendly_message(error: Exception) -> str:
    """
    Get a user-friendly error message for reports

    Args:
        error: The exception

    Returns:
        User-friendly error message
    """
    if isinstance(error, OutOfBoundsError):
        return f"The requested area is outside of the captured screenshot: {error.message}"

    elif isinstance(error, ElementNotFoundError):
        return f"Could not find the element or frame to capture: {error.message}"

    elif isinstance(error, ViewportSizeError):
        return "Could not resize the browser viewport. Please check the requested size."

    elif isinstance(error, EyesDriverOperationError):
        return f"The browser driver failed during capture: {error.message}"

    elif isinstance(error, ScreenshotCaptureError):
        return "Failed to capture screenshot. Please check the target is displayed."

    elif isinstance(error, VisualCaptureError):
        return error.message

    else:
        return f"An unexpected error occurred: {str(error)}"


# Context manager for error handling
class ErrorContext:
    """
    Context manager for error handling

    Usage:
        with ErrorContext("extracting entire size", raise_as=EyesDriverOperationError):
            # code that might fail
            pass

    Async code uses the same object with `async with`.
    """

    def __init__(self, operation: str, raise_as: type = VisualCaptureError):
        self.operation = operation
        self.raise_as = raise_as

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is not None and isinstance(exc_val, Exception):
            logger.debug(f"Error during {self.operation}: {exc_val}")
            # Re-raise as VisualCaptureError
            if not isinstance(exc_val, VisualCaptureError):
                raise self.raise_as(f"Failed {self.operation}: {exc_val}") from exc_val
        return False  # Don't suppress exception

    async def __aenter__(self):
        return self.__enter__()

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        return self.__exit__(exc_type, exc_val, exc_tb)
