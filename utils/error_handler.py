"""
Centralized Error Handling Module for Page Stitcher

Provides consistent error responses, logging, and user-friendly messages.
"""

import logging
import traceback
from typing import Any, Dict, Optional

from fastapi import status
from fastapi.responses import JSONResponse

from ss_modules.errors import (
    CaptureCancelledError,
    CaptureFailure,
    CropBoundsError,
    DecodeError,
    DeviceNotFoundError,
    EmptySequenceError,
    FragmentWidthError,
    MeasurementError,
    PageLoadTimeoutError,
    PageStitcherError,
    RemoteChannelError,
    ScrollTimeoutError,
    SinkWriteError,
    UnsupportedBrowserError,
    VisibilityTimeoutError,
)

logger = logging.getLogger("page_stitcher")


# =============================================================================
# ERROR HINTS - User-friendly troubleshooting suggestions
# =============================================================================

ERROR_HINTS = {
    "device_not_found": {
        "message": "No device connected",
        "hint": "Connect an Android phone with USB debugging enabled, or an iPhone trusted by this computer, then run device detection again.",
    },
    "remote_channel": {
        "message": "Appium session failed",
        "hint": "Check that the Appium server is running at APPIUM_SERVER_URL and that the browser driver for this device is installed.",
    },
    "page_load_timeout": {
        "message": "Page did not finish loading",
        "hint": "Check the URL and network on the device. Slow pages may need a larger STITCH_PAGE_LOAD_TIMEOUT.",
    },
    "scroll_timeout": {
        "message": "Page kept scrolling",
        "hint": "Smooth-scroll or scroll-linked animations can keep the page moving. Increase STITCH_SCROLL_TIMEOUT or disable them.",
    },
    "visibility_timeout": {
        "message": "Hidden elements were not confirmed",
        "hint": "Check the CSS selectors. Elements re-rendered by scripts may ignore the visibility change.",
    },
    "measurement": {
        "message": "Could not measure the page",
        "hint": "The page may still be blank or use an inner scroll container. Wait for the page to render and try again.",
    },
    "crop_bounds": {
        "message": "Screenshot is smaller than the computed crop",
        "hint": "Device density is probably wrong. Set STITCH_DENSITY to the device pixel ratio or run device detection again.",
    },
    "composition": {
        "message": "Failed to combine screenshots",
        "hint": "The device rotated or changed resolution during capture. Keep the device still and try again.",
    },
    "unsupported_browser": {
        "message": "Browser not supported on this device",
        "hint": "Use chrome or firefox on Android, safari or chrome on iOS.",
    },
    "sink_write": {
        "message": "Could not save the screenshot",
        "hint": "Check that SCREENSHOT_DIR exists, is writable and has free space.",
    },
    "capture_busy": {
        "message": "A capture is already running",
        "hint": "Only one page can be captured at a time. Wait for the current capture to finish.",
    },
    "cancelled": {
        "message": "Capture was cancelled",
        "hint": "",
    },
}


class CaptureInProgressError(PageStitcherError):
    """Raised when a capture is requested while another one is running"""

    def __init__(self):
        super().__init__("A capture is already in progress", code="CAPTURE_IN_PROGRESS")


def get_error_with_hint(error_type: str, original_message: str = "") -> dict:
    """
    Get error message with troubleshooting hint.

    Args:
        error_type: Key from ERROR_HINTS dictionary
        original_message: Original error message to include

    Returns:
        Dict with error and hint
    """
    hint_info = ERROR_HINTS.get(error_type, {})
    return {
        "error": original_message or hint_info.get("message", "Unknown error"),
        "hint": hint_info.get("hint", ""),
    }


def classify_error(error_message: str) -> str:
    """
    Classify an error message to determine the appropriate hint type.

    Args:
        error_message: The error message to classify

    Returns:
        Error type key for ERROR_HINTS lookup
    """
    msg = error_message.lower()

    if "device" in msg and ("not found" in msg or "no android" in msg or "detected" in msg):
        return "device_not_found"
    if "webdriver" in msg or "appium" in msg or "session" in msg or "connection refused" in msg:
        return "remote_channel"
    if "load" in msg and ("timeout" in msg or "timed out" in msg):
        return "page_load_timeout"
    if "scroll" in msg and ("timeout" in msg or "timed out" in msg):
        return "scroll_timeout"
    if "page height" in msg or "viewport" in msg:
        return "measurement"
    if "cannot crop" in msg:
        return "crop_bounds"
    if "combine" in msg or "wide" in msg:
        return "composition"
    if "unsupported browser" in msg:
        return "unsupported_browser"

    return ""


def error_type_for(error: Exception) -> str:
    """Hint key for an exception, falling back to message classification."""
    if isinstance(error, DeviceNotFoundError):
        return "device_not_found"
    if isinstance(error, RemoteChannelError):
        return "remote_channel"
    if isinstance(error, PageLoadTimeoutError):
        return "page_load_timeout"
    if isinstance(error, ScrollTimeoutError):
        return "scroll_timeout"
    if isinstance(error, VisibilityTimeoutError):
        return "visibility_timeout"
    if isinstance(error, MeasurementError):
        return "measurement"
    if isinstance(error, CropBoundsError):
        return "crop_bounds"
    if isinstance(error, (EmptySequenceError, DecodeError, FragmentWidthError)):
        return "composition"
    if isinstance(error, SinkWriteError):
        return "sink_write"
    if isinstance(error, UnsupportedBrowserError):
        return "unsupported_browser"
    if isinstance(error, CaptureInProgressError):
        return "capture_busy"
    if isinstance(error, CaptureCancelledError):
        return "cancelled"
    return classify_error(str(error))


def create_error_response(
    error: Exception,
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
    include_traceback: bool = False,
) -> JSONResponse:
    """
    Create a standardized error response

    Args:
        error: The exception that occurred
        status_code: HTTP status code
        include_traceback: Include full traceback in response (debug only)

    Returns:
        JSONResponse with error details
    """
    error_response = {
        "success": False,
        "error": {
            "message": str(error),
            "type": error.__class__.__name__,
            "user_message": get_user_friendly_message(error),
        },
    }

    if isinstance(error, PageStitcherError):
        error_response["error"]["code"] = error.code
        error_response["error"]["details"] = error.details

    hint = get_error_with_hint(error_type_for(error))["hint"]
    if hint:
        error_response["error"]["hint"] = hint

    # Add traceback if requested (debug mode only)
    if include_traceback:
        error_response["error"]["traceback"] = traceback.format_exc()

    if status_code >= 500:
        logger.error(f"{error.__class__.__name__}: {error}", exc_info=True)
    else:
        logger.warning(f"{error.__class__.__name__}: {error}")

    return JSONResponse(status_code=status_code, content=error_response)


def handle_api_error(error: Exception) -> JSONResponse:
    """
    Handle API errors with appropriate status codes

    Args:
        error: The exception to handle

    Returns:
        JSONResponse with appropriate status code
    """
    if isinstance(error, DeviceNotFoundError):
        return create_error_response(error, status.HTTP_404_NOT_FOUND)

    elif isinstance(error, CaptureInProgressError):
        return create_error_response(error, status.HTTP_409_CONFLICT)

    elif isinstance(error, (UnsupportedBrowserError, ValueError)):
        return create_error_response(error, status.HTTP_400_BAD_REQUEST)

    elif isinstance(error, RemoteChannelError):
        return create_error_response(error, status.HTTP_502_BAD_GATEWAY)

    elif isinstance(error, (PageLoadTimeoutError, ScrollTimeoutError, VisibilityTimeoutError)):
        return create_error_response(error, status.HTTP_504_GATEWAY_TIMEOUT)

    elif isinstance(error, CaptureFailure):
        return create_error_response(error, status.HTTP_500_INTERNAL_SERVER_ERROR)

    else:
        # Generic error
        return create_error_response(error, status.HTTP_500_INTERNAL_SERVER_ERROR)


def get_user_friendly_message(error: Exception) -> str:
    """
    Get a one-line message summarizing the first fatal error, for display

    Args:
        error: The exception

    Returns:
        User-friendly error message
    """
    if isinstance(error, DeviceNotFoundError):
        return "No device found. Please connect an Android or iOS device and try again."

    elif isinstance(error, CaptureInProgressError):
        return "Another screenshot is being captured. Please wait for it to finish."

    elif isinstance(error, UnsupportedBrowserError):
        return f"This browser is not supported on the connected device: {error.details.get('browser')}"

    elif isinstance(error, RemoteChannelError):
        return "Could not talk to the browser on the device. Please check the Appium server and try again."

    elif isinstance(error, PageLoadTimeoutError):
        return "The page did not finish loading in time."

    elif isinstance(error, ScrollTimeoutError):
        return "The page did not stop scrolling in time."

    elif isinstance(error, MeasurementError):
        return f"Could not measure the page: {error.message}"

    elif isinstance(error, CropBoundsError):
        return "Screenshot size did not match the page geometry. Please check the device density."

    elif isinstance(error, (EmptySequenceError, DecodeError, FragmentWidthError)):
        return f"Failed to combine screenshots: {error.message}"

    elif isinstance(error, SinkWriteError):
        return "The screenshot could not be saved. Please check the screenshot directory."

    elif isinstance(error, CaptureCancelledError):
        return "Screenshot capture was cancelled."

    elif isinstance(error, PageStitcherError):
        return f"Failed to take screenshot: {error.message}"

    else:
        return f"An unexpected error occurred: {str(error)}"


def create_success_response(
    data: Any = None,
    message: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Create a standardized success response

    Args:
        data: The response data payload
        message: Optional success message

    Returns:
        Dict with success response format: {success: True, data: ..., message: ...}

    Usage:
        return create_success_response(data={"path": str(path)})
        return create_success_response(message="Device detected")
    """
    response = {"success": True}

    if data is not None:
        response["data"] = data

    if message is not None:
        response["message"] = message

    return response


class ErrorContext:
    """
    Context manager that logs a failed operation and re-raises foreign
    exceptions as PageStitcherError

    Usage:
        with ErrorContext("saving screenshot"):
            path.write_bytes(image)
    """

    def __init__(self, operation: str, raise_as: type = PageStitcherError):
        self.operation = operation
        self.raise_as = raise_as

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is not None:
            logger.error(f"Error during {self.operation}: {exc_val}", exc_info=True)
            if not isinstance(exc_val, PageStitcherError):
                raise self.raise_as(f"Failed {self.operation}: {exc_val}") from exc_val
        return False  # Don't suppress exception
