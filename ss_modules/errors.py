"""
Screenshot Stitcher Errors Module

Exception taxonomy for the capture engine. Every engine error derives from
CaptureFailure; ``fatal`` tells the capture loop whether to abort the session
or log a warning and keep going.
"""

from typing import Any, Dict, Optional


class PageStitcherError(Exception):
    """Base exception for all Page Stitcher errors"""

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


class CaptureFailure(PageStitcherError):
    """Base exception for failures inside a full-page capture session"""

    fatal = True

    def __init__(
        self,
        message: str,
        code: str = "CAPTURE_FAILURE",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, code=code, details=details)


class RemoteChannelError(CaptureFailure):
    """Raised when a command on the remote automation session fails"""

    def __init__(self, message: str, command: Optional[str] = None):
        super().__init__(
            message, code="REMOTE_CHANNEL_ERROR", details={"command": command}
        )


class MeasurementError(CaptureFailure):
    """Raised when page geometry is unusable or cannot be read"""

    def __init__(self, message: str, metrics: Optional[Dict[str, Any]] = None):
        super().__init__(
            message, code="MEASUREMENT_ERROR", details={"metrics": metrics}
        )


class CaptureError(CaptureFailure):
    """Raised when a viewport snapshot fails"""

    def __init__(self, message: str, step: Optional[int] = None):
        super().__init__(message, code="CAPTURE_ERROR", details={"step": step})


class CropBoundsError(CaptureFailure):
    """Raised when a crop would remove as many rows as the image holds, or more"""

    def __init__(self, message: str, image_height: int, trim_rows: int):
        super().__init__(
            message,
            code="CROP_BOUNDS_ERROR",
            details={"image_height": image_height, "trim_rows": trim_rows},
        )


class ScrollTimeoutError(CaptureFailure):
    """Raised when the scroll position never settles within the timeout"""

    def __init__(self, message: str, last_offset: Optional[float] = None):
        super().__init__(
            message, code="SCROLL_TIMEOUT", details={"last_offset": last_offset}
        )


class VisibilityTimeoutError(CaptureFailure):
    """Raised when a hide/show is never confirmed by the remote surface"""

    fatal = False

    def __init__(self, message: str, selectors: str = "", state: str = ""):
        super().__init__(
            message,
            code="VISIBILITY_TIMEOUT",
            details={"selectors": selectors, "state": state},
        )


class PageLoadTimeoutError(CaptureFailure):
    """Raised when the document never reaches readyState 'complete'"""

    def __init__(self, message: str, url: Optional[str] = None):
        super().__init__(message, code="PAGE_LOAD_TIMEOUT", details={"url": url})


class EmptySequenceError(CaptureFailure):
    """Raised when the compositor receives no fragments"""

    def __init__(self, message: str = "No screenshots to combine"):
        super().__init__(message, code="EMPTY_SEQUENCE")


class DecodeError(CaptureFailure):
    """Raised when fragment bytes cannot be decoded as a raster image"""

    def __init__(self, message: str, index: Optional[int] = None):
        super().__init__(message, code="DECODE_ERROR", details={"index": index})


class FragmentWidthError(CaptureFailure):
    """Raised when fragments of different widths are combined"""

    def __init__(self, message: str, expected: int, actual: int, index: int):
        super().__init__(
            message,
            code="FRAGMENT_WIDTH_MISMATCH",
            details={"expected": expected, "actual": actual, "index": index},
        )


class CaptureCancelledError(CaptureFailure):
    """Raised when the caller cancels a capture between steps"""

    def __init__(self, step: int):
        super().__init__(
            f"Capture cancelled before step {step}",
            code="CAPTURE_CANCELLED",
            details={"step": step},
        )


class DeviceNotFoundError(PageStitcherError):
    """Raised when no Android or iOS device is connected"""

    def __init__(self, message: str = "No Android or iOS device detected"):
        super().__init__(message, code="DEVICE_NOT_FOUND")


class UnsupportedBrowserError(PageStitcherError):
    """Raised when a browser/device combination has no capability profile"""

    def __init__(self, browser: str, device_os: Optional[str] = None):
        super().__init__(
            f"Unsupported browser '{browser}' for device OS '{device_os}'",
            code="UNSUPPORTED_BROWSER",
            details={"browser": browser, "device_os": device_os},
        )


class SinkWriteError(CaptureFailure):
    """Raised when a fragment or composite cannot be written to disk"""

    def __init__(self, message: str, path: Optional[str] = None):
        super().__init__(message, code="SINK_WRITE_ERROR", details={"path": path})
