"""
Screenshot Stitcher Package

Building blocks of the full-page capture engine. The capture loop itself
lives in screenshot_stitcher.py and composes these modules.

Modules:
- geometry: Page and viewport measurement
- visibility: Hide/show of caller-selected elements
- device: Scroll control and stabilization
- snapshot: Single viewport capture
- crop: Chrome band and overlap trimming
- compose: Vertical composition of fragments
- sink: Fragment and composite persistence
- wait: Bounded polling primitives
"""

from .errors import (
    PageStitcherError,
    CaptureFailure,
    RemoteChannelError,
    MeasurementError,
    CaptureError,
    CropBoundsError,
    ScrollTimeoutError,
    VisibilityTimeoutError,
    PageLoadTimeoutError,
    EmptySequenceError,
    DecodeError,
    FragmentWidthError,
    CaptureCancelledError,
    DeviceNotFoundError,
    UnsupportedBrowserError,
    SinkWriteError,
)
from .models import (
    CaptureReport,
    CaptureResult,
    CaptureSession,
    CaptureState,
    Fragment,
    PageMetrics,
    ScrollState,
)
from .geometry import GeometryProbe
from .visibility import ElementVisibilityController
from .device import ScrollDriver
from .snapshot import SnapshotSource
from .crop import trim_bottom, trim_overlap, physical_rows, image_size
from .compose import ImageComposer
from .sink import FragmentSink
from .wait import poll_until, wait_for_page_load, PollTimeout

__all__ = [
    # Errors
    'PageStitcherError',
    'CaptureFailure',
    'RemoteChannelError',
    'MeasurementError',
    'CaptureError',
    'CropBoundsError',
    'ScrollTimeoutError',
    'VisibilityTimeoutError',
    'PageLoadTimeoutError',
    'EmptySequenceError',
    'DecodeError',
    'FragmentWidthError',
    'CaptureCancelledError',
    'DeviceNotFoundError',
    'UnsupportedBrowserError',
    'SinkWriteError',
    # Models
    'CaptureReport',
    'CaptureResult',
    'CaptureSession',
    'CaptureState',
    'Fragment',
    'PageMetrics',
    'ScrollState',
    # Components
    'GeometryProbe',
    'ElementVisibilityController',
    'ScrollDriver',
    'SnapshotSource',
    'ImageComposer',
    'FragmentSink',
    # Functions
    'trim_bottom',
    'trim_overlap',
    'physical_rows',
    'image_size',
    'poll_until',
    'wait_for_page_load',
    'PollTimeout',
]

__version__ = '0.1.0'
