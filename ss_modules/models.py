"""
Screenshot Stitcher Models Module

Data carried through one capture session:
- PageMetrics: geometry read once per session by the GeometryProbe
- ScrollState: offsets owned by the ScrollDriver
- Fragment: one cropped snapshot in stacking order
- CaptureSession: per-invocation tuning (density, poll interval, timeouts)
- CaptureReport / CaptureResult: what the capture loop hands back
"""

import math
import os
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field


class CaptureState(str, Enum):
    """Capture loop state"""
    INIT = "init"
    MEASURING = "measuring"
    CAPTURE_STEP = "capture_step"
    SCROLLING = "scrolling"
    RESTORING = "restoring"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class PageMetrics:
    """Page and viewport geometry in logical (CSS) pixels"""

    total_scrollable_height: float
    viewport_height: float
    client_height: Optional[float] = None
    screen_height: Optional[float] = None
    avail_height: Optional[float] = None
    device_pixel_ratio: Optional[float] = None

    @property
    def step_count(self) -> int:
        return math.ceil(self.total_scrollable_height / self.viewport_height)

    def final_overlap(self, step: int) -> float:
        """Logical rows the snapshot at ``step`` repeats from the one before it."""
        return self.viewport_height * step - self.total_scrollable_height


@dataclass
class ScrollState:
    offset: float = 0.0
    last_offset: Optional[float] = None


@dataclass
class Fragment:
    """A cropped snapshot; ``data`` is PNG bytes."""

    index: int
    data: bytes
    width: int
    height: int
    scroll_offset: float = 0.0
    overlap_trim: float = 0.0  # logical px removed from the top
    chrome_trim: float = 0.0  # logical px removed from the bottom


def _env_float(name: str) -> Optional[float]:
    value = os.getenv(name, "").strip()
    return float(value) if value else None


class CaptureSession(BaseModel):
    """Configuration for one capture invocation"""

    density: Optional[float] = Field(default=None, gt=0)  # None -> page devicePixelRatio
    poll_interval: float = Field(default=0.2, gt=0)
    scroll_timeout: float = Field(default=5.0, gt=0)
    visibility_timeout: float = Field(default=5.0, gt=0)
    page_load_timeout: float = Field(default=10.0, gt=0)
    page_load_poll_interval: float = Field(default=0.5, gt=0)
    chrome_band_height: Optional[float] = Field(default=None, ge=0)  # None -> derive from snapshot

    @classmethod
    def from_env(cls, **overrides) -> "CaptureSession":
        """
        Build a session from STITCH_* environment variables.

        Explicit keyword overrides win over the environment; overrides that
        are None are ignored so callers can pass optional values straight
        through.
        """
        values = {
            "density": _env_float("STITCH_DENSITY"),
            "poll_interval": _env_float("STITCH_POLL_INTERVAL"),
            "scroll_timeout": _env_float("STITCH_SCROLL_TIMEOUT"),
            "visibility_timeout": _env_float("STITCH_VISIBILITY_TIMEOUT"),
            "page_load_timeout": _env_float("STITCH_PAGE_LOAD_TIMEOUT"),
            "chrome_band_height": _env_float("STITCH_CHROME_BAND_HEIGHT"),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**{k: v for k, v in values.items() if v is not None})


@dataclass
class CaptureReport:
    """Fragment sequence plus the statistics of the loop that produced it"""

    fragments: List[Fragment]
    metrics: PageMetrics
    density: float
    step_count: int
    scroll_amounts: List[float] = field(default_factory=list)
    step_advances: List[float] = field(default_factory=list)
    exhausted: bool = False
    hidden_confirmed: Optional[bool] = None
    restored_confirmed: Optional[bool] = None
    states: List[CaptureState] = field(default_factory=list)
    duration_ms: int = 0

    def to_metadata(self) -> dict:
        return {
            "total_scrollable_height": self.metrics.total_scrollable_height,
            "viewport_height": self.metrics.viewport_height,
            "density": self.density,
            "step_count": self.step_count,
            "capture_count": len(self.fragments),
            "scroll_amounts": self.scroll_amounts,
            "step_advances": self.step_advances,
            "exhausted": self.exhausted,
            "hidden_confirmed": self.hidden_confirmed,
            "restored_confirmed": self.restored_confirmed,
            "duration_ms": self.duration_ms,
        }


@dataclass
class CaptureResult:
    """Composite image returned by ScreenshotStitcher.capture_full_page"""

    image: bytes
    width: int
    height: int
    report: CaptureReport
    path: Optional[Path] = None
