"""
Screenshot Stitcher Geometry Module

Reads page and viewport metrics from the remote surface with one read-only
script. All values are logical (CSS) pixels.
"""

import logging
from typing import Any, Optional

from .errors import CaptureFailure, MeasurementError
from .models import PageMetrics

logger = logging.getLogger(__name__)


PAGE_METRICS_SCRIPT = """
const doc = document.documentElement;
const body = document.body;
return {
    totalScrollHeight: Math.max(doc.scrollHeight, body ? body.scrollHeight : 0),
    innerHeight: window.innerHeight,
    clientHeight: doc.clientHeight,
    screenHeight: screen.height,
    availHeight: screen.availHeight,
    devicePixelRatio: window.devicePixelRatio,
};
"""


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    return None


class GeometryProbe:
    """Measures the scrollable document and the visible viewport."""

    def __init__(self, bridge):
        self.bridge = bridge

    async def measure(self) -> PageMetrics:
        """
        Read page metrics.

        Returns:
            PageMetrics with positive total and viewport heights

        Raises:
            MeasurementError: Remote call failed or the geometry is unusable
        """
        logger.debug("[GeometryProbe] Getting page metrics...")
        try:
            raw = await self.bridge.execute_script(PAGE_METRICS_SCRIPT)
        except CaptureFailure as e:
            raise MeasurementError(f"Failed to get page metrics: {e}") from e

        if not isinstance(raw, dict):
            raise MeasurementError(
                f"Page metrics script returned {type(raw).__name__}, expected an object"
            )

        total = _as_float(raw.get("totalScrollHeight")) or 0.0
        viewport = _as_float(raw.get("innerHeight")) or 0.0

        if total <= 0:
            raise MeasurementError("Failed to retrieve page height.", metrics=raw)
        if viewport <= 0:
            raise MeasurementError("Failed to retrieve viewport height.", metrics=raw)

        metrics = PageMetrics(
            total_scrollable_height=total,
            viewport_height=viewport,
            client_height=_as_float(raw.get("clientHeight")),
            screen_height=_as_float(raw.get("screenHeight")),
            avail_height=_as_float(raw.get("availHeight")),
            device_pixel_ratio=_as_float(raw.get("devicePixelRatio")),
        )
        logger.info(
            f"[GeometryProbe] Page metrics: total={total}px viewport={viewport}px "
            f"steps={metrics.step_count}"
        )
        return metrics
