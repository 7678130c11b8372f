"""
Screenshot Stitcher Snapshot Module

Single viewport capture. No retry here: one failed snapshot aborts the session.
"""

import logging
from typing import Optional

from .errors import CaptureError, CaptureFailure

logger = logging.getLogger(__name__)


class SnapshotSource:
    """Captures the current remote viewport as PNG bytes."""

    def __init__(self, bridge):
        self.bridge = bridge

    async def capture(self, step: Optional[int] = None) -> bytes:
        try:
            data = await self.bridge.screenshot()
        except CaptureFailure as e:
            raise CaptureError(f"Failed to take screenshot: {e}", step=step) from e

        if not data:
            raise CaptureError("Screenshot returned no image data", step=step)

        logger.debug(f"[SnapshotSource] Captured {len(data)} bytes (step {step})")
        return data
