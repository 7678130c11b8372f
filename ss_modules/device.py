"""
Screenshot Stitcher Device Module

Scroll control for the remote viewport:
- scroll_by: relative scroll command
- get_position: current window.scrollY
- wait_for_stable: poll until two consecutive reads agree
- scroll_and_settle: scroll, settle, and report exhaustion
"""

import logging
from typing import Optional, Tuple

from .errors import ScrollTimeoutError
from .models import ScrollState
from .wait import PollTimeout, poll_until

logger = logging.getLogger(__name__)

STABLE_EPSILON = 1e-6

SCROLL_POSITION_SCRIPT = "return window.scrollY || window.pageYOffset || 0;"
SCROLL_BY_SCRIPT = "window.scrollBy(0, arguments[0]);"
SCROLL_TO_TOP_SCRIPT = "window.scrollTo(0, 0);"


class ScrollDriver:
    """Drives and observes the remote scroll position for one capture session."""

    def __init__(self, bridge, poll_interval: float = 0.2, timeout: float = 5.0):
        self.bridge = bridge
        self.poll_interval = poll_interval
        self.timeout = timeout
        self.state = ScrollState()

    async def scroll_by(self, amount: float) -> None:
        logger.debug(f"[ScrollDriver] scroll_by {amount}px")
        await self.bridge.execute_script(SCROLL_BY_SCRIPT, amount)

    async def get_position(self) -> float:
        value = await self.bridge.execute_script(SCROLL_POSITION_SCRIPT)
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return 0.0
        return float(value)

    async def wait_for_stable(self, timeout: Optional[float] = None) -> float:
        """
        Poll the scroll position until it stops moving.

        Args:
            timeout: Override for the driver's default timeout (seconds)

        Returns:
            The settled offset

        Raises:
            ScrollTimeoutError: Position still changing when the timeout elapsed
        """
        timeout = self.timeout if timeout is None else timeout
        previous = [None]

        def _settled(offset: float) -> bool:
            last, previous[0] = previous[0], offset
            return last is not None and abs(offset - last) < STABLE_EPSILON

        try:
            offset = await poll_until(self.get_position, _settled, timeout, self.poll_interval)
        except PollTimeout as e:
            raise ScrollTimeoutError(
                "Timed out waiting for scroll to complete", last_offset=e.last_value
            ) from e

        self.state.last_offset = self.state.offset
        self.state.offset = offset
        return offset

    async def scroll_to_top(self) -> float:
        await self.bridge.execute_script(SCROLL_TO_TOP_SCRIPT)
        offset = await self.wait_for_stable()
        logger.debug(f"[ScrollDriver] At top: {offset}px")
        return offset

    async def scroll_and_settle(self, amount: float) -> Tuple[float, bool]:
        """
        Scroll by ``amount`` and wait for the position to settle.

        Returns:
            (new_offset, exhausted) where exhausted means the page did not move
        """
        before = self.state.offset
        await self.scroll_by(amount)
        offset = await self.wait_for_stable()
        exhausted = abs(offset - before) < STABLE_EPSILON
        if exhausted:
            logger.info(f"[ScrollDriver] No further scrolling detected at {offset}px")
        else:
            logger.info(f"[ScrollDriver] Scrolled to: {offset} px")
        return offset, exhausted
