"""
Screenshot Stitcher Wait Module

Bounded cooperative polling against the remote surface. Every wait has an
explicit timeout and sleeps with asyncio between samples, so a stuck remote
renderer produces a typed error instead of hanging the capture.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from .errors import PageLoadTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")

READY_STATE_SCRIPT = "return document.readyState;"


class PollTimeout(Exception):
    """Raised by poll_until; carries the last sampled value."""

    def __init__(self, last_value=None, samples: int = 0):
        self.last_value = last_value
        self.samples = samples
        super().__init__(f"Condition not met after {samples} samples")


async def poll_until(
    probe: Callable[[], Awaitable[T]],
    predicate: Callable[[T], bool],
    timeout: float,
    interval: float,
) -> T:
    """
    Sample ``probe`` until ``predicate`` accepts a value.

    The probe always runs at least once. Sampling stops once ``timeout``
    seconds have elapsed since the first sample.

    Args:
        probe: Coroutine function returning the current remote value
        predicate: Returns True when the value is the one we wait for
        timeout: Max seconds to keep sampling
        interval: Seconds to sleep between samples

    Returns:
        The first value accepted by ``predicate``

    Raises:
        PollTimeout: If no sample was accepted in time
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    samples = 0
    value: Optional[T] = None

    while True:
        value = await probe()
        samples += 1
        if predicate(value):
            return value
        if loop.time() >= deadline:
            raise PollTimeout(last_value=value, samples=samples)
        await asyncio.sleep(interval)


async def wait_for_page_load(bridge, url: str = "", timeout: float = 10.0, interval: float = 0.5) -> None:
    """Wait until document.readyState is 'complete'."""

    async def _ready_state():
        return await bridge.execute_script(READY_STATE_SCRIPT)

    try:
        await poll_until(_ready_state, lambda state: state == "complete", timeout, interval)
    except PollTimeout as e:
        raise PageLoadTimeoutError(
            f"Timed out waiting for page to load (readyState={e.last_value!r})", url=url
        ) from e

    logger.info(f"[Wait] [{url}] is loaded.")
