"""
Screenshot Stitcher Visibility Module

Hides and restores caller-selected elements (sticky headers, cookie banners)
so they do not repeat in every fragment. Style changes apply asynchronously on
the remote renderer, so each mutation is followed by a poll. Hiding waits for
the computed style to report hidden. Restoring waits for every saved inline value
to be written back; elements the page itself hides (stylesheet rule or hidden
ancestor) still count as restored.
"""

import logging

from .errors import VisibilityTimeoutError
from .wait import PollTimeout, poll_until

logger = logging.getLogger(__name__)


# The previous inline value is kept on the element so show() puts back exactly
# what the page had.
HIDE_ELEMENTS_SCRIPT = """
const elements = document.querySelectorAll(arguments[0]);
elements.forEach(e => {
    if (e.dataset.stitchVisibility === undefined) {
        e.dataset.stitchVisibility = e.style.visibility;
    }
    e.style.visibility = 'hidden';
});
return elements.length;
"""

SHOW_ELEMENTS_SCRIPT = """
const elements = document.querySelectorAll(arguments[0]);
elements.forEach(e => {
    e.style.visibility = e.dataset.stitchVisibility || '';
    delete e.dataset.stitchVisibility;
});
return elements.length;
"""

VISIBILITY_STATE_SCRIPT = """
const wantHidden = arguments[1];
return Array.from(document.querySelectorAll(arguments[0])).every(e => wantHidden
    ? e.style.visibility === 'hidden' && getComputedStyle(e).visibility === 'hidden'
    : e.dataset.stitchVisibility === undefined);
"""


class ElementVisibilityController:
    """Toggles a CSS selector set between hidden and visible."""

    def __init__(self, bridge, timeout: float = 5.0, poll_interval: float = 0.2):
        self.bridge = bridge
        self.timeout = timeout
        self.poll_interval = poll_interval

    async def hide(self, selectors: str) -> bool:
        """
        Hide every element matching ``selectors`` and wait for confirmation.

        Returns:
            True once confirmed (immediately for an empty selector string)

        Raises:
            VisibilityTimeoutError: The remote surface never reported the elements hidden
        """
        return await self._apply(selectors, hidden=True)

    async def show(self, selectors: str) -> bool:
        """Restore elements hidden by hide(); same contract as hide()."""
        return await self._apply(selectors, hidden=False)

    async def _apply(self, selectors: str, hidden: bool) -> bool:
        state = "hidden" if hidden else "visible"
        if not selectors or not selectors.strip():
            logger.debug(f"[Visibility] No elements to mark {state}.")
            return True

        script = HIDE_ELEMENTS_SCRIPT if hidden else SHOW_ELEMENTS_SCRIPT
        matched = await self.bridge.execute_script(script, selectors)
        logger.info(f"[Visibility] Marked {matched} element(s) {state}: {selectors}")

        async def _check():
            return await self.bridge.execute_script(VISIBILITY_STATE_SCRIPT, selectors, hidden)

        try:
            await poll_until(_check, lambda ok: ok is True, self.timeout, self.poll_interval)
        except PollTimeout as e:
            raise VisibilityTimeoutError(
                f"Timed out waiting for elements to become {state} after {e.samples} checks",
                selectors=selectors,
                state=state,
            ) from e

        logger.debug(f"[Visibility] Confirmed {state}: {selectors}")
        return True
