"""
Page Stitcher - Screenshot Stitcher
Captures a full scrollable page from a remote mobile browser:
1. Measure page geometry (total height, viewport height)
2. Snapshot, crop and scroll one viewport at a time
3. Restore elements hidden for the capture
4. Stack the cropped fragments into one PNG

Crop arithmetic is exact scroll-offset math scaled by the device density;
there is no image matching. The page layout is assumed stable while capturing.
"""

import asyncio
import logging
import time
from typing import List, Optional

from ss_modules import (
    CaptureCancelledError,
    CaptureReport,
    CaptureResult,
    CaptureSession,
    CaptureState,
    CropBoundsError,
    ElementVisibilityController,
    Fragment,
    FragmentSink,
    GeometryProbe,
    ImageComposer,
    PageMetrics,
    ScrollDriver,
    SinkWriteError,
    SnapshotSource,
    VisibilityTimeoutError,
    image_size,
    physical_rows,
    trim_bottom,
    trim_overlap,
)
from utils.error_handler import ErrorContext

logger = logging.getLogger(__name__)

# Session and page densities closer than this are treated as equal
DENSITY_TOLERANCE = 0.01


class ScreenshotStitcher:
    """
    Drives one remote viewport through a scroll-and-snapshot loop and
    composes the result.

    States: init -> measuring -> (capture_step -> scrolling)* -> restoring -> done,
    with failed reachable from any state. Restoring always runs, also after a
    failure, so the page is never left with elements hidden.
    """

    def __init__(self, bridge, session: Optional[CaptureSession] = None,
                 sink: Optional[FragmentSink] = None):
        """
        Initialize screenshot stitcher

        Args:
            bridge: Remote channel exposing execute_script() and screenshot()
            session: Capture tuning; defaults to CaptureSession()
            sink: Optional filesystem sink for fragments and the composite
        """
        self.bridge = bridge
        self.session = session or CaptureSession()
        self.sink = sink

        self.probe = GeometryProbe(bridge)
        self.visibility = ElementVisibilityController(
            bridge,
            timeout=self.session.visibility_timeout,
            poll_interval=self.session.poll_interval,
        )
        self.scroll = ScrollDriver(
            bridge,
            poll_interval=self.session.poll_interval,
            timeout=self.session.scroll_timeout,
        )
        self.snapshot = SnapshotSource(bridge)
        self.composer = ImageComposer()

        self.state = CaptureState.INIT
        self.states: List[CaptureState] = [CaptureState.INIT]

        logger.info("[ScreenshotStitcher] Initialized")

    def _transition(self, state: CaptureState) -> None:
        logger.debug(f"[ScreenshotStitcher] {self.state.value} -> {state.value}")
        self.state = state
        self.states.append(state)

    def _resolve_density(self, metrics: PageMetrics) -> float:
        page_ratio = metrics.device_pixel_ratio
        if self.session.density:
            if page_ratio and abs(page_ratio - self.session.density) > DENSITY_TOLERANCE:
                logger.warning(
                    f"[ScreenshotStitcher] Session density {self.session.density} disagrees with "
                    f"page devicePixelRatio {page_ratio}; using the page ratio"
                )
                return page_ratio
            return self.session.density
        if page_ratio and page_ratio > 0:
            logger.info(f"[ScreenshotStitcher] Using page devicePixelRatio {page_ratio}")
            return page_ratio
        return 1.0

    def _check_snapshot(self, raw_height: int, metrics: PageMetrics, density: float) -> None:
        """Reject snapshots whose size does not fit the viewport at ``density``."""
        viewport_rows = physical_rows(metrics.viewport_height, density)
        if raw_height < viewport_rows:
            raise CropBoundsError(
                f"Snapshot height {raw_height}px is smaller than the viewport "
                f"({viewport_rows}px at density {density}), cannot crop.",
                image_height=raw_height,
                trim_rows=viewport_rows,
            )

        # Nothing taller than the screen can sit in a snapshot
        screen = metrics.screen_height or metrics.avail_height
        if screen and screen >= metrics.viewport_height:
            max_rows = physical_rows(screen + 1, density)
            if raw_height > max_rows:
                raise CropBoundsError(
                    f"Snapshot height {raw_height}px is taller than the screen "
                    f"({max_rows}px at density {density}); the density is probably too low, cannot crop.",
                    image_height=raw_height,
                    trim_rows=max_rows,
                )

    def _chrome_band(self, raw_height: int, metrics: PageMetrics, density: float) -> float:
        """Logical height of the band below the viewport in a raw snapshot."""
        if self.session.chrome_band_height is not None:
            return self.session.chrome_band_height
        band = raw_height / density - metrics.viewport_height
        return band if band > 0 else 0.0

    def _crop_fragment(self, raw: bytes, index: int, step_count: int,
                       metrics: PageMetrics, density: float) -> Fragment:
        width, raw_height = image_size(raw)
        self._check_snapshot(raw_height, metrics, density)
        chrome = self._chrome_band(raw_height, metrics, density)
        overlap = 0.0
        data = raw

        # Overlap first: the chrome band sits at a fixed screen position, the
        # overlap depends on how far the last scroll went.
        # A single-step page has no previous fragment to overlap with
        if index == step_count and index > 1:
            overlap = max(0.0, metrics.final_overlap(index))
            logger.debug(f"[ScreenshotStitcher] Final step overlap: {overlap} px")
            data = trim_overlap(data, overlap, density)

        data = trim_bottom(data, chrome, density)
        _, height = image_size(data)

        return Fragment(
            index=index,
            data=data,
            width=width,
            height=height,
            scroll_offset=self.scroll.state.offset,
            overlap_trim=overlap,
            chrome_trim=chrome,
        )

    async def _hide_elements(self, selectors: str) -> bool:
        try:
            return await self.visibility.hide(selectors)
        except VisibilityTimeoutError as e:
            logger.warning(f"[ScreenshotStitcher] {e.message}; continuing with elements visible")
            return False

    async def _restore_elements(self, selectors: str, failing: bool) -> bool:
        self._transition(CaptureState.RESTORING)
        try:
            return await self.visibility.show(selectors)
        except VisibilityTimeoutError as e:
            logger.warning(f"[ScreenshotStitcher] {e.message}")
            return False
        except Exception as e:
            if not failing:
                raise
            logger.error(f"[ScreenshotStitcher] Failed to restore elements: {e}")
            return False

    async def capture_fragments(self, hidden_selectors: str = "",
                                cancel_event: Optional[asyncio.Event] = None) -> CaptureReport:
        """
        Run the scroll-and-snapshot loop.

        Args:
            hidden_selectors: CSS selector list hidden after the first scroll
            cancel_event: Checked before every capture step

        Returns:
            CaptureReport with the ordered, cropped fragments

        Raises:
            CaptureFailure: First fatal error; elements are restored before raising
        """
        start_time = time.time()
        self.state = CaptureState.INIT
        self.states = [CaptureState.INIT]
        fragments: List[Fragment] = []
        scroll_amounts: List[float] = []
        step_advances: List[float] = []
        exhausted = False
        hidden_confirmed: Optional[bool] = None

        logger.info("[ScreenshotStitcher] Capturing full page screenshot...")

        try:
            self._transition(CaptureState.MEASURING)
            await self.scroll.scroll_to_top()
            metrics = await self.probe.measure()
            density = self._resolve_density(metrics)
            step_count = metrics.step_count
            logger.info(f"[ScreenshotStitcher] {step_count} step(s) at density {density}")

            for index in range(1, step_count + 1):
                if cancel_event is not None and cancel_event.is_set():
                    raise CaptureCancelledError(index)

                self._transition(CaptureState.CAPTURE_STEP)
                raw = await self.snapshot.capture(step=index)
                fragment = self._crop_fragment(raw, index, step_count, metrics, density)
                fragments.append(fragment)
                step_advances.append(metrics.viewport_height - fragment.overlap_trim)
                if self.sink is not None:
                    with ErrorContext(f"saving fragment {index}", raise_as=SinkWriteError):
                        self.sink.save_fragment(fragment)

                if index == step_count:
                    break

                self._transition(CaptureState.SCROLLING)
                amount = min(
                    metrics.viewport_height,
                    metrics.total_scrollable_height - self.scroll.state.offset,
                )
                scroll_amounts.append(amount)
                _, exhausted = await self.scroll.scroll_and_settle(amount)
                if exhausted:
                    logger.info(
                        f"[ScreenshotStitcher] Page exhausted after {len(fragments)} of {step_count} steps"
                    )
                    break

                # Hidden only after the first scroll so the first fragment keeps the header
                if index == 1:
                    hidden_confirmed = await self._hide_elements(hidden_selectors)

        except Exception as e:
            logger.error(f"[ScreenshotStitcher] Capture failed in state {self.state.value}: {e}")
            await self._restore_elements(hidden_selectors, failing=True)
            self._transition(CaptureState.FAILED)
            raise

        try:
            restored_confirmed = await self._restore_elements(hidden_selectors, failing=False)
        except Exception:
            self._transition(CaptureState.FAILED)
            raise
        self._transition(CaptureState.DONE)

        duration_ms = int((time.time() - start_time) * 1000)
        logger.info(f"[ScreenshotStitcher] Captured {len(fragments)} fragment(s) in {duration_ms}ms")

        return CaptureReport(
            fragments=fragments,
            metrics=metrics,
            density=density,
            step_count=step_count,
            scroll_amounts=scroll_amounts,
            step_advances=step_advances,
            exhausted=exhausted,
            hidden_confirmed=hidden_confirmed,
            restored_confirmed=restored_confirmed,
            states=list(self.states),
            duration_ms=duration_ms,
        )

    async def capture_full_page(self, hidden_selectors: str = "",
                                cancel_event: Optional[asyncio.Event] = None) -> CaptureResult:
        """
        Capture the whole page and return one composite PNG.

        The composite is also written to the sink when one is attached.
        """
        report = await self.capture_fragments(hidden_selectors, cancel_event)
        image = self.composer.combine(report.fragments)
        width, height = image_size(image)

        path = None
        if self.sink is not None:
            with ErrorContext("saving composite", raise_as=SinkWriteError):
                path = self.sink.save_composite(image)

        logger.info(f"[ScreenshotStitcher] Complete: {width}x{height} from {len(report.fragments)} fragment(s)")
        return CaptureResult(image=image, width=width, height=height, report=report, path=path)
