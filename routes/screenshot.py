"""
Screenshot Routes - Full-Page Capture

Opens the URL in the device browser, captures the whole page and stores the
composite under the screenshot directory. One capture runs at a time.
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter
from pydantic import BaseModel, Field

from device_info import detect_device
from routes import get_deps
from screenshot_stitcher import ScreenshotStitcher
from ss_modules import CaptureResult, CaptureSession, DeviceNotFoundError, FragmentSink
from utils.error_handler import (
    CaptureInProgressError,
    create_success_response,
    handle_api_error,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/screenshot", tags=["screenshot"])


# Request models
class ScreenshotRequest(BaseModel):
    url: str = Field(..., min_length=1)
    hidden_elements: str = ""  # comma-separated CSS selectors
    browser: str = "chrome"
    use_auth: bool = False
    username: Optional[str] = None
    password: Optional[str] = None


async def run_capture(request: ScreenshotRequest, cancel_event: asyncio.Event) -> CaptureResult:
    """Connect, navigate, capture and always close the WebDriver session."""
    deps = get_deps()

    device = deps.device_info
    if not device.connected:
        device = await detect_device()
        deps.device_info = device
    if not device.connected:
        raise DeviceNotFoundError()

    session = CaptureSession.from_env()
    if session.density is None:
        session = session.model_copy(update={"density": device.density})

    bridge = deps.bridge_factory(session)
    try:
        await bridge.connect(request.browser, device)
        if request.use_auth:
            await bridge.navigate(request.url, request.username, request.password)
        else:
            await bridge.navigate(request.url)

        stitcher = ScreenshotStitcher(bridge, session, sink=FragmentSink(deps.screenshot_dir))
        return await stitcher.capture_full_page(request.hidden_elements, cancel_event=cancel_event)
    finally:
        await bridge.quit()


@router.post("")
async def take_screenshot(request: ScreenshotRequest):
    """Capture a full-page screenshot of the given URL"""
    deps = get_deps()
    if deps.capture_lock.locked():
        return handle_api_error(CaptureInProgressError())

    async with deps.capture_lock:
        deps.cancel_event = asyncio.Event()
        try:
            logger.info(f"[API] Screenshot requested ({request.browser}, hidden: '{request.hidden_elements}')")
            result = await run_capture(request, deps.cancel_event)
        except Exception as e:
            logger.error(f"[API] Screenshot failed: {e}")
            return handle_api_error(e)
        finally:
            deps.cancel_event = None

    return create_success_response(
        data={
            "path": str(result.path) if result.path else None,
            "width": result.width,
            "height": result.height,
            "fragment_count": len(result.report.fragments),
            "metadata": result.report.to_metadata(),
        },
        message="Screenshot saved",
    )


@router.post("/cancel")
async def cancel_screenshot():
    """Stop the running capture before its next step"""
    deps = get_deps()
    if deps.cancel_event is None:
        return create_success_response(data={"cancelled": False}, message="No capture running")

    deps.cancel_event.set()
    logger.info("[API] Capture cancellation requested")
    return create_success_response(data={"cancelled": True})
