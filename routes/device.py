"""
Device Routes - Connected Device Detection

Reports the device the next capture will run on and re-runs detection on
demand (after plugging in another phone).
"""

from fastapi import APIRouter
import logging

from device_info import detect_device
from routes import get_deps
from utils.error_handler import create_success_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/device", tags=["device"])


@router.get("")
async def get_device():
    """Last detected device"""
    deps = get_deps()
    return create_success_response(data=deps.device_info.model_dump(mode="json"))


@router.post("/detect")
async def redetect_device():
    """Detect the connected device again and remember it for later captures"""
    deps = get_deps()
    logger.info("[API] Detecting device...")
    deps.device_info = await detect_device()
    message = (
        f"{deps.device_info.os.value} device detected"
        if deps.device_info.connected
        else "No device detected"
    )
    return create_success_response(data=deps.device_info.model_dump(mode="json"), message=message)
