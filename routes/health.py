"""
Health Routes - System Health Check

Provides health check endpoint for monitoring server status.
"""

from fastapi import APIRouter
import logging
from routes import get_deps

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["health"])


@router.api_route("/health", methods=["GET", "HEAD"])
async def health_check():
    """
    Health check endpoint

    Returns server status, version, device OS and whether a capture is running.
    Supports both GET and HEAD methods for Docker health checks.
    """
    deps = get_deps()

    return {
        "status": "ok",
        "version": deps.version,
        "message": "Page Stitcher is running",
        "device_os": deps.device_info.os.value,
        "capture_running": deps.capture_lock.locked(),
        "appium_server_url": deps.appium_server_url,
    }
