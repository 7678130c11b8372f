"""
Page Stitcher - FastAPI Server
Version: 0.1.0

Full-page screenshots of mobile browsers driven through Appium.
"""

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from device_info import detect_device
from routes import RouteDependencies, set_dependencies
from routes import device as device_routes
from routes import health as health_routes
from routes import screenshot as screenshot_routes
from ss_modules import __version__
from webdriver_bridge import WebDriverBridge

# Configuration
APPIUM_SERVER_URL = os.getenv("APPIUM_SERVER_URL", "http://127.0.0.1:4723")
BASE_DIR = Path.home() / ".page-stitcher"
SCREENSHOT_DIR = Path(os.getenv("SCREENSHOT_DIR", str(BASE_DIR / "screenshots")))
LOG_DIR = Path(os.getenv("LOG_DIR", str(BASE_DIR / "log")))
LOG_FILE_NAME = "page_stitcher.log"
LOG_ROTATE_SIZE = 3 * 1024 * 1024
LOG_ROTATE_COUNT = 3
LOG_FORMAT = '[%(asctime)s] %(levelname)s - %(message)s'

logger = logging.getLogger(__name__)


def setup_logging(log_dir: Path = LOG_DIR, level: int = logging.INFO) -> None:
    """Console logging plus a size-rotated log file under log_dir."""
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    try:
        log_dir.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.warning(f"[Server] Cannot create log directory {log_dir}: {e}; logging to console only")
        return

    file_handler = RotatingFileHandler(
        log_dir / LOG_FILE_NAME,
        maxBytes=LOG_ROTATE_SIZE,
        backupCount=LOG_ROTATE_COUNT,
        encoding="utf-8",
    )
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, '%Y-%m-%d %H:%M:%S'))
    logging.getLogger().addHandler(file_handler)


def create_bridge(session) -> WebDriverBridge:
    """New WebDriver bridge for one capture session"""
    return WebDriverBridge(
        APPIUM_SERVER_URL,
        page_load_timeout=session.page_load_timeout,
        page_load_poll_interval=session.page_load_poll_interval,
    )


# Create FastAPI app
app = FastAPI(
    title="Page Stitcher API",
    version=__version__,
    description="Full-page screenshots of mobile browsers via Appium"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Allow all origins (localhost development)
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Add validation error handler to log detailed errors
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Log and return detailed validation errors"""
    logger.error("[VALIDATION ERROR] Request validation failed")
    logger.error(f"[VALIDATION ERROR] URL: {request.url}")
    logger.error(f"[VALIDATION ERROR] Errors: {exc.errors()}")

    return JSONResponse(
        status_code=422,
        content={
            "success": False,
            "detail": jsonable_encoder(exc.errors()),
        }
    )


app.include_router(health_routes.router)
app.include_router(device_routes.router)
app.include_router(screenshot_routes.router)


@app.on_event("startup")
async def startup_event():
    """Detect the connected device and wire route dependencies"""
    logger.info(f"[Server] Starting Page Stitcher v{__version__}")
    logger.info(f"[Server] Appium server: {APPIUM_SERVER_URL}")
    logger.info(f"[Server] Screenshots: {SCREENSHOT_DIR}")

    device = await detect_device()
    if not device.connected:
        logger.warning("[Server] No device connected; detection will run again on the first capture")

    set_dependencies(RouteDependencies(
        screenshot_dir=SCREENSHOT_DIR,
        bridge_factory=create_bridge,
        appium_server_url=APPIUM_SERVER_URL,
        version=__version__,
        device_info=device,
    ))


@app.on_event("shutdown")
async def shutdown_event():
    logger.info("[Server] Shutting down Page Stitcher...")


if __name__ == "__main__":
    setup_logging()

    port = int(os.getenv("PORT", 3000))

    logger.info(f"Starting Page Stitcher v{__version__}")
    logger.info(f"Server: http://localhost:{port}")
    logger.info(f"API: http://localhost:{port}/api")

    uvicorn.run(
        app,
        host="0.0.0.0",
        port=port,
        log_level="info"
    )
