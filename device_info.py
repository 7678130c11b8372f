"""
Page Stitcher - Device Info
Detects the USB-connected phone that Appium will drive:
- OS (Android via `adb devices`, iOS via `idevice_id -l`)
- Density scale (Android: physical dpi / 160, iOS: fixed 2.0)
- iOS UDID and product version for XCUITest capabilities
"""

import asyncio
import logging
import subprocess
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel

logger = logging.getLogger(__name__)

MDPI_BASE_DENSITY = 160.0
DEFAULT_ANDROID_DENSITY = 480.0 / MDPI_BASE_DENSITY
IOS_DENSITY = 2.0
UNKNOWN_DENSITY = 1.0
COMMAND_TIMEOUT = 5


class DeviceOS(str, Enum):
    ANDROID = "Android"
    IOS = "iOS"
    UNKNOWN = "Unknown"


class DeviceInfo(BaseModel):
    """Connected device as seen by the host"""
    os: DeviceOS = DeviceOS.UNKNOWN
    density: float = UNKNOWN_DENSITY
    udid: Optional[str] = None
    os_version: Optional[str] = None

    @property
    def connected(self) -> bool:
        return self.os != DeviceOS.UNKNOWN


async def _run(cmd: List[str]) -> Optional[str]:
    """Run a host tool; None when it is missing, times out or fails."""
    def _run_cmd():
        return subprocess.run(cmd, capture_output=True, text=True, timeout=COMMAND_TIMEOUT)

    try:
        result = await asyncio.to_thread(_run_cmd)
    except FileNotFoundError:
        logger.debug(f"[DeviceInfo] {cmd[0]} not installed")
        return None
    except subprocess.TimeoutExpired:
        logger.warning(f"[DeviceInfo] {' '.join(cmd)} timed out")
        return None

    if result.returncode != 0:
        logger.debug(f"[DeviceInfo] {' '.join(cmd)} failed: {result.stderr.strip()}")
        return None
    return result.stdout


def parse_adb_devices(output: str) -> List[str]:
    """Serials of devices in the `device` state."""
    serials = []
    for line in output.split('\n')[1:]:
        parts = line.strip().split()
        if len(parts) >= 2 and parts[1] == "device":
            serials.append(parts[0])
    return serials


def parse_physical_density(output: str) -> Optional[float]:
    """Density scale from `wm density` output, e.g. 'Physical density: 420'."""
    for line in output.splitlines():
        if "Physical density:" in line:
            try:
                return float(line.split()[-1]) / MDPI_BASE_DENSITY
            except ValueError:
                return None
    return None


async def get_android_density() -> float:
    output = await _run(["adb", "shell", "wm", "density"])
    density = parse_physical_density(output) if output else None
    if density is None:
        logger.warning(f"[DeviceInfo] Could not read Android density, using {DEFAULT_ANDROID_DENSITY}")
        return DEFAULT_ANDROID_DENSITY
    logger.info(f"[DeviceInfo] Android Physical Density: {density:.1f}")
    return density


async def get_ios_udid() -> Optional[str]:
    output = await _run(["idevice_id", "-l"])
    if not output or not output.strip():
        return None
    # One UDID per line; the first connected device wins
    return output.strip().splitlines()[0].strip()


async def get_ios_version() -> Optional[str]:
    output = await _run(["ideviceinfo", "-k", "ProductVersion"])
    if not output:
        return None
    version = output.strip()
    logger.info(f"[DeviceInfo] iOS version: {version}")
    return version or None


async def detect_device() -> DeviceInfo:
    """
    Detect the first connected device.

    Android is checked before iOS. Missing host tools count as no device.

    Returns:
        DeviceInfo; os is UNKNOWN when nothing is connected
    """
    output = await _run(["adb", "devices"])
    if output and parse_adb_devices(output):
        density = await get_android_density()
        logger.info(f"[DeviceInfo] Device detected: Android (density {density})")
        return DeviceInfo(os=DeviceOS.ANDROID, density=density)

    udid = await get_ios_udid()
    if udid:
        version = await get_ios_version()
        logger.info(f"[DeviceInfo] Device detected: iOS {version} ({udid})")
        return DeviceInfo(os=DeviceOS.IOS, density=IOS_DENSITY, udid=udid, os_version=version)

    logger.info("[DeviceInfo] No device detected")
    return DeviceInfo()
