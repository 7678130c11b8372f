"""
API Routes Package

Routers receive shared state through get_deps(); server.py fills the
container at startup with set_dependencies().
"""

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from device_info import DeviceInfo


@dataclass
class RouteDependencies:
    """Shared state for all routers"""
    screenshot_dir: Path
    bridge_factory: Callable
    appium_server_url: str = ""
    version: str = "0.1.0"
    device_info: DeviceInfo = field(default_factory=DeviceInfo)
    capture_lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    cancel_event: Optional[asyncio.Event] = None


_deps: Optional[RouteDependencies] = None


def set_dependencies(deps: RouteDependencies) -> None:
    global _deps
    _deps = deps


def get_deps() -> RouteDependencies:
    if _deps is None:
        raise RuntimeError("Route dependencies not initialized")
    return _deps
