"""
Page Stitcher - WebDriver Bridge
Remote channel to the Appium server (W3C WebDriver):
- Capability profiles per device OS and browser
- Navigation with basic-auth URLs and page-load wait
- Script execution and viewport screenshots for the capture loop

Selenium calls are blocking, so they run in a worker thread and are
serialized with a lock; one session drives one remote surface at a time.
"""

import asyncio
import logging
import os
import platform
from typing import Any, Callable, Dict, Optional
from urllib.parse import quote, urlsplit, urlunsplit

from selenium import webdriver
from selenium.common.exceptions import WebDriverException
from selenium.webdriver.common.options import ArgOptions

from device_info import DeviceInfo, DeviceOS
from ss_modules import (
    DeviceNotFoundError,
    RemoteChannelError,
    UnsupportedBrowserError,
    wait_for_page_load,
)

logger = logging.getLogger(__name__)

APPIUM_SERVER_URL = os.getenv("APPIUM_SERVER_URL", "http://127.0.0.1:4723")
CHROMEDRIVER_PATH = os.getenv("CHROMEDRIVER_PATH", "")
DEVELOPMENT_TEAM = os.getenv("DEVELOPMENT_TEAM", "Unknown")

WDA_BUNDLE_ID = "com.facebook.WebDriverAgentRunner"
SAFARI_BUNDLE_ID = "com.apple.mobilesafari"
FIREFOX_ANDROID_PACKAGE = "org.mozilla.firefox"

SUPPORTED_BROWSERS = {
    DeviceOS.ANDROID: ("chrome", "firefox"),
    DeviceOS.IOS: ("safari", "chrome"),
}


def _host_platform() -> str:
    system = platform.system().lower()
    return "mac" if system == "darwin" else system


def build_capabilities(browser: str, device: DeviceInfo) -> Dict[str, Any]:
    """
    Build the Appium capability set for a browser on the detected device.

    Raises:
        DeviceNotFoundError: No device detected
        UnsupportedBrowserError: No profile for this browser on this OS
    """
    if not device.connected:
        raise DeviceNotFoundError()

    browser = browser.lower()
    if browser not in SUPPORTED_BROWSERS[device.os]:
        raise UnsupportedBrowserError(browser, device.os.value)

    caps: Dict[str, Any] = {"browserName": browser}

    if device.os == DeviceOS.IOS:
        caps.update({
            "platformName": "iOS",
            "appium:automationName": "XCUITest",
            "appium:udid": device.udid,
            "appium:deviceName": "iPhone",
            "appium:platformVersion": device.os_version,
            "appium:noReset": True,
            "appium:xcodeOrgId": DEVELOPMENT_TEAM,
            "appium:xcodeSigningId": "Developer ID Application",
            "appium:updatedWDABundleId": WDA_BUNDLE_ID,
            "appium:additionalWebviewBundleIds": [
                WDA_BUNDLE_ID,
                "com.google.chrome.ios",
                SAFARI_BUNDLE_ID,
            ],
            "appium:autoWebview": True,
        })
        if browser == "safari":
            caps["appium:bundleId"] = SAFARI_BUNDLE_ID
    elif browser == "firefox":
        # Gecko driver runs on the host and pushes Firefox to the device
        caps.update({
            "platformName": _host_platform(),
            "appium:automationName": "Gecko",
            "moz:firefoxOptions": {"androidPackage": FIREFOX_ANDROID_PACKAGE},
        })
    else:
        caps.update({
            "platformName": "Android",
            "appium:automationName": "UiAutomator2",
        })

    if browser == "chrome" and CHROMEDRIVER_PATH:
        caps["appium:chromedriverExecutable"] = CHROMEDRIVER_PATH

    return caps


def build_target_url(url: str, username: Optional[str] = None, password: Optional[str] = None) -> str:
    """
    Normalize a user-entered URL.

    Adds http:// when no scheme is given and embeds basic-auth credentials
    when a username is set.
    """
    url = url.strip()
    if not (url.startswith("http://") or url.startswith("https://")):
        url = f"http://{url}"

    if not username:
        return url

    parts = urlsplit(url)
    host = parts.netloc.rsplit("@", 1)[-1]
    credentials = quote(username, safe="")
    if password:
        credentials += f":{quote(password, safe='')}"
    return urlunsplit((parts.scheme, f"{credentials}@{host}", parts.path, parts.query, parts.fragment))


def _remote_driver(server_url: str, capabilities: Dict[str, Any]):
    options = ArgOptions()
    for name, value in capabilities.items():
        options.set_capability(name, value)
    return webdriver.Remote(command_executor=server_url, options=options)


class WebDriverBridge:
    """Async wrapper around one Appium WebDriver session"""

    def __init__(self, server_url: str = APPIUM_SERVER_URL,
                 driver_factory: Optional[Callable[[str, Dict[str, Any]], Any]] = None,
                 page_load_timeout: float = 10.0, page_load_poll_interval: float = 0.5):
        """
        Args:
            server_url: Appium server URL
            driver_factory: Creates the driver from (server_url, capabilities);
                defaults to selenium webdriver.Remote
            page_load_timeout: Seconds to wait for readyState 'complete'
            page_load_poll_interval: Seconds between readyState samples
        """
        self.server_url = server_url
        self._driver_factory = driver_factory or _remote_driver
        self.page_load_timeout = page_load_timeout
        self.page_load_poll_interval = page_load_poll_interval
        self.driver = None
        self._lock = asyncio.Lock()

    @property
    def connected(self) -> bool:
        return self.driver is not None

    async def _call(self, command: str, *args):
        if self.driver is None:
            raise RemoteChannelError("No active WebDriver session", command=command)
        async with self._lock:
            try:
                return await asyncio.to_thread(getattr(self.driver, command), *args)
            except WebDriverException as e:
                raise RemoteChannelError(f"{command} failed: {e.msg or e}", command=command) from e

    async def connect(self, browser: str, device: DeviceInfo) -> None:
        """Start a WebDriver session for ``browser`` on ``device``."""
        capabilities = build_capabilities(browser, device)
        logger.debug(f"[WebDriverBridge] Capabilities: {capabilities}")
        logger.info(f"[WebDriverBridge] Creating WebDriver for {browser} ({device.os.value})")

        async with self._lock:
            try:
                self.driver = await asyncio.to_thread(self._driver_factory, self.server_url, capabilities)
            except WebDriverException as e:
                raise RemoteChannelError(f"Failed to start WebDriver: {e.msg or e}", command="new_session") from e

        logger.info(f"[WebDriverBridge] Session started at {self.server_url}")

    async def navigate(self, url: str, username: Optional[str] = None, password: Optional[str] = None) -> str:
        """Open the URL and wait until the document is loaded. Returns the visited URL."""
        target = build_target_url(url, username, password)
        # Never log embedded credentials
        logger.info(f"[WebDriverBridge] Navigating to {build_target_url(url)}")
        await self._call("get", target)
        await wait_for_page_load(
            self,
            url=build_target_url(url),
            timeout=self.page_load_timeout,
            interval=self.page_load_poll_interval,
        )
        return target

    async def execute_script(self, script: str, *args):
        return await self._call("execute_script", script, *args)

    async def screenshot(self) -> bytes:
        return await self._call("get_screenshot_as_png")

    async def quit(self) -> None:
        """End the session. Errors are logged; the bridge is closed either way."""
        if self.driver is None:
            return
        driver, self.driver = self.driver, None
        async with self._lock:
            try:
                await asyncio.to_thread(driver.quit)
                logger.info("[WebDriverBridge] Session closed")
            except WebDriverException as e:
                logger.warning(f"[WebDriverBridge] Failed to quit session: {e.msg or e}")
