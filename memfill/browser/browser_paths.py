"""Locating installed browsers and the persistent profile directory."""
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Literal, Optional

logger = logging.getLogger(__name__)

BrowserType = Literal["chrome", "edge", "brave", "chromium"]

DEFAULT_PROFILE_DIR = Path.home() / ".memfill" / "browser-profile"

_LOCAL_APP_DATA = os.environ.get("LOCALAPPDATA", "")


@dataclass(frozen=True)
class BrowserPaths:
    """Known install locations of one browser, per platform."""
    label: str
    paths: dict[str, tuple[str, ...]]


@dataclass(frozen=True)
class InstalledBrowser:
    type: BrowserType
    label: str
    executable_path: str


# Checked in this order when the preferred browser is "auto"
BROWSER_PATHS: dict[BrowserType, BrowserPaths] = {
    "chrome": BrowserPaths(
        label="Google Chrome",
        paths={
            "darwin": ("/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",),
            "win32": (
                r"C:\Program Files\Google\Chrome\Application\chrome.exe",
                r"C:\Program Files (x86)\Google\Chrome\Application\chrome.exe",
                rf"{_LOCAL_APP_DATA}\Google\Chrome\Application\chrome.exe",
            ),
            "linux": (
                "/usr/bin/google-chrome",
                "/usr/bin/google-chrome-stable",
                "/usr/local/bin/google-chrome",
            ),
        },
    ),
    "edge": BrowserPaths(
        label="Microsoft Edge",
        paths={
            "darwin": ("/Applications/Microsoft Edge.app/Contents/MacOS/Microsoft Edge",),
            "win32": (
                r"C:\Program Files (x86)\Microsoft\Edge\Application\msedge.exe",
                r"C:\Program Files\Microsoft\Edge\Application\msedge.exe",
                rf"{_LOCAL_APP_DATA}\Microsoft\Edge\Application\msedge.exe",
            ),
            "linux": ("/usr/bin/microsoft-edge", "/usr/bin/microsoft-edge-stable"),
        },
    ),
    "brave": BrowserPaths(
        label="Brave",
        paths={
            "darwin": ("/Applications/Brave Browser.app/Contents/MacOS/Brave Browser",),
            "win32": (
                rf"{_LOCAL_APP_DATA}\BraveSoftware\Brave-Browser\Application\brave.exe",
                r"C:\Program Files\BraveSoftware\Brave-Browser\Application\brave.exe",
            ),
            "linux": ("/usr/bin/brave-browser", "/usr/bin/brave-browser-stable"),
        },
    ),
    "chromium": BrowserPaths(
        label="Chromium",
        paths={
            "darwin": ("/Applications/Chromium.app/Contents/MacOS/Chromium",),
            "win32": (rf"{_LOCAL_APP_DATA}\Chromium\Application\chrome.exe",),
            "linux": ("/usr/bin/chromium", "/usr/bin/chromium-browser", "/snap/bin/chromium"),
        },
    ),
}


def _platform() -> str:
    return "linux" if sys.platform.startswith("linux") else sys.platform


def find_browser_executable(browser: BrowserType) -> Optional[str]:
    """Return the first existing executable of ``browser`` on this platform."""
    entry = BROWSER_PATHS[browser]
    for candidate in entry.paths.get(_platform(), ()):
        if Path(candidate).exists():
            logger.info(f"Found {entry.label} at {candidate}")
            return candidate
    logger.debug(f"{entry.label} not found on this system")
    return None


def detect_installed_browsers() -> list[InstalledBrowser]:
    installed = []
    for browser_type, entry in BROWSER_PATHS.items():
        executable = find_browser_executable(browser_type)
        if executable:
            installed.append(InstalledBrowser(browser_type, entry.label, executable))
    return installed


def resolve_browser_executable(preferred: str) -> Optional[str]:
    """Pick the executable to launch.

    Args:
        preferred: A browser type, "auto" for the first installed one, or
            "bundled" for Playwright's own Chromium.

    Returns:
        Executable path, or None to use the bundled Chromium.
    """
    if preferred == "bundled":
        return None
    if preferred != "auto":
        return find_browser_executable(preferred)

    installed = detect_installed_browsers()
    if installed:
        logger.info(f"Auto-detected browser: {installed[0].label}")
        return installed[0].executable_path
    return None


def get_user_data_dir(path: Optional[Path] = None) -> Path:
    """Return the persistent profile directory, creating it if needed."""
    user_data_dir = path or DEFAULT_PROFILE_DIR
    if not user_data_dir.exists():
        user_data_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"Created browser profile directory: {user_data_dir}")
    return user_data_dir
