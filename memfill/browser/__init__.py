"""Page-interaction sessions."""
from .browser_paths import detect_installed_browsers, find_browser_executable, resolve_browser_executable
from .page_session import ActResult, ObservedElement, PageSession, PlaywrightPageSession

__all__ = [
    "PageSession",
    "PlaywrightPageSession",
    "ActResult",
    "ObservedElement",
    "detect_installed_browsers",
    "find_browser_executable",
    "resolve_browser_executable",
]
