"""
Browser layer for webprobe.

Exposes the session capability the video probe runs against and the
Playwright-backed manager that owns the browser process.
"""

from .session import BrowserSession, PlaywrightSession
from .manager import BrowserManager

__all__ = [
    "BrowserSession",
    "PlaywrightSession",
    "BrowserManager",
]
