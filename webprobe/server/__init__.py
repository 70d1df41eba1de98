"""MCP browser tool server."""

from .tools import register_web_automation_tools
from .server import BrowserToolServer, build_server, run_stdio, SERVER_NAME

__all__ = [
    "register_web_automation_tools",
    "BrowserToolServer",
    "build_server",
    "run_stdio",
    "SERVER_NAME",
]
