"""
MCP browser tool server.

``BrowserToolServer`` forwards tool calls to the shared browser page;
``build_server`` wires it onto an MCP ``Server`` and ``run_stdio`` serves it
over stdin/stdout.
"""

import asyncio
import base64
import json
import logging
import time
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union

import mcp.server.stdio
from mcp.server import Server
from mcp.types import ImageContent, TextContent, Tool

from ..browser.manager import BrowserManager
from ..browser.session import PlaywrightSession
from ..core.config import Config
from ..core.exceptions import ToolExecutionError, WebProbeError
from ..core.logging_config import log_tool_call
from ..probe.models import ProbeTimings
from ..probe.probe import VideoProbe
from .tools import register_web_automation_tools


SERVER_NAME = "webprobe-browser"

Content = Union[TextContent, ImageContent]
Handler = Callable[[PlaywrightSession, Dict[str, Any]], Awaitable[List[Content]]]


def _text(message: str) -> List[Content]:
    return [TextContent(type="text", text=message)]


class BrowserToolServer:
    """
    Dispatches tool calls onto the manager's page.

    Calls are serialized with a lock because every tool shares one page.
    """

    def __init__(
        self,
        manager: BrowserManager,
        logger: Optional[logging.Logger] = None,
        probe_timings: Optional[ProbeTimings] = None,
    ):
        self.manager = manager
        self.logger = logger or logging.getLogger(__name__)
        self.probe_timings = probe_timings
        self._lock = asyncio.Lock()
        self._handlers: Dict[str, Handler] = {
            "navigate": self._navigate,
            "click": self._click,
            "type": self._type,
            "screenshot": self._screenshot,
            "get_text": self._get_text,
            "wait_for_element": self._wait_for_element,
            "fill_form": self._fill_form,
            "select_option": self._select_option,
            "hover": self._hover,
            "scroll_to": self._scroll_to,
            "get_page_title": self._get_page_title,
            "get_current_url": self._get_current_url,
            "refresh_page": self._refresh_page,
            "go_back": self._go_back,
            "go_forward": self._go_forward,
            "probe_video": self._probe_video,
        }

    def list_tools(self) -> List[Tool]:
        return register_web_automation_tools()

    async def call_tool(
        self, name: str, arguments: Optional[Dict[str, Any]] = None
    ) -> List[Content]:
        """
        Execute one tool.

        Args:
            name: Tool name
            arguments: Tool arguments

        Returns:
            MCP content blocks describing the outcome

        Raises:
            ToolExecutionError: If the tool is unknown, an argument is missing
                or the browser call fails
        """
        arguments = arguments or {}
        handler = self._handlers.get(name)
        if handler is None:
            raise ToolExecutionError(
                f"Unknown tool: {name}", tool_name=name, arguments=arguments
            )

        start_time = time.time()
        try:
            async with self._lock:
                session = await self.manager.get_session()
                content = await handler(session, arguments)
        except ToolExecutionError as e:
            log_tool_call(
                self.logger, name, time.time() - start_time, False, error=e.message
            )
            raise
        except Exception as e:
            log_tool_call(
                self.logger, name, time.time() - start_time, False, error=str(e)
            )
            message = e.message if isinstance(e, WebProbeError) else str(e)
            raise ToolExecutionError(
                f"Tool execution failed: {message}", tool_name=name, arguments=arguments
            )

        log_tool_call(self.logger, name, time.time() - start_time, True)
        return content

    @staticmethod
    def _require(name: str, arguments: Dict[str, Any], *keys: str) -> List[Any]:
        missing = [key for key in keys if arguments.get(key) is None]
        if missing:
            raise ToolExecutionError(
                f"Missing required argument(s) for {name}: {', '.join(missing)}",
                tool_name=name,
                arguments=arguments,
            )
        return [arguments[key] for key in keys]

    async def _navigate(self, session, arguments):
        (url,) = self._require("navigate", arguments, "url")
        await session.navigate(url)
        return _text(f"Navigated to {url}")

    async def _click(self, session, arguments):
        (selector,) = self._require("click", arguments, "selector")
        await session.click_selector(selector)
        return _text(f"Clicked element: {selector}")

    async def _type(self, session, arguments):
        selector, text = self._require("type", arguments, "selector", "text")
        await session.type_text(selector, text)
        return _text(f"Typed text into element: {selector}")

    async def _screenshot(self, session, arguments):
        path, data = await self.manager.take_screenshot(
            arguments.get("filename"), full_page=bool(arguments.get("full_page", False))
        )
        return [
            TextContent(type="text", text=f"Screenshot saved: {path}"),
            ImageContent(
                type="image",
                data=base64.b64encode(data).decode("ascii"),
                mimeType="image/png",
            ),
        ]

    async def _get_text(self, session, arguments):
        (selector,) = self._require("get_text", arguments, "selector")
        return _text(await session.get_text(selector))

    async def _wait_for_element(self, session, arguments):
        (selector,) = self._require("wait_for_element", arguments, "selector")
        timeout = int(arguments.get("timeout", 30000))
        await session.wait_for_element(selector, timeout=timeout)
        return _text(f"Element is visible: {selector}")

    async def _fill_form(self, session, arguments):
        (fields,) = self._require("fill_form", arguments, "fields")
        if not isinstance(fields, dict):
            raise ToolExecutionError(
                "fill_form expects 'fields' to map selectors to values",
                tool_name="fill_form",
                arguments=arguments,
            )
        for selector, value in fields.items():
            await session.type_text(selector, str(value))
        return _text(f"Filled {len(fields)} form field(s)")

    async def _select_option(self, session, arguments):
        selector, value = self._require("select_option", arguments, "selector", "value")
        await session.select_option(selector, value)
        return _text(f"Selected '{value}' in {selector}")

    async def _hover(self, session, arguments):
        (selector,) = self._require("hover", arguments, "selector")
        await session.hover(selector)
        return _text(f"Hovered over element: {selector}")

    async def _scroll_to(self, session, arguments):
        selector = arguments.get("selector")
        await session.scroll_to(selector, arguments.get("x"), arguments.get("y"))
        if selector:
            return _text(f"Scrolled to element: {selector}")
        return _text(f"Scrolled to ({arguments['x']}, {arguments['y']})")

    async def _get_page_title(self, session, arguments):
        return _text(await session.title())

    async def _get_current_url(self, session, arguments):
        return _text(await session.get_current_url())

    async def _refresh_page(self, session, arguments):
        await session.reload()
        return _text("Page refreshed")

    async def _go_back(self, session, arguments):
        await session.go_back()
        return _text("Navigated back")

    async def _go_forward(self, session, arguments):
        await session.go_forward()
        return _text("Navigated forward")

    async def _probe_video(self, session, arguments):
        strict = arguments.get("strict")
        options = {
            "target_url": arguments.get("url"),
            "player_detection_timeout_ms": arguments.get(
                "wait_for_player_ms", self.manager.config.player_detection_timeout_ms
            ),
            "strict_mode": self.manager.config.strict_video if strict is None else strict,
        }
        result = await VideoProbe(session, timings=self.probe_timings).run(options)
        return _text(json.dumps(result.to_dict(), indent=2))


def build_server(tool_server: BrowserToolServer) -> Server:
    """Create an MCP server exposing ``tool_server``'s tools."""
    server = Server(SERVER_NAME)

    @server.list_tools()
    async def handle_list_tools() -> List[Tool]:
        return tool_server.list_tools()

    @server.call_tool()
    async def handle_call_tool(name: str, arguments: Optional[Dict[str, Any]]) -> List[Content]:
        return await tool_server.call_tool(name, arguments)

    return server


async def run_stdio(config: Config) -> None:
    """Serve the browser tools over stdio until the client disconnects."""
    logger = logging.getLogger(__name__)
    manager = BrowserManager(config)
    server = build_server(BrowserToolServer(manager))

    logger.info(f"Starting {SERVER_NAME} MCP server on stdio")
    try:
        async with mcp.server.stdio.stdio_server() as (read_stream, write_stream):
            await server.run(
                read_stream, write_stream, server.create_initialization_options()
            )
    finally:
        await manager.close()
        logger.info(f"{SERVER_NAME} MCP server stopped")
