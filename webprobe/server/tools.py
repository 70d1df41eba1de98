"""
Browser tool declarations.

Each tool maps one-to-one onto a session primitive; ``probe_video`` runs the
video probe on the shared page.
"""

from typing import Any, Dict, List, Optional

from mcp.types import Tool


def _schema(properties: Dict[str, Any], required: Optional[List[str]] = None) -> Dict[str, Any]:
    schema = {"type": "object", "properties": properties}
    if required:
        schema["required"] = required
    return schema


SELECTOR = {"type": "string", "description": "CSS selector of the target element"}


def register_web_automation_tools() -> List[Tool]:
    """Return the tools exposed by the browser tool server."""
    return [
        Tool(
            name="navigate",
            description="Navigate the browser to a URL",
            inputSchema=_schema(
                {"url": {"type": "string", "description": "URL to open"}}, ["url"]
            ),
        ),
        Tool(
            name="click",
            description="Click an element",
            inputSchema=_schema({"selector": SELECTOR}, ["selector"]),
        ),
        Tool(
            name="type",
            description="Replace the value of an input element with text",
            inputSchema=_schema(
                {
                    "selector": SELECTOR,
                    "text": {"type": "string", "description": "Text to enter"},
                },
                ["selector", "text"],
            ),
        ),
        Tool(
            name="screenshot",
            description="Capture a PNG screenshot of the current page",
            inputSchema=_schema(
                {
                    "filename": {
                        "type": "string",
                        "description": "File name inside the screenshots directory",
                    },
                    "full_page": {
                        "type": "boolean",
                        "description": "Capture the full scrollable page",
                        "default": False,
                    },
                }
            ),
        ),
        Tool(
            name="get_text",
            description="Return the visible text of an element",
            inputSchema=_schema({"selector": SELECTOR}, ["selector"]),
        ),
        Tool(
            name="wait_for_element",
            description="Wait until an element is visible",
            inputSchema=_schema(
                {
                    "selector": SELECTOR,
                    "timeout": {
                        "type": "integer",
                        "description": "Timeout in milliseconds",
                        "default": 30000,
                    },
                },
                ["selector"],
            ),
        ),
        Tool(
            name="fill_form",
            description="Fill several inputs at once",
            inputSchema=_schema(
                {
                    "fields": {
                        "type": "object",
                        "description": "Mapping of CSS selector to value",
                        "additionalProperties": {"type": "string"},
                    }
                },
                ["fields"],
            ),
        ),
        Tool(
            name="select_option",
            description="Select an option of a <select> element by its label",
            inputSchema=_schema(
                {
                    "selector": SELECTOR,
                    "value": {"type": "string", "description": "Visible option text"},
                },
                ["selector", "value"],
            ),
        ),
        Tool(
            name="hover",
            description="Move the mouse over an element",
            inputSchema=_schema({"selector": SELECTOR}, ["selector"]),
        ),
        Tool(
            name="scroll_to",
            description="Scroll an element into view, or scroll to page coordinates",
            inputSchema=_schema(
                {
                    "selector": SELECTOR,
                    "x": {"type": "number", "description": "Horizontal offset"},
                    "y": {"type": "number", "description": "Vertical offset"},
                }
            ),
        ),
        Tool(
            name="get_page_title",
            description="Return the title of the current page",
            inputSchema=_schema({}),
        ),
        Tool(
            name="get_current_url",
            description="Return the URL of the current page",
            inputSchema=_schema({}),
        ),
        Tool(
            name="refresh_page",
            description="Reload the current page",
            inputSchema=_schema({}),
        ),
        Tool(
            name="go_back",
            description="Go back in browser history",
            inputSchema=_schema({}),
        ),
        Tool(
            name="go_forward",
            description="Go forward in browser history",
            inputSchema=_schema({}),
        ),
        Tool(
            name="probe_video",
            description=(
                "Check whether a video on the page actually plays. Returns the "
                "probe result as JSON."
            ),
            inputSchema=_schema(
                {
                    "url": {
                        "type": "string",
                        "description": "Page to load first; the current page is used when omitted",
                    },
                    "wait_for_player_ms": {
                        "type": "integer",
                        "description": "How long to look for a player",
                        "default": 12000,
                    },
                    "strict": {
                        "type": "boolean",
                        "description": "Report failures instead of skips",
                    },
                }
            ),
        ),
    ]
