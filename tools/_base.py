"""Base types shared by all tool modules.

A ToolDef pairs a JSON-schema description of a tool with the async handler
that runs it. Handlers receive the raw argument dict and a ToolContext and
always return text.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable


@dataclass
class ToolContext:
    """Who is calling a tool, and from where."""

    user_id: str = "default"
    platform: str = "api"
    channel_id: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)


ToolHandler = Callable[[dict[str, Any], ToolContext], Awaitable[str]]


@dataclass
class ToolDef:
    """Definition of a single callable tool."""

    name: str
    description: str
    parameters: dict[str, Any]
    handler: ToolHandler
    platforms: list[str] | None = None  # None = all platforms
    requires: list[str] = field(default_factory=list)

    def to_openai_format(self) -> dict[str, Any]:
        """Render as an OpenAI function-calling tool."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }

    def to_mcp_format(self) -> dict[str, Any]:
        """Render as an MCP tool listing entry."""
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.parameters,
        }
