"""Built-in tool registry for the tool call scheduler."""

from __future__ import annotations

import logging
from typing import Any

from .base import BaseTool, ModifyContext, ToolError, ToolErrorType, ToolResult, is_modifiable
from .session import ToolSession

__all__ = [
    "BaseTool",
    "ModifyContext",
    "ToolError",
    "ToolErrorType",
    "ToolRegistry",
    "ToolResult",
    "ToolSession",
    "is_modifiable",
    "register_default_tools",
]

logger = logging.getLogger(__name__)


class ToolRegistry:
    """Name -> tool lookup, plus the function declarations handed to the model."""

    def __init__(self) -> None:
        self._tools: dict[str, BaseTool] = {}

    def register(self, tool: BaseTool) -> None:
        if tool.name in self._tools:
            logger.warning("Tool %r is already registered; overwriting", tool.name)
        self._tools[tool.name] = tool

    def get_tool(self, name: str) -> BaseTool | None:
        return self._tools.get(name)

    def has_tool(self, name: str) -> bool:
        return name in self._tools

    def get_function_declarations(self) -> list[dict[str, Any]]:
        return [tool.definition for tool in self._tools.values()]

    def get_openai_tools(self) -> list[dict[str, Any]]:
        return [
            {
                "type": "function",
                "function": {
                    "name": name,
                    "description": tool.description,
                    "parameters": tool.parameters,
                },
            }
            for name, tool in self._tools.items()
        ]

    def list_tools(self) -> list[str]:
        return list(self._tools.keys())


def register_default_tools(registry: ToolRegistry, session: ToolSession) -> None:
    """Register all built-in tools against one session."""
    from .bash import BashTool
    from .edit import EditFileTool
    from .glob_tool import GlobTool
    from .grep import GrepTool
    from .read import ReadFileTool
    from .web_fetch import WebFetchTool
    from .write import WriteFileTool

    for tool_cls in [ReadFileTool, WriteFileTool, EditFileTool, BashTool, GlobTool, GrepTool, WebFetchTool]:
        registry.register(tool_cls(session))
