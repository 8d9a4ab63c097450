"""Tools discovered from a connected MCP server."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import TYPE_CHECKING, Any

from mcp import types as mcp_types
from pydantic import BaseModel, ConfigDict

from .base import BaseTool, LiveOutputCallback, ToolError, ToolResult
from .confirmation import ConfirmationDetails, ConfirmationOutcome, ConfirmationPayload, McpConfirmationDetails
from .session import ToolSession

if TYPE_CHECKING:
    from mcp import ClientSession

    from . import ToolRegistry

logger = logging.getLogger(__name__)


class McpArgs(BaseModel):
    model_config = ConfigDict(extra="allow")


def convert_mcp_content(content: list[Any]) -> list[dict[str, Any]]:
    """Map MCP content blocks onto conversation wire parts."""
    parts: list[dict[str, Any]] = []
    for item in content:
        if isinstance(item, mcp_types.TextContent):
            parts.append({"text": item.text})
        elif isinstance(item, (mcp_types.ImageContent, mcp_types.AudioContent)):
            parts.append({"inlineData": {"mimeType": item.mimeType, "data": item.data}})
        elif isinstance(item, mcp_types.EmbeddedResource):
            resource = item.resource
            mime = resource.mimeType or "application/octet-stream"
            if isinstance(resource, mcp_types.TextResourceContents):
                parts.append({"text": resource.text})
            else:
                parts.append({"inlineData": {"mimeType": mime, "data": resource.blob}})
        elif isinstance(item, mcp_types.ResourceLink):
            parts.append({"fileData": {"mimeType": item.mimeType or "application/octet-stream", "fileUri": str(item.uri)}})
        else:
            parts.append({"text": str(item)})
    return parts


def _display_text(parts: list[dict[str, Any]]) -> str:
    if all("text" in p for p in parts):
        return "".join(p["text"] for p in parts)
    return "```json\n" + json.dumps(parts, indent=2) + "\n```"


class McpTool(BaseTool):
    """One tool exposed by an MCP server, wrapped so the scheduler can run it."""

    params_model = McpArgs
    can_update_output = False

    def __init__(
        self,
        client: ClientSession,
        server_name: str,
        server_tool_name: str,
        description: str,
        input_schema: dict[str, Any] | None,
        session: ToolSession,
        name: str | None = None,
        trust: bool = False,
    ) -> None:
        super().__init__(session)
        self.client = client
        self.server_name = server_name
        self.server_tool_name = server_tool_name
        self.name = name or server_tool_name
        self.display_name = f"{self.name} ({server_name} MCP Server)"
        self.description = description
        self.input_schema = input_schema or {"type": "object", "properties": {}}
        self.trust = trust

    @property
    def parameters(self) -> dict[str, Any]:
        return self.input_schema

    def check_params(self, params: McpArgs) -> str | None:
        provided = params.model_dump()
        missing = [key for key in self.input_schema.get("required", []) if key not in provided]
        if missing:
            return f"Invalid parameters: missing required argument(s): {', '.join(missing)}"
        return None

    async def should_confirm_execute(
        self, args: dict[str, Any], cancel_event: asyncio.Event
    ) -> ConfirmationDetails | None:
        if self.trust:
            return None
        allowlist = self.session.allowlist
        if allowlist.is_server_allowed(self.server_name) or allowlist.is_tool_allowed(self.name):
            return None
        verdict = self.session.check_safety(self.name, args, self.tier)
        if verdict is None or not verdict.needs_approval:
            return None
        return McpConfirmationDetails(
            title="Confirm MCP Tool Execution",
            server_name=self.server_name,
            tool_name=self.server_tool_name,
            tool_display_name=self.name,
            on_confirm=self._on_confirm,
        )

    async def _on_confirm(self, outcome: ConfirmationOutcome, payload: ConfirmationPayload | None = None) -> None:
        if outcome == ConfirmationOutcome.PROCEED_ALWAYS_SERVER:
            self.session.allowlist.allow_server(self.server_name)
        elif outcome in (ConfirmationOutcome.PROCEED_ALWAYS_TOOL, ConfirmationOutcome.PROCEED_ALWAYS):
            self.session.allowlist.allow_tool(self.name)

    async def execute(
        self,
        args: dict[str, Any],
        cancel_event: asyncio.Event,
        update_output: LiveOutputCallback | None = None,
    ) -> ToolResult:
        result = await self.client.call_tool(self.server_tool_name, args)
        parts = convert_mcp_content(list(result.content))
        if getattr(result, "structuredContent", None) and not parts:
            parts = [{"text": json.dumps(result.structuredContent)}]

        if result.isError:
            message = _display_text(parts) if parts else f"MCP tool '{self.server_tool_name}' reported an error"
            return ToolResult(llm_content=parts, display_summary=message, error=ToolError(message))
        return ToolResult(llm_content=parts, display_summary=_display_text(parts))


async def discover_mcp_tools(
    registry: ToolRegistry,
    server_name: str,
    client: ClientSession,
    tool_session: ToolSession,
    trust: bool = False,
) -> list[McpTool]:
    """List the tools of an initialized MCP client session and register them.

    A tool whose name collides with one already registered is exposed as
    ``<server>__<tool>``.
    """
    tools_result = await client.list_tools()
    discovered: list[McpTool] = []
    for tool in tools_result.tools:
        name = tool.name
        if registry.has_tool(name):
            name = f"{server_name}__{tool.name}"
        mcp_tool = McpTool(
            client,
            server_name=server_name,
            server_tool_name=tool.name,
            description=tool.description or "",
            input_schema=tool.inputSchema if hasattr(tool, "inputSchema") else {},
            session=tool_session,
            name=name,
            trust=trust,
        )
        registry.register(mcp_tool)
        discovered.append(mcp_tool)
    logger.info("MCP server '%s' registered %d tools", server_name, len(discovered))
    return discovered
