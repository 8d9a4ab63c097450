"""Tests for services/executor.py (confirmation-free execution)."""

from __future__ import annotations

import asyncio
from typing import Any
from unittest.mock import MagicMock

import pytest
from pydantic import BaseModel

from foyer.services.executor import execute_tool_call
from foyer.services.function_response import response_output
from foyer.services.tool_calls import ToolCallRequest
from foyer.tools import ToolRegistry, ToolSession
from foyer.tools.base import BaseTool, ToolError, ToolErrorType, ToolResult


class _EchoParams(BaseModel):
    text: str


class EchoTool(BaseTool):
    name = "echo"
    display_name = "Echo"
    description = "Echo text back."
    params_model = _EchoParams

    def __init__(self, *, result: ToolResult | None = None, raises: Exception | None = None) -> None:
        super().__init__(ToolSession())
        self.result = result
        self.raises = raises
        self.calls = 0

    async def execute(self, args: dict[str, Any], cancel_event, update_output=None) -> ToolResult:  # type: ignore[no-untyped-def]
        self.calls += 1
        if self.raises is not None:
            raise self.raises
        return self.result or ToolResult(llm_content=args["text"], display_summary="echoed")


def _registry(tool: BaseTool) -> ToolRegistry:
    registry = ToolRegistry()
    registry.register(tool)
    return registry


class TestExecuteToolCall:
    @pytest.mark.asyncio
    async def test_success(self) -> None:
        response = await execute_tool_call(
            _registry(EchoTool()), ToolCallRequest(call_id="c1", name="echo", args={"text": "hi"})
        )
        assert response.error is None
        assert response.result_display == "echoed"
        assert response_output(response.response_parts) == {"output": "hi"}

    @pytest.mark.asyncio
    async def test_unknown_tool(self) -> None:
        response = await execute_tool_call(ToolRegistry(), ToolCallRequest(call_id="c1", name="nope"))
        assert response.error_type == ToolErrorType.TOOL_NOT_REGISTERED
        assert response_output(response.response_parts) == {"error": 'Tool "nope" not found in registry'}

    @pytest.mark.asyncio
    async def test_invalid_params(self) -> None:
        tool = EchoTool()
        response = await execute_tool_call(_registry(tool), ToolCallRequest(call_id="c1", name="echo", args={}))
        assert response.error_type == ToolErrorType.INVALID_TOOL_PARAMS
        assert tool.calls == 0

    @pytest.mark.asyncio
    async def test_pre_cancelled(self) -> None:
        tool = EchoTool()
        cancel_event = asyncio.Event()
        cancel_event.set()
        response = await execute_tool_call(
            _registry(tool), ToolCallRequest(call_id="c1", name="echo", args={"text": "x"}), cancel_event
        )
        assert response.error_type == ToolErrorType.CANCELLED
        assert tool.calls == 0

    @pytest.mark.asyncio
    async def test_raising_tool(self) -> None:
        boom = RuntimeError("disk on fire")
        response = await execute_tool_call(
            _registry(EchoTool(raises=boom)), ToolCallRequest(call_id="c1", name="echo", args={"text": "x"})
        )
        assert response.error is boom
        assert response.error_type == ToolErrorType.EXECUTION_FAILED
        assert response_output(response.response_parts) == {"error": "disk on fire"}

    @pytest.mark.asyncio
    async def test_returned_error_keeps_display(self) -> None:
        result = ToolResult(llm_content="nope", display_summary="shown", error=ToolError("bad input"))
        response = await execute_tool_call(
            _registry(EchoTool(result=result)), ToolCallRequest(call_id="c1", name="echo", args={"text": "x"})
        )
        assert response.result_display == "shown"
        assert response.error_type == ToolErrorType.EXECUTION_FAILED
        assert response_output(response.response_parts) == {"error": "bad input"}

    @pytest.mark.asyncio
    async def test_validate_raising_becomes_error(self) -> None:
        tool = EchoTool()
        tool.validate_params = MagicMock(side_effect=RuntimeError("schema exploded"))  # type: ignore[method-assign]

        responses = await asyncio.gather(
            execute_tool_call(_registry(tool), ToolCallRequest(call_id="c1", name="echo", args={"text": "x"})),
            execute_tool_call(ToolRegistry(), ToolCallRequest(call_id="c2", name="nope")),
        )

        assert responses[0].error_type == ToolErrorType.UNHANDLED_EXCEPTION
        assert response_output(responses[0].response_parts) == {"error": "schema exploded"}
        assert responses[1].error_type == ToolErrorType.TOOL_NOT_REGISTERED
        assert tool.calls == 0
