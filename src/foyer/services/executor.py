"""Run a single tool call without any confirmation step (scripts, --yes runs)."""

from __future__ import annotations

import asyncio
import inspect
import logging

from ..tools import ToolRegistry
from ..tools.base import ToolErrorType
from .function_response import convert_to_function_response, error_response_parts
from .tool_calls import ToolCallError, ToolCallRequest, ToolCallResponse

logger = logging.getLogger(__name__)


def _error_response(
    request: ToolCallRequest, message: str, error_type: ToolErrorType, error: Exception | None = None
) -> ToolCallResponse:
    return ToolCallResponse(
        call_id=request.call_id,
        response_parts=error_response_parts(request.name, request.call_id, message),
        result_display=message,
        error=error or ToolCallError(message, error_type),
        error_type=error_type,
    )


async def execute_tool_call(
    registry: ToolRegistry,
    request: ToolCallRequest,
    cancel_event: asyncio.Event | None = None,
) -> ToolCallResponse:
    tool = registry.get_tool(request.name)
    if tool is None:
        return _error_response(
            request, f'Tool "{request.name}" not found in registry', ToolErrorType.TOOL_NOT_REGISTERED
        )

    try:
        invalid = tool.validate_params(request.args)
        if inspect.isawaitable(invalid):
            invalid = await invalid
    except Exception as e:
        logger.exception("validate_params raised for tool %s", request.name)
        return _error_response(request, str(e) or type(e).__name__, ToolErrorType.UNHANDLED_EXCEPTION, error=e)
    if invalid:
        return _error_response(request, str(invalid), ToolErrorType.INVALID_TOOL_PARAMS)

    cancel_event = cancel_event or asyncio.Event()
    if cancel_event.is_set():
        return _error_response(
            request, "[Operation Cancelled] Reason: cancelled before execution", ToolErrorType.CANCELLED
        )

    try:
        result = await tool.execute(request.args, cancel_event)
    except Exception as e:
        logger.warning("Tool %s failed: %s", request.name, e, exc_info=True)
        return _error_response(request, str(e) or type(e).__name__, ToolErrorType.EXECUTION_FAILED, error=e)

    if result.error is not None:
        response = _error_response(request, result.error.message, result.error.type)
        return ToolCallResponse(
            call_id=response.call_id,
            response_parts=response.response_parts,
            result_display=result.display_summary or result.error.message,
            error=response.error,
            error_type=response.error_type,
        )

    return ToolCallResponse(
        call_id=request.call_id,
        response_parts=convert_to_function_response(request.name, request.call_id, result.llm_content),
        result_display=result.display_summary,
    )
