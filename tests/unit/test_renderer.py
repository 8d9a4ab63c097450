"""Tests for the CLI renderer."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

from foyer.cli import renderer
from foyer.cli.renderer import (
    _humanize_tool,
    render_confirmation,
    render_live_output,
    render_metrics,
    render_tool_call_end,
    render_tool_calls_update,
)
from foyer.services.tool_calls import (
    CancelledToolCall,
    ErroredToolCall,
    ExecutingToolCall,
    SuccessfulToolCall,
    ToolCallRequest,
    ToolCallResponse,
    WaitingToolCall,
)
from foyer.tools.base import FileDiff
from foyer.tools.confirmation import ExecConfirmationDetails, InfoConfirmationDetails


def _request(name: str = "bash", **args: object) -> ToolCallRequest:
    return ToolCallRequest(call_id=f"{name}-1", name=name, args=dict(args) or {"command": "ls -la"})


def _response(display: object = None) -> ToolCallResponse:
    return ToolCallResponse(call_id="bash-1", response_parts=[], result_display=display)  # type: ignore[arg-type]


class TestHumanizeTool:
    def test_builtin_tools(self) -> None:
        assert _humanize_tool("bash", {"command": "ls"}) == "bash ls"
        assert _humanize_tool("read_file", {"path": "a.py"}) == "Reading a.py"
        assert _humanize_tool("web_fetch", {"url": "https://x.dev"}) == "Fetching https://x.dev"

    def test_long_command_truncated(self) -> None:
        summary = _humanize_tool("bash", {"command": "x" * 150})
        assert summary.endswith("...")
        assert len(summary) == len("bash ") + 100

    def test_mcp_tool_uses_first_string_arg(self) -> None:
        assert _humanize_tool("search", {"limit": 3, "q": "asyncio"}) == "search asyncio"
        assert _humanize_tool("search", {}) == "search"


class TestToolCallsUpdate:
    def setup_method(self) -> None:
        renderer._last_status.clear()

    def test_executing_printed_once(self) -> None:
        call = ExecutingToolCall(request=_request(), tool=MagicMock())
        with patch("foyer.cli.renderer.console") as mock_console:
            render_tool_calls_update([call])
            render_tool_calls_update([call])
        assert mock_console.print.call_count == 1
        assert "bash ls -la" in str(mock_console.print.call_args_list[0])

    def test_live_output_shows_tail(self) -> None:
        output = "".join(f"line {i}\n" for i in range(10))
        with patch("foyer.cli.renderer.console") as mock_console:
            render_live_output("bash-1", output)
        printed = str(mock_console.print.call_args_list)
        assert mock_console.print.call_count == 5
        assert "line 9" in printed
        assert "line 4" not in printed


class TestToolCallEnd:
    def test_success(self) -> None:
        call = SuccessfulToolCall(
            request=_request(), tool=MagicMock(), response=_response("ok"), start_time=0.0, end_time=1500.0
        )
        with patch("foyer.cli.renderer.console") as mock_console:
            render_tool_call_end(call)
        printed = str(mock_console.print.call_args_list[0])
        assert "✓" in printed
        assert "1.5s" in printed

    def test_error_message(self) -> None:
        call = ErroredToolCall(request=_request(), response=_response("exit 1"))
        with patch("foyer.cli.renderer.console") as mock_console:
            render_tool_call_end(call)
        printed = str(mock_console.print.call_args_list)
        assert "✗" in printed
        assert "exit 1" in printed

    def test_rejected_edit_shows_diff(self) -> None:
        diff = FileDiff(file_name="a.txt", file_diff="--- a.txt\tCurrent\n+++ a.txt\tProposed\n")
        call = ErroredToolCall(request=_request("write_file", path="a.txt"), response=_response(diff))
        with patch("foyer.cli.renderer.console") as mock_console:
            render_tool_call_end(call)
        assert mock_console.print.call_count == 2

    def test_cancelled_shows_reason(self) -> None:
        call = CancelledToolCall(request=_request(), response=_response(), reason="User did not allow tool call")
        with patch("foyer.cli.renderer.console") as mock_console:
            render_tool_call_end(call)
        assert "User did not allow tool call" in str(mock_console.print.call_args_list[0])


class TestConfirmation:
    def test_exec(self) -> None:
        details = ExecConfirmationDetails(title="Confirm Shell Command", command="rm -rf build", root_command="rm")
        call = WaitingToolCall(request=_request(), tool=MagicMock(), confirmation_details=details)
        with patch("foyer.cli.renderer.console") as mock_console:
            render_confirmation(call)
        printed = str(mock_console.print.call_args_list)
        assert "Confirm Shell Command" in printed
        assert "rm -rf build" in printed

    def test_info_lists_urls(self) -> None:
        details = InfoConfirmationDetails(title="Confirm Web Fetch", prompt="Fetch", urls=["https://a.dev"])
        call = WaitingToolCall(request=_request("web_fetch"), tool=MagicMock(), confirmation_details=details)
        with patch("foyer.cli.renderer.console") as mock_console:
            render_confirmation(call)
        assert "https://a.dev" in str(mock_console.print.call_args_list)


class TestMetrics:
    def test_summary_line(self) -> None:
        with patch("foyer.cli.renderer.console") as mock_console:
            render_metrics({"total_calls": 3, "total_success": 2, "total_fail": 1, "total_duration_ms": 2500.0})
        assert "3 call(s): 2 ok, 1 failed, 2.5s" in str(mock_console.print.call_args_list[0])
