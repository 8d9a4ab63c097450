"""Integration tests: the scheduler driving the real built-in tools.

A mixed batch runs against a temporary working directory: reads go straight
through, writes and shell commands park for approval until a decision lands.
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import pytest

from foyer.config import SafetyConfig
from foyer.models import ConfirmationDecision
from foyer.services.function_response import response_output
from foyer.services.metrics import SessionMetrics
from foyer.services.scheduler import USER_REJECTED_MESSAGE, ToolCallScheduler
from foyer.services.tool_calls import ToolCallRequest, ToolCallStatus, WaitingToolCall
from foyer.tools import ToolRegistry, ToolSession, register_default_tools
from foyer.tools.base import FileDiff
from foyer.tools.confirmation import ConfirmationOutcome, EditConfirmationDetails


@pytest.fixture()
def workspace(tmp_path: Path) -> Path:
    (tmp_path / "README.md").write_text("# Demo\n")
    return tmp_path


def _scheduler(workspace: Path, approval_mode: str = "ask_for_writes") -> tuple[ToolCallScheduler, SessionMetrics]:
    session = ToolSession(working_dir=str(workspace), safety=SafetyConfig(approval_mode=approval_mode))
    registry = ToolRegistry()
    register_default_tools(registry, session)
    metrics = SessionMetrics()
    return ToolCallScheduler(registry, metrics=metrics), metrics


class TestMixedBatch:
    @pytest.mark.asyncio
    async def test_reads_run_and_writes_wait(self, workspace: Path) -> None:
        scheduler, metrics = _scheduler(workspace)
        cancel_event = asyncio.Event()

        await scheduler.schedule(
            [
                ToolCallRequest(call_id="read", name="read_file", args={"path": "README.md"}),
                ToolCallRequest(call_id="write", name="write_file", args={"path": "out.txt", "content": "draft\n"}),
            ],
            cancel_event,
        )

        waiting = scheduler.get_call("write")
        assert isinstance(waiting, WaitingToolCall)
        assert isinstance(waiting.confirmation_details, EditConfirmationDetails)
        assert "+draft" in waiting.confirmation_details.file_diff
        assert not (workspace / "out.txt").exists()

        await scheduler.apply_decision(
            ConfirmationDecision.model_validate(
                {"call_id": "write", "outcome": "proceed_once", "payload": {"new_content": "final\n"}}
            ),
            cancel_event,
        )
        completed = await asyncio.wait_for(scheduler.wait_for_completion(), timeout=10)

        assert [c.call_id for c in completed] == ["read", "write"]
        assert all(c.status == ToolCallStatus.SUCCESS for c in completed)
        assert "# Demo" in response_output(completed[0].response.response_parts)["output"]
        assert (workspace / "out.txt").read_text() == "final\n"
        assert isinstance(completed[1].response.result_display, FileDiff)
        assert metrics.summary()["total_success"] == 2

    @pytest.mark.asyncio
    async def test_rejected_write_leaves_disk_untouched(self, workspace: Path) -> None:
        scheduler, _ = _scheduler(workspace)
        cancel_event = asyncio.Event()

        await scheduler.schedule(
            ToolCallRequest(call_id="w", name="write_file", args={"path": "README.md", "content": "gone\n"}),
            cancel_event,
        )
        await scheduler.handle_confirmation_response("w", None, ConfirmationOutcome.CANCEL, cancel_event)
        (call,) = await asyncio.wait_for(scheduler.wait_for_completion(), timeout=10)

        assert call.status == ToolCallStatus.ERROR
        assert response_output(call.response.response_parts) == {"error": USER_REJECTED_MESSAGE}
        assert (workspace / "README.md").read_text() == "# Demo\n"

    @pytest.mark.asyncio
    async def test_always_allow_skips_later_prompts(self, workspace: Path) -> None:
        scheduler, _ = _scheduler(workspace)
        cancel_event = asyncio.Event()

        await scheduler.schedule(
            ToolCallRequest(call_id="w1", name="write_file", args={"path": "a.txt", "content": "a"}), cancel_event
        )
        await scheduler.handle_confirmation_response("w1", None, ConfirmationOutcome.PROCEED_ALWAYS, cancel_event)
        await asyncio.wait_for(scheduler.wait_for_completion(), timeout=10)

        await scheduler.schedule(
            ToolCallRequest(call_id="w2", name="write_file", args={"path": "b.txt", "content": "b"}), cancel_event
        )
        (call,) = await asyncio.wait_for(scheduler.wait_for_completion(), timeout=10)

        assert call.status == ToolCallStatus.SUCCESS
        assert call.outcome is None
        assert (workspace / "b.txt").read_text() == "b"


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX shell commands")
class TestShellCancellation:
    @pytest.mark.asyncio
    async def test_cancel_all_stops_running_command(self, workspace: Path) -> None:
        scheduler, _ = _scheduler(workspace, approval_mode="auto")
        cancel_event = asyncio.Event()

        await scheduler.schedule(
            ToolCallRequest(call_id="sleep", name="bash", args={"command": "sleep 30"}), cancel_event
        )
        await asyncio.sleep(0.2)
        scheduler.cancel_all()
        (call,) = await asyncio.wait_for(scheduler.wait_for_completion(), timeout=10)

        assert call.status in (ToolCallStatus.SUCCESS, ToolCallStatus.CANCELLED)
        assert not scheduler.is_running()
