"""Shell command execution tool."""

from __future__ import annotations

import asyncio
import codecs
import logging
import os
import signal
import sys
import time
from typing import Any

from pydantic import BaseModel, Field

from .base import BaseTool, LiveOutputCallback, ToolError, ToolResult
from .confirmation import ConfirmationDetails, ConfirmationOutcome, ConfirmationPayload, ExecConfirmationDetails
from .safety import get_command_root
from .security import check_hard_block
from .tiers import ToolTier

logger = logging.getLogger(__name__)

_MAX_OUTPUT = 100_000
_DEFAULT_TIMEOUT = 120
_OUTPUT_UPDATE_INTERVAL = 1.0  # seconds between live output updates
_KILL_GRACE = 5.0
_IS_WINDOWS = sys.platform == "win32"


class BashParams(BaseModel):
    command: str = Field(description="The shell command to execute")
    timeout: int = Field(_DEFAULT_TIMEOUT, ge=1, le=600, description="Timeout in seconds (default 120, max 600)")
    description: str | None = Field(None, description="Brief description of the command for the user.")


def _truncate(text: str) -> str:
    if len(text) > _MAX_OUTPUT:
        return text[:_MAX_OUTPUT] + "\n... (truncated)"
    return text


def _kill_process_tree(proc: asyncio.subprocess.Process) -> None:
    """Kill the shell and everything it started (its own process group on POSIX)."""
    try:
        if _IS_WINDOWS:
            proc.kill()
        else:
            os.killpg(proc.pid, signal.SIGKILL)
    except (ProcessLookupError, PermissionError):
        try:
            proc.kill()
        except ProcessLookupError:
            pass


class _OutputCollector:
    """Accumulates stdout/stderr and forwards throttled snapshots to the live callback."""

    def __init__(self, update_output: LiveOutputCallback | None) -> None:
        self.stdout: list[str] = []
        self.stderr: list[str] = []
        self.combined: list[str] = []
        self._update_output = update_output
        self._last_update: float | None = None

    def add(self, text: str, stream: list[str]) -> None:
        if not text:
            return
        stream.append(text)
        self.combined.append(text)
        if self._update_output is None:
            return
        now = time.monotonic()
        if self._last_update is None or now - self._last_update >= _OUTPUT_UPDATE_INTERVAL:
            self._last_update = now
            self._update_output("".join(self.combined))

    async def pump(self, reader: asyncio.StreamReader | None, stream: list[str]) -> None:
        if reader is None:
            return
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            chunk = await reader.read(4096)
            if not chunk:
                self.add(decoder.decode(b"", final=True), stream)
                return
            self.add(decoder.decode(chunk), stream)


class BashTool(BaseTool):
    name = "bash"
    display_name = "Shell"
    description = (
        "Execute a shell command and return stdout, stderr, and exit code. "
        "Commands run in the working directory. Default timeout is 120 seconds."
    )
    params_model = BashParams
    tier = ToolTier.EXECUTE
    can_update_output = True

    def check_params(self, params: BashParams) -> str | None:
        if not params.command.strip():
            return "Command cannot be empty."
        if "\x00" in params.command:
            return "Command contains null bytes"
        if not get_command_root(params.command):
            return "Could not identify command root to obtain permission from user."
        return None

    def get_description(self, args: dict[str, Any]) -> str:
        description = str(args.get("command", ""))
        if args.get("description"):
            description += f" ({str(args['description']).replace(chr(10), ' ')})"
        return description

    async def should_confirm_execute(
        self, args: dict[str, Any], cancel_event: asyncio.Event
    ) -> ConfirmationDetails | None:
        if self.validate_params(args):
            return None  # execute() fails immediately

        command = str(args["command"])
        root_command = get_command_root(command) or command
        hard_block = check_hard_block(command)
        verdict = self.session.check_safety(self.name, args, self.tier)
        if not hard_block and (verdict is None or not verdict.needs_approval):
            return None

        allowlist = self.session.allowlist

        async def on_confirm(outcome: ConfirmationOutcome, payload: ConfirmationPayload | None = None) -> None:
            if hard_block:
                if outcome.is_proceed:
                    allowlist.approve_hard_block(command)
                return
            if outcome == ConfirmationOutcome.PROCEED_ALWAYS:
                allowlist.allow_command(root_command)

        title = f"Confirm DESTRUCTIVE Command ({hard_block})" if hard_block else "Confirm Shell Command"
        return ExecConfirmationDetails(
            title=title,
            command=command,
            root_command=root_command,
            on_confirm=on_confirm,
        )

    async def execute(
        self,
        args: dict[str, Any],
        cancel_event: asyncio.Event,
        update_output: LiveOutputCallback | None = None,
    ) -> ToolResult:
        params = self.parse_params(args)
        error = self.check_params(params)
        if error:
            return ToolResult(
                llm_content=f"Command rejected: {params.command}\nReason: {error}",
                display_summary=f"Error: {error}",
                error=ToolError(error),
            )

        if cancel_event.is_set():
            return ToolResult(
                llm_content="Command was cancelled by user before it could start.",
                display_summary="Command cancelled by user.",
            )

        hard_block = check_hard_block(params.command)
        if hard_block and not self.session.allowlist.consume_hard_block(params.command):
            logger.info("Hard-block safety net (no approval): %s", hard_block)
            message = f"Command blocked ({hard_block}): it must be explicitly approved before it can run"
            return ToolResult(llm_content=f"Error: {message}", error=ToolError(message))

        try:
            proc = await asyncio.create_subprocess_shell(
                params.command,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                stdin=asyncio.subprocess.DEVNULL,
                cwd=self.session.working_dir,
                start_new_session=not _IS_WINDOWS,
            )
        except OSError as e:
            return ToolResult(llm_content=f"Error: {e}", error=ToolError(str(e)))

        collector = _OutputCollector(update_output)
        work = asyncio.create_task(self._run(proc, collector))
        cancel_task = asyncio.create_task(cancel_event.wait())
        try:
            done, _ = await asyncio.wait(
                {work, cancel_task}, timeout=params.timeout, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            cancel_task.cancel()

        timed_out = False
        if work not in done:
            timed_out = not cancel_event.is_set()
            _kill_process_tree(proc)
            finished, _ = await asyncio.wait({work}, timeout=_KILL_GRACE)
            if not finished:
                work.cancel()
                await asyncio.wait({work})

        stdout = _truncate("".join(collector.stdout))
        stderr = _truncate("".join(collector.stderr))
        output = _truncate("".join(collector.combined))

        if timed_out:
            message = f"Command timed out after {params.timeout}s"
            llm = message + (f". Output before timeout:\n{output}" if output.strip() else ".")
            return ToolResult(llm_content=llm, display_summary=output or message, error=ToolError(message))

        if cancel_event.is_set() and work not in done:
            llm = "Command was cancelled by user before it could complete."
            if output.strip():
                llm += f" Below is the output (on stdout and stderr) before it was cancelled:\n{output}"
            else:
                llm += " There was no output before it was cancelled."
            return ToolResult(llm_content=llm, display_summary=output or "Command cancelled by user.")

        code = proc.returncode
        llm = "\n".join(
            [
                f"Command: {params.command}",
                f"Directory: {self.session.working_dir}",
                f"Stdout: {stdout or '(empty)'}",
                f"Stderr: {stderr or '(empty)'}",
                f"Exit Code: {code if code is not None else '(none)'}",
            ]
        )
        if output.strip():
            display = output
        elif code:
            display = f"Command exited with code: {code}"
        else:
            display = ""
        return ToolResult(llm_content=llm, display_summary=display)

    @staticmethod
    async def _run(proc: asyncio.subprocess.Process, collector: _OutputCollector) -> None:
        await asyncio.gather(
            collector.pump(proc.stdout, collector.stdout),
            collector.pump(proc.stderr, collector.stderr),
        )
        await proc.wait()
