"""Rich-based terminal output for tool calls and approvals."""

from __future__ import annotations

import json
from typing import Any

from rich.console import Console
from rich.markup import escape
from rich.syntax import Syntax
from rich.table import Table

from ..services.tool_calls import (
    CancelledToolCall,
    CompletedToolCall,
    ErroredToolCall,
    ExecutingToolCall,
    ToolCall,
    WaitingToolCall,
)
from ..tools.base import FileDiff
from ..tools.confirmation import (
    ConfirmationDetails,
    EditConfirmationDetails,
    ExecConfirmationDetails,
    McpConfirmationDetails,
)

console = Console(stderr=True)

# ---------------------------------------------------------------------------
# Color palette
# ---------------------------------------------------------------------------

GOLD = "#C5A059"  # accents, approval titles
SLATE = "#94A3B8"  # labels
MUTED = "#8b8b8b"  # secondary text (results, approval feedback)
CHROME = "#6b7280"  # UI chrome (status, hints)
ERROR_RED = "#CD6B6B"  # inline errors

_MAX_ARGS_LEN = 200
_MAX_LIVE_LINES = 5

_last_status: dict[str, str] = {}


def _humanize_tool(tool_name: str, arguments: dict[str, Any]) -> str:
    """Convert tool_name + args into a human-readable breadcrumb."""
    if tool_name == "bash":
        cmd = str(arguments.get("command", ""))
        if len(cmd) > 100:
            cmd = cmd[:97] + "..."
        return f"bash {cmd}"
    elif tool_name == "read_file":
        return f"Reading {arguments.get('path', '')}"
    elif tool_name == "write_file":
        return f"Writing {arguments.get('path', '')}"
    elif tool_name == "edit_file":
        return f"Editing {arguments.get('path', '')}"
    elif tool_name == "grep":
        return f"Searching for '{arguments.get('pattern', '')}'"
    elif tool_name == "glob_files":
        return f"Finding {arguments.get('pattern', '')}"
    elif tool_name == "web_fetch":
        return f"Fetching {arguments.get('url', '')}"

    # MCP / unknown tools: show name + first string arg
    for v in arguments.values():
        if isinstance(v, str) and v:
            first_str = v if len(v) <= 40 else v[:37] + "..."
            return f"{tool_name} {first_str}"
    return tool_name


def _elapsed(call: CompletedToolCall) -> str:
    duration = call.duration_ms
    if duration is None or duration < 100:
        return ""
    return f" {duration / 1000:.1f}s"


def render_tool_calls_update(calls: list[ToolCall]) -> None:
    """Print one line per call whose status changed since the last snapshot."""
    for call in calls:
        status = call.status.value
        if _last_status.get(call.call_id) == status:
            continue
        _last_status[call.call_id] = status
        if isinstance(call, ExecutingToolCall):
            summary = _humanize_tool(call.request.name, call.request.args)
            console.print(f"  [{CHROME}]> {escape(summary)}[/{CHROME}]")


def render_live_output(call_id: str, output: str) -> None:
    lines = output.rstrip("\n").splitlines()[-_MAX_LIVE_LINES:]
    for line in lines:
        console.print(f"    [{CHROME}]{escape(line)}[/{CHROME}]")


def render_tool_call_end(call: CompletedToolCall) -> None:
    """Show the result line for a finished call."""
    _last_status.pop(call.call_id, None)
    summary = _humanize_tool(call.request.name, call.request.args)
    elapsed = _elapsed(call)

    if isinstance(call, CancelledToolCall):
        console.print(f"[yellow]  -[/yellow] [{MUTED}]{escape(summary)} (cancelled: {escape(call.reason)})[/{MUTED}]")
        return
    if isinstance(call, ErroredToolCall):
        console.print(f"[red]  ✗[/red] {escape(summary)}{elapsed}")
        display = call.response.result_display
        if isinstance(display, FileDiff):
            render_diff(display.file_diff)
        elif display:
            console.print(f"    [{ERROR_RED}]{escape(str(display))}[/{ERROR_RED}]")
        return

    console.print(f"[green]  ✓[/green] [{MUTED}]{escape(summary)}{elapsed}[/{MUTED}]")
    display = call.response.result_display
    if isinstance(display, FileDiff):
        render_diff(display.file_diff)


def render_diff(diff: str) -> None:
    if not diff:
        return
    console.print(Syntax(diff, "diff", theme="ansi_dark", background_color="default"))


def render_confirmation(call: WaitingToolCall) -> None:
    """Describe what the user is being asked to approve."""
    details: ConfirmationDetails = call.confirmation_details
    console.print()
    console.print(f"[{GOLD}]{escape(details.title)}[/{GOLD}]")

    if isinstance(details, EditConfirmationDetails):
        console.print(f"  [{SLATE}]File:[/{SLATE}] {escape(details.file_path)}")
        render_diff(details.file_diff)
    elif isinstance(details, ExecConfirmationDetails):
        console.print(f"  [{SLATE}]Command:[/{SLATE}] {escape(details.command)}")
    elif isinstance(details, McpConfirmationDetails):
        console.print(f"  [{SLATE}]Server:[/{SLATE}] {escape(details.server_name)}")
        console.print(f"  [{SLATE}]Tool:[/{SLATE}] {escape(details.tool_display_name)}")
        args_str = json.dumps(call.request.args, default=str)
        if len(args_str) > _MAX_ARGS_LEN:
            args_str = args_str[:_MAX_ARGS_LEN] + "..."
        console.print(f"  [{CHROME}]{escape(args_str)}[/{CHROME}]")
    else:
        console.print(f"  {escape(details.prompt)}")
        for url in details.urls:
            console.print(f"  [{CHROME}]- {escape(url)}[/{CHROME}]")


def render_approval_feedback(message: str) -> None:
    console.print(f"  [{MUTED}]{escape(message)}[/{MUTED}]")


def render_error(message: str) -> None:
    console.print(f"\n[red bold]Error:[/red bold] {escape(message)}")


def render_warning(message: str) -> None:
    console.print(f"[yellow]Warning:[/yellow] {escape(message)}")


def render_tools(tools: list[tuple[str, str]]) -> None:
    table = Table(title="Available tools", title_justify="left", show_edge=False, box=None)
    table.add_column("Name", style=SLATE, no_wrap=True)
    table.add_column("Description", style=MUTED)
    for name, description in sorted(tools):
        first_line = description.strip().splitlines()[0] if description.strip() else ""
        table.add_row(name, first_line)
    console.print()
    console.print(table)
    console.print()


def render_metrics(summary: dict[str, Any]) -> None:
    console.print(
        f"[{CHROME}]{summary['total_calls']} call(s): "
        f"{summary['total_success']} ok, {summary['total_fail']} failed, "
        f"{summary['total_duration_ms'] / 1000:.1f}s[/{CHROME}]"
    )
