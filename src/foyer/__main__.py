"""Entry point for the foyer CLI."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import signal
import sys
from pathlib import Path
from typing import Any

import yaml
from pydantic import TypeAdapter, ValidationError

from . import __version__
from .config import AppConfig, load_config
from .models import ToolCallInput

logger = logging.getLogger(__name__)


def _load_config_or_exit(config_path: str | None) -> AppConfig:
    try:
        return load_config(Path(config_path) if config_path else None)
    except (ValueError, yaml.YAMLError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)


def _parse_args_json(raw: str | None) -> dict[str, Any]:
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except json.JSONDecodeError as e:
        raise ValueError(f"--args is not valid JSON: {e}") from e
    if not isinstance(value, dict):
        raise ValueError("--args must be a JSON object")
    return value


def _load_batch_file(path: str) -> list[ToolCallInput]:
    """Read a list of tool calls from a JSON or YAML file."""
    with open(path) as f:
        raw = yaml.safe_load(f)
    if isinstance(raw, dict) and "tool_calls" in raw:
        raw = raw["tool_calls"]
    if raw is None:
        raw = []
    return TypeAdapter(list[ToolCallInput]).validate_python(raw)


def _build_registry(config: AppConfig, working_dir: str | None) -> Any:
    from .tools import ToolRegistry, ToolSession, register_default_tools

    session = ToolSession(working_dir=str(Path(working_dir or ".").resolve()), safety=config.safety)
    registry = ToolRegistry()
    register_default_tools(registry, session)
    return registry


def _install_sigint(loop: asyncio.AbstractEventLoop, callback: Any) -> None:
    try:
        loop.add_signal_handler(signal.SIGINT, callback)
    except (NotImplementedError, RuntimeError):
        pass


def _emit(results: list[dict[str, Any]]) -> None:
    print(json.dumps(results, indent=2, default=str))


async def _run_unattended(registry: Any, inputs: list[ToolCallInput]) -> int:
    from .cli import renderer
    from .services.executor import execute_tool_call

    cancel_event = asyncio.Event()
    _install_sigint(asyncio.get_running_loop(), cancel_event.set)

    requests = [item.to_request() for item in inputs]
    responses = await asyncio.gather(*(execute_tool_call(registry, r, cancel_event) for r in requests))

    results = []
    for request, response in zip(requests, responses):
        status = "error" if response.error_type else "success"
        if response.error_type:
            renderer.render_error(f"{request.name}: {response.result_display}")
        results.append({"call_id": response.call_id, "status": status, "response_parts": response.response_parts})
    _emit(results)
    return 0 if all(r["status"] == "success" for r in results) else 1


async def _run_interactive(config: AppConfig, registry: Any, inputs: list[ToolCallInput]) -> int:
    from .cli import renderer
    from .cli.approval import ask_for_approval
    from .services.metrics import SessionMetrics
    from .services.scheduler import ToolCallScheduler
    from .services.tool_calls import ToolCallStatus, WaitingToolCall
    from .tools.confirmation import ConfirmationOutcome

    metrics = SessionMetrics()

    def on_complete(calls: list[Any]) -> None:
        for call in calls:
            renderer.render_tool_call_end(call)

    scheduler = ToolCallScheduler(
        registry,
        on_tool_calls_update=renderer.render_tool_calls_update,
        on_all_tool_calls_complete=on_complete,
        output_update_handler=renderer.render_live_output,
        get_preferred_editor=lambda: config.scheduler.preferred_editor or None,
        metrics=metrics,
        live_output_interval=config.scheduler.live_output_interval,
    )

    cancel_event = asyncio.Event()
    _install_sigint(asyncio.get_running_loop(), scheduler.cancel_all)

    await scheduler.schedule([item.to_request() for item in inputs], cancel_event)

    pending: list[asyncio.Task[None]] = []
    waiting_ids = [call.call_id for call in scheduler.tool_calls if isinstance(call, WaitingToolCall)]
    for call_id in waiting_ids:
        while True:
            call = scheduler.get_call(call_id)
            if not isinstance(call, WaitingToolCall):
                break
            outcome = await ask_for_approval(call)
            if outcome == ConfirmationOutcome.MODIFY_WITH_EDITOR:
                await scheduler.handle_confirmation_response(call_id, None, outcome, cancel_event)
                updated = scheduler.get_call(call_id)
                if isinstance(updated, WaitingToolCall) and updated.confirmation_details == call.confirmation_details:
                    renderer.render_warning("No changes from the editor; answer again")
                continue
            pending.append(
                asyncio.create_task(scheduler.handle_confirmation_response(call_id, None, outcome, cancel_event))
            )
            break

    completed = await scheduler.wait_for_completion()
    await asyncio.gather(*pending)

    renderer.render_metrics(metrics.summary())
    _emit(
        [
            {"call_id": call.call_id, "status": call.status.value, "response_parts": call.response.response_parts}
            for call in completed
        ]
    )
    return 0 if all(call.status == ToolCallStatus.SUCCESS for call in completed) else 1


def _run_calls(config: AppConfig, inputs: list[ToolCallInput], *, yes: bool, working_dir: str | None) -> int:
    registry = _build_registry(config, working_dir)
    if yes:
        return asyncio.run(_run_unattended(registry, inputs))
    return asyncio.run(_run_interactive(config, registry, inputs))


def _run_tools(config: AppConfig, working_dir: str | None, as_json: bool, openai_format: bool = False) -> None:
    from .cli import renderer

    registry = _build_registry(config, working_dir)
    if as_json:
        declarations = registry.get_openai_tools() if openai_format else registry.get_function_declarations()
        print(json.dumps(declarations, indent=2))
        return
    renderer.render_tools([(name, registry.get_tool(name).description) for name in registry.list_tools()])


def main() -> None:
    parser = argparse.ArgumentParser(prog="foyer", description="Foyer - schedule, approve and run tool calls")
    subparsers = parser.add_subparsers(dest="command")

    # `foyer tools` subcommand
    tools_parser = subparsers.add_parser("tools", help="List available tools")
    tools_parser.add_argument("--json", dest="as_json", action="store_true", help="Print function declarations")
    tools_parser.add_argument(
        "--openai", dest="openai_format", action="store_true", help="With --json, emit OpenAI tool definitions"
    )

    # `foyer run` subcommand
    run_parser = subparsers.add_parser("run", help="Run a single tool call")
    run_parser.add_argument("name", help="Tool name")
    run_parser.add_argument("--args", dest="tool_args", default=None, help="Tool arguments as a JSON object")

    # `foyer batch` subcommand
    batch_parser = subparsers.add_parser("batch", help="Run a file of tool calls as one concurrent batch")
    batch_parser.add_argument("file", help="JSON or YAML list of {call_id, name, args}")

    for sub in (tools_parser, run_parser, batch_parser):
        sub.add_argument("--cwd", dest="working_dir", default=None, help="Working directory for tools")
    for sub in (run_parser, batch_parser):
        sub.add_argument("-y", "--yes", action="store_true", help="Run without asking for confirmation")

    # Global flags
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", dest="config_path", default=None, help="Path to config.yaml")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--approval-mode",
        dest="approval_mode",
        default=None,
        choices=["auto", "ask_for_dangerous", "ask_for_execute", "ask_for_writes", "ask"],
        help="Override approval mode for this session",
    )
    parser.add_argument(
        "--allowed-tools",
        dest="allowed_tools",
        default=None,
        help="Comma-separated list of pre-allowed tools (e.g., bash,write_file)",
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if args.command is None:
        parser.print_help()
        sys.exit(2)

    config = _load_config_or_exit(args.config_path)

    if args.approval_mode:
        config.safety.approval_mode = args.approval_mode
        if args.approval_mode == "auto":
            print(
                "WARNING: Auto-approval mode active. ALL tool calls will execute without confirmation.",
                file=sys.stderr,
            )
    if args.allowed_tools:
        extra = [t.strip() for t in args.allowed_tools.split(",") if t.strip()]
        existing = set(config.safety.allowed_tools)
        config.safety.allowed_tools.extend(t for t in extra if t not in existing)

    if args.command == "tools":
        _run_tools(config, args.working_dir, args.as_json, args.openai_format)
        return

    try:
        if args.command == "run":
            inputs = [ToolCallInput(name=args.name, args=_parse_args_json(args.tool_args))]
        else:
            inputs = _load_batch_file(args.file)
    except (OSError, ValueError, ValidationError, yaml.YAMLError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)

    sys.exit(_run_calls(config, inputs, yes=args.yes, working_dir=args.working_dir))


if __name__ == "__main__":
    main()
