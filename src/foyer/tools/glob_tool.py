"""File pattern matching tool using glob."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from .base import BaseTool, LiveOutputCallback, ToolError, ToolResult
from .path_utils import is_within
from .security import validate_path
from .tiers import ToolTier

_MAX_RESULTS = 500


class GlobParams(BaseModel):
    pattern: str = Field(description='Glob pattern (e.g. "**/*.py", "src/**/*.ts")')
    path: str | None = Field(None, description="Directory to search in. Defaults to working directory.")


class GlobTool(BaseTool):
    name = "glob_files"
    display_name = "FindFiles"
    description = (
        "Find files matching a glob pattern. Returns matching file paths sorted by modification time (newest first)."
    )
    params_model = GlobParams
    tier = ToolTier.READ

    def check_params(self, params: GlobParams) -> str | None:
        if not params.pattern.strip():
            return "Pattern cannot be empty"
        if "\x00" in params.pattern:
            return "Pattern contains null bytes"
        _, error = validate_path(params.path or self.session.working_dir, self.session.working_dir)
        return error

    def get_description(self, args: dict[str, Any]) -> str:
        where = f" within {args['path']}" if args.get("path") else ""
        return f"'{args.get('pattern', '')}'{where}"

    async def execute(
        self,
        args: dict[str, Any],
        cancel_event: asyncio.Event,
        update_output: LiveOutputCallback | None = None,
    ) -> ToolResult:
        params = self.parse_params(args)
        resolved, error = validate_path(params.path or self.session.working_dir, self.session.working_dir)
        if error:
            return ToolResult(llm_content=f"Error: {error}", error=ToolError(error))

        base = Path(resolved)
        if not base.is_dir():
            message = f"Directory not found: {params.path or base}"
            return ToolResult(llm_content=f"Error: {message}", error=ToolError(message))

        try:
            matches = sorted(
                (m for m in base.glob(params.pattern) if m.is_file()),
                key=lambda p: p.stat().st_mtime,
                reverse=True,
            )
        except (OSError, ValueError) as e:
            message = f"Search failed: {e}"
            return ToolResult(llm_content=f"Error: {message}", error=ToolError(message))

        results = [str(m.relative_to(base)) for m in matches[:_MAX_RESULTS] if is_within(m, base)]
        if not results:
            return ToolResult(
                llm_content=f'No files found matching pattern "{params.pattern}" within {base}',
                display_summary="No files found",
            )

        lines = [f'Found {len(results)} file(s) matching "{params.pattern}" within {base}, newest first:']
        lines.extend(results)
        if len(matches) > _MAX_RESULTS:
            lines.append(f"... (truncated, {len(matches) - _MAX_RESULTS} more)")
        return ToolResult(llm_content="\n".join(lines), display_summary=f"Found {len(results)} matching file(s)")
