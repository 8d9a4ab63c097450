"""Regex file search tool."""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from .base import BaseTool, LiveOutputCallback, ToolError, ToolResult
from .security import validate_path
from .tiers import ToolTier

_MAX_OUTPUT = 100_000
_MAX_FILE_SIZE = 5_000_000  # 5MB
_MAX_MATCHES = 200


class GrepParams(BaseModel):
    pattern: str = Field(description="Regex pattern to search for")
    path: str | None = Field(None, description="File or directory to search in. Defaults to working directory.")
    glob: str | None = Field(None, description='Glob to filter files (e.g. "*.py", "**/*.ts"). Default: all files.')
    context: int = Field(0, ge=0, le=20, description="Number of context lines before and after each match.")
    case_insensitive: bool = Field(False, description="Case insensitive search. Default false.")


@dataclass
class _Match:
    file: str
    line_number: int
    content: str


def _search_file(file_path: Path, regex: re.Pattern[str], context: int) -> list[tuple[int, str]]:
    try:
        if file_path.stat().st_size > _MAX_FILE_SIZE:
            return []
        text = file_path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return []

    lines = text.splitlines()
    found = []
    for i, line in enumerate(lines):
        if regex.search(line):
            start = max(0, i - context)
            end = min(len(lines), i + context + 1)
            block = []
            for j in range(start, end):
                prefix = ">" if j == i else " "
                block.append(f"{prefix}{j + 1:>6}\t{lines[j]}")
            found.append((i + 1, "\n".join(block)))
    return found


class GrepTool(BaseTool):
    name = "grep"
    display_name = "SearchText"
    description = (
        "Search file contents using a regex pattern. "
        "Returns matching lines with file paths, line numbers, and optional context."
    )
    params_model = GrepParams
    tier = ToolTier.READ

    def check_params(self, params: GrepParams) -> str | None:
        try:
            re.compile(params.pattern)
        except re.error as e:
            return f"Invalid regex: {e}"
        if params.glob and "\x00" in params.glob:
            return "Glob pattern contains null bytes"
        _, error = validate_path(params.path or self.session.working_dir, self.session.working_dir)
        return error

    def get_description(self, args: dict[str, Any]) -> str:
        description = f"'{args.get('pattern', '')}'"
        if args.get("path"):
            description += f" within {args['path']}"
        if args.get("glob"):
            description += f" (filter: {args['glob']})"
        return description

    async def execute(
        self,
        args: dict[str, Any],
        cancel_event: asyncio.Event,
        update_output: LiveOutputCallback | None = None,
    ) -> ToolResult:
        params = self.parse_params(args)
        regex = re.compile(params.pattern, re.IGNORECASE if params.case_insensitive else 0)

        base_path = params.path or self.session.working_dir
        resolved, error = validate_path(base_path, self.session.working_dir)
        if error:
            return ToolResult(llm_content=f"Error: {error}", error=ToolError(error))

        base = Path(resolved)
        matches: list[_Match] = []
        if base.is_file():
            for line_number, content in _search_file(base, regex, params.context)[:_MAX_MATCHES]:
                matches.append(_Match(str(base), line_number, content))
        elif base.is_dir():
            try:
                for file_path in sorted(base.glob(params.glob or "**/*")):
                    if cancel_event.is_set() or len(matches) >= _MAX_MATCHES:
                        break
                    if not file_path.is_file():
                        continue
                    for line_number, content in _search_file(file_path, regex, params.context):
                        matches.append(_Match(str(file_path.relative_to(base)), line_number, content))
                        if len(matches) >= _MAX_MATCHES:
                            break
            except OSError as e:
                return ToolResult(llm_content=f"Error: {e}", error=ToolError(str(e)))
        else:
            message = f"Path not found: {base_path}"
            return ToolResult(llm_content=f"Error: {message}", error=ToolError(message))

        if not matches:
            return ToolResult(
                llm_content=f'No matches found for pattern "{params.pattern}" in {base_path}',
                display_summary="No matches found",
            )

        output = []
        for m in matches:
            output.append(f"{m.file}:{m.line_number}")
            output.append(m.content)
            output.append("")

        content = "\n".join(output)
        if len(content) > _MAX_OUTPUT:
            content = content[:_MAX_OUTPUT] + "\n... (truncated)"
        if len(matches) >= _MAX_MATCHES:
            content += f"\n(results limited to {_MAX_MATCHES} matches)"

        noun = "match" if len(matches) == 1 else "matches"
        return ToolResult(llm_content=content, display_summary=f"Found {len(matches)} {noun}")
