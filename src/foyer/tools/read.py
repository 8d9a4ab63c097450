"""Read file contents tool."""

from __future__ import annotations

import asyncio
import base64
import mimetypes
import os
from typing import Any

from pydantic import BaseModel, Field

from .base import BaseTool, LiveOutputCallback, ToolError, ToolResult
from .path_utils import display_path
from .security import validate_path
from .tiers import ToolTier

_MAX_OUTPUT = 100_000
_MAX_BINARY_SIZE = 20 * 1024 * 1024  # 20MB

_BINARY_MIME_PREFIXES = ("image/", "audio/", "video/")
_BINARY_MIME_TYPES = ("application/pdf",)


class ReadFileParams(BaseModel):
    path: str = Field(description="File path (relative to working directory or absolute)")
    offset: int = Field(1, ge=1, description="Line number to start reading from (1-based). Optional.")
    limit: int | None = Field(None, ge=1, description="Maximum number of lines to read. Optional.")


def _binary_mime_type(path: str) -> str | None:
    mime, _ = mimetypes.guess_type(path)
    if mime and (mime.startswith(_BINARY_MIME_PREFIXES) or mime in _BINARY_MIME_TYPES):
        return mime
    return None


class ReadFileTool(BaseTool):
    name = "read_file"
    display_name = "ReadFile"
    description = (
        "Read the contents of a file. Returns numbered lines. "
        "Images and PDF files are returned as binary content for the model to inspect."
    )
    params_model = ReadFileParams
    tier = ToolTier.READ

    def check_params(self, params: ReadFileParams) -> str | None:
        _, error = validate_path(params.path, self.session.working_dir)
        return error

    def get_description(self, args: dict[str, Any]) -> str:
        return display_path(str(args.get("path", "")), self.session.working_dir)

    async def execute(
        self,
        args: dict[str, Any],
        cancel_event: asyncio.Event,
        update_output: LiveOutputCallback | None = None,
    ) -> ToolResult:
        params = self.parse_params(args)
        resolved, error = validate_path(params.path, self.session.working_dir)
        if error:
            return ToolResult(llm_content=f"Error: {error}", error=ToolError(error))
        if not os.path.isfile(resolved):
            message = f"File not found: {params.path}"
            return ToolResult(llm_content=f"Error: {message}", error=ToolError(message))

        mime = _binary_mime_type(resolved)
        if mime:
            return self._read_binary(resolved, mime, params.path)

        try:
            with open(resolved, encoding="utf-8", errors="replace") as f:
                lines = f.readlines()
        except OSError as e:
            return ToolResult(llm_content=f"Error: {e}", error=ToolError(str(e)))

        start = params.offset - 1
        end = start + params.limit if params.limit else len(lines)
        selected = lines[start:end]

        numbered = []
        for i, line in enumerate(selected, start=start + 1):
            numbered.append(f"{i:>6}\t{line.rstrip()}")

        content = "\n".join(numbered)
        if len(content) > _MAX_OUTPUT:
            content = content[:_MAX_OUTPUT] + "\n... (truncated)"

        summary = f"Read {len(selected)} of {len(lines)} lines"
        return ToolResult(llm_content=content, display_summary=summary)

    def _read_binary(self, resolved: str, mime: str, shown_path: str) -> ToolResult:
        try:
            size = os.path.getsize(resolved)
            if size > _MAX_BINARY_SIZE:
                message = f"File too large to read as {mime}: {shown_path} ({size} bytes)"
                return ToolResult(llm_content=f"Error: {message}", error=ToolError(message))
            with open(resolved, "rb") as f:
                data = base64.b64encode(f.read()).decode("ascii")
        except OSError as e:
            return ToolResult(llm_content=f"Error: {e}", error=ToolError(str(e)))
        return ToolResult(
            llm_content={"inlineData": {"mimeType": mime, "data": data}},
            display_summary=f"Read {mime} file ({size} bytes)",
        )
