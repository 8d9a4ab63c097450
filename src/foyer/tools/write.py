"""Write/create file tool."""

from __future__ import annotations

import asyncio
import os
from typing import Any

from pydantic import BaseModel, Field

from ..services.modify import create_diff
from .base import BaseTool, FileDiff, LiveOutputCallback, ModifyContext, ToolError, ToolResult
from .confirmation import ConfirmationDetails, ConfirmationOutcome, ConfirmationPayload, EditConfirmationDetails
from .path_utils import display_path
from .safety import SafetyVerdict
from .security import validate_path
from .tiers import ToolTier


class WriteFileParams(BaseModel):
    path: str = Field(description="File path (relative to working directory or absolute)")
    content: str = Field(description="The content to write to the file")
    modified_by_user: bool = Field(False, description="Set by the client when the user edited the content.")


def read_existing(resolved: str) -> str | None:
    """Current text of ``resolved``, or None when the file does not exist yet."""
    try:
        with open(resolved, encoding="utf-8", errors="replace") as f:
            return f.read()
    except FileNotFoundError:
        return None


class WriteFileTool(BaseTool, ModifyContext):
    name = "write_file"
    display_name = "WriteFile"
    description = "Write content to a file. Creates parent directories if needed. Overwrites existing files."
    params_model = WriteFileParams
    tier = ToolTier.WRITE

    def _resolve(self, path: str) -> str:
        resolved, error = validate_path(path, self.session.working_dir)
        if error:
            raise ValueError(error)
        return resolved

    def check_params(self, params: WriteFileParams) -> str | None:
        resolved, error = validate_path(params.path, self.session.working_dir)
        if error:
            return error
        if os.path.isdir(resolved):
            return f"Path is a directory, not a file: {params.path}"
        return None

    def get_description(self, args: dict[str, Any]) -> str:
        return f"Writing to {display_path(str(args.get('path', '')), self.session.working_dir)}"

    # Modify context

    def get_file_path(self, args: dict[str, Any]) -> str:
        return self._resolve(str(args.get("path", "")))

    async def get_current_content(self, args: dict[str, Any]) -> str:
        return read_existing(self.get_file_path(args)) or ""

    async def get_proposed_content(self, args: dict[str, Any]) -> str:
        return str(args.get("content", ""))

    def create_updated_params(
        self, original_content: str, modified_content: str, original_args: dict[str, Any]
    ) -> dict[str, Any]:
        return {**original_args, "content": modified_content, "modified_by_user": True}

    async def build_confirmation(
        self, args: dict[str, Any], verdict: SafetyVerdict, cancel_event: asyncio.Event
    ) -> ConfirmationDetails | None:
        params = self.parse_params(args)
        resolved = self._resolve(params.path)
        original = read_existing(resolved)
        shown = display_path(resolved, self.session.working_dir)
        return EditConfirmationDetails(
            title=f"Confirm Write: {shown}",
            file_name=os.path.basename(resolved),
            file_path=resolved,
            file_diff=create_diff(os.path.basename(resolved), original or "", params.content),
            original_content=original,
            new_content=params.content,
            on_confirm=self._on_confirm,
        )

    async def _on_confirm(self, outcome: ConfirmationOutcome, payload: ConfirmationPayload | None = None) -> None:
        if outcome == ConfirmationOutcome.PROCEED_ALWAYS:
            self.session.allowlist.allow_tool(self.name)

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

        original = read_existing(resolved)
        try:
            os.makedirs(os.path.dirname(resolved), exist_ok=True)
            with open(resolved, "w", encoding="utf-8") as f:
                f.write(params.content)
        except OSError as e:
            return ToolResult(llm_content=f"Error: {e}", error=ToolError(str(e)))

        bytes_written = len(params.content.encode("utf-8"))
        if original is None:
            message = f"Successfully created and wrote to new file: {resolved} ({bytes_written} bytes)."
        else:
            message = f"Successfully overwrote file: {resolved} ({bytes_written} bytes)."
        if params.modified_by_user:
            message += " User modified the `content` to be the text shown in the final diff."

        file_name = os.path.basename(resolved)
        return ToolResult(
            llm_content=message,
            display_summary=FileDiff(file_name, create_diff(file_name, original or "", params.content)),
        )
