"""Edit file via exact string replacement."""

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
from .write import read_existing


class EditFileParams(BaseModel):
    path: str = Field(description="File path (relative to working directory or absolute)")
    old_text: str = Field(description="The exact text to find and replace. Empty to create a new file.")
    new_text: str = Field(description="The replacement text")
    replace_all: bool = Field(False, description="If true, replace all occurrences. Default false (must be unique).")
    modified_by_user: bool = Field(False, description="Set by the client when the user edited the content.")


class EditError(Exception):
    pass


def apply_replacement(current: str | None, old_text: str, new_text: str, replace_all: bool = False) -> str:
    """Return the file content after the edit, raising EditError when it cannot apply."""
    if current is None:
        if old_text:
            raise EditError("File not found. Use an empty old_text to create a new file.")
        return new_text
    if not old_text:
        if current:
            raise EditError("old_text is empty but the file already exists and is not empty.")
        return new_text

    count = current.count(old_text)
    if count == 0:
        raise EditError("old_text not found in file")
    if count > 1 and not replace_all:
        raise EditError(
            f"old_text matches {count} times. Use replace_all=true or provide more context to make it unique."
        )
    return current.replace(old_text, new_text) if replace_all else current.replace(old_text, new_text, 1)


class EditFileTool(BaseTool, ModifyContext):
    name = "edit_file"
    display_name = "Edit"
    description = (
        "Edit a file by replacing an exact string with new text. "
        "The old_text must appear exactly once in the file (must be unique). "
        "Use replace_all=true to replace all occurrences. "
        "An empty old_text creates a new file containing new_text."
    )
    params_model = EditFileParams
    tier = ToolTier.WRITE

    def _resolve(self, path: str) -> str:
        resolved, error = validate_path(path, self.session.working_dir)
        if error:
            raise ValueError(error)
        return resolved

    def check_params(self, params: EditFileParams) -> str | None:
        _, error = validate_path(params.path, self.session.working_dir)
        return error

    def get_description(self, args: dict[str, Any]) -> str:
        shown = display_path(str(args.get("path", "")), self.session.working_dir)
        old = str(args.get("old_text", "")).split("\n")[0][:30]
        new = str(args.get("new_text", "")).split("\n")[0][:30]
        if not old:
            return f"Create {shown}"
        return f"{shown}: {old} => {new}"

    # Modify context

    def get_file_path(self, args: dict[str, Any]) -> str:
        return self._resolve(str(args.get("path", "")))

    async def get_current_content(self, args: dict[str, Any]) -> str:
        return read_existing(self.get_file_path(args)) or ""

    async def get_proposed_content(self, args: dict[str, Any]) -> str:
        params = self.parse_params(args)
        current = read_existing(self.get_file_path(args))
        try:
            return apply_replacement(current, params.old_text, params.new_text, params.replace_all)
        except EditError:
            return current or ""

    def create_updated_params(
        self, original_content: str, modified_content: str, original_args: dict[str, Any]
    ) -> dict[str, Any]:
        return {
            **original_args,
            "old_text": original_content,
            "new_text": modified_content,
            "replace_all": False,
            "modified_by_user": True,
        }

    async def build_confirmation(
        self, args: dict[str, Any], verdict: SafetyVerdict, cancel_event: asyncio.Event
    ) -> ConfirmationDetails | None:
        params = self.parse_params(args)
        resolved = self._resolve(params.path)
        current = read_existing(resolved)
        try:
            proposed = apply_replacement(current, params.old_text, params.new_text, params.replace_all)
        except EditError:
            # execute() reports the failure; nothing to approve.
            return None
        file_name = os.path.basename(resolved)
        return EditConfirmationDetails(
            title=f"Confirm Edit: {display_path(resolved, self.session.working_dir)}",
            file_name=file_name,
            file_path=resolved,
            file_diff=create_diff(file_name, current or "", proposed),
            original_content=current,
            new_content=proposed,
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

        try:
            current = read_existing(resolved)
            new_content = apply_replacement(current, params.old_text, params.new_text, params.replace_all)
        except (EditError, OSError) as e:
            return ToolResult(llm_content=f"Error: {e}", error=ToolError(str(e)))

        try:
            os.makedirs(os.path.dirname(resolved), exist_ok=True)
            with open(resolved, "w", encoding="utf-8") as f:
                f.write(new_content)
        except OSError as e:
            return ToolResult(llm_content=f"Error: {e}", error=ToolError(str(e)))

        if current is None:
            message = f"Created new file: {resolved} with provided content."
        else:
            replacements = current.count(params.old_text) if params.replace_all and params.old_text else 1
            message = f"Successfully modified file: {resolved} ({replacements} replacements)."
        if params.modified_by_user:
            message += " User modified the `new_text` to be the content shown in the final diff."

        file_name = os.path.basename(resolved)
        return ToolResult(
            llm_content=message,
            display_summary=FileDiff(file_name, create_diff(file_name, current or "", new_content)),
        )
