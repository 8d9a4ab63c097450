"""Rebuilding a modifiable tool's arguments from user-edited content."""

from __future__ import annotations

import asyncio
import difflib
import logging
import os
import tempfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..tools.base import ModifyContext
from .editor import open_diff

logger = logging.getLogger(__name__)

_DIFF_DIR_NAME = "foyer-modify-diffs"


@dataclass(frozen=True)
class ModifyResult:
    updated_params: dict[str, Any]
    updated_diff: str
    current_content: str
    proposed_content: str


def create_diff(file_name: str, old_content: str, new_content: str) -> str:
    """Unified diff labelled Current/Proposed, the format shown in edit confirmations."""
    lines = difflib.unified_diff(
        old_content.splitlines(keepends=True),
        new_content.splitlines(keepends=True),
        fromfile=f"{file_name}\tCurrent",
        tofile=f"{file_name}\tProposed",
    )
    return "".join(line if line.endswith("\n") else line + "\n\\ No newline at end of file\n" for line in lines)


def _build_result(ctx: ModifyContext, args: dict[str, Any], current: str, proposed: str) -> ModifyResult:
    updated = ctx.create_updated_params(current, proposed, args)
    file_name = os.path.basename(ctx.get_file_path(args))
    return ModifyResult(
        updated_params=updated,
        updated_diff=create_diff(file_name, current, proposed),
        current_content=current,
        proposed_content=proposed,
    )


async def apply_inline_modify(args: dict[str, Any], ctx: ModifyContext, new_content: str) -> ModifyResult:
    """Use content the user typed into the confirmation UI instead of the model's proposal."""
    current = await ctx.get_current_content(args)
    return _build_result(ctx, args, current, new_content)


def _create_temp_files(current: str, proposed: str, file_path: str) -> tuple[Path, Path]:
    diff_dir = Path(tempfile.gettempdir()) / _DIFF_DIR_NAME
    diff_dir.mkdir(parents=True, exist_ok=True)

    stem, ext = os.path.splitext(os.path.basename(file_path))
    stamp = time.time_ns()
    old_path = diff_dir / f"foyer-modify-{stem}-old-{stamp}{ext}"
    new_path = diff_dir / f"foyer-modify-{stem}-new-{stamp}{ext}"
    old_path.write_text(current, encoding="utf-8")
    new_path.write_text(proposed, encoding="utf-8")
    return old_path, new_path


def _read_back(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return ""


def _delete_temp_files(*paths: Path) -> None:
    for path in paths:
        try:
            path.unlink()
        except OSError:
            logger.warning("Error deleting temp diff file: %s", path)


async def modify_with_editor(
    args: dict[str, Any],
    ctx: ModifyContext,
    editor: str,
    cancel_event: asyncio.Event,
) -> ModifyResult:
    """Open ``editor`` on current vs proposed content and rebuild args from what the user saved."""
    current = await ctx.get_current_content(args)
    proposed = await ctx.get_proposed_content(args)
    old_path, new_path = _create_temp_files(current, proposed, ctx.get_file_path(args))
    try:
        await open_diff(str(old_path), str(new_path), editor)
        return _build_result(ctx, args, _read_back(old_path), _read_back(new_path))
    finally:
        _delete_temp_files(old_path, new_path)
