"""External diff editors used by the "modify with editor" confirmation flow."""

from __future__ import annotations

import asyncio
import logging
import os
import shutil
import sys
from dataclasses import dataclass

logger = logging.getLogger(__name__)

_IS_WINDOWS = sys.platform == "win32"

EDITOR_COMMANDS: dict[str, tuple[str, str]] = {
    # editor type -> (windows binary, default binary)
    "vscode": ("code.cmd", "code"),
    "windsurf": ("windsurf", "windsurf"),
    "cursor": ("cursor", "cursor"),
    "vim": ("vim", "vim"),
    "neovim": ("nvim", "nvim"),
}

_GUI_EDITORS = ("vscode", "windsurf", "cursor")

_VIM_DIFF_ARGS = [
    "-d",
    # skip viminfo to avoid E138 errors
    "-i",
    "NONE",
    # left window read-only, right window editable
    "-c",
    "wincmd h | set readonly | wincmd l",
    "-c",
    "highlight DiffAdd cterm=bold ctermbg=22 guibg=#005f00 "
    "| highlight DiffChange cterm=bold ctermbg=24 guibg=#005f87 "
    "| highlight DiffText ctermbg=21 guibg=#0000af "
    "| highlight DiffDelete ctermbg=52 guibg=#5f0000",
    "-c",
    "set showtabline=2 | set tabline=[Instructions]\\ :wqa(save\\ &\\ quit)\\ \\|\\ i/esc(toggle\\ edit\\ mode)",
    "-c",
    "wincmd h | setlocal statusline=OLD\\ FILE",
    "-c",
    "wincmd l | setlocal statusline=%#StatusBold#NEW\\ FILE\\ :wqa(save\\ &\\ quit)\\ \\|\\ i/esc(toggle\\ edit\\ mode)",
    # closing one window closes them all
    "-c",
    "autocmd WinClosed * wqa",
]


@dataclass(frozen=True)
class DiffCommand:
    command: str
    args: list[str]


def is_valid_editor_type(editor: str | None) -> bool:
    return bool(editor) and editor in EDITOR_COMMANDS


def _editor_binary(editor: str) -> str:
    windows, default = EDITOR_COMMANDS[editor]
    return windows if _IS_WINDOWS else default


def check_has_editor_type(editor: str) -> bool:
    return shutil.which(_editor_binary(editor)) is not None


def allow_editor_type_in_sandbox(editor: str) -> bool:
    if editor in _GUI_EDITORS:
        return not os.environ.get("SANDBOX")
    return True


def is_editor_available(editor: str | None) -> bool:
    """True when ``editor`` is a known type, installed, and allowed in this environment."""
    if not editor or not is_valid_editor_type(editor):
        return False
    return check_has_editor_type(editor) and allow_editor_type_in_sandbox(editor)


def get_diff_command(old_path: str, new_path: str, editor: str) -> DiffCommand | None:
    if editor in _GUI_EDITORS:
        return DiffCommand(_editor_binary(editor), ["--wait", "--diff", old_path, new_path])
    if editor in ("vim", "neovim"):
        return DiffCommand(_editor_binary(editor), [*_VIM_DIFF_ARGS, old_path, new_path])
    return None


async def open_diff(old_path: str, new_path: str, editor: str) -> None:
    """Open ``editor`` on the two files and wait until the user closes it.

    GUI editors need ``--wait`` to block; terminal editors block on their own.
    Raises RuntimeError when the editor exits with a non-zero status.
    """
    diff_command = get_diff_command(old_path, new_path, editor)
    if diff_command is None:
        raise RuntimeError(f"No diff command for editor '{editor}'")

    logger.debug("Opening diff editor: %s %s", diff_command.command, " ".join(diff_command.args))
    proc = await asyncio.create_subprocess_exec(diff_command.command, *diff_command.args)
    code = await proc.wait()
    if code != 0:
        raise RuntimeError(f"{editor} exited with code {code}")
