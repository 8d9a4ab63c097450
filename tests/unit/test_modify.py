"""Tests for services/modify.py and services/editor.py."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

import pytest

from foyer.services import editor as editor_module
from foyer.services import modify as modify_module
from foyer.services.editor import get_diff_command, is_editor_available
from foyer.services.modify import apply_inline_modify, create_diff, modify_with_editor
from foyer.tools.base import ModifyContext


class _Ctx(ModifyContext):
    def __init__(self, current: str, proposed: str) -> None:
        self.current = current
        self.proposed = proposed

    def get_file_path(self, args: dict[str, Any]) -> str:
        return "/work/notes.txt"

    async def get_current_content(self, args: dict[str, Any]) -> str:
        return self.current

    async def get_proposed_content(self, args: dict[str, Any]) -> str:
        return self.proposed

    def create_updated_params(
        self, original_content: str, modified_content: str, original_args: dict[str, Any]
    ) -> dict[str, Any]:
        return {**original_args, "content": modified_content}


class TestCreateDiff:
    def test_labels(self) -> None:
        diff = create_diff("notes.txt", "a\n", "b\n")
        assert diff.splitlines()[:2] == ["--- notes.txt\tCurrent", "+++ notes.txt\tProposed"]
        assert "-a\n+b\n" in diff

    def test_missing_trailing_newline_marked(self) -> None:
        diff = create_diff("notes.txt", "a\n", "a\nb")
        assert diff.endswith("+b\n\\ No newline at end of file\n")

    def test_identical_content(self) -> None:
        assert create_diff("notes.txt", "same\n", "same\n") == ""


class TestApplyInlineModify:
    @pytest.mark.asyncio
    async def test_rebuilds_args(self) -> None:
        result = await apply_inline_modify({"path": "notes.txt", "content": "model"}, _Ctx("old\n", "model\n"), "mine\n")
        assert result.updated_params == {"path": "notes.txt", "content": "mine\n"}
        assert result.current_content == "old\n"
        assert result.proposed_content == "mine\n"
        assert "+mine" in result.updated_diff


class TestModifyWithEditor:
    @pytest.mark.asyncio
    async def test_reads_back_saved_content(self, monkeypatch: pytest.MonkeyPatch) -> None:
        seen: dict[str, str] = {}

        async def fake_open_diff(old_path: str, new_path: str, editor: str) -> None:
            seen["editor"] = editor
            seen["old"] = Path(old_path).read_text()
            seen["new_path"] = new_path
            Path(new_path).write_text("edited\n")

        monkeypatch.setattr(modify_module, "open_diff", fake_open_diff)

        result = await modify_with_editor({"path": "notes.txt"}, _Ctx("old\n", "model\n"), "vim", asyncio.Event())

        assert seen["editor"] == "vim"
        assert seen["old"] == "old\n"
        assert seen["new_path"].endswith(".txt")
        assert result.updated_params == {"path": "notes.txt", "content": "edited\n"}
        assert not Path(seen["new_path"]).exists()

    @pytest.mark.asyncio
    async def test_editor_failure_cleans_up(self, monkeypatch: pytest.MonkeyPatch) -> None:
        paths: list[str] = []

        async def failing_open_diff(old_path: str, new_path: str, editor: str) -> None:
            paths.extend([old_path, new_path])
            raise RuntimeError("vim exited with code 1")

        monkeypatch.setattr(modify_module, "open_diff", failing_open_diff)

        with pytest.raises(RuntimeError, match="exited with code 1"):
            await modify_with_editor({"path": "notes.txt"}, _Ctx("old\n", "model\n"), "vim", asyncio.Event())
        assert paths and not any(Path(p).exists() for p in paths)


class TestEditor:
    def test_gui_diff_command_waits(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(editor_module, "_IS_WINDOWS", False)
        command = get_diff_command("/tmp/old", "/tmp/new", "vscode")
        assert command is not None
        assert command.command == "code"
        assert command.args == ["--wait", "--diff", "/tmp/old", "/tmp/new"]

    def test_vim_diff_command(self) -> None:
        command = get_diff_command("/tmp/old", "/tmp/new", "vim")
        assert command is not None
        assert command.args[0] == "-d"
        assert command.args[-2:] == ["/tmp/old", "/tmp/new"]

    def test_unknown_editor(self) -> None:
        assert get_diff_command("/tmp/old", "/tmp/new", "emacs") is None
        assert not is_editor_available("emacs")
        assert not is_editor_available(None)

    def test_availability_requires_binary(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(editor_module.shutil, "which", lambda name: None)
        assert not is_editor_available("vim")
        monkeypatch.setattr(editor_module.shutil, "which", lambda name: f"/usr/bin/{name}")
        assert is_editor_available("vim")

    def test_gui_editors_blocked_in_sandbox(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(editor_module.shutil, "which", lambda name: f"/usr/bin/{name}")
        monkeypatch.setenv("SANDBOX", "1")
        assert not is_editor_available("vscode")
        assert is_editor_available("neovim")

    @pytest.mark.asyncio
    async def test_open_diff_unknown_editor(self) -> None:
        with pytest.raises(RuntimeError, match="No diff command"):
            await editor_module.open_diff("/tmp/old", "/tmp/new", "emacs")
