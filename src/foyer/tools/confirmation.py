"""Confirmation details a tool hands back when it wants user approval."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, ClassVar, Union


class ConfirmationOutcome(str, Enum):
    PROCEED_ONCE = "proceed_once"
    PROCEED_ALWAYS = "proceed_always"
    PROCEED_ALWAYS_SERVER = "proceed_always_server"
    PROCEED_ALWAYS_TOOL = "proceed_always_tool"
    MODIFY_WITH_EDITOR = "modify_with_editor"
    CANCEL = "cancel"

    @property
    def is_proceed(self) -> bool:
        return self not in (ConfirmationOutcome.CANCEL, ConfirmationOutcome.MODIFY_WITH_EDITOR)


@dataclass(frozen=True)
class ConfirmationPayload:
    """Extra data sent with a decision; ``new_content`` overrides the proposed file content."""

    new_content: str | None = None


OnConfirm = Callable[[ConfirmationOutcome, Union[ConfirmationPayload, None]], Awaitable[None]]


async def _noop_on_confirm(outcome: ConfirmationOutcome, payload: ConfirmationPayload | None = None) -> None:
    return None


@dataclass(frozen=True)
class EditConfirmationDetails:
    title: str
    file_name: str
    file_path: str
    file_diff: str
    original_content: str | None
    new_content: str
    is_modifying: bool = False
    on_confirm: OnConfirm = field(default=_noop_on_confirm, repr=False, compare=False)

    kind: ClassVar[str] = "edit"


@dataclass(frozen=True)
class ExecConfirmationDetails:
    title: str
    command: str
    root_command: str
    on_confirm: OnConfirm = field(default=_noop_on_confirm, repr=False, compare=False)

    kind: ClassVar[str] = "exec"


@dataclass(frozen=True)
class McpConfirmationDetails:
    title: str
    server_name: str
    tool_name: str
    tool_display_name: str
    on_confirm: OnConfirm = field(default=_noop_on_confirm, repr=False, compare=False)

    kind: ClassVar[str] = "mcp"


@dataclass(frozen=True)
class InfoConfirmationDetails:
    title: str
    prompt: str
    urls: list[str] = field(default_factory=list)
    on_confirm: OnConfirm = field(default=_noop_on_confirm, repr=False, compare=False)

    kind: ClassVar[str] = "info"


ConfirmationDetails = Union[
    EditConfirmationDetails,
    ExecConfirmationDetails,
    McpConfirmationDetails,
    InfoConfirmationDetails,
]


def describe_confirmation(details: ConfirmationDetails) -> dict[str, Any]:
    """Flatten confirmation details into a JSON-friendly dict (drops the callback)."""
    data: dict[str, Any] = {"type": details.kind, "title": details.title}
    if isinstance(details, EditConfirmationDetails):
        data.update(
            file_name=details.file_name,
            file_path=details.file_path,
            file_diff=details.file_diff,
            is_modifying=details.is_modifying,
        )
    elif isinstance(details, ExecConfirmationDetails):
        data.update(command=details.command, root_command=details.root_command)
    elif isinstance(details, McpConfirmationDetails):
        data.update(server_name=details.server_name, tool_name=details.tool_name)
    else:
        data.update(prompt=details.prompt, urls=list(details.urls))
    return data
