"""Tool capability contract shared by built-in and MCP-backed tools."""

from __future__ import annotations

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, ClassVar

from pydantic import BaseModel, ValidationError

from .confirmation import (
    ConfirmationDetails,
    ConfirmationOutcome,
    ConfirmationPayload,
    InfoConfirmationDetails,
)
from .tiers import ToolTier

if TYPE_CHECKING:
    from .safety import SafetyVerdict
    from .session import ToolSession

logger = logging.getLogger(__name__)

LiveOutputCallback = Callable[[str], None]


class ToolErrorType(str, Enum):
    TOOL_NOT_REGISTERED = "tool_not_registered"
    INVALID_TOOL_PARAMS = "invalid_tool_params"
    CONFIRMATION_REJECTED = "confirmation_rejected"
    EXECUTION_FAILED = "execution_failed"
    CANCELLED = "cancelled"
    UNHANDLED_EXCEPTION = "unhandled_exception"


@dataclass(frozen=True)
class ToolError:
    message: str
    type: ToolErrorType = ToolErrorType.EXECUTION_FAILED


@dataclass(frozen=True)
class FileDiff:
    file_name: str
    file_diff: str


@dataclass
class ToolResult:
    """Outcome of ``BaseTool.execute``.

    ``llm_content`` is what the model sees: a string, a single wire part
    (``{"text": ...}`` / ``{"inlineData": ...}``) or a list of parts.
    ``display_summary`` is for humans only. A tool reports failure without
    raising by setting ``error``.
    """

    llm_content: Any
    display_summary: str | FileDiff | None = None
    error: ToolError | None = None


def format_validation_error(exc: ValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())) or "params"
        parts.append(f"{loc}: {err.get('msg', 'invalid value')}")
    return "Invalid parameters: " + "; ".join(parts)


class BaseTool(ABC):
    name: str
    display_name: str
    description: str
    params_model: ClassVar[type[BaseModel]]
    can_update_output: ClassVar[bool] = False
    tier: ClassVar[ToolTier] = ToolTier.EXECUTE

    def __init__(self, session: ToolSession) -> None:
        self.session = session

    @property
    def parameters(self) -> dict[str, Any]:
        schema = self.params_model.model_json_schema()
        schema.pop("title", None)
        return schema

    @property
    def definition(self) -> dict[str, Any]:
        return {"name": self.name, "description": self.description, "parameters": self.parameters}

    def get_description(self, args: dict[str, Any]) -> str:
        return json.dumps(args)

    def parse_params(self, args: dict[str, Any]) -> Any:
        return self.params_model.model_validate(args)

    def validate_params(self, args: dict[str, Any]) -> str | None:
        """Return an error message for bad arguments, or None when they are acceptable."""
        denied = self.session.denial_reason(self.name)
        if denied:
            logger.warning("Tool hard-denied by config: %s", self.name)
            return denied
        try:
            params = self.parse_params(args)
        except ValidationError as e:
            return format_validation_error(e)
        return self.check_params(params)

    def check_params(self, params: Any) -> str | None:
        """Tool-specific checks beyond the schema (paths, patterns...)."""
        return None

    async def should_confirm_execute(
        self, args: dict[str, Any], cancel_event: asyncio.Event
    ) -> ConfirmationDetails | None:
        verdict = self.session.check_safety(self.name, args, self.tier)
        if verdict is None or not verdict.needs_approval:
            return None
        return await self.build_confirmation(args, verdict, cancel_event)

    async def build_confirmation(
        self, args: dict[str, Any], verdict: SafetyVerdict, cancel_event: asyncio.Event
    ) -> ConfirmationDetails | None:
        return InfoConfirmationDetails(
            title=f"Confirm {self.display_name}",
            prompt=verdict.reason or self.get_description(args),
            on_confirm=self._remember_tool,
        )

    async def _remember_tool(self, outcome: ConfirmationOutcome, payload: ConfirmationPayload | None = None) -> None:
        if outcome in (ConfirmationOutcome.PROCEED_ALWAYS, ConfirmationOutcome.PROCEED_ALWAYS_TOOL):
            self.session.allowlist.allow_tool(self.name)

    @abstractmethod
    async def execute(
        self,
        args: dict[str, Any],
        cancel_event: asyncio.Event,
        update_output: LiveOutputCallback | None = None,
    ) -> ToolResult: ...


class ModifyContext(ABC):
    """Tools that let the user rewrite the proposed content before it is applied."""

    @abstractmethod
    def get_file_path(self, args: dict[str, Any]) -> str: ...

    @abstractmethod
    async def get_current_content(self, args: dict[str, Any]) -> str: ...

    @abstractmethod
    async def get_proposed_content(self, args: dict[str, Any]) -> str: ...

    @abstractmethod
    def create_updated_params(
        self, original_content: str, modified_content: str, original_args: dict[str, Any]
    ) -> dict[str, Any]: ...


def is_modifiable(tool: object) -> bool:
    return isinstance(tool, ModifyContext)
