"""Pydantic models for tool call input and confirmation decisions."""

from __future__ import annotations

import uuid
from typing import Any

from pydantic import BaseModel, Field, model_validator

from .services.tool_calls import ToolCallRequest
from .tools.confirmation import ConfirmationOutcome


def _new_call_id() -> str:
    return f"call_{uuid.uuid4().hex[:12]}"


class ToolCallInput(BaseModel):
    """A tool call as written in a batch file or sent by a client."""

    call_id: str = Field(default_factory=_new_call_id, min_length=1, max_length=200)
    name: str = Field(min_length=1, max_length=200)
    args: dict[str, Any] = Field(default_factory=dict)
    prompt_id: str = Field(default="", max_length=200)
    is_client_initiated: bool = False

    @model_validator(mode="before")
    @classmethod
    def _accept_aliases(cls, data: Any) -> Any:
        # OpenAI-style {"id", "function_name", "arguments"} is accepted too
        if isinstance(data, dict):
            data = dict(data)
            if "call_id" not in data and "id" in data:
                data["call_id"] = data.pop("id")
            if "name" not in data and "function_name" in data:
                data["name"] = data.pop("function_name")
            if "args" not in data and "arguments" in data:
                data["args"] = data.pop("arguments")
        return data

    def to_request(self) -> ToolCallRequest:
        return ToolCallRequest(
            call_id=self.call_id,
            name=self.name,
            args=dict(self.args),
            is_client_initiated=self.is_client_initiated,
            prompt_id=self.prompt_id,
        )


class DecisionPayload(BaseModel):
    new_content: str | None = Field(default=None, max_length=10_000_000)


class ConfirmationDecision(BaseModel):
    call_id: str = Field(min_length=1, max_length=200)
    outcome: ConfirmationOutcome
    payload: DecisionPayload | None = None
