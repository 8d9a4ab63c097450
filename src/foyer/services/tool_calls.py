"""Tool call requests, responses, and the per-call state machine values.

Every state is a frozen dataclass; a transition builds a new instance so the
snapshots handed to subscribers never change underneath them.

    Validating -> Scheduled -------> Executing -> Success | Error
               -> AwaitingApproval -> Executing
               -> Error | Cancelled
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Union

from ..tools.base import BaseTool, FileDiff, ToolErrorType
from ..tools.confirmation import ConfirmationDetails, ConfirmationOutcome


class ToolCallStatus(str, Enum):
    VALIDATING = "validating"
    SCHEDULED = "scheduled"
    AWAITING_APPROVAL = "awaiting_approval"
    EXECUTING = "executing"
    SUCCESS = "success"
    ERROR = "error"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset({ToolCallStatus.SUCCESS, ToolCallStatus.ERROR, ToolCallStatus.CANCELLED})

# A call only ever moves to an equal or later stage.
_STAGES: dict[ToolCallStatus, int] = {
    ToolCallStatus.VALIDATING: 0,
    ToolCallStatus.SCHEDULED: 1,
    ToolCallStatus.AWAITING_APPROVAL: 1,
    ToolCallStatus.EXECUTING: 2,
    ToolCallStatus.SUCCESS: 3,
    ToolCallStatus.ERROR: 3,
    ToolCallStatus.CANCELLED: 3,
}


@dataclass(frozen=True)
class ToolCallRequest:
    call_id: str
    name: str
    args: dict[str, Any] = field(default_factory=dict)
    is_client_initiated: bool = False
    prompt_id: str = ""


@dataclass(frozen=True)
class ToolCallResponse:
    call_id: str
    response_parts: list[dict[str, Any]]
    result_display: str | FileDiff | None = None
    error: Exception | None = None
    error_type: ToolErrorType | None = None


class ToolCallError(Exception):
    def __init__(self, message: str, error_type: ToolErrorType) -> None:
        super().__init__(message)
        self.error_type = error_type


def now_ms() -> float:
    return time.time() * 1000


class _CallState:
    request: ToolCallRequest
    start_time: float | None
    status: ClassVar[ToolCallStatus]

    @property
    def call_id(self) -> str:
        return self.request.call_id

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def can_move_to(self, status: ToolCallStatus) -> bool:
        return not self.is_terminal and _STAGES[status] >= _STAGES[self.status]

    @property
    def duration_ms(self) -> float | None:
        end = getattr(self, "end_time", None)
        if self.start_time is None or end is None:
            return None
        return end - self.start_time


@dataclass(frozen=True)
class ValidatingToolCall(_CallState):
    request: ToolCallRequest
    tool: BaseTool | None = None
    start_time: float | None = None
    outcome: ConfirmationOutcome | None = None

    status: ClassVar[ToolCallStatus] = ToolCallStatus.VALIDATING


@dataclass(frozen=True)
class ScheduledToolCall(_CallState):
    request: ToolCallRequest
    tool: BaseTool
    start_time: float | None = None
    outcome: ConfirmationOutcome | None = None

    status: ClassVar[ToolCallStatus] = ToolCallStatus.SCHEDULED


@dataclass(frozen=True)
class WaitingToolCall(_CallState):
    request: ToolCallRequest
    tool: BaseTool
    confirmation_details: ConfirmationDetails
    start_time: float | None = None
    outcome: ConfirmationOutcome | None = None

    status: ClassVar[ToolCallStatus] = ToolCallStatus.AWAITING_APPROVAL


@dataclass(frozen=True)
class ExecutingToolCall(_CallState):
    request: ToolCallRequest
    tool: BaseTool
    start_time: float | None = None
    live_output: str | None = None
    outcome: ConfirmationOutcome | None = None

    status: ClassVar[ToolCallStatus] = ToolCallStatus.EXECUTING


@dataclass(frozen=True)
class SuccessfulToolCall(_CallState):
    request: ToolCallRequest
    tool: BaseTool
    response: ToolCallResponse
    start_time: float | None = None
    end_time: float | None = None
    outcome: ConfirmationOutcome | None = None

    status: ClassVar[ToolCallStatus] = ToolCallStatus.SUCCESS


@dataclass(frozen=True)
class ErroredToolCall(_CallState):
    request: ToolCallRequest
    response: ToolCallResponse
    tool: BaseTool | None = None
    start_time: float | None = None
    end_time: float | None = None
    outcome: ConfirmationOutcome | None = None

    status: ClassVar[ToolCallStatus] = ToolCallStatus.ERROR


@dataclass(frozen=True)
class CancelledToolCall(_CallState):
    request: ToolCallRequest
    response: ToolCallResponse
    reason: str
    tool: BaseTool | None = None
    start_time: float | None = None
    end_time: float | None = None
    outcome: ConfirmationOutcome | None = None

    status: ClassVar[ToolCallStatus] = ToolCallStatus.CANCELLED


ToolCall = Union[
    ValidatingToolCall,
    ScheduledToolCall,
    WaitingToolCall,
    ExecutingToolCall,
    SuccessfulToolCall,
    ErroredToolCall,
    CancelledToolCall,
]

CompletedToolCall = Union[SuccessfulToolCall, ErroredToolCall, CancelledToolCall]
