"""Tool call scheduler: validation, confirmation, concurrent execution, completion.

One batch at a time. Each request gets its own worker; workers never touch
each other's calls, and every transition republishes an immutable snapshot
of the whole batch through ``on_tool_calls_update``. When the last call of a
batch reaches Success/Error/Cancelled, ``on_all_tool_calls_complete`` fires
exactly once and the scheduler forgets the batch.

Per-call failures never raise out of ``schedule()`` or
``handle_confirmation_response()``; they become terminal Error/Cancelled
states. Exceptions raised by the collaborator callbacks themselves do
propagate.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from dataclasses import replace
from typing import Any, Callable, Sequence

from ..models import ConfirmationDecision
from ..tools import ToolRegistry
from ..tools.base import BaseTool, ToolErrorType, is_modifiable
from ..tools.confirmation import (
    ConfirmationDetails,
    ConfirmationOutcome,
    ConfirmationPayload,
    EditConfirmationDetails,
    ExecConfirmationDetails,
    OnConfirm,
    describe_confirmation,
)
from .editor import is_editor_available
from .function_response import convert_to_function_response, error_response_parts
from .metrics import MetricsSink
from .modify import ModifyResult, apply_inline_modify, modify_with_editor
from .tool_calls import (
    CancelledToolCall,
    CompletedToolCall,
    ErroredToolCall,
    ExecutingToolCall,
    ScheduledToolCall,
    SuccessfulToolCall,
    ToolCall,
    ToolCallError,
    ToolCallRequest,
    ToolCallResponse,
    ValidatingToolCall,
    WaitingToolCall,
    now_ms,
)

logger = logging.getLogger(__name__)

ToolCallsUpdateHandler = Callable[[list[ToolCall]], None]
AllToolCallsCompleteHandler = Callable[[list[CompletedToolCall]], None]
OutputUpdateHandler = Callable[[str, str], None]

USER_REJECTED_MESSAGE = "User rejected function call."
DEFAULT_CANCEL_REASON = "User initiated cancellation."


class SchedulerBusyError(RuntimeError):
    """Raised when a batch is scheduled while the previous one is still in flight."""


def _rejection_display(details: ConfirmationDetails) -> str:
    if isinstance(details, EditConfirmationDetails):
        return details.file_diff
    if isinstance(details, ExecConfirmationDetails):
        return f"~~{details.command}~~"
    return f"~~{details.title}~~"


def _with_modification(details: ConfirmationDetails, result: ModifyResult) -> ConfirmationDetails:
    if isinstance(details, EditConfirmationDetails):
        return replace(
            details,
            file_diff=result.updated_diff,
            new_content=result.proposed_content,
            is_modifying=False,
        )
    return details


class ToolCallScheduler:
    def __init__(
        self,
        tool_registry: ToolRegistry,
        *,
        on_tool_calls_update: ToolCallsUpdateHandler | None = None,
        on_all_tool_calls_complete: AllToolCallsCompleteHandler | None = None,
        output_update_handler: OutputUpdateHandler | None = None,
        get_preferred_editor: Callable[[], str | None] | None = None,
        metrics: MetricsSink | None = None,
        live_output_interval: float = 1.0,
    ) -> None:
        self._registry = tool_registry
        self._on_tool_calls_update = on_tool_calls_update
        self._on_all_tool_calls_complete = on_all_tool_calls_complete
        self._output_update_handler = output_update_handler
        self._get_preferred_editor = get_preferred_editor
        self._metrics = metrics
        self._live_output_interval = live_output_interval

        self._calls: dict[str, ToolCall] = {}
        self._cancel_event: asyncio.Event | None = None
        self._cancel_reason = DEFAULT_CANCEL_REASON
        self._tasks: set[asyncio.Task[None]] = set()
        self._completion: asyncio.Future[list[CompletedToolCall]] | None = None
        self._completed = False

    @property
    def tool_calls(self) -> list[ToolCall]:
        return list(self._calls.values())

    def get_call(self, call_id: str) -> ToolCall | None:
        return self._calls.get(call_id)

    def is_running(self) -> bool:
        return any(not call.is_terminal for call in self._calls.values())

    # ------------------------------------------------------------------
    # Scheduling
    # ------------------------------------------------------------------

    async def schedule(
        self,
        requests: ToolCallRequest | Sequence[ToolCallRequest],
        cancel_event: asyncio.Event,
    ) -> None:
        """Validate a batch and start every call that needs no confirmation.

        Returns once each call is executing, parked in AwaitingApproval, or
        terminal. Use ``wait_for_completion()`` to await the whole batch.
        """
        batch = [requests] if isinstance(requests, ToolCallRequest) else list(requests)
        if self.is_running():
            raise SchedulerBusyError(
                "Cannot schedule new tool calls while other tool calls are still running or awaiting approval"
            )
        call_ids = [r.call_id for r in batch]
        duplicates = sorted({cid for cid in call_ids if call_ids.count(cid) > 1})
        if duplicates:
            raise ValueError(f"Duplicate call_id(s) in batch: {', '.join(duplicates)}")

        self._calls = {}
        self._cancel_event = cancel_event
        self._cancel_reason = DEFAULT_CANCEL_REASON
        self._completion = asyncio.get_running_loop().create_future()
        self._completed = False

        if not batch:
            self._complete_batch([])
            return

        started = now_ms()
        for request in batch:
            self._calls[request.call_id] = ValidatingToolCall(request=request, start_time=started)
        logger.debug("Scheduling %d tool call(s): %s", len(batch), ", ".join(r.name for r in batch))
        self._notify()

        await asyncio.gather(*(self._validate(request, cancel_event) for request in batch))

    async def _validate(self, request: ToolCallRequest, cancel_event: asyncio.Event) -> None:
        tool = self._registry.get_tool(request.name)
        if tool is None:
            self._set_error(
                request, None, ToolErrorType.TOOL_NOT_REGISTERED, f'Tool "{request.name}" not found in registry'
            )
            return

        try:
            invalid = tool.validate_params(request.args)
            if inspect.isawaitable(invalid):
                invalid = await invalid
        except Exception as e:
            logger.exception("validate_params raised for tool %s", request.name)
            self._set_error(request, tool, ToolErrorType.UNHANDLED_EXCEPTION, str(e) or type(e).__name__, error=e)
            return
        if invalid:
            self._set_error(request, tool, ToolErrorType.INVALID_TOOL_PARAMS, str(invalid))
            return

        if cancel_event.is_set():
            self._set_cancelled(request, tool, self._cancel_reason)
            return

        try:
            details = await tool.should_confirm_execute(request.args, cancel_event)
        except Exception as e:
            logger.exception("should_confirm_execute raised for tool %s", request.name)
            self._set_error(request, tool, ToolErrorType.UNHANDLED_EXCEPTION, str(e) or type(e).__name__, error=e)
            return

        if cancel_event.is_set():
            self._set_cancelled(request, tool, self._cancel_reason)
            return

        current = self._calls.get(request.call_id)
        start_time = current.start_time if current else None
        if details:
            logger.debug("Call %s awaiting approval: %s", request.call_id, describe_confirmation(details))
            self._set_call(
                WaitingToolCall(request=request, tool=tool, confirmation_details=details, start_time=start_time)
            )
            return

        if self._set_call(ScheduledToolCall(request=request, tool=tool, start_time=start_time)):
            self._spawn(self._execute(request.call_id, cancel_event))

    def _spawn(self, coro: Any) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)

    def _on_task_done(self, task: asyncio.Task[None]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Tool call worker failed", exc_info=exc)
            if self._completion is not None and not self._completion.done():
                self._completion.set_exception(exc)

    # ------------------------------------------------------------------
    # Confirmation
    # ------------------------------------------------------------------

    async def handle_confirmation_response(
        self,
        call_id: str,
        on_confirm: OnConfirm | None,
        outcome: ConfirmationOutcome | str,
        cancel_event: asyncio.Event,
        payload: ConfirmationPayload | None = None,
    ) -> None:
        """Apply the user's decision to a call parked in AwaitingApproval.

        ``on_confirm`` (normally the confirmation details' own callback) runs
        first so the tool can record "always allow" choices. A no-op when the
        call is not awaiting approval.
        """
        call = self._calls.get(call_id)
        if not isinstance(call, WaitingToolCall):
            logger.debug("Ignoring confirmation for %s: not awaiting approval", call_id)
            return
        outcome = ConfirmationOutcome(outcome)

        callback = on_confirm or call.confirmation_details.on_confirm
        try:
            await callback(outcome, payload)
        except Exception as e:
            logger.exception("on_confirm raised for tool %s", call.request.name)
            self._set_error(
                call.request, call.tool, ToolErrorType.UNHANDLED_EXCEPTION, str(e) or type(e).__name__, error=e
            )
            return

        call = self._calls.get(call_id)
        if not isinstance(call, WaitingToolCall):
            return

        if outcome == ConfirmationOutcome.CANCEL:
            self._set_error(
                call.request,
                call.tool,
                ToolErrorType.CONFIRMATION_REJECTED,
                USER_REJECTED_MESSAGE,
                display=_rejection_display(call.confirmation_details),
                start_time=call.start_time,
                outcome=outcome,
            )
            return

        if outcome == ConfirmationOutcome.MODIFY_WITH_EDITOR:
            await self._modify_with_editor(call, cancel_event)
            return

        if payload is not None and payload.new_content is not None and is_modifiable(call.tool):
            try:
                result = await apply_inline_modify(call.request.args, call.tool, payload.new_content)  # type: ignore[arg-type]
            except Exception as e:
                logger.exception("Applying modified content failed for tool %s", call.request.name)
                if self._calls.get(call_id) is call:
                    self._set_error(
                        call.request, call.tool, ToolErrorType.UNHANDLED_EXCEPTION, str(e) or type(e).__name__, error=e
                    )
                return
            if self._calls.get(call_id) is not call:
                logger.debug("Call %s changed while applying modified content; dropping decision", call_id)
                return
            self._set_call(
                replace(
                    call,
                    request=replace(call.request, args=result.updated_params),
                    confirmation_details=_with_modification(call.confirmation_details, result),
                )
            )

        await self._execute(call_id, cancel_event, outcome=outcome)

    async def apply_decision(self, decision: ConfirmationDecision, cancel_event: asyncio.Event) -> None:
        """Route a serialized decision (e.g. from a UI process) to ``handle_confirmation_response``."""
        payload = None
        if decision.payload is not None:
            payload = ConfirmationPayload(new_content=decision.payload.new_content)
        await self.handle_confirmation_response(decision.call_id, None, decision.outcome, cancel_event, payload)

    async def _modify_with_editor(self, call: WaitingToolCall, cancel_event: asyncio.Event) -> None:
        call_id = call.call_id
        if not is_modifiable(call.tool):
            logger.info("Tool %s does not support modification; still awaiting approval", call.request.name)
            return
        editor = self._get_preferred_editor() if self._get_preferred_editor else None
        if not editor or not is_editor_available(editor):
            logger.warning("No usable editor configured (%r); still awaiting approval", editor)
            return

        details = call.confirmation_details
        if isinstance(details, EditConfirmationDetails):
            self._set_call(replace(call, confirmation_details=replace(details, is_modifying=True)))

        try:
            result = await modify_with_editor(call.request.args, call.tool, editor, cancel_event)  # type: ignore[arg-type]
        except Exception as e:
            logger.warning("Editor modification failed for %s: %s", call.request.name, e)
            current = self._calls.get(call_id)
            if isinstance(current, WaitingToolCall) and isinstance(details, EditConfirmationDetails):
                self._set_call(replace(current, confirmation_details=replace(details, is_modifying=False)))
            return

        current = self._calls.get(call_id)
        if not isinstance(current, WaitingToolCall):
            return
        self._set_call(
            replace(
                current,
                request=replace(current.request, args=result.updated_params),
                confirmation_details=_with_modification(details, result),
            )
        )

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    async def _execute(
        self,
        call_id: str,
        cancel_event: asyncio.Event,
        outcome: ConfirmationOutcome | None = None,
    ) -> None:
        call = self._calls.get(call_id)
        if not isinstance(call, (ScheduledToolCall, WaitingToolCall)):
            return
        request, tool = call.request, call.tool

        if cancel_event.is_set():
            self._set_cancelled(request, tool, self._cancel_reason, outcome=outcome)
            return

        start_time = now_ms()
        if not self._set_call(ExecutingToolCall(request=request, tool=tool, start_time=start_time, outcome=outcome)):
            return
        live_output = self._live_output_callback(call_id) if tool.can_update_output else None

        try:
            result = await tool.execute(request.args, cancel_event, live_output)
        except Exception as e:
            logger.warning("Tool %s failed: %s", request.name, e, exc_info=True)
            self._set_error(
                request,
                tool,
                ToolErrorType.EXECUTION_FAILED,
                str(e) or type(e).__name__,
                error=e,
                start_time=start_time,
                outcome=outcome,
            )
            return

        if result.error is not None:
            self._set_error(
                request,
                tool,
                result.error.type,
                result.error.message,
                display=result.display_summary or result.error.message,
                start_time=start_time,
                outcome=outcome,
            )
            return

        response = ToolCallResponse(
            call_id=call_id,
            response_parts=convert_to_function_response(request.name, call_id, result.llm_content),
            result_display=result.display_summary,
        )
        self._set_call(
            SuccessfulToolCall(
                request=request,
                tool=tool,
                response=response,
                start_time=start_time,
                end_time=now_ms(),
                outcome=outcome,
            )
        )

    def _live_output_callback(self, call_id: str) -> Callable[[str], None]:
        last_publish: float | None = None

        def on_output(output: str) -> None:
            nonlocal last_publish
            if self._output_update_handler:
                self._output_update_handler(call_id, output)
            current = self._calls.get(call_id)
            if not isinstance(current, ExecutingToolCall):
                return
            self._calls[call_id] = replace(current, live_output=output)
            now = time.monotonic()
            if last_publish is None or now - last_publish >= self._live_output_interval:
                last_publish = now
                self._notify()

        return on_output

    # ------------------------------------------------------------------
    # Cancellation and completion
    # ------------------------------------------------------------------

    def cancel_all(self, reason: str = DEFAULT_CANCEL_REASON) -> None:
        """Signal the batch token and cancel every call still awaiting approval.

        Calls that are validating or executing see the token themselves.
        """
        self._cancel_reason = reason
        if self._cancel_event is not None:
            self._cancel_event.set()
        for call in list(self._calls.values()):
            if isinstance(call, WaitingToolCall):
                self._set_cancelled(call.request, call.tool, reason)

    async def wait_for_completion(self) -> list[CompletedToolCall]:
        """Wait for the current batch and return the completed calls."""
        if self._completion is None:
            return []
        return await asyncio.shield(self._completion)

    def _set_call(self, new_call: ToolCall) -> bool:
        current = self._calls.get(new_call.call_id)
        if current is None or not current.can_move_to(new_call.status):
            if current is not None and not current.is_terminal:
                logger.debug(
                    "Refusing %s -> %s for call %s", current.status.value, new_call.status.value, new_call.call_id
                )
            return False
        self._calls[new_call.call_id] = new_call
        if new_call.is_terminal:
            self._record_metrics(new_call)  # type: ignore[arg-type]
        self._notify()
        self._check_completion()
        return True

    def _set_error(
        self,
        request: ToolCallRequest,
        tool: BaseTool | None,
        error_type: ToolErrorType,
        message: str,
        *,
        error: Exception | None = None,
        display: Any = None,
        start_time: float | None = None,
        outcome: ConfirmationOutcome | None = None,
    ) -> None:
        if start_time is None:
            current = self._calls.get(request.call_id)
            start_time = current.start_time if current else None
        response = ToolCallResponse(
            call_id=request.call_id,
            response_parts=error_response_parts(request.name, request.call_id, message),
            result_display=display or message,
            error=error or ToolCallError(message, error_type),
            error_type=error_type,
        )
        self._set_call(
            ErroredToolCall(
                request=request,
                response=response,
                tool=tool,
                start_time=start_time,
                end_time=now_ms(),
                outcome=outcome,
            )
        )

    def _set_cancelled(
        self,
        request: ToolCallRequest,
        tool: BaseTool | None,
        reason: str,
        outcome: ConfirmationOutcome | None = None,
    ) -> None:
        current = self._calls.get(request.call_id)
        response = ToolCallResponse(
            call_id=request.call_id,
            response_parts=error_response_parts(
                request.name, request.call_id, f"[Operation Cancelled] Reason: {reason}"
            ),
            error_type=ToolErrorType.CANCELLED,
        )
        self._set_call(
            CancelledToolCall(
                request=request,
                response=response,
                reason=reason,
                tool=tool,
                start_time=current.start_time if current else None,
                end_time=now_ms(),
                outcome=outcome,
            )
        )

    def _record_metrics(self, call: CompletedToolCall) -> None:
        if self._metrics is None:
            return
        try:
            error_type = call.response.error_type
            self._metrics.record_tool_call(
                call.request.name,
                call.duration_ms or 0.0,
                call.status.value,
                call.outcome.value if call.outcome else None,
                error_type.value if error_type else None,
            )
        except Exception:
            logger.warning("Metrics sink failed for %s", call.request.name, exc_info=True)

    def _notify(self) -> None:
        if self._on_tool_calls_update:
            self._on_tool_calls_update(list(self._calls.values()))

    def _check_completion(self) -> None:
        if self._completed or not self._calls:
            return
        if not all(call.is_terminal for call in self._calls.values()):
            return
        self._complete_batch(list(self._calls.values()))  # type: ignore[arg-type]

    def _complete_batch(self, completed: list[CompletedToolCall]) -> None:
        self._completed = True
        self._calls = {}
        self._cancel_event = None
        completion = self._completion
        logger.debug("Tool call batch complete: %d call(s)", len(completed))
        try:
            if self._on_all_tool_calls_complete:
                self._on_all_tool_calls_complete(completed)
        except BaseException as e:
            if completion is not None and not completion.done():
                completion.set_exception(e)
            raise
        if completion is not None and not completion.done():
            completion.set_result(completed)
