"""Interactive approval prompts for calls awaiting confirmation."""

from __future__ import annotations

import asyncio

from prompt_toolkit import PromptSession

from ..services.tool_calls import WaitingToolCall
from ..tools.confirmation import (
    ConfirmationDetails,
    ConfirmationOutcome,
    EditConfirmationDetails,
    McpConfirmationDetails,
)
from . import renderer

_approval_lock = asyncio.Lock()


def approval_choices(details: ConfirmationDetails) -> list[tuple[str, str, ConfirmationOutcome]]:
    """(key, label, outcome) for every answer the details allow."""
    choices = [("y", "Allow once", ConfirmationOutcome.PROCEED_ONCE)]
    if isinstance(details, McpConfirmationDetails):
        choices.append(("t", f"Always allow {details.tool_name}", ConfirmationOutcome.PROCEED_ALWAYS_TOOL))
        choices.append(("s", f"Always allow {details.server_name}", ConfirmationOutcome.PROCEED_ALWAYS_SERVER))
    else:
        choices.append(("a", "Allow always", ConfirmationOutcome.PROCEED_ALWAYS))
    if isinstance(details, EditConfirmationDetails):
        choices.append(("e", "Modify in editor", ConfirmationOutcome.MODIFY_WITH_EDITOR))
    choices.append(("n", "Deny", ConfirmationOutcome.CANCEL))
    return choices


def parse_approval_answer(answer: str, details: ConfirmationDetails) -> ConfirmationOutcome:
    """Map a typed answer onto an outcome. Anything unrecognised denies."""
    choice = answer.strip().lower()
    if not choice:
        return ConfirmationOutcome.CANCEL
    for key, label, outcome in approval_choices(details):
        if choice == key or choice == label.lower():
            return outcome
    if choice == "yes":
        return ConfirmationOutcome.PROCEED_ONCE
    if choice == "always" and not isinstance(details, McpConfirmationDetails):
        return ConfirmationOutcome.PROCEED_ALWAYS
    return ConfirmationOutcome.CANCEL


def _prompt_text(details: ConfirmationDetails) -> str:
    return "  " + "  ".join(f"[{key}] {label}" for key, label, _ in approval_choices(details)) + ": "


async def ask_for_approval(call: WaitingToolCall) -> ConfirmationOutcome:
    """Render the confirmation and read one answer from the terminal."""
    async with _approval_lock:
        details = call.confirmation_details
        renderer.render_confirmation(call)
        try:
            session: PromptSession[str] = PromptSession()
            answer = await session.prompt_async(_prompt_text(details))
        except (EOFError, KeyboardInterrupt):
            renderer.render_approval_feedback(f"✗ Denied: {call.request.name}")
            return ConfirmationOutcome.CANCEL

        outcome = parse_approval_answer(answer, details)
        if outcome == ConfirmationOutcome.CANCEL:
            renderer.render_approval_feedback(f"✗ Denied: {call.request.name}")
        elif outcome == ConfirmationOutcome.MODIFY_WITH_EDITOR:
            renderer.render_approval_feedback("Opening editor...")
        else:
            renderer.render_approval_feedback(f"✓ Allowed: {call.request.name} ({outcome.value})")
        return outcome
