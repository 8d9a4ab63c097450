"""Shape tool results into the function-response parts the model consumes."""

from __future__ import annotations

from typing import Any

SUCCESS_OUTPUT = "Tool execution succeeded."


def function_response_part(tool_name: str, call_id: str, response: dict[str, Any]) -> dict[str, Any]:
    return {"functionResponse": {"id": call_id, "name": tool_name, "response": response}}


def _binary_mime_type(part: dict[str, Any]) -> str | None:
    """MIME type of an inlineData/fileData part, or None when ``part`` is not binary."""
    for key in ("inlineData", "fileData"):
        blob = part.get(key)
        if isinstance(blob, dict):
            return str(blob.get("mimeType") or "unknown")
    return None


def convert_to_function_response(tool_name: str, call_id: str, llm_content: Any) -> list[dict[str, Any]]:
    """Normalize a tool's ``llm_content`` into wire parts.

    The first part is always the function-response envelope; binary content
    that must still reach the model follows it unchanged.

    - ``"text"`` or ``{"text": "text"}`` (alone or as a one-item list)
      -> ``[envelope(output="text")]``
    - one inlineData/fileData part -> ``[envelope("Binary content of type <mime> was processed."), part]``
    - zero or several parts -> ``[envelope("Tool execution succeeded."), *parts]``
    - anything else -> ``[envelope("Tool execution succeeded.")]``
    """
    content = llm_content
    if isinstance(content, list) and len(content) == 1 and isinstance(content[0], (str, dict)):
        content = content[0]

    def envelope(output: str) -> dict[str, Any]:
        return function_response_part(tool_name, call_id, {"output": output})

    if isinstance(content, str):
        return [envelope(content)]

    if isinstance(content, list):
        return [envelope(SUCCESS_OUTPUT), *content]

    if isinstance(content, dict):
        mime_type = _binary_mime_type(content)
        if mime_type is not None:
            return [envelope(f"Binary content of type {mime_type} was processed."), content]
        if isinstance(content.get("text"), str):
            return [envelope(content["text"])]

    return [envelope(SUCCESS_OUTPUT)]


def error_response_parts(tool_name: str, call_id: str, message: str) -> list[dict[str, Any]]:
    return [function_response_part(tool_name, call_id, {"error": message})]


def response_output(parts: list[dict[str, Any]]) -> dict[str, Any]:
    """The ``response`` mapping of the envelope in ``parts``."""
    for part in parts:
        if "functionResponse" in part:
            return dict(part["functionResponse"].get("response", {}))
    return {}
