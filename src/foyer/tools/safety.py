"""Detection of destructive shell commands and sensitive write targets.

Pure functions with no I/O.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field

from .security import normalize_whitespace


@dataclass
class SafetyVerdict:
    needs_approval: bool
    reason: str
    tool_name: str
    details: dict[str, str] = field(default_factory=dict)
    hard_denied: bool = False


_DEFAULT_DESTRUCTIVE_PATTERNS: list[re.Pattern[str]] = [
    re.compile(r"\brm\b"),
    re.compile(r"\brmdir\b"),
    re.compile(r"\bgit\s+push\s+(--force|-f)\b"),
    re.compile(r"\bgit\s+reset\s+--hard\b"),
    re.compile(r"\bgit\s+clean\b"),
    re.compile(r"\bgit\s+checkout\s+\.\s*$"),
    re.compile(r"\bdrop\s+(table|database)\b", re.IGNORECASE),
    re.compile(r"\btruncate\b", re.IGNORECASE),
    re.compile(r">\s*/dev/"),
    re.compile(r"\bchmod\s+777\b"),
    re.compile(r"\bkill\s+-9\b"),
]

_DEFAULT_SENSITIVE_PATHS: list[str] = [
    ".env",
    ".ssh",
    ".gnupg",
    ".aws/credentials",
    ".config/gcloud",
]

_COMMAND_SEPARATORS = re.compile(r"&&|\|\||[;|&\n]")


def get_command_root(command: str) -> str | None:
    """Return the program name of the first command in a shell line.

    ``"  /usr/bin/git status && ls"`` -> ``"git"``. Leading ``VAR=value``
    assignments are skipped.
    """
    first = _COMMAND_SEPARATORS.split(command.strip(), maxsplit=1)[0]
    for token in first.split():
        if "=" in token and not token.startswith(("=", "/", ".")):
            continue
        root = os.path.basename(token.strip("'\"()"))
        return root or None
    return None


def check_bash_command(
    command: str,
    custom_patterns: list[str] | None = None,
) -> SafetyVerdict:
    if not command or not command.strip():
        return SafetyVerdict(needs_approval=False, reason="", tool_name="bash")

    normalized = normalize_whitespace(command)

    for pattern in _DEFAULT_DESTRUCTIVE_PATTERNS:
        if pattern.search(normalized):
            return SafetyVerdict(
                needs_approval=True,
                reason=f"Destructive command detected: {command}",
                tool_name="bash",
                details={"command": command, "matched_pattern": pattern.pattern},
            )

    for raw_pattern in custom_patterns or []:
        try:
            matched = re.search(raw_pattern, normalized, re.IGNORECASE) is not None
        except re.error:
            matched = raw_pattern.lower() in normalized.lower()
        if matched:
            return SafetyVerdict(
                needs_approval=True,
                reason=f"Custom pattern matched: {command}",
                tool_name="bash",
                details={"command": command, "matched_pattern": raw_pattern},
            )

    return SafetyVerdict(needs_approval=False, reason="", tool_name="bash")


def _path_parts(path: str) -> list[str]:
    return [p for p in os.path.normpath(path).replace("\\", "/").split("/") if p not in ("", ".")]


def check_write_path(
    path: str,
    working_dir: str,
    sensitive_paths: list[str] | None = None,
    tool_name: str = "write_file",
) -> SafetyVerdict:
    if not path:
        return SafetyVerdict(needs_approval=False, reason="", tool_name=tool_name)

    resolved = os.path.normpath(path if os.path.isabs(path) else os.path.join(working_dir, path))
    home = os.path.expanduser("~")
    parts = _path_parts(path)

    for sensitive in [*_DEFAULT_SENSITIVE_PATHS, *(sensitive_paths or [])]:
        expanded = os.path.expanduser(sensitive)
        anchored = os.path.normpath(expanded if os.path.isabs(expanded) else os.path.join(home, expanded))
        if resolved == anchored or resolved.startswith(anchored + os.sep):
            return _sensitive_verdict(path, sensitive, tool_name)

        # Relative inputs such as ".ssh/id_rsa" are matched component-wise so the
        # check does not depend on the working directory being $HOME.
        needle = _path_parts(sensitive.lstrip("~").lstrip("/\\"))
        if needle and any(parts[i : i + len(needle)] == needle for i in range(len(parts))):
            return _sensitive_verdict(path, sensitive, tool_name)

    return SafetyVerdict(needs_approval=False, reason="", tool_name=tool_name)


def _sensitive_verdict(path: str, sensitive: str, tool_name: str) -> SafetyVerdict:
    return SafetyVerdict(
        needs_approval=True,
        reason=f"Write to sensitive path: {path}",
        tool_name=tool_name,
        details={"path": path, "matched_sensitive": sensitive},
    )
