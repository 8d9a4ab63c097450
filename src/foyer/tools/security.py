"""Path validation and hard-block detection for built-in tools.

Hard-block patterns (catastrophic commands like rm -rf, fork bombs, disk
wipes) never run on the model's say-so alone. The shell tool always asks for
confirmation when one matches, even for allowlisted root commands, and
refuses to execute it unless that exact command was approved during the
session.
"""

from __future__ import annotations

import logging
import re

from .path_utils import resolve_against, safe_resolve

logger = logging.getLogger(__name__)

# Paths that should never be accessible via tools
_BLOCKED_PATHS = {
    "/etc/shadow",
    "/etc/passwd",
    "/etc/sudoers",
}

_BLOCKED_PREFIXES = (
    "/proc/",
    "/sys/",
    "/dev/",
)


def validate_path(path: str, working_dir: str) -> tuple[str, str | None]:
    """Validate and resolve a file path.

    Returns (resolved_path, error_message).
    If error_message is not None, the path is invalid.
    """
    if "\x00" in path:
        return "", "Path contains null bytes"

    resolved = resolve_against(path, working_dir)

    for blocked in _BLOCKED_PATHS:
        if resolved in (blocked, safe_resolve(blocked)):
            logger.warning("Blocked access to sensitive path: %s", resolved)
            return "", f"Access denied: {path}"

    for prefix in _BLOCKED_PREFIXES:
        if resolved.startswith(prefix) or resolved.startswith(safe_resolve(prefix)):
            logger.warning("Blocked access to system path: %s", resolved)
            return "", f"Access denied: {path}"

    return resolved, None


_HARD_BLOCK_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (
        re.compile(
            r"\brm\s+(-[a-zA-Z]*f[a-zA-Z]*\s+)?-[a-zA-Z]*r|"
            r"\brm\s+(-[a-zA-Z]*r[a-zA-Z]*\s+)?-[a-zA-Z]*f",
            re.IGNORECASE,
        ),
        "recursive forced deletion (rm -rf)",
    ),
    (re.compile(r"\bmkfs\b", re.IGNORECASE), "disk formatting (mkfs)"),
    (re.compile(r"\bdd\b.*\bif=/dev/(zero|urandom|random)\b", re.IGNORECASE), "disk overwrite (dd)"),
    (re.compile(r":\(\)\s*\{.*\|.*&\s*\}\s*;"), "fork bomb"),
    (re.compile(r"\bchmod\s+(-[a-zA-Z]*R[a-zA-Z]*\s+)?777\s+/\s*$"), "recursive chmod 777 /"),
    (re.compile(r"\b(curl|wget)\b.*\|\s*(ba)?sh\b"), "pipe from network to shell"),
    (re.compile(r"\b(curl|wget)\b.*\|\s*sudo\b"), "pipe from network to sudo"),
    (re.compile(r"\bbase64\b.*\|\s*(ba)?sh\b"), "base64 decode piped to shell"),
    (re.compile(r"\b(shred|srm)\b", re.IGNORECASE), "secure file erasure"),
    (re.compile(r"\btruncate\s+(-s\s*0|--size[= ]0)\b", re.IGNORECASE), "file zeroing (truncate -s 0)"),
    (re.compile(r"\bsudo\s+rm\b"), "sudo rm"),
]


def normalize_whitespace(text: str) -> str:
    """Collapse all whitespace to single spaces for pattern matching."""
    return re.sub(r"\s+", " ", text.strip())


def check_hard_block(command: str) -> str | None:
    """Return the description of the hard-block pattern ``command`` matches, if any."""
    if not command or not command.strip():
        return None

    normalized = normalize_whitespace(command)
    for pattern, description in _HARD_BLOCK_PATTERNS:
        if pattern.search(normalized):
            return description
    return None
