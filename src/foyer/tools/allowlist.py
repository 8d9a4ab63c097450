"""Session-scoped "always allow" bookkeeping.

One store per session, injected into every tool through ``ToolSession``, so
approvals granted in one session (or test) never leak into another.
"""

from __future__ import annotations

import logging
import re

logger = logging.getLogger(__name__)

_SAFE_NAME_RE = re.compile(r"^[a-zA-Z0-9_.\-]{1,128}$")


class AllowlistStore:
    def __init__(self) -> None:
        self._commands: set[str] = set()
        self._tools: set[str] = set()
        self._servers: set[str] = set()
        self._hard_block_overrides: set[str] = set()

    def allow_command(self, root_command: str) -> None:
        self._commands.add(root_command)

    def is_command_allowed(self, root_command: str | None) -> bool:
        return bool(root_command) and root_command in self._commands

    def allow_tool(self, tool_name: str) -> None:
        if not _SAFE_NAME_RE.match(tool_name):
            logger.warning("Rejected invalid tool name for session allowlist: %r", tool_name)
            return
        self._tools.add(tool_name)

    def is_tool_allowed(self, tool_name: str) -> bool:
        return tool_name in self._tools

    def allow_server(self, server_name: str) -> None:
        self._servers.add(server_name)

    def is_server_allowed(self, server_name: str) -> bool:
        return server_name in self._servers

    def approve_hard_block(self, command: str) -> None:
        """Record that the user explicitly approved this exact destructive command."""
        self._hard_block_overrides.add(command.strip())

    def consume_hard_block(self, command: str) -> bool:
        """Return True once per approval of ``command``."""
        key = command.strip()
        if key in self._hard_block_overrides:
            self._hard_block_overrides.discard(key)
            return True
        return False

    @property
    def tools(self) -> frozenset[str]:
        return frozenset(self._tools)

    def clear(self) -> None:
        self._commands.clear()
        self._tools.clear()
        self._servers.clear()
        self._hard_block_overrides.clear()
