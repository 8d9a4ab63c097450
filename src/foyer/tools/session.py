"""Per-session state shared by the built-in tools."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any

from ..config import SafetyConfig
from .allowlist import AllowlistStore
from .safety import SafetyVerdict, check_bash_command, check_write_path, get_command_root
from .tiers import ApprovalMode, ApprovalPolicy, ToolTier

logger = logging.getLogger(__name__)

_WRITE_TOOLS = ("write_file", "edit_file")


@dataclass
class ToolSession:
    working_dir: str = field(default_factory=os.getcwd)
    safety: SafetyConfig = field(default_factory=SafetyConfig)
    allowlist: AllowlistStore = field(default_factory=AllowlistStore)

    def denial_reason(self, tool_name: str) -> str | None:
        """Reason the tool is blocked outright by config, or None when it may run."""
        config = self.safety
        if not config.enabled:
            return None
        if tool_name == "bash" and not config.bash.enabled:
            return f"Tool '{tool_name}' is disabled in safety config"
        if tool_name == "write_file" and not config.write_file.enabled:
            return f"Tool '{tool_name}' is disabled in safety config"
        if tool_name in config.denied_tools:
            return f"Tool '{tool_name}' is in the denied tools list"
        return None

    def check_safety(
        self, tool_name: str, arguments: dict[str, Any], tier: ToolTier = ToolTier.EXECUTE
    ) -> SafetyVerdict | None:
        """Check whether a tool call at ``tier`` needs user confirmation.

        Returns a SafetyVerdict when confirmation is needed (or the tool is
        hard-denied), None when the call may run without asking.
        """
        config = self.safety
        if not config.enabled:
            return None

        reason = self.denial_reason(tool_name)
        if reason:
            return SafetyVerdict(needs_approval=True, reason=reason, tool_name=tool_name, hard_denied=True)

        policy = ApprovalPolicy.from_config(config)
        mode = policy.mode
        session_allowed = set(self.allowlist.tools)
        if tool_name == "bash" and self.allowlist.is_command_allowed(get_command_root(arguments.get("command", ""))):
            session_allowed.add(tool_name)

        # Destructive patterns still ask when the tier says auto-allow, except in auto mode.
        if not policy.needs_approval(tool_name, tier, session_allowed):
            if mode == ApprovalMode.AUTO:
                return None
            if tool_name == "bash":
                verdict = check_bash_command(arguments.get("command", ""), custom_patterns=config.custom_patterns)
                return verdict if verdict.needs_approval else None
            if tool_name in _WRITE_TOOLS:
                verdict = check_write_path(
                    arguments.get("path", ""),
                    self.working_dir,
                    sensitive_paths=config.sensitive_paths,
                    tool_name=tool_name,
                )
                return verdict if verdict.needs_approval else None
            return None

        details: dict[str, str] = {}
        if tool_name == "bash":
            details["command"] = str(arguments.get("command", ""))
        elif tool_name in _WRITE_TOOLS:
            details["path"] = str(arguments.get("path", ""))
        return SafetyVerdict(
            needs_approval=True,
            reason=f"Tool '{tool_name}' requires approval (mode: {config.approval_mode})",
            tool_name=tool_name,
            details=details,
        )
