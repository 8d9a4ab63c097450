"""Risk tiers and the approval policy that decides which calls must ask first.

Every tool class declares its own tier. ``safety.tool_tiers`` in config can
move a tool to another tier by name; MCP tools keep the EXECUTE default since
nothing is known about their side effects.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import TYPE_CHECKING, Iterable, Mapping

if TYPE_CHECKING:
    from ..config import SafetyConfig

logger = logging.getLogger(__name__)


class ToolTier(IntEnum):
    READ = 0
    WRITE = 1
    EXECUTE = 2
    DESTRUCTIVE = 3

    @classmethod
    def from_name(cls, raw: str) -> ToolTier | None:
        return cls.__members__.get(raw.strip().upper())


class ApprovalMode(str, Enum):
    AUTO = "auto"
    ASK_FOR_DANGEROUS = "ask_for_dangerous"
    ASK_FOR_EXECUTE = "ask_for_execute"
    ASK_FOR_WRITES = "ask_for_writes"
    ASK = "ask"

    @classmethod
    def parse(cls, raw: str) -> ApprovalMode:
        """Unknown or empty input falls back to ASK_FOR_WRITES."""
        try:
            return cls(raw.strip().lower())
        except ValueError:
            return cls.ASK_FOR_WRITES

    @property
    def threshold(self) -> ToolTier | None:
        """Lowest tier that has to be confirmed, None when nothing is."""
        return _THRESHOLDS[self]


_THRESHOLDS: dict[ApprovalMode, ToolTier | None] = {
    ApprovalMode.AUTO: None,
    ApprovalMode.ASK_FOR_DANGEROUS: ToolTier.DESTRUCTIVE,
    ApprovalMode.ASK_FOR_EXECUTE: ToolTier.EXECUTE,
    ApprovalMode.ASK_FOR_WRITES: ToolTier.WRITE,
    ApprovalMode.ASK: ToolTier.READ,
}


@dataclass(frozen=True)
class ApprovalPolicy:
    mode: ApprovalMode = ApprovalMode.ASK_FOR_WRITES
    tier_overrides: Mapping[str, ToolTier] = field(default_factory=dict)
    allowed_tools: frozenset[str] = frozenset()

    @classmethod
    def from_config(cls, config: SafetyConfig) -> ApprovalPolicy:
        overrides: dict[str, ToolTier] = {}
        for tool_name, raw in config.tool_tiers.items():
            tier = ToolTier.from_name(raw)
            if tier is None:
                logger.debug("Ignoring unknown tier %r for tool %s", raw, tool_name)
                continue
            overrides[tool_name] = tier
        return cls(
            mode=ApprovalMode.parse(config.approval_mode),
            tier_overrides=overrides,
            allowed_tools=frozenset(config.allowed_tools),
        )

    def tier_of(self, tool_name: str, declared: ToolTier) -> ToolTier:
        return self.tier_overrides.get(tool_name, declared)

    def needs_approval(self, tool_name: str, declared: ToolTier, pre_approved: Iterable[str] = ()) -> bool:
        """True when a call at this tier must wait for the user.

        ``pre_approved`` holds names the user already allowed this session.
        """
        threshold = self.mode.threshold
        if threshold is None:
            return False
        if tool_name in self.allowed_tools or tool_name in pre_approved:
            return False
        return self.tier_of(tool_name, declared) >= threshold
