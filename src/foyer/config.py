"""Configuration loader: YAML file with environment variable fallbacks."""

from __future__ import annotations

import os
import stat
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

_DEFAULT_LIVE_OUTPUT_INTERVAL = 1.0


@dataclass
class SchedulerConfig:
    live_output_interval: float = _DEFAULT_LIVE_OUTPUT_INTERVAL  # seconds between live-output snapshots
    preferred_editor: str = ""


@dataclass
class SafetyToolConfig:
    enabled: bool = True


@dataclass
class SafetyConfig:
    enabled: bool = True
    approval_mode: str = "ask_for_writes"
    bash: SafetyToolConfig = field(default_factory=SafetyToolConfig)
    write_file: SafetyToolConfig = field(default_factory=SafetyToolConfig)
    custom_patterns: list[str] = field(default_factory=list)
    sensitive_paths: list[str] = field(default_factory=list)
    allowed_tools: list[str] = field(default_factory=list)
    denied_tools: list[str] = field(default_factory=list)
    tool_tiers: dict[str, str] = field(default_factory=dict)


@dataclass
class AppSettings:
    data_dir: Path = field(default_factory=lambda: Path.home() / ".foyer")


@dataclass
class AppConfig:
    app: AppSettings = field(default_factory=AppSettings)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    safety: SafetyConfig = field(default_factory=SafetyConfig)


def _get_config_path(data_dir: Path | None = None) -> Path:
    if data_dir:
        return data_dir / "config.yaml"
    return Path.home() / ".foyer" / "config.yaml"


def _is_truthy(raw: Any) -> bool:
    return str(raw).lower() not in ("false", "0", "no", "off")


def _str_list(raw: Any) -> list[str]:
    if not isinstance(raw, list):
        return []
    return [str(item) for item in raw]


def _default_editor() -> str:
    """Derive an editor name from $EDITOR/$VISUAL (e.g. /usr/bin/nvim -> neovim)."""
    raw = os.environ.get("VISUAL") or os.environ.get("EDITOR") or ""
    if not raw.strip():
        return ""
    binary = os.path.basename(raw.split()[0])
    aliases = {"code": "vscode", "nvim": "neovim", "vi": "vim"}
    return aliases.get(binary, binary)


def load_config(config_path: Path | None = None) -> AppConfig:
    raw: dict[str, Any] = {}
    path = config_path or _get_config_path()

    if path.exists():
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Configuration file {path} must contain a mapping at the top level")

    app_raw = raw.get("app", {}) or {}
    data_dir = Path(os.path.expanduser(str(app_raw.get("data_dir", path.parent))))
    app_settings = AppSettings(data_dir=data_dir)

    sched_raw = raw.get("scheduler", {}) or {}
    try:
        interval_raw = sched_raw.get(
            "live_output_interval", os.environ.get("FOYER_LIVE_OUTPUT_INTERVAL", _DEFAULT_LIVE_OUTPUT_INTERVAL)
        )
        live_output_interval = max(0.0, min(60.0, float(interval_raw)))
    except (ValueError, TypeError):
        live_output_interval = _DEFAULT_LIVE_OUTPUT_INTERVAL
    preferred_editor = str(
        sched_raw.get("preferred_editor") or os.environ.get("FOYER_EDITOR") or _default_editor()
    ).strip()

    scheduler_config = SchedulerConfig(
        live_output_interval=live_output_interval,
        preferred_editor=preferred_editor,
    )

    safety_raw = raw.get("safety", {}) or {}
    safety_enabled = _is_truthy(safety_raw.get("enabled", os.environ.get("FOYER_SAFETY_ENABLED", "true")))
    bash_raw = safety_raw.get("bash", {}) or {}
    wf_raw = safety_raw.get("write_file", {}) or {}
    approval_mode = str(
        safety_raw.get("approval_mode", os.environ.get("FOYER_APPROVAL_MODE", "ask_for_writes"))
    ).strip()
    tool_tiers = safety_raw.get("tool_tiers", {})
    if not isinstance(tool_tiers, dict):
        tool_tiers = {}

    safety_config = SafetyConfig(
        enabled=safety_enabled,
        approval_mode=approval_mode,
        bash=SafetyToolConfig(enabled=_is_truthy(bash_raw.get("enabled", "true"))),
        write_file=SafetyToolConfig(enabled=_is_truthy(wf_raw.get("enabled", "true"))),
        custom_patterns=_str_list(safety_raw.get("custom_patterns", [])),
        sensitive_paths=_str_list(safety_raw.get("sensitive_paths", [])),
        allowed_tools=_str_list(safety_raw.get("allowed_tools", [])),
        denied_tools=_str_list(safety_raw.get("denied_tools", [])),
        tool_tiers={str(k): str(v) for k, v in tool_tiers.items()},
    )

    if path.exists():
        try:
            path.chmod(stat.S_IRUSR | stat.S_IWUSR)  # 0600
        except OSError:
            pass  # May fail on Windows or non-owned files

    return AppConfig(app=app_settings, scheduler=scheduler_config, safety=safety_config)
