"""Path resolution helpers shared by the file tools.

On Windows, os.path.realpath() turns mapped drive letters into UNC paths that
enterprise network policy may block, so resolution falls back to abspath()
there. abspath() still collapses '..', which is the property path validation
relies on.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

_IS_WINDOWS = sys.platform == "win32"


def safe_resolve(path: str) -> str:
    """Resolve a path to an absolute, normalized form."""
    if _IS_WINDOWS:
        return os.path.normpath(os.path.abspath(path))
    return os.path.realpath(path)


def safe_resolve_pathlib(p: Path) -> Path:
    return Path(safe_resolve(str(p)))


def resolve_against(path: str, working_dir: str) -> str:
    """Resolve ``path`` relative to ``working_dir`` unless it is already absolute."""
    if os.path.isabs(path):
        return safe_resolve(path)
    return safe_resolve(os.path.join(working_dir, path))


def is_within(path: Path, root: Path) -> bool:
    """True if ``path`` resolves to ``root`` or somewhere beneath it."""
    try:
        return safe_resolve_pathlib(path).is_relative_to(safe_resolve_pathlib(root))
    except (OSError, ValueError):
        return False


def display_path(path: str, working_dir: str) -> str:
    """Shorten ``path`` for confirmation prompts: relative when under the working dir."""
    try:
        rel = os.path.relpath(path, working_dir)
    except ValueError:
        return path
    return path if rel.startswith("..") else rel
