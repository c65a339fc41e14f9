"""
Path checks for workflow files and downloaded outputs.

Workflow names come from host configuration and output names come from the
server; neither is trusted to stay inside its directory.
"""

from __future__ import annotations

import os
import re
from pathlib import Path

_UNSAFE_FILENAME_CHARS_RE = re.compile(r'[<>:"/\\|?*\x00-\x1f]')


def safe_rel_path(value: str | None) -> Path | None:
    """
    Relative path for `value`, or None when it is absolute, has a drive, or climbs with "..".

    An empty value maps to `Path("")`; callers decide whether that is allowed.
    """
    raw = str(value or "").strip()
    if not raw:
        return Path("")
    if "\x00" in raw:
        return None
    rel = Path(raw)
    if rel.drive or rel.is_absolute() or ".." in rel.parts:
        return None
    return rel


def is_within_root(candidate: Path, root: Path) -> bool:
    """True when `candidate` resolves (symlinks included) to `root` or below it."""
    try:
        root_resolved = root.resolve(strict=True)
        cand_resolved = candidate.resolve(strict=True)
    except (OSError, RuntimeError):
        return False
    return cand_resolved == root_resolved or cand_resolved.is_relative_to(root_resolved)


def safe_download_name(filename: str, fallback: str = "output.bin") -> str:
    """Reduce a server-reported filename to a bare, filesystem-safe basename."""
    base = os.path.basename(str(filename or "").replace("\\", "/"))
    cleaned = _UNSAFE_FILENAME_CHARS_RE.sub("_", base).strip(" .")
    return cleaned or fallback
