"""
Error text cleanup for transport failures.

Messages from aiohttp and the OS embed local paths and, for servers behind
basic auth, credentials inside the URL. Both are masked before the text is
stored in `Result.error` or logged at error level.
"""
from __future__ import annotations

import os
import re
from typing import Any

from .log import get_logger

logger = get_logger(__name__)
_DEBUG_MODE = os.getenv("COMFY_BRIDGE_DEBUG", "").strip().lower() in ("1", "true", "yes", "on")

_URL_USERINFO_RE = re.compile(r"(?P<scheme>[A-Za-z][A-Za-z0-9+.-]*://)[^\s/@]+@")
_WINDOWS_PATH_RE = re.compile(r"[A-Za-z]:\\[^\s]+")
_UNC_PATH_RE = re.compile(r"\\\\[^\s\\]+\\[^\s]+")
_UNIX_PATH_RE = re.compile(r"(?<![A-Za-z0-9:/?&=#%])/(?!/)[^\s#?]+")

MAX_ERROR_CHARS = 200
MAX_BODY_CHARS = 500


def _mask(value: str) -> str:
    cleaned = _URL_USERINFO_RE.sub(r"\g<scheme>[redacted]@", value)
    cleaned = _WINDOWS_PATH_RE.sub("[path]", cleaned)
    cleaned = _UNC_PATH_RE.sub("[path]", cleaned)
    return _UNIX_PATH_RE.sub("[path]", cleaned)


def _one_line(value: str) -> str:
    return " ".join(value.split())


def sanitize_error_message(exc: Any, fallback: str) -> str:
    """
    Build a single-line `"<fallback>: <detail>"` message with paths and URL credentials masked.

    Falls back to `fallback` alone when the exception carries no text.
    """
    fallback = fallback or "An error occurred"
    if exc is None:
        return fallback
    try:
        raw = str(exc)
    except Exception:
        raw = ""
    if not raw:
        return fallback

    detail = _one_line(_mask(raw.replace(os.getcwd(), "[cwd]")))
    if _DEBUG_MODE:
        logger.debug("Sanitized transport error: %s", detail, exc_info=True)
    return f"{fallback}: {detail[:MAX_ERROR_CHARS]}" if detail else fallback


def summarize_body(text: str | None, limit: int = MAX_BODY_CHARS) -> str:
    """Collapse an HTTP error body (often a multi-line JSON dump) for a log line."""
    flat = _one_line(_mask(str(text or "")))
    if len(flat) <= limit:
        return flat
    return flat[:limit] + "..."
