"""
Bridge logging: one `comfy_bridge.*` namespace, emoji level tags, run ids.

Every workflow run binds a short run id (`bind_run_id`); records emitted
while it is bound carry it, so interleaved queue output stays readable:

    🌉 ComfyBridge [ℹ️] features.execution.executor [3f2a9c1d]: Prompt queued: ...
"""
import json
import logging
import os
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Final, Iterator

EMOJI_MAP: Final[dict[str, str]] = {
    "DEBUG": "🔍",
    "INFO": "ℹ️",
    "WARNING": "⚠️",
    "ERROR": "❌",
    "CRITICAL": "🔥",
    "SUCCESS": "✅",
}

PREFIX: Final[str] = "🌉 ComfyBridge"
NAMESPACE: Final[str] = "comfy_bridge"
LEVEL_ENV: Final[str] = "COMFY_BRIDGE_LOG_LEVEL"

SUCCESS_LEVEL: Final[int] = 25  # between INFO and WARNING
logging.addLevelName(SUCCESS_LEVEL, "SUCCESS")

run_id_var: ContextVar[str] = ContextVar("run_id", default="")


def new_run_id() -> str:
    return uuid.uuid4().hex[:8]


@contextmanager
def bind_run_id(run_id: str | None = None) -> Iterator[str]:
    """Bind a run id to the current task for the duration of the block."""
    rid = run_id or new_run_id()
    token = run_id_var.set(rid)
    try:
        yield rid
    finally:
        run_id_var.reset(token)


class CorrelationFilter(logging.Filter):
    """Copy the bound run id onto each record as `record.run_id`."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.run_id = run_id_var.get("")
        return True


class EmojiFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        emoji = EMOJI_MAP.get(record.levelname, "🌉")
        rid = str(getattr(record, "run_id", "") or "").strip()
        rid_part = f" [{rid}]" if rid else ""
        return logging.Formatter(f"{PREFIX} [{emoji}] %(name)s{rid_part}: %(message)s").format(record)


def _short_name(name: str) -> str:
    if name.startswith("__main__"):
        return "main"
    head, _, rest = name.partition(".")
    if head in (NAMESPACE, f"{NAMESPACE}_shared"):
        return rest or head
    return name


def _default_level() -> int:
    raw = (os.getenv(LEVEL_ENV) or "").strip().upper()
    if raw == "SUCCESS":
        return SUCCESS_LEVEL
    level = logging.getLevelName(raw) if raw else logging.INFO
    return level if isinstance(level, int) else logging.INFO


class NamespaceHandler(logging.StreamHandler):
    """Emoji console output for the namespace; silent once the host configures root logging."""

    def emit(self, record: logging.LogRecord) -> None:
        if logging.getLogger().handlers:
            return
        super().emit(record)


def _namespace_logger() -> logging.Logger:
    base = logging.getLogger(NAMESPACE)
    if not any(isinstance(h, NamespaceHandler) for h in base.handlers):
        handler = NamespaceHandler()
        handler.setFormatter(EmojiFormatter())
        base.addHandler(handler)
    return base


def get_logger(name: str, level: int | None = None) -> logging.Logger:
    """
    Logger under the `comfy_bridge.` namespace with emoji formatting.

    Records propagate to the namespace logger, which holds the only bridge
    handler, and on to the root logger. That handler stays quiet while the
    root logger has handlers of its own, so each record is written once.

    Args:
        name: Usually `__name__`; the package prefix is dropped.
        level: Explicit level; otherwise `COMFY_BRIDGE_LOG_LEVEL` or INFO.
    """
    _namespace_logger()
    logger = logging.getLogger(f"{NAMESPACE}.{_short_name(name)}")
    if not any(isinstance(f, CorrelationFilter) for f in logger.filters):
        logger.addFilter(CorrelationFilter())

    if level is not None:
        logger.setLevel(level)
    elif logger.level == logging.NOTSET:
        logger.setLevel(_default_level())
    return logger


def log_success(logger: logging.Logger, message: str) -> None:
    logger.log(SUCCESS_LEVEL, message)


def log_structured(logger: logging.Logger, level: int, message: str, **context: Any) -> None:
    """Emit one JSON line; the bound run id is included when present."""
    payload: dict[str, Any] = {
        "message": message,
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "context": context,
    }
    rid = run_id_var.get("")
    if rid:
        payload["run_id"] = rid
    logger.log(level, json.dumps(payload, ensure_ascii=False, default=str))
