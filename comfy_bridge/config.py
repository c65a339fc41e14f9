"""
Configuration for the ComfyUI bridge.

Every setting reads from a `COMFY_BRIDGE_*` environment variable; bad
values fall back to the default with a warning instead of failing startup.
"""
import os
from dataclasses import dataclass, field, replace
from pathlib import Path

from .shared import get_logger
from .utils import parse_bool

logger = get_logger(__name__)

DEFAULT_SERVER_URL = "http://127.0.0.1:8188"
DEFAULT_POLL_INTERVAL_S = 1.0
DEFAULT_HTTP_TIMEOUT_S = 30.0


def _env_raw(*names: str, default: str | None = None) -> str | None:
    """First non-blank value among `names`; later names are legacy aliases."""
    for name in names:
        val = os.getenv(name) if name else None
        if val is not None and val.strip():
            return val.strip()
    return default


def _clamp(name: str, value: float, min_value: float | None, max_value: float | None) -> float:
    if min_value is not None and value < min_value:
        logger.warning("%s=%s is below %s; clamped", name, value, min_value)
        return min_value
    if max_value is not None and value > max_value:
        logger.warning("%s=%s is above %s; clamped", name, value, max_value)
        return max_value
    return value


def _env_float(default: float, *names: str, min_value: float | None = None, max_value: float | None = None) -> float:
    raw = _env_raw(*names)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        logger.warning("%s=%r is not a number; using %s", names[0], raw, default)
        return default
    return _clamp(names[0], value, min_value, max_value)


def _env_optional_float(*names: str) -> float | None:
    """Like `_env_float`, but unset or non-positive means "no limit"."""
    raw = _env_raw(*names)
    if raw is None:
        return None
    try:
        value = float(raw)
    except ValueError:
        logger.warning("%s=%r is not a number; ignoring", names[0], raw)
        return None
    return value if value > 0 else None


def _env_bool(default: bool, *names: str) -> bool:
    raw = _env_raw(*names)
    return default if raw is None else parse_bool(raw, default)


def _env_path(default: str, *names: str) -> Path:
    raw = _env_raw(*names, default=default) or default
    try:
        return Path(raw).expanduser().resolve()
    except (OSError, RuntimeError):
        logger.warning("Failed to resolve %s=%r, using %s", names[0] if names else "<unknown>", raw, default)
        return Path(default).resolve()


def _normalize_server_url(url: str) -> str:
    url = str(url or "").strip() or DEFAULT_SERVER_URL
    if "://" not in url:
        url = f"http://{url}"
    return url.rstrip("/")


@dataclass(frozen=True)
class BridgeSettings:
    """
    Runtime settings for the bridge.

    `poll_timeout` of None keeps polling until the server reports the job,
    matching the server's own "fire and forget" semantics.
    """

    server_url: str = DEFAULT_SERVER_URL
    workflows_dir: Path = field(default_factory=lambda: Path("workflows").resolve())
    download_dir: Path = field(default_factory=lambda: Path("downloads").resolve())
    poll_interval: float = DEFAULT_POLL_INTERVAL_S
    poll_timeout: float | None = None
    http_timeout: float = DEFAULT_HTTP_TIMEOUT_S
    strict_bindings: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "server_url", _normalize_server_url(self.server_url))
        object.__setattr__(self, "workflows_dir", Path(self.workflows_dir))
        object.__setattr__(self, "download_dir", Path(self.download_dir))
        object.__setattr__(self, "poll_interval", max(0.0, float(self.poll_interval)))
        if self.poll_timeout is not None and float(self.poll_timeout) <= 0:
            object.__setattr__(self, "poll_timeout", None)

    @classmethod
    def from_env(cls) -> "BridgeSettings":
        return cls(
            server_url=_env_raw("COMFY_BRIDGE_SERVER_URL", "COMFYUI_URL", default=DEFAULT_SERVER_URL)
            or DEFAULT_SERVER_URL,
            workflows_dir=_env_path("workflows", "COMFY_BRIDGE_WORKFLOWS_DIR"),
            download_dir=_env_path("downloads", "COMFY_BRIDGE_DOWNLOAD_DIR"),
            poll_interval=_env_float(DEFAULT_POLL_INTERVAL_S, "COMFY_BRIDGE_POLL_INTERVAL", min_value=0.0, max_value=60.0),
            poll_timeout=_env_optional_float("COMFY_BRIDGE_POLL_TIMEOUT"),
            http_timeout=_env_float(DEFAULT_HTTP_TIMEOUT_S, "COMFY_BRIDGE_HTTP_TIMEOUT", min_value=1.0, max_value=600.0),
            strict_bindings=_env_bool(False, "COMFY_BRIDGE_STRICT_BINDINGS"),
        )

    def with_overrides(self, **changes) -> "BridgeSettings":
        return replace(self, **changes)
