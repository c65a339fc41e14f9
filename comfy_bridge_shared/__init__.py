"""Shared utilities for the ComfyUI bridge."""
from .errors import sanitize_error_message, summarize_body
from .log import bind_run_id, get_logger, log_structured, log_success, new_run_id, run_id_var
from .result import Result
from .types import (
    OUTPUT_EXTENSIONS,
    RAW_ONLY_AUDIO_EXTENSIONS,
    ErrorCode,
    OutputKind,
    accepts_output,
    file_extension,
)

__all__ = [
    "Result",
    "get_logger",
    "log_success",
    "log_structured",
    "run_id_var",
    "bind_run_id",
    "new_run_id",
    "sanitize_error_message",
    "summarize_body",
    "ErrorCode",
    "OutputKind",
    "OUTPUT_EXTENSIONS",
    "RAW_ONLY_AUDIO_EXTENSIONS",
    "accepts_output",
    "file_extension",
]
