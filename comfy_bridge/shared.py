"""Bridge-facing alias for shared utilities.

Feature modules import from here (`from ...shared import Result`) so the
shared package can be relocated without touching every call site.
"""

from __future__ import annotations

import comfy_bridge_shared as _root_shared

Result = _root_shared.Result
ErrorCode = _root_shared.ErrorCode
OutputKind = _root_shared.OutputKind
get_logger = _root_shared.get_logger
log_success = _root_shared.log_success
log_structured = _root_shared.log_structured
run_id_var = _root_shared.run_id_var
bind_run_id = _root_shared.bind_run_id
new_run_id = _root_shared.new_run_id
sanitize_error_message = _root_shared.sanitize_error_message
summarize_body = _root_shared.summarize_body
accepts_output = _root_shared.accepts_output
file_extension = _root_shared.file_extension
OUTPUT_EXTENSIONS = _root_shared.OUTPUT_EXTENSIONS
RAW_ONLY_AUDIO_EXTENSIONS = _root_shared.RAW_ONLY_AUDIO_EXTENSIONS

__all__ = list(_root_shared.__all__)
