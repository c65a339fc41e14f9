"""
Shared types, enums, and constants.
"""
import os
from enum import Enum
from typing import Final


# Error codes
class ErrorCode(str, Enum):
    """Standardized error codes (string enum)."""

    # Client / validation
    INVALID_INPUT = "INVALID_INPUT"
    NOT_FOUND = "NOT_FOUND"
    PARSE_ERROR = "PARSE_ERROR"

    # Node binding
    CONFIG_BINDING = "CONFIG_BINDING"
    TYPE_MISMATCH = "TYPE_MISMATCH"

    # Execution
    BUSY = "BUSY"
    WORKFLOW_MISSING = "WORKFLOW_MISSING"
    NO_MATCHING_OUTPUT = "NO_MATCHING_OUTPUT"
    MODEL_LOAD_FAILED = "MODEL_LOAD_FAILED"

    # Transport / infrastructure
    TRANSPORT_FAILURE = "TRANSPORT_FAILURE"
    TIMEOUT = "TIMEOUT"


class OutputKind(str, Enum):
    """Kind of result a workflow is expected to produce."""

    IMAGE = "image"
    OBJECT3D = "object3d"
    AUDIO = "audio"
    RENDER_TEXTURE = "render_texture"
    NONE = "none"

    @classmethod
    def parse(cls, value: "OutputKind | str | None") -> "OutputKind | None":
        """Kind for `value` (case, dashes and common aliases tolerated); None when unrecognized."""
        if isinstance(value, cls):
            return value
        raw = str(value or "").strip().lower().replace("-", "_")
        aliases = {"3d": "object3d", "model": "object3d", "rendertexture": "render_texture"}
        raw = aliases.get(raw, raw)
        try:
            return cls(raw)
        except ValueError:
            return None


# Accepted output extensions per expected kind
OUTPUT_EXTENSIONS: Final[dict[OutputKind, frozenset[str]]] = {
    OutputKind.AUDIO: frozenset({".wav", ".mp3", ".ogg", ".aif", ".aiff", ".flac"}),
    OutputKind.IMAGE: frozenset({".png", ".jpg", ".jpeg"}),
    OutputKind.RENDER_TEXTURE: frozenset({".png", ".jpg", ".jpeg"}),
    OutputKind.OBJECT3D: frozenset({".glb", ".gltf"}),
    OutputKind.NONE: frozenset(),
}

# Audio containers that cannot be decoded in-engine and are saved to disk instead
RAW_ONLY_AUDIO_EXTENSIONS: Final[frozenset[str]] = frozenset({".flac"})


def file_extension(filename: str) -> str:
    """Lower-cased extension of `filename`, including the dot."""
    return os.path.splitext(str(filename or ""))[1].lower()


def accepts_output(expected: OutputKind, filename: str) -> bool:
    """
    Check whether `filename` satisfies the expected output kind.

    Args:
        expected: Output kind the workflow is configured for
        filename: File name reported by the server

    Returns:
        True when the extension belongs to the kind's accepted set
    """
    return file_extension(filename) in OUTPUT_EXTENSIONS.get(expected, frozenset())
