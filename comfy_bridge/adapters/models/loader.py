"""
3D model loader contract.

Scene instantiation belongs to the host engine; the bridge only hands over
the downloaded file path and records whether loading succeeded.
"""

from __future__ import annotations

import json
import struct
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Callable

from ...shared import ErrorCode, Result, file_extension, get_logger

logger = get_logger(__name__)

GLB_MAGIC = b"glTF"


class ModelLoader(ABC):
    @abstractmethod
    async def load(self, path: Path) -> Result[bool]:
        ...


class GltfFileLoader(ModelLoader):
    """
    Validates a downloaded .glb/.gltf file and forwards it to `on_loaded`.

    A host engine can pass its instantiation routine as `on_loaded`; the
    previous model is the host's to replace.
    """

    def __init__(self, on_loaded: Callable[[Path], None] | None = None):
        self._on_loaded = on_loaded
        self.last_loaded: Path | None = None

    async def load(self, path: Path) -> Result[bool]:
        path = Path(path)
        check = validate_gltf(path)
        if not check.ok:
            logger.error("Model %s rejected: %s", path.name, check.error)
            return check
        self.last_loaded = path
        if self._on_loaded is not None:
            self._on_loaded(path)
        return Result.Ok(True, version=check.meta.get("version"))


def validate_gltf(path: Path) -> Result[bool]:
    ext = file_extension(path.name)
    try:
        if ext == ".glb":
            with path.open("rb") as fh:
                header = fh.read(12)
            if len(header) < 12 or header[:4] != GLB_MAGIC:
                return Result.Err(ErrorCode.MODEL_LOAD_FAILED, "Not a binary glTF file")
            version = struct.unpack("<I", header[4:8])[0]
            return Result.Ok(True, version=str(version))
        if ext == ".gltf":
            doc = json.loads(path.read_text(encoding="utf-8"))
            asset = doc.get("asset") if isinstance(doc, dict) else None
            if not isinstance(asset, dict) or "version" not in asset:
                return Result.Err(ErrorCode.MODEL_LOAD_FAILED, "glTF document has no asset.version")
            return Result.Ok(True, version=str(asset["version"]))
    except (OSError, ValueError) as exc:
        return Result.Err(ErrorCode.MODEL_LOAD_FAILED, f"Cannot read model file: {exc}")
    return Result.Err(ErrorCode.MODEL_LOAD_FAILED, f"Unsupported model format: {ext or path.name}")
