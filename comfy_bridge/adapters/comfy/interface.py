"""
Execution backend contract consumed by the workflow executor.

Every method returns a `Result`; implementations must not raise for
transport problems.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Mapping

from PIL import Image

from ...shared import Result

# node_id -> output slot -> list of file descriptors
OutputManifest = dict[str, dict[str, Any]]


@dataclass(frozen=True)
class OutputFile:
    filename: str
    subfolder: str = ""
    type: str = "output"

    @classmethod
    def from_payload(cls, payload: Any) -> "OutputFile | None":
        if not isinstance(payload, Mapping):
            return None
        filename = payload.get("filename")
        if filename is None:
            return None
        return cls(
            filename=str(filename),
            subfolder=str(payload.get("subfolder") or ""),
            type=str(payload.get("type") or "output"),
        )

    def query(self) -> dict[str, str]:
        return {"filename": self.filename, "subfolder": self.subfolder, "type": self.type}


@dataclass
class AudioClip:
    filename: str
    format: str
    data: bytes
    sample_rate: int | None = None
    channels: int | None = None
    duration_seconds: float | None = None


class ExecutionBackend(ABC):
    @abstractmethod
    async def upload_image(self, data: bytes, filename: str) -> Result[str]:
        """Upload PNG bytes; Ok(server-side filename)."""

    @abstractmethod
    async def submit(self, graph: dict[str, Any], client_id: str) -> Result[str]:
        """Queue a prompt graph; Ok(prompt id)."""

    @abstractmethod
    async def poll_status(self, prompt_id: str) -> Result[OutputManifest | None]:
        """Ok(None) while pending, Ok(outputs mapping) once the job is in history."""

    @abstractmethod
    async def fetch_bytes(self, file: OutputFile) -> Result[bytes]:
        ...

    @abstractmethod
    async def fetch_decoded_image(self, file: OutputFile) -> Result[Image.Image]:
        ...

    @abstractmethod
    async def fetch_decoded_audio(self, file: OutputFile) -> Result[AudioClip]:
        ...

    async def aclose(self) -> None:
        return None
