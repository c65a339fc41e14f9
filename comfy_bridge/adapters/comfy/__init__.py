"""ComfyUI execution backend: contract and aiohttp implementation."""

from .client import ComfyClient
from .interface import AudioClip, ExecutionBackend, OutputFile, OutputManifest

__all__ = ["AudioClip", "ComfyClient", "ExecutionBackend", "OutputFile", "OutputManifest"]
