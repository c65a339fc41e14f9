"""
Route a finished job's outputs to the consumer for the expected kind.

The manifest is searched in iteration order and only the first file of each
output slot is inspected. Files whose extension does not fit the expected
kind are skipped; the first fitting file wins and the search stops there.
A job that expects no output finishes with `Ok(None)` and fetches nothing.
"""

from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

from ...adapters.comfy.interface import ExecutionBackend, OutputFile, OutputManifest
from ...adapters.models.loader import ModelLoader
from ...path_utils import safe_download_name
from ...shared import (
    RAW_ONLY_AUDIO_EXTENSIONS,
    ErrorCode,
    OutputKind,
    Result,
    accepts_output,
    file_extension,
    get_logger,
)

logger = get_logger(__name__)

Consumer = Callable[..., Optional[Awaitable[Any]]]


@dataclass
class OutputConsumers:
    """Host-side sinks; any of them may be left unset."""

    on_image: Consumer | None = None
    on_render_texture: Consumer | None = None
    on_audio: Consumer | None = None
    on_audio_file: Consumer | None = None


@dataclass
class OutputMatch:
    node_id: str
    slot: str
    file: OutputFile


@dataclass
class RoutedOutput:
    kind: OutputKind
    node_id: str
    slot: str
    file: OutputFile
    payload: Any = None
    local_path: Path | None = None
    loaded: bool | None = None
    consumer_error: str | None = None
    meta: dict[str, Any] = field(default_factory=dict)


def find_matching_output(manifest: OutputManifest | None, expected: OutputKind) -> OutputMatch | None:
    for node_id, slots in (manifest or {}).items():
        if not isinstance(slots, dict):
            continue
        for slot, value in slots.items():
            if not isinstance(value, list) or not value:
                continue
            file = OutputFile.from_payload(value[0])
            if file is None:
                continue
            if not accepts_output(expected, file.filename):
                continue
            return OutputMatch(node_id=str(node_id), slot=str(slot), file=file)
    return None


class ResultRouter:
    def __init__(
        self,
        backend: ExecutionBackend,
        download_dir: Path,
        consumers: OutputConsumers | None = None,
        model_loader: ModelLoader | None = None,
    ):
        self._backend = backend
        self._download_dir = Path(download_dir)
        self._consumers = consumers or OutputConsumers()
        self._model_loader = model_loader

    async def route(self, manifest: OutputManifest | None, expected: OutputKind) -> Result[RoutedOutput | None]:
        if expected is OutputKind.NONE:
            logger.info("Job finished; no output expected.")
            return Result.Ok(None)
        if not manifest:
            logger.error("Job finished but no outputs found.")
            return Result.Err(ErrorCode.NO_MATCHING_OUTPUT, "Job finished but no outputs found")

        match = find_matching_output(manifest, expected)
        if match is None:
            logger.warning("Finished searching outputs. No file matching type '%s' was found.", expected.value)
            return Result.Err(
                ErrorCode.NO_MATCHING_OUTPUT,
                f"No output file matching '{expected.value}'",
                nodes=list(manifest),
            )

        logger.info("Found matching output: %s (%s)", match.file.filename, expected.value)
        routed = RoutedOutput(kind=expected, node_id=match.node_id, slot=match.slot, file=match.file)

        if expected in (OutputKind.IMAGE, OutputKind.RENDER_TEXTURE):
            return await self._route_image(routed)
        if expected is OutputKind.OBJECT3D:
            return await self._route_model(routed)
        if expected is OutputKind.AUDIO:
            if file_extension(match.file.filename) in RAW_ONLY_AUDIO_EXTENSIONS:
                return await self._route_raw_audio(routed)
            return await self._route_audio(routed)
        return Result.Ok(routed)

    async def _route_image(self, routed: RoutedOutput) -> Result[RoutedOutput]:
        res = await self._backend.fetch_decoded_image(routed.file)
        if not res.ok:
            return res.carry("Image download failed", filename=routed.file.filename)
        routed.payload = res.data
        sink = self._consumers.on_image if routed.kind is OutputKind.IMAGE else self._consumers.on_render_texture
        await self._consume(routed, sink, res.data, routed.file)
        return Result.Ok(routed)

    async def _route_audio(self, routed: RoutedOutput) -> Result[RoutedOutput]:
        res = await self._backend.fetch_decoded_audio(routed.file)
        if not res.ok:
            return res.carry("Audio download failed", filename=routed.file.filename)
        routed.payload = res.data
        await self._consume(routed, self._consumers.on_audio, res.data, routed.file)
        return Result.Ok(routed)

    async def _route_raw_audio(self, routed: RoutedOutput) -> Result[RoutedOutput]:
        logger.warning(
            "%s audio ('%s') cannot be decoded in-engine; saving to disk instead.",
            file_extension(routed.file.filename).lstrip(".").upper(),
            routed.file.filename,
        )
        saved = await self._download_to_disk(routed.file)
        if not saved.ok or saved.data is None:
            return saved.carry("Audio download failed", filename=routed.file.filename)
        routed.local_path = saved.data
        logger.info("Audio saved to disk: %s", saved.data)
        await self._consume(routed, self._consumers.on_audio_file, saved.data, routed.file)
        return Result.Ok(routed)

    async def _route_model(self, routed: RoutedOutput) -> Result[RoutedOutput]:
        saved = await self._download_to_disk(routed.file)
        if not saved.ok or saved.data is None:
            return saved.carry("Model download failed", filename=routed.file.filename)
        routed.local_path = saved.data
        if self._model_loader is None:
            return Result.Ok(routed)
        try:
            loaded = await self._model_loader.load(saved.data)
        except Exception as exc:
            logger.exception("Model loader raised for %s", saved.data)
            routed.loaded = False
            routed.consumer_error = str(exc)
            return Result.Ok(routed)
        routed.loaded = bool(loaded.ok and loaded.data)
        if not loaded.ok:
            routed.consumer_error = loaded.error
        return Result.Ok(routed)

    async def _download_to_disk(self, file: OutputFile) -> Result[Path]:
        res = await self._backend.fetch_bytes(file)
        if not res.ok or res.data is None:
            return res.carry("Download failed")
        target = self._download_dir / safe_download_name(file.filename)
        try:
            await asyncio.to_thread(_write_file, target, res.data)
        except OSError as exc:
            logger.error("Failed to save %s: %s", target, exc)
            return Result.Err(ErrorCode.INVALID_INPUT, f"Cannot write download: {exc}")
        return Result.Ok(target)

    @staticmethod
    async def _consume(routed: RoutedOutput, sink: Consumer | None, *args: Any) -> None:
        if sink is None:
            return
        try:
            ret = sink(*args)
            if inspect.isawaitable(ret):
                await ret
        except Exception as exc:
            logger.exception("Output consumer failed for %s", routed.file.filename)
            routed.consumer_error = str(exc)


def _write_file(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
