"""
aiohttp client for the ComfyUI REST API.

Endpoints:
  - POST /upload/image   multipart field "image" -> {"name", "subfolder", "type"}
  - POST /prompt         {"prompt", "client_id"} -> {"prompt_id", ...}
  - GET  /history/{id}   {} while pending, {id: {"outputs": {...}}} when done
  - GET  /view           ?filename&subfolder&type -> raw bytes
"""

from __future__ import annotations

import asyncio
from typing import Any

from aiohttp import ClientError, ClientSession, ClientTimeout, FormData
from PIL import Image

from ...shared import ErrorCode, Result, get_logger, sanitize_error_message, summarize_body
from .decoding import decode_audio, decode_image
from .interface import AudioClip, ExecutionBackend, OutputFile, OutputManifest

logger = get_logger(__name__)


class ComfyClient(ExecutionBackend):
    def __init__(self, server_url: str, *, timeout: float = 30.0, session: ClientSession | None = None):
        self._base = str(server_url).rstrip("/")
        self._timeout = ClientTimeout(total=timeout)
        self._session = session
        self._owns_session = session is None

    @property
    def server_url(self) -> str:
        return self._base

    async def __aenter__(self) -> "ComfyClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    def _get_session(self) -> ClientSession:
        if self._session is None or self._session.closed:
            self._session = ClientSession(timeout=self._timeout)
            self._owns_session = True
        return self._session

    async def aclose(self) -> None:
        if self._session is not None and self._owns_session and not self._session.closed:
            await self._session.close()
        self._session = None

    def _url(self, path: str) -> str:
        return f"{self._base}{path}"

    @staticmethod
    def _transport_error(exc: BaseException, what: str) -> Result[Any]:
        if isinstance(exc, asyncio.TimeoutError):
            return Result.Err(ErrorCode.TIMEOUT, f"Timeout during {what}")
        return Result.Err(ErrorCode.TRANSPORT_FAILURE, sanitize_error_message(exc, f"{what} failed"))

    async def upload_image(self, data: bytes, filename: str) -> Result[str]:
        form = FormData()
        form.add_field("image", data, filename=filename, content_type="image/png")
        try:
            async with self._get_session().post(self._url("/upload/image"), data=form) as resp:
                if resp.status != 200:
                    body = summarize_body(await resp.text())
                    logger.error("Upload error (%s): %s", resp.status, body)
                    return Result.Err(ErrorCode.TRANSPORT_FAILURE, f"Upload returned {resp.status}", status=resp.status)
                payload = await resp.json(content_type=None)
        except (ClientError, asyncio.TimeoutError, ValueError) as exc:
            logger.error("Upload of %s failed: %s", filename, exc)
            return self._transport_error(exc, "Image upload")

        name = payload.get("name") if isinstance(payload, dict) else None
        if not name:
            return Result.Err(ErrorCode.TRANSPORT_FAILURE, "Upload response carried no filename")
        subfolder = str(payload.get("subfolder") or "").strip("/")
        return Result.Ok(f"{subfolder}/{name}" if subfolder else str(name))

    async def submit(self, graph: dict[str, Any], client_id: str) -> Result[str]:
        body = {"prompt": graph, "client_id": client_id}
        try:
            async with self._get_session().post(self._url("/prompt"), json=body) as resp:
                if resp.status != 200:
                    text = summarize_body(await resp.text())
                    logger.error("Comfy error (%s): %s", resp.status, text)
                    return Result.Err(
                        ErrorCode.TRANSPORT_FAILURE,
                        f"Prompt rejected with status {resp.status}",
                        status=resp.status,
                        response=text,
                    )
                payload = await resp.json(content_type=None)
        except (ClientError, asyncio.TimeoutError, ValueError) as exc:
            logger.error("Prompt submission failed: %s", exc)
            return self._transport_error(exc, "Prompt submission")

        prompt_id = payload.get("prompt_id") if isinstance(payload, dict) else None
        if not prompt_id:
            return Result.Err(ErrorCode.TRANSPORT_FAILURE, "Server response carried no prompt_id")
        return Result.Ok(str(prompt_id), number=payload.get("number"))

    async def poll_status(self, prompt_id: str) -> Result[OutputManifest | None]:
        try:
            async with self._get_session().get(self._url(f"/history/{prompt_id}")) as resp:
                if resp.status != 200:
                    return Result.Err(ErrorCode.TRANSPORT_FAILURE, f"History returned {resp.status}", status=resp.status)
                payload = await resp.json(content_type=None)
        except (ClientError, asyncio.TimeoutError, ValueError) as exc:
            return self._transport_error(exc, "History poll")

        if not isinstance(payload, dict) or not payload:
            return Result.Ok(None)
        entry = payload.get(prompt_id)
        if not isinstance(entry, dict):
            return Result.Ok(None)
        status = entry.get("status") if isinstance(entry.get("status"), dict) else {}
        outputs = entry.get("outputs")
        return Result.Ok(outputs if isinstance(outputs, dict) else {}, status=status.get("status_str"))

    async def fetch_bytes(self, file: OutputFile) -> Result[bytes]:
        try:
            async with self._get_session().get(self._url("/view"), params=file.query()) as resp:
                if resp.status != 200:
                    logger.error("Download of %s returned %s", file.filename, resp.status)
                    return Result.Err(ErrorCode.TRANSPORT_FAILURE, f"Download returned {resp.status}", status=resp.status)
                data = await resp.read()
        except (ClientError, asyncio.TimeoutError) as exc:
            logger.error("Download of %s failed: %s", file.filename, exc)
            return self._transport_error(exc, "Download")
        return Result.Ok(data, size=len(data))

    async def fetch_decoded_image(self, file: OutputFile) -> Result[Image.Image]:
        raw = await self.fetch_bytes(file)
        if not raw.ok or raw.data is None:
            return raw.carry("Download failed")
        return decode_image(raw.data)

    async def fetch_decoded_audio(self, file: OutputFile) -> Result[AudioClip]:
        raw = await self.fetch_bytes(file)
        if not raw.ok or raw.data is None:
            return raw.carry("Download failed")
        return decode_audio(file.filename, raw.data)
