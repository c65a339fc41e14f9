"""PNG encoding for image-bearing node configs."""

from __future__ import annotations

import io
from pathlib import Path
from typing import Any, Callable, Union

from PIL import Image, UnidentifiedImageError

from ...shared import ErrorCode, Result

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"

ImageSource = Union[bytes, bytearray, str, Path, Image.Image]
RenderTextureSource = Union[Image.Image, Callable[[], Any]]


def _png_bytes(image: Image.Image, mode: str | None = None) -> bytes:
    if mode and image.mode != mode:
        image = image.convert(mode)
    elif image.mode not in ("RGB", "RGBA", "L", "LA"):
        image = image.convert("RGBA")
    buf = io.BytesIO()
    image.save(buf, format="PNG")
    return buf.getvalue()


def encode_png(source: Any, mode: str | None = None) -> Result[bytes]:
    """
    Encode an image source as PNG bytes.

    Accepts raw bytes (PNG passes through untouched unless `mode` forces a
    conversion, other formats are re-encoded), a file path, or a PIL image.
    """
    if source is None:
        return Result.Err(ErrorCode.INVALID_INPUT, "No image bound")
    if isinstance(source, Image.Image):
        return Result.Ok(_png_bytes(source, mode))
    if isinstance(source, (str, Path)):
        try:
            source = Path(source).read_bytes()
        except OSError as exc:
            return Result.Err(ErrorCode.NOT_FOUND, f"Cannot read image file: {exc}")
    if isinstance(source, (bytes, bytearray)):
        data = bytes(source)
        if data.startswith(PNG_SIGNATURE) and mode is None:
            return Result.Ok(data)
        try:
            with Image.open(io.BytesIO(data)) as img:
                img.load()
                return Result.Ok(_png_bytes(img, mode))
        except (UnidentifiedImageError, OSError) as exc:
            return Result.Err(ErrorCode.INVALID_INPUT, f"Unreadable image data: {exc}")
    return Result.Err(ErrorCode.INVALID_INPUT, f"Unsupported image source: {type(source).__name__}")


def capture_render_texture(source: RenderTextureSource | None) -> Result[bytes]:
    """Snapshot a render target (an image or a zero-arg capture callable) as RGB PNG."""
    if source is None:
        return Result.Err(ErrorCode.INVALID_INPUT, "No render texture bound")
    frame: Any = source
    if callable(source) and not isinstance(source, Image.Image):
        try:
            frame = source()
        except Exception as exc:
            return Result.Err(ErrorCode.INVALID_INPUT, f"Render texture capture failed: {exc}")
    return encode_png(frame, mode="RGB")
