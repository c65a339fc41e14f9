"""Decode downloaded output bytes into images and audio clips."""

from __future__ import annotations

import io
import wave

from PIL import Image, UnidentifiedImageError

from ...shared import ErrorCode, Result, file_extension
from .interface import AudioClip

AUDIO_FORMATS = {
    ".wav": "wav",
    ".mp3": "mpeg",
    ".ogg": "ogg",
    ".aif": "aiff",
    ".aiff": "aiff",
    ".flac": "flac",
}


def decode_image(data: bytes) -> Result[Image.Image]:
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError) as exc:
        return Result.Err(ErrorCode.PARSE_ERROR, f"Cannot decode image: {exc}")
    return Result.Ok(img, width=img.width, height=img.height)


def _wav_info(data: bytes) -> tuple[int, int, float] | None:
    try:
        with wave.open(io.BytesIO(data), "rb") as wav:
            rate = wav.getframerate()
            frames = wav.getnframes()
            return rate, wav.getnchannels(), (frames / float(rate)) if rate else 0.0
    except (wave.Error, EOFError):
        return None


def decode_audio(filename: str, data: bytes) -> Result[AudioClip]:
    ext = file_extension(filename)
    fmt = AUDIO_FORMATS.get(ext)
    if fmt is None:
        return Result.Err(ErrorCode.INVALID_INPUT, f"Unsupported audio format: {ext or filename}")
    clip = AudioClip(filename=filename, format=fmt, data=data)
    if fmt == "wav":
        info = _wav_info(data)
        if info is None:
            return Result.Err(ErrorCode.PARSE_ERROR, f"Cannot decode WAV audio: {filename}")
        clip.sample_rate, clip.channels, clip.duration_seconds = info
    return Result.Ok(clip)
