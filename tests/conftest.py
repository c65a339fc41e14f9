import copy
import io
import json
import sys
import wave

import pytest
from PIL import Image

from repo_root import REPO_ROOT

if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from comfy_bridge.adapters.comfy.decoding import decode_audio, decode_image  # noqa: E402
from comfy_bridge.adapters.comfy.interface import ExecutionBackend  # noqa: E402
from comfy_bridge.config import BridgeSettings  # noqa: E402
from comfy_bridge.shared import Result  # noqa: E402

TXT2IMG_WORKFLOW = {
    "3": {
        "class_type": "KSampler",
        "inputs": {
            "seed": 156680208700286,
            "steps": 20,
            "cfg": 8,
            "sampler_name": "euler",
            "scheduler": "normal",
            "denoise": 1,
            "model": ["4", 0],
            "positive": ["6", 0],
            "negative": ["7", 0],
            "latent_image": ["5", 0],
        },
    },
    "4": {"class_type": "CheckpointLoaderSimple", "inputs": {"ckpt_name": "v1-5-pruned-emaonly.safetensors"}},
    "5": {"class_type": "EmptyLatentImage", "inputs": {"width": 512, "height": 512, "batch_size": 4}},
    "6": {"class_type": "CLIPTextEncode", "inputs": {"text": "beautiful scenery", "clip": ["4", 1]}},
    "7": {"class_type": "CLIPTextEncode", "inputs": {"text": "text, watermark", "clip": ["4", 1]}},
    "8": {"class_type": "VAEDecode", "inputs": {"samples": ["3", 0], "vae": ["4", 2]}},
    "9": {
        "class_type": "SaveImage",
        "inputs": {"filename_prefix": "ComfyUI", "images": ["8", 0]},
        "_meta": {"title": "Save Image"},
    },
    "10": {"class_type": "LoadImage", "inputs": {"image": "example.png", "upload": "image"}},
}

IMAGE_MANIFEST = {"9": {"images": [{"filename": "ComfyUI_00001_.png", "subfolder": "", "type": "output"}]}}


def png_bytes(width: int = 8, height: int = 4, color=(255, 0, 0)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buf, format="PNG")
    return buf.getvalue()


def wav_bytes(seconds: float = 0.5, rate: int = 8000) -> bytes:
    buf = io.BytesIO()
    with wave.open(buf, "wb") as wav:
        wav.setnchannels(1)
        wav.setsampwidth(2)
        wav.setframerate(rate)
        wav.writeframes(b"\x00\x00" * int(seconds * rate))
    return buf.getvalue()


class FakeBackend(ExecutionBackend):
    """In-memory ComfyUI stand-in recording every call."""

    def __init__(self):
        self.uploads: list[tuple[str, bytes]] = []
        self.submissions: list[tuple[dict, str]] = []
        self.poll_count = 0
        self.fetched: list[str] = []
        self.upload_result = None
        self.submit_result = None
        self.pending_polls = 0
        self.poll_errors = 0
        self.poll_gate = None
        self.manifest = copy.deepcopy(IMAGE_MANIFEST)
        self.files: dict[str, bytes] = {"ComfyUI_00001_.png": png_bytes()}
        self.closed = False

    async def upload_image(self, data, filename):
        self.uploads.append((filename, data))
        if self.upload_result is not None:
            return self.upload_result
        return Result.Ok(f"server_{filename}")

    async def submit(self, graph, client_id):
        self.submissions.append((copy.deepcopy(graph), client_id))
        if self.submit_result is not None:
            return self.submit_result
        return Result.Ok(f"prompt-{len(self.submissions)}")

    async def poll_status(self, prompt_id):
        self.poll_count += 1
        if self.poll_gate is not None:
            await self.poll_gate.wait()
        if self.poll_errors > 0:
            self.poll_errors -= 1
            return Result.Err("TRANSPORT_FAILURE", "connection reset")
        if self.pending_polls > 0:
            self.pending_polls -= 1
            return Result.Ok(None)
        return Result.Ok(copy.deepcopy(self.manifest))

    async def fetch_bytes(self, file):
        self.fetched.append(file.filename)
        data = self.files.get(file.filename)
        if data is None:
            return Result.Err("TRANSPORT_FAILURE", f"Download returned 404 for {file.filename}")
        return Result.Ok(data)

    async def fetch_decoded_image(self, file):
        raw = await self.fetch_bytes(file)
        if not raw.ok:
            return raw
        return decode_image(raw.data)

    async def fetch_decoded_audio(self, file):
        raw = await self.fetch_bytes(file)
        if not raw.ok:
            return raw
        return decode_audio(file.filename, raw.data)

    async def aclose(self):
        self.closed = True


@pytest.fixture
def workflow_payload():
    return copy.deepcopy(TXT2IMG_WORKFLOW)


@pytest.fixture
def settings(tmp_path):
    workflows = tmp_path / "workflows"
    workflows.mkdir()
    (workflows / "txt2img.json").write_text(json.dumps(TXT2IMG_WORKFLOW), encoding="utf-8")
    return BridgeSettings(
        workflows_dir=workflows,
        download_dir=tmp_path / "downloads",
        poll_interval=0,
    )


@pytest.fixture
def backend():
    return FakeBackend()
