import json
import struct

import pytest

from comfy_bridge.adapters.models import GltfFileLoader, validate_gltf


def _glb(version: int = 2) -> bytes:
    return b"glTF" + struct.pack("<II", version, 12)


def test_validate_glb_and_gltf(tmp_path):
    glb = tmp_path / "mesh.glb"
    glb.write_bytes(_glb())
    res = validate_gltf(glb)
    assert res.ok and res.meta["version"] == "2"

    gltf = tmp_path / "mesh.gltf"
    gltf.write_text(json.dumps({"asset": {"version": "2.0"}, "scenes": []}), encoding="utf-8")
    assert validate_gltf(gltf).meta["version"] == "2.0"


@pytest.mark.parametrize(
    "name,content",
    [
        ("short.glb", b"glT"),
        ("wrong.glb", b"PK\x03\x04" + b"\x00" * 8),
        ("noasset.gltf", b"{}"),
        ("broken.gltf", b"{not json"),
        ("mesh.obj", b"v 0 0 0"),
    ],
)
def test_validate_rejects(tmp_path, name, content):
    path = tmp_path / name
    path.write_bytes(content)
    assert validate_gltf(path).code == "MODEL_LOAD_FAILED"


def test_validate_missing_file(tmp_path):
    assert validate_gltf(tmp_path / "gone.glb").code == "MODEL_LOAD_FAILED"


@pytest.mark.asyncio
async def test_loader_forwards_to_host(tmp_path):
    path = tmp_path / "mesh.glb"
    path.write_bytes(_glb())
    seen = []
    loader = GltfFileLoader(on_loaded=seen.append)

    res = await loader.load(path)

    assert res.ok and res.data is True
    assert seen == [path]
    assert loader.last_loaded == path


@pytest.mark.asyncio
async def test_loader_rejection_keeps_previous_model(tmp_path):
    good = tmp_path / "good.glb"
    good.write_bytes(_glb())
    bad = tmp_path / "bad.glb"
    bad.write_bytes(b"nope")
    loader = GltfFileLoader()

    await loader.load(good)
    res = await loader.load(bad)

    assert not res.ok
    assert loader.last_loaded == good
