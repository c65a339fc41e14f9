import pytest

from comfy_bridge.adapters.models import GltfFileLoader
from comfy_bridge.features.execution import OutputConsumers, ResultRouter, find_matching_output
from comfy_bridge.shared import OutputKind

from conftest import wav_bytes

GLB_BYTES = b"glTF" + (2).to_bytes(4, "little") + (12).to_bytes(4, "little")


def _file(name, subfolder=""):
    return {"filename": name, "subfolder": subfolder, "type": "output"}


def test_find_matching_output_skips_non_matching_files():
    manifest = {
        "9": {"images": [_file("preview.png")]},
        "12": {"result": [_file("mesh.glb", "3d")]},
    }
    match = find_matching_output(manifest, OutputKind.OBJECT3D)
    assert match is not None
    assert (match.node_id, match.slot, match.file.filename, match.file.subfolder) == ("12", "result", "mesh.glb", "3d")

    image = find_matching_output(manifest, OutputKind.IMAGE)
    assert image.file.filename == "preview.png"


def test_find_matching_output_inspects_only_first_file_per_slot():
    manifest = {"9": {"images": [_file("a.webp"), _file("b.png")]}}
    assert find_matching_output(manifest, OutputKind.IMAGE) is None


def test_find_matching_output_ignores_non_file_slots():
    manifest = {"9": {"animated": [False], "text": ["hello"], "images": [_file("ok.jpg")]}, "x": "junk"}
    assert find_matching_output(manifest, OutputKind.IMAGE).file.filename == "ok.jpg"
    assert find_matching_output(manifest, OutputKind.NONE) is None


@pytest.mark.asyncio
async def test_route_image_to_consumer(backend, tmp_path):
    seen = []
    router = ResultRouter(backend, tmp_path, OutputConsumers(on_image=lambda img, f: seen.append((img.size, f.filename))))
    res = await router.route(backend.manifest, OutputKind.IMAGE)
    assert res.ok
    assert seen == [((8, 4), "ComfyUI_00001_.png")]
    assert res.data.payload.size == (8, 4)


@pytest.mark.asyncio
async def test_route_render_texture_uses_its_own_consumer(backend, tmp_path):
    seen = []

    async def _blit(img, _file):
        seen.append(img.mode)

    router = ResultRouter(backend, tmp_path, OutputConsumers(on_image=lambda *_: seen.append("wrong"), on_render_texture=_blit))
    res = await router.route(backend.manifest, OutputKind.RENDER_TEXTURE)
    assert res.ok
    assert seen == ["RGB"]


@pytest.mark.asyncio
async def test_route_audio_decodes_wav(backend, tmp_path):
    backend.manifest = {"20": {"audio": [_file("song.wav", "audio")]}}
    backend.files["song.wav"] = wav_bytes(seconds=0.5)
    clips = []
    router = ResultRouter(backend, tmp_path, OutputConsumers(on_audio=lambda clip, _f: clips.append(clip)))
    res = await router.route(backend.manifest, OutputKind.AUDIO)
    assert res.ok
    assert clips[0].format == "wav"
    assert clips[0].sample_rate == 8000
    assert clips[0].duration_seconds == pytest.approx(0.5)


@pytest.mark.asyncio
async def test_route_flac_is_saved_to_disk(backend, tmp_path):
    backend.manifest = {"20": {"audio": [_file("song.flac", "audio")]}}
    backend.files["song.flac"] = b"fLaC-data"
    saved = []
    router = ResultRouter(
        backend,
        tmp_path / "dl",
        OutputConsumers(on_audio=lambda *_: saved.append("decoded"), on_audio_file=lambda p, _f: saved.append(p)),
    )
    res = await router.route(backend.manifest, OutputKind.AUDIO)
    assert res.ok
    path = tmp_path / "dl" / "song.flac"
    assert saved == [path]
    assert path.read_bytes() == b"fLaC-data"
    assert res.data.local_path == path


@pytest.mark.asyncio
async def test_route_model_downloads_and_loads(backend, tmp_path):
    backend.manifest = {"9": {"images": [_file("preview.png")]}, "30": {"3d": [_file("mesh.glb", "3d")]}}
    backend.files["mesh.glb"] = GLB_BYTES
    loaded = []
    router = ResultRouter(backend, tmp_path, model_loader=GltfFileLoader(on_loaded=loaded.append))
    res = await router.route(backend.manifest, OutputKind.OBJECT3D)
    assert res.ok
    assert res.data.loaded is True
    assert loaded == [tmp_path / "mesh.glb"]
    assert backend.fetched == ["mesh.glb"]


@pytest.mark.asyncio
async def test_route_model_loader_failure_is_not_a_run_failure(backend, tmp_path):
    backend.manifest = {"30": {"3d": [_file("mesh.glb")]}}
    backend.files["mesh.glb"] = b"not a glb"
    router = ResultRouter(backend, tmp_path, model_loader=GltfFileLoader())
    res = await router.route(backend.manifest, OutputKind.OBJECT3D)
    assert res.ok
    assert res.data.loaded is False
    assert res.data.consumer_error


@pytest.mark.asyncio
async def test_route_no_match_and_empty_manifest(backend, tmp_path):
    router = ResultRouter(backend, tmp_path)
    res = await router.route(backend.manifest, OutputKind.AUDIO)
    assert res.code == "NO_MATCHING_OUTPUT"
    assert backend.fetched == []

    empty = await router.route({}, OutputKind.IMAGE)
    assert empty.code == "NO_MATCHING_OUTPUT"


@pytest.mark.asyncio
async def test_route_none_finishes_without_fetching(backend, tmp_path):
    router = ResultRouter(backend, tmp_path)
    for manifest in (backend.manifest, {}):
        res = await router.route(manifest, OutputKind.NONE)
        assert res.ok
        assert res.data is None
    assert backend.fetched == []


@pytest.mark.asyncio
async def test_route_fetch_failure_is_transport_failure(backend, tmp_path):
    backend.files.clear()
    router = ResultRouter(backend, tmp_path)
    res = await router.route(backend.manifest, OutputKind.IMAGE)
    assert not res.ok
    assert res.code == "TRANSPORT_FAILURE"


@pytest.mark.asyncio
async def test_consumer_error_is_recorded(backend, tmp_path):
    def _boom(*_):
        raise RuntimeError("texture gone")

    router = ResultRouter(backend, tmp_path, OutputConsumers(on_image=_boom))
    res = await router.route(backend.manifest, OutputKind.IMAGE)
    assert res.ok
    assert res.data.consumer_error == "texture gone"


@pytest.mark.asyncio
async def test_downloaded_name_is_sanitized(backend, tmp_path):
    backend.manifest = {"30": {"3d": [_file("../../evil.glb")]}}
    backend.files["../../evil.glb"] = GLB_BYTES
    router = ResultRouter(backend, tmp_path / "dl")
    res = await router.route(backend.manifest, OutputKind.OBJECT3D)
    assert res.ok
    assert res.data.local_path == tmp_path / "dl" / "evil.glb"
