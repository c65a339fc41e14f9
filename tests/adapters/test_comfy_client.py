import asyncio

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from comfy_bridge.adapters.comfy import ComfyClient, OutputFile

from conftest import png_bytes, wav_bytes


def _fake_comfy_app(state: dict) -> web.Application:
    routes = web.RouteTableDef()

    @routes.post("/upload/image")
    async def _upload(request):
        form = await request.post()
        field = form["image"]
        state["uploaded"] = (field.filename, field.file.read())
        return web.json_response({"name": field.filename, "subfolder": state.get("subfolder", ""), "type": "input"})

    @routes.post("/prompt")
    async def _prompt(request):
        body = await request.json()
        state["prompt"] = body
        if "bad" in body["prompt"]:
            return web.json_response({"error": "invalid prompt"}, status=400)
        return web.json_response({"prompt_id": "abc-123", "number": 7, "node_errors": {}})

    @routes.get("/history/{prompt_id}")
    async def _history(request):
        state["polls"] = state.get("polls", 0) + 1
        if state["polls"] < 2:
            return web.json_response({})
        prompt_id = request.match_info["prompt_id"]
        return web.json_response(
            {prompt_id: {"outputs": state["outputs"], "status": {"status_str": "success", "completed": True}}}
        )

    @routes.get("/view")
    async def _view(request):
        state.setdefault("views", []).append(dict(request.query))
        data = state["files"].get(request.query.get("filename"))
        if data is None:
            return web.Response(status=404)
        return web.Response(body=data)

    @routes.get("/slow/history/{prompt_id}")
    async def _slow(request):
        await asyncio.sleep(1)
        return web.json_response({})

    app = web.Application()
    app.add_routes(routes)
    return app


@pytest.fixture
def comfy_state():
    return {
        "outputs": {"9": {"images": [{"filename": "out.png", "subfolder": "", "type": "output"}]}},
        "files": {"out.png": png_bytes(), "clip.wav": wav_bytes(0.25)},
    }


@pytest.mark.asyncio
async def test_full_round_trip(comfy_state):
    server = TestServer(_fake_comfy_app(comfy_state))
    await server.start_server()
    client = ComfyClient(str(server.make_url("/")))
    try:
        up = await client.upload_image(b"\x89PNG-data", "bridge_1.png")
        assert up.ok and up.data == "bridge_1.png"
        assert comfy_state["uploaded"] == ("bridge_1.png", b"\x89PNG-data")

        sub = await client.submit({"6": {"class_type": "CLIPTextEncode", "inputs": {"text": "hi"}}}, "client-1")
        assert sub.ok and sub.data == "abc-123"
        assert sub.meta["number"] == 7
        assert comfy_state["prompt"]["client_id"] == "client-1"

        pending = await client.poll_status("abc-123")
        assert pending.ok and pending.data is None

        done = await client.poll_status("abc-123")
        assert done.ok
        assert done.data == comfy_state["outputs"]
        assert done.meta["status"] == "success"

        image = await client.fetch_decoded_image(OutputFile("out.png"))
        assert image.ok and image.data.size == (8, 4)
        assert comfy_state["views"][-1] == {"filename": "out.png", "subfolder": "", "type": "output"}

        audio = await client.fetch_decoded_audio(OutputFile("clip.wav", "audio"))
        assert audio.ok and audio.data.duration_seconds == pytest.approx(0.25)
    finally:
        await client.aclose()
        await server.close()


@pytest.mark.asyncio
async def test_upload_with_subfolder_and_errors(comfy_state):
    comfy_state["subfolder"] = "bridge"
    server = TestServer(_fake_comfy_app(comfy_state))
    await server.start_server()
    try:
        async with ComfyClient(str(server.make_url("/"))) as client:
            up = await client.upload_image(b"x", "a.png")
            assert up.data == "bridge/a.png"

            rejected = await client.submit({"bad": {}}, "c")
            assert rejected.code == "TRANSPORT_FAILURE"
            assert rejected.meta["status"] == 400

            missing = await client.fetch_bytes(OutputFile("nope.png"))
            assert missing.code == "TRANSPORT_FAILURE"

            undecodable = await client.fetch_decoded_image(OutputFile("clip.wav"))
            assert undecodable.code == "PARSE_ERROR"
    finally:
        await server.close()


@pytest.mark.asyncio
async def test_timeout_maps_to_timeout_code(comfy_state):
    server = TestServer(_fake_comfy_app(comfy_state))
    await server.start_server()
    client = ComfyClient(str(server.make_url("/slow")), timeout=0.05)
    try:
        res = await client.poll_status("abc")
        assert res.code == "TIMEOUT"
    finally:
        await client.aclose()
        await server.close()


@pytest.mark.asyncio
async def test_unreachable_server_is_transport_failure():
    client = ComfyClient("http://127.0.0.1:1", timeout=2)
    try:
        res = await client.submit({}, "c")
        assert res.code == "TRANSPORT_FAILURE"
        assert not res.ok
    finally:
        await client.aclose()


def test_output_file_from_payload():
    assert OutputFile.from_payload({"filename": "a.glb", "subfolder": "3d"}) == OutputFile("a.glb", "3d", "output")
    assert OutputFile.from_payload({"subfolder": "x"}) is None
    assert OutputFile.from_payload("a.png") is None
