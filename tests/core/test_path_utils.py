import os

import pytest

from comfy_bridge.path_utils import is_within_root, safe_download_name, safe_rel_path


@pytest.mark.parametrize("value", ["../x.json", "a/../../x.json", "/etc/passwd", "bad\x00name.json"])
def test_safe_rel_path_rejects(value):
    assert safe_rel_path(value) is None


def test_safe_rel_path_accepts_nested_and_empty():
    assert safe_rel_path(" sub/flow.json ").parts == ("sub", "flow.json")
    assert str(safe_rel_path(None)) == "."


def test_is_within_root_follows_symlinks(tmp_path):
    root = tmp_path / "workflows"
    root.mkdir()
    inside = root / "a.json"
    inside.write_text("{}", encoding="utf-8")
    outside = tmp_path / "secret.json"
    outside.write_text("{}", encoding="utf-8")

    assert is_within_root(inside, root)
    assert not is_within_root(outside, root)
    assert not is_within_root(root / "missing.json", root)

    if hasattr(os, "symlink"):
        link = root / "link.json"
        try:
            link.symlink_to(outside)
        except OSError:
            pytest.skip("symlinks not permitted")
        assert not is_within_root(link, root)


@pytest.mark.parametrize(
    "name,expected",
    [
        ("ComfyUI_00001_.png", "ComfyUI_00001_.png"),
        ("../../evil.glb", "evil.glb"),
        ("sub\\dir\\clip.flac", "clip.flac"),
        ('a:b*c?.wav', "a_b_c_.wav"),
        ("..", "output.bin"),
        ("", "output.bin"),
    ],
)
def test_safe_download_name(name, expected):
    assert safe_download_name(name) == expected
