"""
Tests for content-addressed assets.
"""

import hashlib

import pytest

from zephyr_agent.assets import (
    Asset,
    assets_from_directory,
    build_assets_map,
    get_missing_assets,
    normalize_path,
)
from zephyr_agent.faults import ZeErrors, ZephyrError


def identity(content):
    return content


def label(_):
    return "file"


# ============================================================================
# Asset
# ============================================================================

class TestAsset:

    def test_from_content(self):
        asset = Asset.from_content("./static/main.js", "console.log(1)")
        assert asset.path == "static/main.js"
        assert asset.extname == ".js"
        assert asset.hash == hashlib.sha256(b"console.log(1)").hexdigest()
        assert asset.size == len(b"console.log(1)")
        assert asset.mime_type in ("application/javascript", "text/javascript")
        assert asset.verify()

    def test_unknown_mime(self):
        assert Asset.from_content("blob.zzz-unknown", b"x").mime_type == "application/octet-stream"

    def test_to_dict_has_no_buffer(self):
        assert set(Asset.from_content("a.txt", b"a").to_dict()) == {"path", "extname", "hash", "size"}

    @pytest.mark.parametrize("raw,expected", [
        ("./a/b.js", "a/b.js"),
        ("/a/b.js", "a/b.js"),
        ("a\\b.js", "a/b.js"),
        ("a/./c/../b.js", "a/b.js"),
    ])
    def test_normalize_path(self, raw, expected):
        assert normalize_path(raw) == expected


# ============================================================================
# build_assets_map
# ============================================================================

class TestBuildAssetsMap:

    def test_keyed_by_hash(self):
        assets = build_assets_map({"a.js": b"A", "b.js": b"B"}, identity, label)
        assert set(assets) == {
            hashlib.sha256(b"A").hexdigest(),
            hashlib.sha256(b"B").hexdigest(),
        }
        for key, asset in assets.items():
            assert asset.hash == key

    def test_identical_content_collapses_to_smallest_path(self):
        forward = build_assets_map([("z.js", b"same"), ("a.js", b"same")], identity, label)
        backward = build_assets_map([("a.js", b"same"), ("z.js", b"same")], identity, label)
        assert len(forward) == 1
        assert [a.path for a in forward.values()] == ["a.js"]
        assert [a.path for a in backward.values()] == ["a.js"]

    def test_none_content_skipped(self):
        assets = build_assets_map({"a.js": b"A", "b.bin": None}, identity, label)
        assert [a.path for a in assets.values()] == ["a.js"]

    def test_extract_failure_skipped(self):
        def extract(record):
            if record == "bad":
                raise ValueError("unreadable")
            return record

        assets = build_assets_map({"a.js": b"A", "b.js": "bad"}, extract, label)
        assert [a.path for a in assets.values()] == ["a.js"]

    def test_str_content_encoded(self):
        assets = build_assets_map({"a.txt": "héllo"}, identity, label)
        (asset,) = assets.values()
        assert asset.buffer == "héllo".encode("utf-8")


# ============================================================================
# get_missing_assets
# ============================================================================

class TestGetMissingAssets:

    def test_filters_known_hashes(self):
        assets = build_assets_map({"b.js": b"B", "a.js": b"A", "c.js": b"C"}, identity, label)
        known = {hashlib.sha256(b"B").hexdigest()}
        assert [a.path for a in get_missing_assets(assets, known)] == ["a.js", "c.js"]

    def test_all_known(self):
        assets = build_assets_map({"a.js": b"A"}, identity, label)
        assert get_missing_assets(assets, set(assets)) == []

    def test_missing_hash_raises(self):
        broken = Asset(path="a.js", extname=".js", hash="", size=1, buffer=b"A")
        with pytest.raises(ZephyrError) as exc:
            get_missing_assets({"x": broken}, set())
        assert exc.value.type is ZeErrors.ERR_MISSING_FILE_HASH


# ============================================================================
# assets_from_directory
# ============================================================================

class TestAssetsFromDirectory:

    @pytest.mark.asyncio
    async def test_reads_tree(self, tmp_path):
        (tmp_path / "index.html").write_text("<html></html>")
        (tmp_path / "static").mkdir()
        (tmp_path / "static" / "main.js").write_text("1")
        (tmp_path / "static" / "main.js.map").write_text("{}")

        assets = await assets_from_directory(tmp_path)
        assert sorted(a.path for a in assets.values()) == [
            "index.html", "static/main.js", "static/main.js.map",
        ]

    @pytest.mark.asyncio
    async def test_without_source_maps(self, tmp_path):
        (tmp_path / "main.js").write_text("1")
        (tmp_path / "main.js.map").write_text("{}")
        assets = await assets_from_directory(tmp_path, include_source_maps=False)
        assert [a.path for a in assets.values()] == ["main.js"]

    @pytest.mark.asyncio
    async def test_missing_directory(self, tmp_path):
        with pytest.raises(ZephyrError) as exc:
            await assets_from_directory(tmp_path / "nope")
        assert exc.value.type is ZeErrors.ERR_ASSETS_NOT_FOUND

    @pytest.mark.asyncio
    async def test_empty_directory(self, tmp_path):
        with pytest.raises(ZephyrError) as exc:
            await assets_from_directory(tmp_path)
        assert exc.value.type is ZeErrors.ERR_ASSETS_NOT_FOUND
