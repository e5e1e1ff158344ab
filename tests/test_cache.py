"""Tests for the ephemeral cache."""

import asyncio
import os

import pytest

from conftest import make_image, write_file
from src.services.image import CacheError, EphemeralCache


class TestCacheSize:
    """Tests for size queries and clearing."""

    def test_missing_directory_is_empty(self, tmp_path):
        cache = EphemeralCache(tmp_path / "cache", tmp_path / "assets")
        assert asyncio.run(cache.size_bytes()) == 0

    def test_size_is_recursive(self, tmp_path):
        cache = EphemeralCache(tmp_path / "cache", tmp_path / "assets")
        write_file(tmp_path / "cache" / "a.jpg", 300)
        write_file(tmp_path / "cache" / "nested" / "b.jpg", 700)
        assert asyncio.run(cache.size_bytes()) == 1000

    def test_clear_returns_freed_bytes_and_recreates_directory(self, tmp_path):
        cache = EphemeralCache(tmp_path / "cache", tmp_path / "assets")
        write_file(tmp_path / "cache" / "a.jpg", 300)
        write_file(tmp_path / "cache" / "nested" / "b.jpg", 700)

        assert asyncio.run(cache.clear()) == 1000
        assert os.path.isdir(tmp_path / "cache")
        assert os.listdir(tmp_path / "cache") == []

    def test_clear_never_touches_asset_root(self, tmp_path):
        asset = write_file(tmp_path / "assets" / "profile_1.jpg", 100)
        cache = EphemeralCache(tmp_path / "cache", tmp_path / "assets")
        write_file(tmp_path / "cache" / "a.jpg", 300)
        asyncio.run(cache.clear())
        assert os.path.exists(asset)

    def test_high_water_mark(self, tmp_path):
        cache = EphemeralCache(tmp_path / "cache", tmp_path / "assets", high_water_bytes=500)
        write_file(tmp_path / "cache" / "a.jpg", 400)
        assert not asyncio.run(cache.is_over_high_water())
        write_file(tmp_path / "cache" / "b.jpg", 400)
        assert asyncio.run(cache.is_over_high_water())


class TestCacheLayout:
    """Tests for separation from the durable asset directory."""

    def test_cache_inside_asset_root_rejected(self, tmp_path):
        with pytest.raises(CacheError):
            EphemeralCache(tmp_path / "assets" / "cache", tmp_path / "assets")

    def test_asset_root_inside_cache_rejected(self, tmp_path):
        with pytest.raises(CacheError):
            EphemeralCache(tmp_path / "cache", tmp_path / "cache" / "assets")

    def test_sibling_with_common_prefix_allowed(self, tmp_path):
        EphemeralCache(tmp_path / "assets_cache", tmp_path / "assets")


class TestRenderPreview:
    """Tests for cached display previews."""

    def test_preview_is_rendered_once(self, env):
        source = env.source(size=(1200, 800))
        first = asyncio.run(env.cache.render_preview(source, max_dim=256))
        mtime = os.path.getmtime(first)
        second = asyncio.run(env.cache.render_preview(source, max_dim=256))

        assert first == second
        assert first.startswith(str(env.cache_dir))
        assert os.path.getmtime(second) == mtime

    def test_preview_keys_on_size(self, env):
        source = env.source(size=(1200, 800))
        small = asyncio.run(env.cache.render_preview(source, max_dim=64))
        large = asyncio.run(env.cache.render_preview(source, max_dim=256))
        assert small != large

    def test_disabled_cache_returns_source(self, env):
        asyncio.run(env.settings_store.update({"cache_enabled": False}))
        source = make_image(env.root / "camera" / "x.jpg")
        assert asyncio.run(env.cache.render_preview(source, max_dim=64)) == source
        assert not os.path.exists(env.cache_dir)
