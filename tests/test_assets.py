"""Tests for the versioned offline asset cache."""

import pytest

from pd_tracker.assets import (
    DEFAULT_MANIFEST,
    AssetCache,
    AssetFetchError,
    asset_key,
    directory_fetcher,
)


@pytest.fixture
def origin(temp_project):
    """A local origin holding every default manifest asset."""
    root = temp_project / "static"
    root.mkdir()
    for request_path in DEFAULT_MANIFEST:
        key = asset_key(request_path)
        (root / key).write_bytes(f"v1:{key}".encode())
    (root / "extra.css").write_bytes(b"body{}")
    return root


@pytest.fixture
def cache_root(temp_project):
    return temp_project / "cache"


class CountingFetcher:
    """Wraps a fetcher and records every origin request."""

    def __init__(self, inner):
        self.inner = inner
        self.requests = []

    def __call__(self, request_path):
        self.requests.append(request_path)
        return self.inner(request_path)


class TestAssetKey:

    def test_root_maps_to_index(self):
        assert asset_key("./") == "index.html"
        assert asset_key("/") == "index.html"

    def test_strips_prefix(self):
        assert asset_key("./app.js") == "app.js"

    def test_rejects_parent_escape(self):
        with pytest.raises(ValueError):
            asset_key("../secret")


class TestInstall:

    def test_install_caches_manifest(self, origin, cache_root):
        cache = AssetCache(cache_root, directory_fetcher(origin))
        keys = cache.install()

        assert "app.js" in keys
        assert cache.match("./app.js") == b"v1:app.js"
        assert cache.match("./") == b"v1:index.html"
        assert cache.generations() == ["pd-tracker-cache-v3"]

    def test_install_fetches_each_key_once(self, origin, cache_root):
        fetcher = CountingFetcher(directory_fetcher(origin))
        keys = AssetCache(cache_root, fetcher).install()

        assert len(keys) == len(set(keys)) == len(DEFAULT_MANIFEST) - 1
        assert fetcher.requests.count("./") + fetcher.requests.count("./index.html") == 1

    def test_failed_fetch_leaves_no_generation(self, origin, cache_root):
        (origin / "Icon-512.png").unlink()
        cache = AssetCache(cache_root, directory_fetcher(origin))

        with pytest.raises(AssetFetchError):
            cache.install()

        assert cache.generations() == []
        assert cache.match("./app.js") is None

    def test_fetcher_exception_wrapped(self, cache_root):
        def broken(request_path):
            raise ConnectionError("offline")

        cache = AssetCache(cache_root, broken, manifest=["./app.js"])
        with pytest.raises(AssetFetchError, match="offline"):
            cache.install()


class TestActivate:

    def test_activate_deletes_previous_generations(self, origin, cache_root):
        old = AssetCache(cache_root, directory_fetcher(origin), name="pd-tracker-cache-v2")
        old.install()
        new = AssetCache(cache_root, directory_fetcher(origin), name="pd-tracker-cache-v3")
        new.install()

        assert new.activate() == ["pd-tracker-cache-v2"]
        assert new.generations() == ["pd-tracker-cache-v3"]
        assert new.match("./app.js") == b"v1:app.js"

    def test_activate_with_nothing_to_remove(self, origin, cache_root):
        cache = AssetCache(cache_root, directory_fetcher(origin))
        cache.install()
        assert cache.activate() == []


class TestRespond:

    def test_cache_first(self, origin, cache_root):
        fetcher = CountingFetcher(directory_fetcher(origin))
        cache = AssetCache(cache_root, fetcher)
        cache.install()
        fetcher.requests.clear()

        # Origin changes after install; cached copy still wins
        (origin / "app.js").write_bytes(b"v2:app.js")

        assert cache.respond("./app.js") == b"v1:app.js"
        assert fetcher.requests == []

    def test_miss_falls_back_without_caching(self, origin, cache_root):
        fetcher = CountingFetcher(directory_fetcher(origin))
        cache = AssetCache(cache_root, fetcher)
        cache.install()
        fetcher.requests.clear()

        assert cache.respond("./extra.css") == b"body{}"
        assert cache.respond("./extra.css") == b"body{}"
        assert fetcher.requests == ["./extra.css", "./extra.css"]
        assert cache.match("./extra.css") is None

    def test_respond_before_install_uses_origin(self, origin, cache_root):
        cache = AssetCache(cache_root, directory_fetcher(origin))
        assert cache.respond("./app.js") == b"v1:app.js"
        assert cache.generations() == []
