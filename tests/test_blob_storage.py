"""Tests for the local blob store (path resolution, put, fetch)."""

from pathlib import Path

import pytest

from fakes import FakeBlobStore
from filegate.blobs.client import UpstreamResponse
from filegate.blobs.storage import LocalBlobStore, resolve_blob_path
from filegate.errors import BlobExists, BlobWriteFailed


def test_resolve_blob_path_safe() -> None:
    """Safe relative path is resolved under base."""
    got = resolve_blob_path(Path("/data/blobs"), "users/u1/f1/170_a (1).jpg")
    assert got == Path("/data/blobs/users/u1/f1/170_a (1).jpg")


def test_resolve_blob_path_rejects_traversal() -> None:
    """Relative path with .. raises ValueError."""
    with pytest.raises(ValueError):
        resolve_blob_path(Path("/data"), "../../etc/passwd")


def test_resolve_blob_path_allows_unicode_and_percent() -> None:
    assert resolve_blob_path(Path("/d"), "Übersicht 100%.pdf") == Path("/d/Übersicht 100%.pdf")


def test_resolve_blob_path_rejects_empty_and_control_chars() -> None:
    with pytest.raises(ValueError):
        resolve_blob_path(Path("/d"), "")
    with pytest.raises(ValueError):
        resolve_blob_path(Path("/d"), "a\x00b")


@pytest.mark.parametrize("name", ["price$5.png", "a^b.png", "smile😀.png", "x|y.png", "a<b>.png", "q?.png"])
def test_resolve_blob_path_allows_symbols(name) -> None:
    assert resolve_blob_path(Path("/d"), f"u/{name}") == Path("/d/u") / name


class _Fetcher:
    """Records foreign fetches instead of going to the network."""

    def __init__(self) -> None:
        self.urls = []

    async def fetch(self, url, headers=None):
        self.urls.append(url)
        return await FakeBlobStore().fetch(url, headers)


@pytest.fixture
def fetcher():
    return _Fetcher()


@pytest.fixture
def blob_store(tmp_path, fetcher):
    return LocalBlobStore(tmp_path, "http://gw.test/", fetcher)


def test_url_round_trip(blob_store) -> None:
    url = blob_store.url_for("users/u1/f1/1_my photo.jpg")
    assert url == "http://gw.test/blobs/users/u1/f1/1_my%20photo.jpg"
    assert blob_store.path_for_url(url) == "users/u1/f1/1_my photo.jpg"
    assert blob_store.path_for_url("https://elsewhere/x") is None


@pytest.mark.asyncio
async def test_put_then_fetch(blob_store, tmp_path) -> None:
    url = await blob_store.put("users/u1/f1/a.png", b"png-bytes", "image/png")
    assert (tmp_path / "users/u1/f1/a.png").read_bytes() == b"png-bytes"
    upstream = await blob_store.fetch(url)
    assert upstream.status_code == 200
    assert upstream.content_type == "image/png"
    assert await upstream.read() == b"png-bytes"


@pytest.mark.asyncio
async def test_put_unsafe_path(blob_store) -> None:
    with pytest.raises(BlobWriteFailed):
        await blob_store.put("../escape.txt", b"x", None)


@pytest.mark.asyncio
async def test_put_never_overwrites(blob_store, tmp_path) -> None:
    """A second put on the same path raises BlobExists and keeps the first bytes."""
    await blob_store.put("users/u1/f1/a.png", b"FIRST", "image/png")
    with pytest.raises(BlobExists):
        await blob_store.put("users/u1/f1/a.png", b"SECOND", "image/png")
    assert (tmp_path / "users/u1/f1/a.png").read_bytes() == b"FIRST"


@pytest.mark.asyncio
async def test_fetch_missing_blob_is_404(blob_store) -> None:
    upstream = await blob_store.fetch("http://gw.test/blobs/users/none.png")
    assert upstream.status_code == 404
    assert upstream.ok is False


@pytest.mark.asyncio
async def test_fetch_foreign_url_uses_fetcher(blob_store, fetcher) -> None:
    upstream = await blob_store.fetch("https://elsewhere/x.png")
    assert isinstance(upstream, UpstreamResponse)
    assert fetcher.urls == ["https://elsewhere/x.png"]


@pytest.mark.asyncio
async def test_upstream_response_close_once() -> None:
    closed = []

    async def close():
        closed.append(True)

    async def chunks():
        yield b"a"
        yield b"b"

    upstream = UpstreamResponse(200, {"Content-Type": "text/plain"}, chunks(), close=close)
    assert upstream.headers["content-type"] == "text/plain"
    assert await upstream.read() == b"ab"
    await upstream.aclose()
    assert closed == [True]
