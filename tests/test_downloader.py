"""
Tests for the artifact downloader.
"""

import hashlib

import httpx
import pytest

from keg.downloader import ArtifactDownloader
from keg.errors import ChecksumMismatchError, DownloadError
from keg.formula import PackageReleaseDescriptor

from .conftest import ARTIFACT_URL


@pytest.fixture
def artifact(formula_data):
    return PackageReleaseDescriptor.model_validate(formula_data).resolve()


@pytest.mark.asyncio
async def test_fetch_verifies_and_caches(temp_dir, serve, artifact, artifact_bytes):
    """A good download lands in the cache under <url hash>--<file name>."""
    async with serve({ARTIFACT_URL: artifact_bytes}) as client:
        downloader = ArtifactDownloader(temp_dir / "cache", client=client)
        path = await downloader.fetch(artifact)

    assert path.read_bytes() == artifact_bytes
    assert path.name.endswith("--talostpl-test")
    assert downloader.is_cached(artifact)
    assert not list((temp_dir / "cache").glob("*.incomplete"))


@pytest.mark.asyncio
async def test_cache_hit_skips_network(temp_dir, serve, artifact, artifact_bytes):
    async with serve({ARTIFACT_URL: artifact_bytes}) as client:
        downloader = ArtifactDownloader(temp_dir / "cache", client=client)
        first = await downloader.fetch(artifact)
        second = await downloader.fetch(artifact)

    assert first == second
    assert client.requested == [ARTIFACT_URL]


@pytest.mark.asyncio
async def test_retrieve_reports_cache_hits(temp_dir, serve, artifact, artifact_bytes):
    async with serve({ARTIFACT_URL: artifact_bytes}) as client:
        downloader = ArtifactDownloader(temp_dir / "cache", client=client)
        _, first_cached = await downloader.retrieve(artifact)
        path, second_cached = await downloader.retrieve(artifact)

    assert first_cached is False
    assert second_cached is True
    assert path == downloader.cache_path(artifact)


@pytest.mark.asyncio
async def test_corrupted_download_is_discarded(temp_dir, serve, artifact, artifact_bytes):
    """A hash mismatch raises and leaves nothing behind in the cache."""
    async with serve({ARTIFACT_URL: artifact_bytes + b"corrupted"}) as client:
        downloader = ArtifactDownloader(temp_dir / "cache", client=client)
        with pytest.raises(ChecksumMismatchError) as excinfo:
            await downloader.fetch(artifact)

    corrupted = hashlib.sha256(artifact_bytes + b"corrupted").hexdigest()
    assert excinfo.value.actual == f"sha256:{corrupted}"
    assert list((temp_dir / "cache").iterdir()) == []
    assert not downloader.is_cached(artifact)


@pytest.mark.asyncio
async def test_stale_cache_entry_is_replaced(temp_dir, serve, artifact, artifact_bytes):
    downloader = ArtifactDownloader(temp_dir / "cache")
    stale = downloader.cache_path(artifact)
    stale.parent.mkdir(parents=True)
    stale.write_bytes(b"old release")

    async with serve({ARTIFACT_URL: artifact_bytes}) as client:
        downloader.client = client
        path = await downloader.fetch(artifact)

    assert path.read_bytes() == artifact_bytes
    assert client.requested == [ARTIFACT_URL]


@pytest.mark.asyncio
async def test_http_error_status(temp_dir, serve, artifact):
    async with serve({ARTIFACT_URL: 404}) as client:
        downloader = ArtifactDownloader(temp_dir / "cache", client=client)
        with pytest.raises(DownloadError, match="HTTP 404"):
            await downloader.fetch(artifact)

    assert not downloader.is_cached(artifact)


@pytest.mark.asyncio
async def test_transport_error(temp_dir, artifact):
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(refuse)) as client:
        downloader = ArtifactDownloader(temp_dir / "cache", client=client)
        with pytest.raises(DownloadError, match="connection refused"):
            await downloader.fetch(artifact)


def test_clear(temp_dir, artifact):
    downloader = ArtifactDownloader(temp_dir / "cache")
    assert downloader.clear(artifact) is False

    entry = downloader.cache_path(artifact)
    entry.parent.mkdir(parents=True)
    entry.write_bytes(b"x")
    assert downloader.clear(artifact) is True
    assert not entry.exists()
