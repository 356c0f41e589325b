"""
Artifact downloader.

Streams release artifacts into the download cache, hashing the bytes as they
arrive. A file only lands in the cache once its checksum has been verified.
"""

import contextlib
import hashlib
import logging
import os
from pathlib import Path
from typing import AsyncIterator

import httpx

from .errors import ChecksumMismatchError, DownloadError
from .formula import ResolvedArtifact
from .integrity import file_digest

logger = logging.getLogger(__name__)


class ArtifactDownloader:
    """Downloads and verifies release artifacts.

    Args:
        cache_dir: Directory that holds verified downloads
        client: Optional shared httpx.AsyncClient (a private one is created per fetch otherwise)
        timeout: Seconds to wait on the server
    """

    def __init__(
        self,
        cache_dir: Path,
        client: httpx.AsyncClient | None = None,
        timeout: float = 60.0,
    ):
        self.cache_dir = Path(cache_dir)
        self.client = client
        self.timeout = timeout

    def cache_path(self, artifact: ResolvedArtifact) -> Path:
        """Cache location for an artifact: <url hash>--<file name>."""
        key = hashlib.sha256(artifact.artifact_url.encode("utf-8")).hexdigest()[:16]
        return self.cache_dir / f"{key}--{artifact.filename}"

    def is_cached(self, artifact: ResolvedArtifact) -> bool:
        """True if a verified copy of the artifact is in the cache."""
        path = self.cache_path(artifact)
        if not path.is_file():
            return False
        actual = file_digest(path, artifact.checksum.algorithm)
        if artifact.checksum.matches(actual):
            return True
        logger.warning(f"Discarding stale cache entry {path} (checksum changed)")
        path.unlink()
        return False

    def clear(self, artifact: ResolvedArtifact) -> bool:
        path = self.cache_path(artifact)
        if path.exists():
            path.unlink()
            return True
        return False

    @contextlib.asynccontextmanager
    async def _session(self) -> AsyncIterator[httpx.AsyncClient]:
        if self.client is not None:
            yield self.client
            return
        async with httpx.AsyncClient(
            timeout=self.timeout, follow_redirects=True
        ) as client:
            yield client

    async def fetch(self, artifact: ResolvedArtifact) -> Path:
        """Return a verified local copy of the artifact."""
        path, _ = await self.retrieve(artifact)
        return path

    async def retrieve(self, artifact: ResolvedArtifact) -> tuple[Path, bool]:
        """Return a verified local copy of the artifact and whether it came from the cache.

        Args:
            artifact: The resolved artifact to download

        Returns:
            (path to the verified file in the cache, True on a cache hit)

        Raises:
            DownloadError: If the server cannot be reached or answers with an error
            ChecksumMismatchError: If the downloaded bytes do not match the checksum
        """
        target = self.cache_path(artifact)
        if self.is_cached(artifact):
            logger.info(f"Using cached {artifact.filename} ({target})")
            return target, True

        self.cache_dir.mkdir(parents=True, exist_ok=True)
        partial = target.with_name(target.name + ".incomplete")
        digest = artifact.checksum.hasher()
        size = 0

        logger.info(f"Downloading {artifact.artifact_url}")
        try:
            async with self._session() as client:
                async with client.stream(
                    "GET", artifact.artifact_url, follow_redirects=True
                ) as response:
                    if response.status_code >= 400:
                        raise DownloadError(
                            f"Download of {artifact.artifact_url} failed: "
                            f"HTTP {response.status_code}"
                        )
                    with open(partial, "wb") as f:
                        async for chunk in response.aiter_bytes():
                            f.write(chunk)
                            digest.update(chunk)
                            size += len(chunk)
        except (httpx.HTTPError, OSError) as e:
            partial.unlink(missing_ok=True)
            raise DownloadError(f"Download of {artifact.artifact_url} failed: {e}") from e
        except DownloadError:
            partial.unlink(missing_ok=True)
            raise

        actual = digest.hexdigest()
        if not artifact.checksum.matches(actual):
            partial.unlink(missing_ok=True)
            raise ChecksumMismatchError(
                str(artifact.checksum),
                f"{artifact.checksum.algorithm}:{actual}",
                artifact.artifact_url,
            )

        os.replace(partial, target)
        logger.info(f"Downloaded {artifact.filename} ({size} bytes, {artifact.checksum})")
        return target, False
