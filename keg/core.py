"""
Keg Core - fetch, verify, install and smoke-test prebuilt binary releases.

Install Pipeline: Load formula → Resolve platform artifact → Fetch + verify checksum → Install → Test
Test Pipeline: Load formula → Find installed keg → Run assertions
Verify Pipeline: Load formula → Download fresh copy → Compare checksum
Outdated Pipeline: Load formula → Query latest upstream release → Compare versions
"""

import logging
import tempfile
from pathlib import Path
from typing import Any, Dict, List

import httpx

from .assertions import default_assertions
from .assertions.process import CommandSucceedsAssert
from .downloader import ArtifactDownloader
from .errors import (
    ChecksumMismatchError,
    DownloadError,
    NotInstalledError,
    ReleaseCheckError,
)
from .formula import PackageReleaseDescriptor, available_formulas, find_formula
from .installer import Installer
from .models import InstalledKeg
from .releases import LatestReleaseChecker, github_repository, is_newer
from .settings import KegSettings, get_settings

logger = logging.getLogger(__name__)


class KegCore:
    """Main coordinator for the keg pipelines."""

    def __init__(
        self,
        settings: KegSettings | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        """
        Initialize KegCore.

        Args:
            settings: Configuration (defaults to the global settings)
            client: Optional shared HTTP client, used for downloads and release checks
        """
        self.settings = settings or get_settings()
        self.client = client

        self.installer = Installer(self.settings.prefix)
        self.downloader = ArtifactDownloader(
            self.settings.resolved_cache_dir,
            client=client,
            timeout=self.settings.download_timeout,
        )
        self.release_checker = LatestReleaseChecker(
            self.settings.github_api_url, client=client
        )

        logger.debug(f"KegCore initialized (prefix: {self.settings.prefix})")

    def load(self, ref: str) -> PackageReleaseDescriptor:
        """Resolve a formula name or path to its descriptor."""
        return find_formula(ref, self.settings.formula_dirs)

    async def fetch(self, ref: str, platform: str | None = None) -> Dict[str, Any]:
        """
        Download and verify an artifact into the cache.

        Args:
            ref: Formula name or path
            platform: Platform key (defaults to the host)

        Returns:
            Dict with the cached path and checksum
        """
        descriptor = self.load(ref)
        artifact = descriptor.resolve(platform)
        path, cached = await self.downloader.retrieve(artifact)

        return {
            "success": True,
            "name": descriptor.name,
            "version": descriptor.version,
            "platform": artifact.platform,
            "url": artifact.artifact_url,
            "checksum": str(artifact.checksum),
            "path": str(path),
            "cached": cached,
        }

    async def install(
        self, ref: str, platform: str | None = None, skip_test: bool = False
    ) -> Dict[str, Any]:
        """
        Full pipeline: load → resolve → fetch + verify → install → test.

        A checksum mismatch raises before anything is placed in the prefix.

        Args:
            ref: Formula name or path
            platform: Platform key (defaults to the host)
            skip_test: If True, do not run the post-install assertions

        Returns:
            Dict with install results (and test results unless skipped)
        """
        descriptor = self.load(ref)
        logger.info(f"Installing {descriptor.name} {descriptor.version}")

        artifact = descriptor.resolve(platform)
        downloaded, cached = await self.downloader.retrieve(artifact)

        keg = self.installer.install(descriptor, artifact, downloaded)
        logger.info(f"Installed {keg.name} {keg.version} to {keg.path}")

        result: Dict[str, Any] = {
            "success": True,
            "name": keg.name,
            "version": keg.version,
            "platform": artifact.platform,
            "path": str(keg.path),
            "binaries": {b: str(keg.link_path(b)) for b in keg.binaries()},
            "cached": cached,
            "test": None,
        }

        if not skip_test:
            test_result = await self._run_assertions(descriptor, keg)
            result["test"] = test_result
            result["success"] = test_result["success"]

        return result

    async def test(self, ref: str) -> Dict[str, Any]:
        """
        Run the post-install assertions against an installed formula.

        Raises:
            NotInstalledError: If the formula is not installed
        """
        descriptor = self.load(ref)
        keg = self.installer.get(descriptor.name)
        if keg is None:
            raise NotInstalledError(f"{descriptor.name} is not installed")
        if keg.version != descriptor.version:
            logger.warning(
                f"Installed {keg.name} is {keg.version}, formula is {descriptor.version}"
            )
        return await self._run_assertions(descriptor, keg)

    async def _run_assertions(
        self, descriptor: PackageReleaseDescriptor, keg: InstalledKeg
    ) -> Dict[str, Any]:
        artifact = keg.receipt.artifact()
        assertions = default_assertions(
            descriptor, artifact, smoke_test_timeout=self.settings.smoke_test_timeout
        )

        results = {
            "passed": [],
            "failed": [],
            "total": 0,
        }
        version_output = None

        for assertion in assertions:
            results["total"] += 1
            label = assertion.label()
            logger.info(f"  Checking: {label}")

            passed = await assertion.check(keg)
            if isinstance(assertion, CommandSucceedsAssert):
                version_output = assertion.output

            if passed:
                results["passed"].append({"formula": keg.name, "assertion": label})
                logger.info(f"  ✓ Passed: {label}")
            else:
                error = getattr(assertion, "error", None) or "Assertion check returned False"
                results["failed"].append(
                    {"formula": keg.name, "assertion": label, "error": error}
                )
                logger.error(f"  ✗ Failed: {label} - {error}")

        return {
            "success": len(results["failed"]) == 0,
            "passed": len(results["passed"]),
            "failed": len(results["failed"]),
            "total": results["total"],
            "details": results,
            "version_output": version_output,
        }

    async def verify(
        self, ref: str, platform: str | None = None, all_platforms: bool = False
    ) -> Dict[str, Any]:
        """
        Download fresh copies of the artifacts and compare their checksums.

        Nothing is cached or installed.

        Args:
            ref: Formula name or path
            platform: Platform key (defaults to the host)
            all_platforms: Verify every artifact the formula lists

        Returns:
            Dict with one entry per verified artifact
        """
        descriptor = self.load(ref)
        if all_platforms:
            artifacts = descriptor.artifacts()
        else:
            artifacts = [descriptor.resolve(platform)]

        checked: List[Dict[str, Any]] = []
        with tempfile.TemporaryDirectory(prefix="keg-verify-") as scratch:
            downloader = ArtifactDownloader(
                Path(scratch), client=self.client, timeout=self.settings.download_timeout
            )
            for artifact in artifacts:
                entry: Dict[str, Any] = {
                    "platform": artifact.platform,
                    "url": artifact.artifact_url,
                    "expected": str(artifact.checksum),
                    "ok": True,
                    "error": None,
                }
                try:
                    await downloader.fetch(artifact)
                except ChecksumMismatchError as e:
                    entry.update(ok=False, actual=e.actual, error=str(e))
                    logger.error(str(e))
                except DownloadError as e:
                    entry.update(ok=False, error=str(e))
                    logger.error(str(e))
                checked.append(entry)

        return {
            "success": all(entry["ok"] for entry in checked),
            "name": descriptor.name,
            "version": descriptor.version,
            "artifacts": checked,
        }

    async def outdated(self, ref: str) -> Dict[str, Any]:
        """
        Compare the formula version with the latest upstream release.

        A failed lookup is reported as a warning (latest is None), not an error.
        """
        descriptor = self.load(ref)
        result: Dict[str, Any] = {
            "success": True,
            "name": descriptor.name,
            "current": descriptor.version,
            "latest": None,
            "outdated": False,
            "warning": None,
        }

        repository = github_repository(descriptor.homepage)
        if repository is None:
            result["warning"] = f"{descriptor.name} has no GitHub homepage to check"
            return result

        try:
            latest = await self.release_checker.latest_version(*repository)
        except ReleaseCheckError as e:
            logger.warning(str(e))
            result["warning"] = str(e)
            return result

        result["latest"] = latest
        result["outdated"] = is_newer(latest, descriptor.version)
        return result

    def uninstall(self, name: str) -> Dict[str, Any]:
        """Remove an installed formula and its links."""
        keg = self.installer.uninstall(name)
        return {
            "success": True,
            "name": keg.name,
            "version": keg.version,
            "removed": [str(keg.link_path(b)) for b in keg.binaries()],
        }

    def list_installed(self) -> List[InstalledKeg]:
        return self.installer.installed()

    def formulas(self) -> Dict[str, Path]:
        return available_formulas(self.settings.formula_dirs)

    def info(self, ref: str) -> Dict[str, Any]:
        """Describe a formula and its install state."""
        descriptor = self.load(ref)
        keg = self.installer.get(descriptor.name)
        return {
            "name": descriptor.name,
            "description": descriptor.description,
            "homepage": descriptor.homepage,
            "version": descriptor.version,
            "url": descriptor.artifact_url,
            "checksum": str(descriptor.checksum),
            "platforms": descriptor.supported_platforms(),
            "install": dict(descriptor.install_mapping),
            "test": list(descriptor.smoke_test.command),
            "installed": keg.version if keg else None,
        }
