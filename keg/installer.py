"""
Installer - places verified artifacts into the prefix.

Layout:
    <prefix>/Cellar/<name>/<version>/bin/<binary>   installed executable
    <prefix>/Cellar/<name>/<version>/INSTALL_RECEIPT.json
    <prefix>/bin/<binary> -> ../Cellar/<name>/<version>/bin/<binary>
"""

import logging
import os
import shutil
import stat
import tarfile
import tempfile
import zipfile
from pathlib import Path

from pydantic import ValidationError

from .errors import InstallError, NotInstalledError
from .formula import PackageReleaseDescriptor, ResolvedArtifact
from .integrity import file_digest
from .models import InstalledKeg, InstallReceipt

logger = logging.getLogger(__name__)

RECEIPT_NAME = "INSTALL_RECEIPT.json"
EXECUTABLE_MODE = 0o755


def _extract_tar(archive: Path, dest: Path) -> None:
    with tarfile.open(archive, "r:*") as tar:
        tar.extractall(dest, filter="data")


def _extract_zip(archive: Path, dest: Path) -> None:
    root = dest.resolve()
    with zipfile.ZipFile(archive) as zf:
        for member in zf.namelist():
            target = (dest / member).resolve()
            if not target.is_relative_to(root):
                raise InstallError(f"Archive member escapes extraction directory: {member}")
        zf.extractall(dest)


class Installer:
    """Installs, lists and removes kegs under a prefix.

    Args:
        prefix: Root directory (holds Cellar/ and bin/)
    """

    def __init__(self, prefix: Path):
        self.prefix = Path(prefix)
        self.cellar = self.prefix / "Cellar"
        self.bin_dir = self.prefix / "bin"

    def keg_path(self, name: str, version: str) -> Path:
        return self.cellar / name / version

    def _stage(
        self, artifact: ResolvedArtifact, downloaded: Path, staging: Path
    ) -> dict[str, Path]:
        """Locate every install source, extracting archives into staging.

        Returns:
            Mapping of install source name -> file to copy

        Raises:
            InstallError: If a source named by the install mapping is missing
        """
        if artifact.archive_type == "binary":
            available = {artifact.filename: downloaded} if downloaded.is_file() else {}
        else:
            try:
                if artifact.archive_type == "zip":
                    _extract_zip(downloaded, staging)
                else:
                    _extract_tar(downloaded, staging)
            except (tarfile.TarError, zipfile.BadZipFile, OSError) as e:
                raise InstallError(f"Could not extract {artifact.filename}: {e}") from e
            available = {
                source: staging / source
                for source in artifact.install_mapping
                if (staging / source).is_file()
            }

        missing = [s for s in artifact.install_mapping if s not in available]
        if missing:
            raise InstallError(
                f"{artifact.filename} does not contain {', '.join(missing)}"
            )
        return {source: available[source] for source in artifact.install_mapping}

    def _place(self, source: Path, dest: Path) -> None:
        """Copy source to dest atomically and make it executable."""
        tmp = dest.with_name(f".{dest.name}.tmp")
        try:
            shutil.copyfile(source, tmp)
            os.chmod(tmp, EXECUTABLE_MODE)
            os.replace(tmp, dest)
        except OSError as e:
            tmp.unlink(missing_ok=True)
            raise InstallError(f"Could not install {dest.name}: {e}") from e

    def _link(self, target: Path, link: Path) -> None:
        """Point link at target, replacing an existing symlink."""
        if link.exists() and not link.is_symlink():
            raise InstallError(f"Refusing to overwrite {link}: not managed by keg")

        relative = os.path.relpath(target, link.parent)
        tmp = link.with_name(f".{link.name}.link")
        try:
            self.bin_dir.mkdir(parents=True, exist_ok=True)
            tmp.unlink(missing_ok=True)
            os.symlink(relative, tmp)
            os.replace(tmp, link)
        except OSError as e:
            tmp.unlink(missing_ok=True)
            raise InstallError(f"Could not link {link}: {e}") from e
        logger.debug(f"Linked {link} -> {relative}")

    def _unlink(self, keg: InstalledKeg) -> list[Path]:
        """Remove the links in bin/ that point into the keg."""
        keg_root = keg.path.resolve()
        removed = []
        for binary in keg.binaries():
            link = keg.link_path(binary)
            if link.is_symlink() and link.resolve().is_relative_to(keg_root):
                link.unlink()
                removed.append(link)
                logger.info(f"Unlinked {link}")
        return removed

    def install(
        self,
        descriptor: PackageReleaseDescriptor,
        artifact: ResolvedArtifact,
        downloaded: Path,
    ) -> InstalledKeg:
        """Install a verified artifact.

        Args:
            descriptor: The formula being installed
            artifact: The resolved artifact for this platform
            downloaded: Path to the verified download

        Returns:
            The InstalledKeg

        Raises:
            InstallError: If a source is missing or the files cannot be placed
        """
        keg_dir = self.keg_path(descriptor.name, descriptor.version)
        files: dict[str, str] = {}

        with tempfile.TemporaryDirectory(prefix="keg-stage-") as staging:
            sources = self._stage(artifact, Path(downloaded), Path(staging))

            for link in artifact.install_mapping.values():
                existing = self.bin_dir / link
                if existing.exists() and not existing.is_symlink():
                    raise InstallError(f"Refusing to overwrite {existing}: not managed by keg")

            bin_dir = keg_dir / "bin"
            try:
                bin_dir.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise InstallError(f"Could not create {bin_dir}: {e}") from e
            for source, dest in artifact.install_mapping.items():
                self._place(sources[source], bin_dir / dest)
                files[dest] = file_digest(bin_dir / dest)
                logger.info(f"Installed {source} as {bin_dir / dest}")

        for dest in files:
            self._link(bin_dir / dest, self.bin_dir / dest)

        receipt = InstallReceipt(
            name=descriptor.name,
            version=descriptor.version,
            platform=artifact.platform,
            artifact_url=artifact.artifact_url,
            checksum=str(artifact.checksum),
            install_mapping=artifact.install_mapping,
            archive_type=artifact.archive_type,
            files=files,
        )
        try:
            (keg_dir / RECEIPT_NAME).write_text(
                receipt.model_dump_json(indent=2), encoding="utf-8"
            )
        except OSError as e:
            raise InstallError(f"Could not write install receipt for {descriptor.name}: {e}") from e

        self._remove_other_versions(descriptor.name, descriptor.version)
        return InstalledKeg(path=keg_dir, link_dir=self.bin_dir, receipt=receipt)

    def _remove_other_versions(self, name: str, keep: str) -> None:
        for version_dir in (self.cellar / name).iterdir():
            if version_dir.is_dir() and version_dir.name != keep:
                logger.info(f"Removing old version {name} {version_dir.name}")
                old = self._read_receipt(version_dir)
                if old is not None:
                    self._unlink(old)
                shutil.rmtree(version_dir)

    def _read_receipt(self, keg_dir: Path) -> InstalledKeg | None:
        path = keg_dir / RECEIPT_NAME
        if not path.is_file():
            return None
        try:
            receipt = InstallReceipt.model_validate_json(path.read_text(encoding="utf-8"))
        except ValidationError as e:
            logger.warning(f"Ignoring unreadable receipt {path}: {e}")
            return None
        return InstalledKeg(path=keg_dir, link_dir=self.bin_dir, receipt=receipt)

    def get(self, name: str) -> InstalledKeg | None:
        """Return the installed keg for a formula name, if any."""
        formula_dir = self.cellar / name
        if not formula_dir.is_dir():
            return None
        kegs = [
            keg
            for keg in (self._read_receipt(d) for d in formula_dir.iterdir() if d.is_dir())
            if keg is not None
        ]
        if not kegs:
            return None
        return max(kegs, key=lambda k: k.receipt.installed_on)

    def installed(self) -> list[InstalledKeg]:
        """All installed kegs, sorted by name."""
        if not self.cellar.is_dir():
            return []
        kegs = []
        for formula_dir in sorted(self.cellar.iterdir()):
            keg = self.get(formula_dir.name)
            if keg is not None:
                kegs.append(keg)
        return kegs

    def uninstall(self, name: str) -> InstalledKeg:
        """Remove a formula's links and kegs.

        Raises:
            NotInstalledError: If the formula is not installed
        """
        keg = self.get(name)
        if keg is None:
            raise NotInstalledError(f"{name} is not installed")

        self._unlink(keg)
        shutil.rmtree(self.cellar / name)
        logger.info(f"Uninstalled {name} {keg.version}")
        return keg


def is_executable(path: Path) -> bool:
    """True if path is a regular file with an execute bit set."""
    try:
        mode = path.stat().st_mode
    except OSError:
        return False
    return stat.S_ISREG(mode) and bool(mode & (stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH))
