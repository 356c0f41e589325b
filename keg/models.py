"""
Keg Models - records of what has been installed.
"""

from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, Field

from .formula import ResolvedArtifact
from .formula.descriptor import ArchiveType
from .integrity import Checksum


class InstallReceipt(BaseModel):
    """Receipt written into every keg as INSTALL_RECEIPT.json.

    Attributes:
        name: Formula name
        version: Installed version
        platform: Platform key of the installed artifact (None = any)
        artifact_url: Where the artifact was downloaded from
        checksum: Algorithm-qualified checksum of the artifact
        install_mapping: Source artifact name -> installed binary name
        archive_type: How the artifact was unpacked
        files: Installed binary name -> sha256 of the installed file
        installed_on: When the install finished (UTC)
    """

    name: str
    version: str
    platform: str | None = None
    artifact_url: str
    checksum: str
    install_mapping: dict[str, str]
    archive_type: ArchiveType = "binary"
    files: dict[str, str] = Field(default_factory=dict)
    installed_on: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def artifact(self) -> ResolvedArtifact:
        """The artifact this keg was installed from."""
        return ResolvedArtifact(
            platform=self.platform,
            artifact_url=self.artifact_url,
            checksum=Checksum.parse(self.checksum),
            install_mapping=self.install_mapping,
            archive_type=self.archive_type,
        )


class InstalledKeg(BaseModel):
    """An installed formula version inside the Cellar."""

    path: Path
    link_dir: Path
    receipt: InstallReceipt

    @property
    def name(self) -> str:
        return self.receipt.name

    @property
    def version(self) -> str:
        return self.receipt.version

    @property
    def bin_dir(self) -> Path:
        return self.path / "bin"

    def binary_path(self, binary: str) -> Path:
        return self.bin_dir / binary

    def link_path(self, binary: str) -> Path:
        return self.link_dir / binary

    def binaries(self) -> list[str]:
        return list(self.receipt.files)
