"""Package release descriptor models.

A formula describes exactly one release of a prebuilt binary: where to download
it, the checksum binding the formula to that artifact, which file to install
under which name, and how to smoke-test the result.

Example formula (YAML):

    name: talostpl
    desc: Interactive and non-interactive Talos K8s config generator
    homepage: https://github.com/vasyakrg/talostpl
    url: https://github.com/vasyakrg/talostpl/releases/download/v1.0.0/talostpl-darwin-arm64
    version: 1.0.0
    sha256: 9843d546bd541b9bf58e2e1c3c85aa8ff0b2f3705630b84b9123be55a99d5202
    platform: darwin-arm64
    install:
      talostpl-darwin-arm64: talostpl
    test:
      - talostpl
      - --version
"""

import platform as host_platform
import re
import shlex
from pathlib import PurePosixPath
from typing import Any, Literal
from urllib.parse import urlparse

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from ..errors import UnsupportedPlatformError
from ..integrity import Checksum, checksum_fields

ArchiveType = Literal["binary", "tar.gz", "zip"]

_NAME = re.compile(r"^[a-z0-9][a-z0-9._+-]*$")
_SEMVER = re.compile(
    r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)"
    r"(?:-[0-9A-Za-z.-]+)?(?:\+[0-9A-Za-z.-]+)?$"
)

_SYSTEMS = {
    "darwin": "darwin",
    "linux": "linux",
    "windows": "windows",
}

_ARCHES = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "arm64": "arm64",
    "aarch64": "arm64",
    "i386": "386",
    "i686": "386",
}


def current_platform() -> str:
    """Return the host platform key, e.g. "darwin-arm64" or "linux-amd64"."""
    system = host_platform.system().lower()
    machine = host_platform.machine().lower()
    return f"{_SYSTEMS.get(system, system)}-{_ARCHES.get(machine, machine)}"


def url_filename(url: str) -> str:
    """Basename of the URL path, used as the staged artifact name."""
    return PurePosixPath(urlparse(url).path).name


def _check_https(url: str) -> str:
    parsed = urlparse(url)
    if parsed.scheme != "https" or not parsed.netloc:
        raise ValueError(f"artifact URL must be an https:// URL, got '{url}'")
    if not url_filename(url):
        raise ValueError(f"artifact URL has no file name: '{url}'")
    return url


def _check_mapping(mapping: dict[str, str]) -> dict[str, str]:
    if not mapping:
        raise ValueError("install mapping must name at least one file")
    for source, dest in mapping.items():
        source_path = PurePosixPath(source)
        if not source or source_path.is_absolute() or ".." in source_path.parts:
            raise ValueError(f"invalid install source '{source}'")
        if not dest or dest in (".", "..") or "/" in dest or "\\" in dest:
            raise ValueError(f"install destination must be a plain file name, got '{dest}'")
    return mapping


def _coerce_mapping(value: Any, url: str | None, name: str | None) -> Any:
    """Accept a mapping, a bare source name, or nothing (basename -> formula name)."""
    if value is None and url and name:
        return {url_filename(url): name}
    if isinstance(value, str) and name:
        return {value: name}
    return value


def _lift_checksum(data: dict[str, Any]) -> None:
    """Move a top-level `sha256:`/`sha512:` key into `checksum`."""
    for algorithm in ("sha256", "sha512"):
        if algorithm in data:
            digest = data.pop(algorithm)
            data.setdefault("checksum", {"algorithm": algorithm, "digest": digest})


class SmokeTest(BaseModel):
    """Command used to prove the installed binary runs.

    The first token names an installed binary; the rest are its arguments.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    command: list[str] = Field(..., min_length=1)
    expected_output: str | None = Field(
        None, description="Regular expression searched in stdout and stderr"
    )
    timeout_seconds: int | None = Field(None, gt=0)

    @model_validator(mode="before")
    @classmethod
    def _shorthand(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"command": shlex.split(data)}
        if isinstance(data, (list, tuple)):
            return {"command": list(data)}
        return data

    @field_validator("expected_output")
    @classmethod
    def _valid_regex(cls, value: str | None) -> str | None:
        if value is not None:
            re.compile(value)
        return value

    @property
    def binary(self) -> str:
        return self.command[0]

    @property
    def args(self) -> list[str]:
        return self.command[1:]


class PlatformArtifact(BaseModel):
    """Per-platform override of the default artifact."""

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    artifact_url: str = Field(..., validation_alias=AliasChoices("artifact_url", "url"))
    checksum: Checksum
    install_mapping: dict[str, str] | None = Field(
        None, validation_alias=AliasChoices("install_mapping", "install")
    )
    archive_type: ArchiveType = "binary"

    @model_validator(mode="before")
    @classmethod
    def _normalise(cls, data: Any) -> Any:
        if isinstance(data, dict):
            data = dict(data)
            _lift_checksum(data)
        return data

    @field_validator("checksum", mode="before")
    @classmethod
    def _checksum(cls, value: Any) -> Any:
        return checksum_fields(value)

    @field_validator("artifact_url")
    @classmethod
    def _https(cls, value: str) -> str:
        return _check_https(value)


class ResolvedArtifact(BaseModel):
    """The concrete artifact chosen for one platform."""

    model_config = ConfigDict(frozen=True)

    platform: str | None
    artifact_url: str
    checksum: Checksum
    install_mapping: dict[str, str]
    archive_type: ArchiveType = "binary"

    @property
    def filename(self) -> str:
        return url_filename(self.artifact_url)


class PackageReleaseDescriptor(BaseModel):
    """Immutable description of one release of a prebuilt binary.

    Attributes:
        name: Package identifier
        description: Human-readable summary
        homepage: Project URL
        artifact_url: Versioned https download location
        version: Semantic version (without a leading "v")
        checksum: Algorithm-qualified hash of the artifact
        install_mapping: Source artifact name -> destination binary name
        smoke_test: Command proving the installed binary runs
        platform: Platform the default artifact targets (None = any)
        archive_type: "binary" for raw executables, or "tar.gz"/"zip"
        platforms: Additional per-platform artifacts
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    name: str
    description: str = Field("", validation_alias=AliasChoices("description", "desc"))
    homepage: str | None = None
    artifact_url: str = Field(..., validation_alias=AliasChoices("artifact_url", "url"))
    version: str
    checksum: Checksum
    install_mapping: dict[str, str] = Field(
        ..., validation_alias=AliasChoices("install_mapping", "install")
    )
    smoke_test: SmokeTest = Field(..., validation_alias=AliasChoices("smoke_test", "test"))
    platform: str | None = None
    archive_type: ArchiveType = "binary"
    platforms: dict[str, PlatformArtifact] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _normalise(cls, data: Any) -> Any:
        """Fill derived defaults before field validation."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        _lift_checksum(data)

        name = data.get("name")
        url = data.get("artifact_url", data.get("url"))
        mapping_key = "install" if "install" in data else "install_mapping"
        data[mapping_key] = _coerce_mapping(data.get(mapping_key), url, name)

        platforms = {}
        for key, plat in (data.get("platforms") or {}).items():
            if isinstance(plat, dict):
                plat = dict(plat)
                plat_key = "install" if "install" in plat else "install_mapping"
                plat_url = plat.get("artifact_url", plat.get("url"))
                plat[plat_key] = _coerce_mapping(plat.get(plat_key), plat_url, name)
            platforms[key] = plat
        data["platforms"] = platforms

        if data.get("smoke_test") is None and data.get("test") is None:
            mapping = data.get(mapping_key)
            if isinstance(mapping, dict) and mapping:
                data["smoke_test"] = [next(iter(mapping.values())), "--version"]
        return data

    @field_validator("name")
    @classmethod
    def _valid_name(cls, value: str) -> str:
        if not _NAME.match(value):
            raise ValueError(
                f"invalid formula name '{value}' "
                "(lowercase letters, digits, '.', '_', '+', '-')"
            )
        return value

    @field_validator("version", mode="before")
    @classmethod
    def _semver(cls, value: Any) -> str:
        value = str(value).strip()
        if value.startswith("v"):
            value = value[1:]
        if not _SEMVER.match(value):
            raise ValueError(f"version must be semantic (MAJOR.MINOR.PATCH), got '{value}'")
        return value

    @field_validator("checksum", mode="before")
    @classmethod
    def _checksum(cls, value: Any) -> Any:
        return checksum_fields(value)

    @field_validator("artifact_url")
    @classmethod
    def _https(cls, value: str) -> str:
        return _check_https(value)

    @model_validator(mode="after")
    def _consistent(self):
        _check_mapping(self.install_mapping)
        for plat in self.platforms.values():
            if plat.install_mapping is not None:
                _check_mapping(plat.install_mapping)
        if self.smoke_test.binary not in self.binaries():
            raise ValueError(
                f"smoke test runs '{self.smoke_test.binary}', "
                f"which is not installed by this formula"
            )
        return self

    @property
    def artifact_filename(self) -> str:
        return url_filename(self.artifact_url)

    def binaries(self) -> set[str]:
        """Every destination name any artifact of this formula installs."""
        names = set(self.install_mapping.values())
        for plat in self.platforms.values():
            if plat.install_mapping:
                names.update(plat.install_mapping.values())
        return names

    def supported_platforms(self) -> list[str]:
        keys = list(self.platforms)
        if self.platform and self.platform not in keys:
            keys.insert(0, self.platform)
        return keys

    def artifacts(self) -> list[ResolvedArtifact]:
        """Every artifact the formula lists: the default one, then each override."""
        found = [self._default()]
        for key in self.platforms:
            artifact = self.resolve(key)
            if artifact not in found:
                found.append(artifact)
        return found

    def _default(self) -> ResolvedArtifact:
        return ResolvedArtifact(
            platform=self.platform,
            artifact_url=self.artifact_url,
            checksum=self.checksum,
            install_mapping=self.install_mapping,
            archive_type=self.archive_type,
        )

    def resolve(self, platform: str | None = None) -> ResolvedArtifact:
        """Pick the artifact for a platform (default: the host).

        Raises:
            UnsupportedPlatformError: If no artifact targets the platform
        """
        key = platform or current_platform()

        override = self.platforms.get(key)
        if override is not None:
            return ResolvedArtifact(
                platform=key,
                artifact_url=override.artifact_url,
                checksum=override.checksum,
                install_mapping=override.install_mapping or self.install_mapping,
                archive_type=override.archive_type,
            )

        if self.platform is None or self.platform == key:
            return self._default()

        supported = ", ".join(self.supported_platforms()) or "none"
        raise UnsupportedPlatformError(
            f"{self.name} {self.version} has no artifact for {key} (supported: {supported})"
        )
