"""File system assertions for installed binaries."""

from pydantic import PrivateAttr, field_validator

from keg.installer import is_executable
from keg.integrity import Checksum, checksum_fields, file_digest

from .base import BaseAssertion


class BinaryExistsAssert(BaseAssertion):
    """Assert that an installed binary exists and is linked.

    Attributes:
        binary: Installed binary name
        linked: Also require <prefix>/bin/<binary> to resolve to the keg (default: True)
        timeout_seconds: Maximum time to wait (default: 5)

    Example:
        >>> BinaryExistsAssert(binary="talostpl")
    """

    binary: str
    linked: bool = True
    timeout_seconds: int = 5

    async def check(self, keg) -> bool:
        installed = keg.binary_path(self.binary)
        if not installed.is_file():
            return False
        if not self.linked:
            return True
        link = keg.link_path(self.binary)
        return link.exists() and link.resolve() == installed.resolve()


class ExecutableAssert(BaseAssertion):
    """Assert that an installed binary has its execute bit set.

    Example:
        >>> ExecutableAssert(binary="talostpl")
    """

    binary: str
    timeout_seconds: int = 5

    async def check(self, keg) -> bool:
        return is_executable(keg.binary_path(self.binary))


class ChecksumMatchesAssert(BaseAssertion):
    """Assert that an installed binary hashes to the expected checksum.

    Only meaningful when the artifact is the binary itself (no archive).

    Attributes:
        binary: Installed binary name
        checksum: Expected algorithm-qualified checksum
        timeout_seconds: Maximum time to wait (default: 10)

    Example:
        >>> ChecksumMatchesAssert(
        ...     binary="talostpl",
        ...     checksum="sha256:9843d546bd541b9bf58e2e1c3c85aa8ff0b2f3705630b84b9123be55a99d5202",
        ... )
    """

    binary: str
    checksum: Checksum
    timeout_seconds: int = 10

    _actual: str | None = PrivateAttr(default=None)

    @field_validator("checksum", mode="before")
    @classmethod
    def _parse_checksum(cls, value):
        return checksum_fields(value)

    @property
    def actual(self) -> str | None:
        return self._actual

    async def check(self, keg) -> bool:
        path = keg.binary_path(self.binary)
        try:
            self._actual = file_digest(path, self.checksum.algorithm)
        except OSError:
            return False
        return self.checksum.matches(self._actual)
