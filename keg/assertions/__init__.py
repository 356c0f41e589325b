"""Keg assertions for validating installed binaries.

Example:
    >>> from keg.assertions import default_assertions
    >>> for assertion in default_assertions(descriptor, artifact):
    ...     passed = await assertion.check(keg)
"""

from keg.formula import PackageReleaseDescriptor, ResolvedArtifact

# Base assertion class
from .base import BaseAssertion

# File assertions
from .file import (
    BinaryExistsAssert,
    ChecksumMatchesAssert,
    ExecutableAssert,
)

# Process assertions
from .process import CommandSucceedsAssert


def default_assertions(
    descriptor: PackageReleaseDescriptor,
    artifact: ResolvedArtifact,
    smoke_test_timeout: int = 30,
) -> list[BaseAssertion]:
    """The checks run after installing a formula.

    Every installed binary must exist, be linked and be executable. Raw binary
    artifacts must also still match the formula checksum. The smoke test runs last.
    """
    assertions: list[BaseAssertion] = []
    for binary in artifact.install_mapping.values():
        assertions.append(
            BinaryExistsAssert(binary=binary, description=f"{binary} is installed and linked")
        )
        assertions.append(
            ExecutableAssert(binary=binary, description=f"{binary} is executable")
        )
        if artifact.archive_type == "binary":
            assertions.append(
                ChecksumMatchesAssert(
                    binary=binary,
                    checksum=artifact.checksum,
                    description=f"{binary} matches {artifact.checksum.algorithm} checksum",
                )
            )

    smoke = descriptor.smoke_test
    assertions.append(
        CommandSucceedsAssert(
            command=smoke.command,
            expected_output=smoke.expected_output,
            timeout_seconds=smoke.timeout_seconds or smoke_test_timeout,
            description=f"`{' '.join(smoke.command)}` exits 0",
        )
    )
    return assertions


__all__ = [
    # Base
    "BaseAssertion",
    # File
    "BinaryExistsAssert",
    "ChecksumMatchesAssert",
    "ExecutableAssert",
    # Process
    "CommandSucceedsAssert",
    "default_assertions",
]
