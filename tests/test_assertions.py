"""
Tests for post-install assertions.
"""

import pytest

from keg.assertions import (
    BinaryExistsAssert,
    ChecksumMatchesAssert,
    CommandSucceedsAssert,
    ExecutableAssert,
    default_assertions,
)
from keg.formula import PackageReleaseDescriptor
from keg.installer import Installer


@pytest.fixture
def descriptor(formula_data):
    return PackageReleaseDescriptor.model_validate(formula_data)


@pytest.fixture
def keg(temp_dir, descriptor, artifact_bytes):
    """An installed keg built from the version script."""
    downloaded = temp_dir / "talostpl-test"
    downloaded.write_bytes(artifact_bytes)
    return Installer(temp_dir / "prefix").install(descriptor, descriptor.resolve(), downloaded)


def _replace_binary(keg, script: bytes):
    path = keg.binary_path("talostpl")
    path.write_bytes(script)
    path.chmod(0o755)


class TestFileAssertions:
    """Binary presence, mode and checksum."""

    @pytest.mark.asyncio
    async def test_binary_exists(self, keg):
        assert await BinaryExistsAssert(binary="talostpl").check(keg)
        assert not await BinaryExistsAssert(binary="kubectl").check(keg)

    @pytest.mark.asyncio
    async def test_binary_exists_requires_link(self, keg):
        keg.link_path("talostpl").unlink()
        assert not await BinaryExistsAssert(binary="talostpl").check(keg)
        assert await BinaryExistsAssert(binary="talostpl", linked=False).check(keg)

    @pytest.mark.asyncio
    async def test_executable(self, keg):
        assert await ExecutableAssert(binary="talostpl").check(keg)
        keg.binary_path("talostpl").chmod(0o644)
        assert not await ExecutableAssert(binary="talostpl").check(keg)

    @pytest.mark.asyncio
    async def test_checksum_matches(self, keg, artifact_sha256):
        assertion = ChecksumMatchesAssert(binary="talostpl", checksum=f"sha256:{artifact_sha256}")
        assert await assertion.check(keg)
        assert assertion.actual == artifact_sha256

        _replace_binary(keg, b"#!/bin/sh\nexit 0\n")
        assert not await assertion.check(keg)


class TestCommandSucceedsAssert:
    """Running the installed binary."""

    @pytest.mark.asyncio
    async def test_version_flag_exits_zero(self, keg):
        assertion = CommandSucceedsAssert(command=["talostpl", "--version"])
        assert await assertion.check(keg)
        assert assertion.exit_code == 0
        assert assertion.output == "talostpl version v1.0.0"

    @pytest.mark.asyncio
    async def test_expected_output(self, keg):
        matching = CommandSucceedsAssert(
            command=["talostpl", "--version"], expected_output=r"version v?1\.0\.0"
        )
        assert await matching.check(keg)

        other = CommandSucceedsAssert(
            command=["talostpl", "--version"], expected_output=r"version v?2\."
        )
        assert not await other.check(keg)
        assert "did not match" in other.error

    @pytest.mark.asyncio
    async def test_non_zero_exit(self, keg):
        _replace_binary(keg, b"#!/bin/sh\necho boom >&2\nexit 3\n")
        assertion = CommandSucceedsAssert(command=["talostpl", "--version"])
        assert not await assertion.check(keg)
        assert assertion.exit_code == 3
        assert assertion.output == "boom"
        assert assertion.error == "exited with status 3"

    @pytest.mark.asyncio
    async def test_timeout(self, keg):
        _replace_binary(keg, b"#!/bin/sh\nsleep 5\n")
        assertion = CommandSucceedsAssert(command=["talostpl", "--version"], timeout_seconds=1)
        assert not await assertion.check(keg)
        assert "timed out" in assertion.error

    @pytest.mark.asyncio
    async def test_binary_that_cannot_start(self, keg):
        keg.binary_path("talostpl").chmod(0o644)
        assertion = CommandSucceedsAssert(command=["talostpl", "--version"])
        assert not await assertion.check(keg)
        assert "could not start" in assertion.error


def test_default_assertions(descriptor):
    assertions = default_assertions(descriptor, descriptor.resolve(), smoke_test_timeout=7)
    kinds = [type(a) for a in assertions]

    assert kinds == [
        BinaryExistsAssert,
        ExecutableAssert,
        ChecksumMatchesAssert,
        CommandSucceedsAssert,
    ]
    smoke = assertions[-1]
    assert smoke.command == ["talostpl", "--version"]
    assert smoke.timeout_seconds == 7


def test_default_assertions_skip_checksum_for_archives(formula_data):
    formula_data.update(archive_type="tar.gz", install={"bin/talostpl": "talostpl"})
    descriptor = PackageReleaseDescriptor.model_validate(formula_data)
    kinds = [type(a) for a in default_assertions(descriptor, descriptor.resolve())]
    assert ChecksumMatchesAssert not in kinds
