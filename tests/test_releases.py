"""
Tests for upstream release checks.
"""

import pytest

from keg.errors import ReleaseCheckError
from keg.releases import LatestReleaseChecker, github_repository, is_newer

LATEST_URL = "https://api.github.com/repos/vasyakrg/talostpl/releases/latest"


@pytest.mark.parametrize(
    "homepage,expected",
    [
        ("https://github.com/vasyakrg/talostpl", ("vasyakrg", "talostpl")),
        ("https://github.com/vasyakrg/talostpl.git", ("vasyakrg", "talostpl")),
        ("https://github.com/vasyakrg/talostpl/releases", ("vasyakrg", "talostpl")),
        ("https://github.com/vasyakrg", None),
        ("https://talos.dev", None),
        (None, None),
    ],
)
def test_github_repository(homepage, expected):
    assert github_repository(homepage) == expected


@pytest.mark.parametrize(
    "latest,current,expected",
    [
        ("1.3.2", "1.0.0", True),
        ("v1.0.0", "1.0.0", False),
        ("1.0.0", "1.3.2", False),
        ("1.10.0", "1.9.9", True),
        ("nightly", "1.0.0", True),
    ],
)
def test_is_newer(latest, current, expected):
    assert is_newer(latest, current) is expected


@pytest.mark.asyncio
async def test_latest_version_strips_prefix(serve):
    async with serve({LATEST_URL: {"tag_name": "v1.3.2"}}) as client:
        checker = LatestReleaseChecker(client=client)
        assert await checker.latest_version("vasyakrg", "talostpl") == "1.3.2"


@pytest.mark.asyncio
async def test_latest_version_http_error(serve):
    async with serve({LATEST_URL: 403}) as client:
        checker = LatestReleaseChecker(client=client)
        with pytest.raises(ReleaseCheckError):
            await checker.latest_version("vasyakrg", "talostpl")


@pytest.mark.asyncio
async def test_latest_version_without_tag(serve):
    async with serve({LATEST_URL: {"name": "untagged"}}) as client:
        checker = LatestReleaseChecker(client=client)
        with pytest.raises(ReleaseCheckError, match="No release tag"):
            await checker.latest_version("vasyakrg", "talostpl")
