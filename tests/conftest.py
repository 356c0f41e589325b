"""
Pytest configuration and fixtures for keg tests.
"""

import hashlib
import tempfile
from pathlib import Path

import httpx
import pytest
import yaml

from keg.formula import current_platform
from keg.settings import KegSettings

ARTIFACT_URL = (
    "https://downloads.example.com/vasyakrg/talostpl/releases/download/v1.0.0/talostpl-test"
)
VERSION_SCRIPT = b'#!/bin/sh\necho "talostpl version v1.0.0"\n'
HOST_URL = (
    "https://downloads.example.com/vasyakrg/talostpl/releases/download/v1.0.0/talostpl-host"
)
HOST_SCRIPT = b'#!/bin/sh\necho "talostpl version v1.0.0 (host build)"\n'


@pytest.fixture
def temp_dir():
    """Provide a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def artifact_bytes():
    """A tiny executable that reports its version like the real tool."""
    return VERSION_SCRIPT


@pytest.fixture
def artifact_sha256(artifact_bytes):
    return hashlib.sha256(artifact_bytes).hexdigest()


@pytest.fixture
def formula_data(artifact_sha256):
    """A platform-independent formula for the test artifact."""
    return {
        "name": "talostpl",
        "desc": "Interactive and non-interactive Talos K8s config generator",
        "homepage": "https://github.com/vasyakrg/talostpl",
        "url": ARTIFACT_URL,
        "version": "1.0.0",
        "sha256": artifact_sha256,
        "install": {"talostpl-test": "talostpl"},
        "test": ["talostpl", "--version"],
    }


@pytest.fixture
def formula_file(temp_dir, formula_data):
    """Write the test formula where KEG_FORMULA_PATH can find it."""
    formula_dir = temp_dir / "formulas"
    formula_dir.mkdir()
    path = formula_dir / "talostpl.yaml"
    path.write_text(yaml.safe_dump(formula_data), encoding="utf-8")
    return path


@pytest.fixture
def settings(temp_dir, formula_file):
    """Settings rooted in the temporary directory."""
    return KegSettings(
        prefix=temp_dir / "prefix",
        formula_path=str(formula_file.parent),
        log_level="DEBUG",
        smoke_test_timeout=10,
    )


@pytest.fixture
def serve():
    """Build an httpx.AsyncClient answering from a URL -> body (or status) map.

    Returns a factory; the returned client records every requested URL in
    ``client.requested``.
    """

    def _factory(routes):
        requested = []

        def handler(request: httpx.Request) -> httpx.Response:
            url = str(request.url)
            requested.append(url)
            body = routes.get(url)
            if body is None:
                return httpx.Response(404)
            if isinstance(body, int):
                return httpx.Response(body)
            if isinstance(body, dict):
                return httpx.Response(200, json=body)
            return httpx.Response(200, content=body)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        client.requested = requested
        return client

    return _factory


@pytest.fixture
def host_override(formula_file, formula_data):
    """Give the test formula a separate artifact for the host platform.

    The default artifact stays platform-independent, so any other platform
    key still resolves to it.
    """
    formula_data["platforms"] = {
        current_platform(): {
            "url": HOST_URL,
            "sha256": hashlib.sha256(HOST_SCRIPT).hexdigest(),
        },
    }
    formula_file.write_text(yaml.safe_dump(formula_data), encoding="utf-8")
    return formula_data
