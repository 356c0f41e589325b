"""
Tests for environment-driven settings.
"""

import os
from pathlib import Path

from keg import settings as settings_module
from keg.settings import KegSettings, get_settings, reload_settings


def test_defaults(monkeypatch, temp_dir):
    monkeypatch.chdir(temp_dir)
    for var in ("KEG_PREFIX", "KEG_CACHE_DIR", "KEG_FORMULA_PATH", "KEG_LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)

    settings = KegSettings()
    assert settings.prefix == Path.home() / ".keg"
    assert settings.resolved_cache_dir == settings.prefix / "cache"
    assert settings.formula_dirs == []
    assert settings.log_level == "WARNING"


def test_environment_overrides(monkeypatch, temp_dir):
    monkeypatch.chdir(temp_dir)
    monkeypatch.setenv("KEG_PREFIX", str(temp_dir / "prefix"))
    monkeypatch.setenv("KEG_CACHE_DIR", str(temp_dir / "cache"))
    monkeypatch.setenv("KEG_FORMULA_PATH", os.pathsep.join(["/a", "", "/b"]))
    monkeypatch.setenv("KEG_SMOKE_TEST_TIMEOUT", "5")

    settings = KegSettings()
    assert settings.prefix == temp_dir / "prefix"
    assert settings.resolved_cache_dir == temp_dir / "cache"
    assert settings.formula_dirs == [Path("/a"), Path("/b")]
    assert settings.smoke_test_timeout == 5


def test_reload_replaces_global(monkeypatch, temp_dir):
    monkeypatch.chdir(temp_dir)
    monkeypatch.setattr(settings_module, "_settings", None)
    monkeypatch.setenv("KEG_LOG_LEVEL", "INFO")

    first = get_settings()
    assert get_settings() is first
    assert first.log_level == "INFO"

    monkeypatch.setenv("KEG_LOG_LEVEL", "DEBUG")
    reloaded = reload_settings()
    assert reloaded is not first
    assert get_settings().log_level == "DEBUG"
