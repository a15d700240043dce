"""Shared fixtures for devshell tests.

Settings are always built explicitly (no .env file, every field passed) so a
developer's RUST_LOG or DEFAULT_CHANNEL cannot leak into assertions.
"""

from __future__ import annotations

import pytest

from devshell.config import DevshellSettings, clear_settings_cache
from devshell.resolver.discovery import clear_cache


def _make_settings(**overrides) -> DevshellSettings:
    values = {
        "devshell_project_root": ".",
        "default_channel": "stable-latest",
        "default_extensions": ["rust-src", "rustfmt"],
        "channel_sha256": None,
        "rust_log": "trace",
        "logfire_token": None,
    }
    values.update(overrides)
    return DevshellSettings(_env_file=None, **values)


@pytest.fixture
def make_settings():
    """Factory for DevshellSettings with explicit overrides."""
    return _make_settings


@pytest.fixture
def settings() -> DevshellSettings:
    return _make_settings()


@pytest.fixture(autouse=True)
def _clear_caches():
    """Reset the settings and system discovery caches around every test."""
    clear_settings_cache()
    clear_cache()
    yield
    clear_settings_cache()
    clear_cache()
