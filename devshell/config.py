"""devshell configuration — centralized environment variable management.

Every tunable of the resolver is declared, validated and typed here. No other
module reads os.environ directly; they import get_settings() instead.

Usage:
    from devshell.config import get_settings

    settings = get_settings()
    root = settings.devshell_project_root

Environment variables (all optional):

    DEVSHELL_PROJECT_ROOT — Directory searched for rust-toolchain.toml /
                            rust-toolchain. Default: the current directory.
    DEFAULT_CHANNEL       — Channel used when no declaration file exists.
                            Default: "stable-latest".
    DEFAULT_EXTENSIONS    — JSON list of toolchain extensions always enabled.
                            Default: ["rust-src", "rustfmt"].
    RUST_LOG              — Log filter exported into the dev shell.
                            Default: "trace".
    CHANNEL_SHA256        — Pin for the channel manifest hash, carried into the
                            resolved toolchain identity when set.
    LOGFIRE_TOKEN         — Logfire project token. If unset, logfire runs in
                            local mode (no remote export).
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from devshell.resolver.models import CHANNEL_RE

DEFAULT_CHANNEL = "stable-latest"
DEFAULT_EXTENSIONS: tuple[str, ...] = ("rust-src", "rustfmt")


class DevshellSettings(BaseSettings):
    """Configuration for the devshell resolver.

    Field names map to env vars by uppercasing: rust_log → RUST_LOG.
    Instantiate via get_settings() to benefit from caching.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Declaration lookup ──────────────────────────────────────────────────

    devshell_project_root: str = "."
    """Directory holding the toolchain declaration files (usually the flake root)."""

    # ── Fallback toolchain ──────────────────────────────────────────────────

    default_channel: str = DEFAULT_CHANNEL
    """Channel used when neither rust-toolchain.toml nor rust-toolchain exists."""

    default_extensions: list[str] = list(DEFAULT_EXTENSIONS)
    """Extensions enabled on every toolchain, declared or not.

    rust-src is what makes RUST_SRC_PATH meaningful for rust-analyzer;
    dropping it also drops that variable from the environment.
    """

    channel_sha256: str | None = None
    """Optional hash pin of the channel manifest (SRI or nix base32)."""

    # ── Shell environment ───────────────────────────────────────────────────

    rust_log: str = "trace"
    """Value exported as RUST_LOG inside the dev shell."""

    # ── Observability ───────────────────────────────────────────────────────

    logfire_token: SecretStr | None = None
    """Logfire project token. Optional — if unset, logfire runs in local mode."""

    # ── Validators ──────────────────────────────────────────────────────────

    @field_validator("default_channel")
    @classmethod
    def validate_default_channel(cls, v: str) -> str:
        v = v.strip()
        if not v:
            msg = "DEFAULT_CHANNEL must not be empty"
            raise ValueError(msg)
        if not CHANNEL_RE.match(v):
            msg = (
                f"DEFAULT_CHANNEL '{v}' is not a toolchain channel "
                "(expected e.g. 'stable-latest', '1.70.0' or 'nightly-2023-06-01')"
            )
            raise ValueError(msg)
        return v

    @field_validator("default_extensions")
    @classmethod
    def validate_default_extensions(cls, v: list[str]) -> list[str]:
        if not v:
            msg = "DEFAULT_EXTENSIONS must name at least one extension"
            raise ValueError(msg)
        if any(not ext for ext in v):
            msg = "DEFAULT_EXTENSIONS must not contain empty names"
            raise ValueError(msg)
        # Order matters for rendering; keep the first occurrence of each.
        return list(dict.fromkeys(v))


@lru_cache(maxsize=1)
def get_settings() -> DevshellSettings:
    """Return the cached DevshellSettings instance.

    Reads from the environment on first call, then caches for the process
    lifetime. Call clear_settings_cache() in tests to reset between cases.
    """
    return DevshellSettings()


def clear_settings_cache() -> None:
    """Clear the settings cache (tests that vary environment variables)."""
    get_settings.cache_clear()
