"""Pydantic models for resolved development environments.

These models are the output side of the resolver. Every model is frozen:
a ToolchainSpec or PackageSet is built once per activation and never
mutated afterwards.

- ToolchainSpec: compiler version plus enabled extensions, with a stable
  content identity (sha256 of its canonical JSON).
- EnvironmentDescriptor: variables exported into the shell.
- PackageSet: auxiliary tools needed next to the toolchain.
- BuildPackageSpec: inputs of the default (naersk) package.
- DevEnvironment: everything above for a single platform.

validate_system() is the shared check for platform identifiers so the CLI
and the resolver reject unknown systems with the same message.
"""

from __future__ import annotations

import hashlib
import json
import re
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, field_validator

# flake-utils' eachDefaultSystem.
SUPPORTED_SYSTEMS: tuple[str, ...] = (
    "x86_64-linux",
    "aarch64-linux",
    "x86_64-darwin",
    "aarch64-darwin",
)

# Named channels, optionally dated (nightly-2023-06-01) or suffixed with
# -latest; or a numbered stable release (1.70, 1.70.0).
CHANNEL_RE = re.compile(
    r"^(?:(?P<channel>stable|beta|nightly)(?:-(?P<date>\d{4}-\d{2}-\d{2})|-latest)?"
    r"|(?P<release>\d+\.\d+(?:\.\d+)?))$"
)

# Shell variable names: must be exportable from a bash shellHook.
_ENV_KEY_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class UnsupportedSystemError(Exception):
    """Raised when a platform identifier is not one of SUPPORTED_SYSTEMS."""


def validate_system(system: str) -> str:
    """Return the system unchanged, or raise UnsupportedSystemError."""
    if system not in SUPPORTED_SYSTEMS:
        msg = f"Unsupported system '{system}'. Supported: {', '.join(SUPPORTED_SYSTEMS)}"
        raise UnsupportedSystemError(msg)
    return system


def is_darwin(system: str) -> bool:
    return system.endswith("-darwin")


def _unique(values: tuple[str, ...]) -> tuple[str, ...]:
    return tuple(dict.fromkeys(values))


class ToolchainSource(StrEnum):
    """Where a ToolchainSpec came from."""

    PRIMARY = "primary"  # rust-toolchain.toml
    LEGACY = "legacy"  # rust-toolchain
    DEFAULT = "default"  # no declaration file


class ToolchainSpec(BaseModel):
    """A compiler toolchain version and its enabled extensions."""

    model_config = ConfigDict(frozen=True)

    version: str
    extensions: tuple[str, ...]
    targets: tuple[str, ...] = ()
    profile: str | None = None
    source: ToolchainSource = ToolchainSource.DEFAULT
    declaration: str | None = None
    """Path of the declaration file, or None for the default toolchain."""

    sha256: str | None = None
    """Hash pin of the channel manifest, passed through to Nix when set."""

    @field_validator("version")
    @classmethod
    def validate_version(cls, v: str) -> str:
        if not v:
            msg = "Toolchain version must not be empty"
            raise ValueError(msg)
        return v

    @field_validator("extensions")
    @classmethod
    def validate_extensions(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        if not v:
            msg = "At least one toolchain extension must be enabled"
            raise ValueError(msg)
        return _unique(v)

    @field_validator("targets")
    @classmethod
    def validate_targets(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        return _unique(v)

    @property
    def is_default(self) -> bool:
        return self.source is ToolchainSource.DEFAULT

    @property
    def identity(self) -> str:
        """Content hash of everything that selects the toolchain binaries.

        source and declaration are excluded: the same channel declared in
        either file format has the same identity.
        """
        canonical = json.dumps(
            {
                "version": self.version,
                "extensions": list(self.extensions),
                "targets": list(self.targets),
                "profile": self.profile,
                "sha256": self.sha256,
            },
            sort_keys=True,
            separators=(",", ":"),
        )
        return hashlib.sha256(canonical.encode()).hexdigest()


class EnvironmentDescriptor(BaseModel):
    """Variables exported into the dev shell. Key order is irrelevant."""

    model_config = ConfigDict(frozen=True)

    variables: dict[str, str]

    @field_validator("variables")
    @classmethod
    def validate_variables(cls, v: dict[str, str]) -> dict[str, str]:
        bad = [key for key in v if not _ENV_KEY_RE.match(key)]
        if bad:
            msg = f"Invalid environment variable names: {', '.join(sorted(bad))}"
            raise ValueError(msg)
        return dict(sorted(v.items()))

    def get(self, key: str) -> str | None:
        return self.variables.get(key)

    def __contains__(self, key: object) -> bool:
        return key in self.variables


class PackageSet(BaseModel):
    """Auxiliary tools required next to the toolchain.

    native_build_inputs run on the build platform (pkg-config);
    build_inputs are linked or used inside the shell (openssl, clippy,
    debuggers). Both are stored sorted and deduplicated.
    """

    model_config = ConfigDict(frozen=True)

    native_build_inputs: tuple[str, ...] = ()
    build_inputs: tuple[str, ...] = ()

    @field_validator("native_build_inputs", "build_inputs")
    @classmethod
    def validate_inputs(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        if any(not name for name in v):
            msg = "Package identifiers must not be empty"
            raise ValueError(msg)
        return tuple(sorted(set(v)))

    @property
    def names(self) -> frozenset[str]:
        return frozenset(self.native_build_inputs) | frozenset(self.build_inputs)

    def __contains__(self, name: object) -> bool:
        return name in self.names


class BuildPackageSpec(BaseModel):
    """Inputs of the project's default package (naersk buildPackage)."""

    model_config = ConfigDict(frozen=True)

    src: str
    native_build_inputs: tuple[str, ...] = ()
    build_inputs: tuple[str, ...] = ()


class DevEnvironment(BaseModel):
    """The fully resolved environment for one platform."""

    model_config = ConfigDict(frozen=True)

    system: str
    toolchain: ToolchainSpec
    environment: EnvironmentDescriptor
    packages: PackageSet
    package: BuildPackageSpec

    @field_validator("system")
    @classmethod
    def validate_system_field(cls, v: str) -> str:
        if v not in SUPPORTED_SYSTEMS:
            msg = f"Unsupported system '{v}'"
            raise ValueError(msg)
        return v
