"""Environment composition — toolchain + packages + variables per platform.

resolve_environment() is the resolver's main entry point. It combines the
resolved ToolchainSpec with the fixed auxiliary package set and the shell
variables into one DevEnvironment for a single platform.

Store paths are unknown until Nix evaluates the expression, so variables
that point into the toolchain use the TOOLCHAIN_PLACEHOLDER token. The
generator substitutes it with an interpolation of the toolchain derivation.
"""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import logfire

from devshell.config import get_settings
from devshell.resolver.models import (
    SUPPORTED_SYSTEMS,
    BuildPackageSpec,
    DevEnvironment,
    EnvironmentDescriptor,
    PackageSet,
    is_darwin,
    validate_system,
)
from devshell.resolver.toolchain import resolve_toolchain

if TYPE_CHECKING:
    from devshell.config import DevshellSettings
    from devshell.resolver.models import ToolchainSpec

TOOLCHAIN_PLACEHOLDER = "@toolchain@"

# Where rust-src unpacks inside a toolchain; rust-analyzer reads RUST_SRC_PATH.
RUST_SRC_SUBPATH = "lib/rustlib/src/rust/library"

# Config discovery for -sys crates, and the crypto library they link.
NATIVE_BUILD_INPUTS: tuple[str, ...] = ("pkg-config",)
CRYPTO_INPUTS: tuple[str, ...] = ("openssl",)

LINTER = "rustPackages.clippy"


def debuggers_for(system: str) -> tuple[str, ...]:
    """gdb is not packaged for Darwin; lldb is available everywhere."""
    if is_darwin(system):
        return ("lldb",)
    return ("gdb", "lldb")


def build_environment(toolchain: ToolchainSpec, settings: DevshellSettings) -> EnvironmentDescriptor:
    variables = {"RUST_LOG": settings.rust_log}
    if "rust-src" in toolchain.extensions:
        variables["RUST_SRC_PATH"] = f"{TOOLCHAIN_PLACEHOLDER}/{RUST_SRC_SUBPATH}"
    return EnvironmentDescriptor(variables=variables)


def build_package_set(system: str) -> PackageSet:
    return PackageSet(
        native_build_inputs=NATIVE_BUILD_INPUTS,
        build_inputs=(*CRYPTO_INPUTS, LINTER, *debuggers_for(system)),
    )


def resolve_environment(
    system: str,
    project_root: str | Path | None = None,
    *,
    settings: DevshellSettings | None = None,
    toolchain: ToolchainSpec | None = None,
) -> DevEnvironment:
    """Resolve the complete dev environment for one platform.

    Args:
        system: Nix platform identifier, e.g. "x86_64-linux".
        project_root: Directory holding the declaration files. If omitted,
            resolved from DEVSHELL_PROJECT_ROOT via DevshellSettings.
        settings: Settings override (tests). Defaults to get_settings().
        toolchain: A toolchain already resolved for this project. Skips the
            lookup chain; used by resolve_all_systems.

    Raises:
        UnsupportedSystemError: system is not in SUPPORTED_SYSTEMS.
        ToolchainDeclarationError: A declaration file is malformed.
    """
    validate_system(system)
    settings = settings or get_settings()
    root = Path(project_root if project_root is not None else settings.devshell_project_root)

    with logfire.span("environment.resolve", system=system):
        if toolchain is None:
            toolchain = resolve_toolchain(root, settings=settings)

        return DevEnvironment(
            system=system,
            toolchain=toolchain,
            environment=build_environment(toolchain, settings),
            packages=build_package_set(system),
            package=BuildPackageSpec(
                src=str(root),
                native_build_inputs=NATIVE_BUILD_INPUTS,
                build_inputs=CRYPTO_INPUTS,
            ),
        )


def resolve_all_systems(
    project_root: str | Path | None = None,
    *,
    settings: DevshellSettings | None = None,
) -> dict[str, DevEnvironment]:
    """Resolve every supported platform, sharing a single toolchain lookup."""
    settings = settings or get_settings()
    toolchain = resolve_toolchain(project_root, settings=settings)
    return {
        system: resolve_environment(system, project_root, settings=settings, toolchain=toolchain)
        for system in SUPPORTED_SYSTEMS
    }
