"""Tests for per-platform environment composition."""

import pytest

from devshell.resolver.environment import (
    TOOLCHAIN_PLACEHOLDER,
    debuggers_for,
    resolve_all_systems,
    resolve_environment,
)
from devshell.resolver.models import SUPPORTED_SYSTEMS, ToolchainSpec, UnsupportedSystemError
from devshell.resolver.toolchain import ToolchainDeclarationError


class TestResolveEnvironment:
    @pytest.mark.parametrize("system", SUPPORTED_SYSTEMS)
    def test_every_platform_gets_a_toolchain(self, tmp_path, settings, system):
        env = resolve_environment(system, tmp_path, settings=settings)
        assert env.system == system
        assert env.toolchain.version
        assert env.toolchain.extensions

    def test_unsupported_system_rejected(self, tmp_path, settings):
        with pytest.raises(UnsupportedSystemError, match="riscv64-linux"):
            resolve_environment("riscv64-linux", tmp_path, settings=settings)

    def test_declaration_error_propagates(self, tmp_path, settings):
        (tmp_path / "rust-toolchain").write_text("")
        with pytest.raises(ToolchainDeclarationError):
            resolve_environment("x86_64-linux", tmp_path, settings=settings)

    def test_uses_given_toolchain_without_lookup(self, tmp_path, settings):
        (tmp_path / "rust-toolchain").write_text("garbage that would not parse\nat all\n")
        toolchain = ToolchainSpec(version="1.70.0", extensions=("rust-src",))

        env = resolve_environment("x86_64-linux", tmp_path, settings=settings, toolchain=toolchain)

        assert env.toolchain is toolchain

    def test_project_root_from_settings(self, tmp_path, make_settings):
        (tmp_path / "rust-toolchain").write_text("1.70.0\n")
        settings = make_settings(devshell_project_root=str(tmp_path))

        env = resolve_environment("aarch64-linux", settings=settings)

        assert env.toolchain.version == "1.70.0"
        assert env.package.src == str(tmp_path)


class TestEnvironmentVariables:
    def test_rust_log_trace_by_default(self, tmp_path, settings):
        env = resolve_environment("x86_64-linux", tmp_path, settings=settings)
        assert env.environment.get("RUST_LOG") == "trace"

    def test_rust_log_from_settings(self, tmp_path, make_settings):
        env = resolve_environment("x86_64-linux", tmp_path, settings=make_settings(rust_log="info"))
        assert env.environment.get("RUST_LOG") == "info"

    def test_rust_src_path_points_into_toolchain(self, tmp_path, settings):
        env = resolve_environment("x86_64-linux", tmp_path, settings=settings)
        assert env.environment.get("RUST_SRC_PATH") == (
            f"{TOOLCHAIN_PLACEHOLDER}/lib/rustlib/src/rust/library"
        )

    def test_rust_src_path_omitted_without_rust_src(self, tmp_path, make_settings):
        settings = make_settings(default_extensions=["rustfmt"])
        env = resolve_environment("x86_64-linux", tmp_path, settings=settings)
        assert "RUST_SRC_PATH" not in env.environment


class TestPackageSet:
    def test_linux_packages(self, tmp_path, settings):
        env = resolve_environment("x86_64-linux", tmp_path, settings=settings)
        assert env.packages.native_build_inputs == ("pkg-config",)
        assert env.packages.build_inputs == ("gdb", "lldb", "openssl", "rustPackages.clippy")

    def test_darwin_has_no_gdb(self, tmp_path, settings):
        env = resolve_environment("aarch64-darwin", tmp_path, settings=settings)
        assert "gdb" not in env.packages
        assert "lldb" in env.packages
        assert "openssl" in env.packages

    @pytest.mark.parametrize("system", SUPPORTED_SYSTEMS)
    def test_debuggers_never_empty(self, system):
        assert debuggers_for(system)

    def test_build_package_inputs(self, tmp_path, settings):
        env = resolve_environment("x86_64-linux", tmp_path, settings=settings)
        assert env.package.src == str(tmp_path)
        assert env.package.native_build_inputs == ("pkg-config",)
        assert env.package.build_inputs == ("openssl",)


class TestResolveAllSystems:
    def test_covers_every_platform(self, tmp_path, settings):
        environments = resolve_all_systems(tmp_path, settings=settings)
        assert set(environments) == set(SUPPORTED_SYSTEMS)

    def test_one_toolchain_identity_across_platforms(self, tmp_path, settings):
        (tmp_path / "rust-toolchain.toml").write_text('[toolchain]\nchannel = "1.72.1"\n')

        environments = resolve_all_systems(tmp_path, settings=settings)

        identities = {env.toolchain.identity for env in environments.values()}
        assert len(identities) == 1

    def test_idempotent(self, tmp_path, settings):
        (tmp_path / "rust-toolchain").write_text("1.70.0\n")
        assert resolve_all_systems(tmp_path, settings=settings) == resolve_all_systems(
            tmp_path, settings=settings
        )
