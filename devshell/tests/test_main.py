"""Tests for the `python -m devshell` entry point."""

import json
import logging
from unittest.mock import AsyncMock, patch

import pytest

from devshell.__main__ import main
from devshell.resolver.discovery import SystemDiscoveryError
from devshell.resolver.models import SUPPORTED_SYSTEMS


@pytest.fixture(autouse=True)
def _no_logfire(monkeypatch, tmp_path):
    """Keep logfire local and settings free of the developer's environment."""
    for name in ("LOGFIRE_TOKEN", "RUST_LOG", "DEFAULT_CHANNEL", "DEFAULT_EXTENSIONS"):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    with patch("devshell.__main__.logfire") as mock_logfire:
        yield mock_logfire


@pytest.fixture
def project(tmp_path):
    root = tmp_path / "project"
    root.mkdir()
    return root


class TestJsonOutput:
    def test_explicit_system(self, project, capsys):
        (project / "rust-toolchain").write_text("1.70.0\n")

        code = main(["--project-root", str(project), "--system", "x86_64-linux"])

        assert code == 0
        data = json.loads(capsys.readouterr().out)
        assert data["system"] == "x86_64-linux"
        assert data["toolchain"]["version"] == "1.70.0"
        assert data["toolchain"]["extensions"] == ["rust-src", "rustfmt"]
        assert data["environment"]["variables"]["RUST_LOG"] == "trace"

    def test_default_toolchain(self, project, capsys):
        main(["--project-root", str(project), "--system", "aarch64-linux"])

        data = json.loads(capsys.readouterr().out)
        assert data["toolchain"]["version"] == "stable-latest"
        assert data["toolchain"]["source"] == "default"

    def test_all_systems(self, project, capsys):
        code = main(["--project-root", str(project), "--system", "all"])

        assert code == 0
        data = json.loads(capsys.readouterr().out)
        assert sorted(data) == sorted(SUPPORTED_SYSTEMS)

    def test_auto_system_uses_discovery(self, project, capsys):
        with patch(
            "devshell.__main__.discover_system", AsyncMock(return_value="aarch64-darwin")
        ):
            code = main(["--project-root", str(project)])

        assert code == 0
        assert json.loads(capsys.readouterr().out)["system"] == "aarch64-darwin"


class TestNixOutput:
    def test_shell_format(self, project, capsys):
        main(["--project-root", str(project), "--system", "x86_64-linux", "--format", "shell"])
        out = capsys.readouterr().out
        assert out.startswith("{ pkgs }:")
        assert "pkgs.mkShell" in out

    def test_package_format(self, project, capsys):
        main(["--project-root", str(project), "--system", "x86_64-linux", "--format", "package"])
        assert "naersk-lib.buildPackage" in capsys.readouterr().out

    def test_all_systems_requires_json(self, project):
        with pytest.raises(SystemExit) as exc:
            main(["--project-root", str(project), "--system", "all", "--format", "shell"])
        assert exc.value.code == 2


class TestErrors:
    def test_malformed_declaration_exits_1(self, project, capsys, caplog):
        (project / "rust-toolchain.toml").write_text("[toolchain]\n")

        with caplog.at_level(logging.ERROR, logger="devshell.__main__"):
            code = main(["--project-root", str(project), "--system", "x86_64-linux"])

        assert code == 1
        assert capsys.readouterr().out == ""
        assert "no channel" in caplog.text

    def test_discovery_failure_exits_1(self, project, caplog):
        failing = AsyncMock(side_effect=SystemDiscoveryError("nix is not installed or not on PATH"))
        with (
            patch("devshell.__main__.discover_system", failing),
            caplog.at_level(logging.ERROR, logger="devshell.__main__"),
        ):
            code = main(["--project-root", str(project)])

        assert code == 1
        assert "not installed" in caplog.text

    @pytest.mark.parametrize("fmt", ["json", "shell", "package"])
    def test_bad_default_channel_exits_1(self, project, monkeypatch, capsys, caplog, fmt):
        monkeypatch.setenv("DEFAULT_CHANNEL", "1.71.0-beta.2")

        with caplog.at_level(logging.ERROR, logger="devshell.__main__"):
            code = main(
                ["--project-root", str(project), "--system", "x86_64-linux", "--format", fmt]
            )

        assert code == 1
        assert capsys.readouterr().out == ""
        assert "not a toolchain channel" in caplog.text

    def test_empty_default_extensions_exits_1(self, project, monkeypatch, capsys, caplog):
        monkeypatch.setenv("DEFAULT_EXTENSIONS", "[]")

        with caplog.at_level(logging.ERROR, logger="devshell.__main__"):
            code = main(["--project-root", str(project), "--system", "x86_64-linux"])

        assert code == 1
        assert capsys.readouterr().out == ""
        assert "Invalid configuration" in caplog.text
        assert "at least one extension" in caplog.text

    def test_unknown_system_rejected_by_parser(self, project):
        with pytest.raises(SystemExit):
            main(["--project-root", str(project), "--system", "i686-linux"])


class TestLogfire:
    def test_configured_locally_without_token(self, project, _no_logfire):
        main(["--project-root", str(project), "--system", "x86_64-linux"])

        kwargs = _no_logfire.configure.call_args.kwargs
        assert kwargs["token"] is None
        assert kwargs["console"] is False
        assert kwargs["send_to_logfire"] == "if-token-present"
