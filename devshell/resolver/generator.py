"""Nix expression generator — renders a DevEnvironment for the package manager.

No Nix syntax is written by hand anywhere else. Two expressions are produced,
both functions of a nixpkgs set with the nixpkgs-mozilla overlay applied:

generate_shell_expr — the dev shell:

    { pkgs }:
    let
      toolchain = (pkgs.rustChannelOf {
        channel = "1.70.0";
      }).rust.override {
        extensions = [ "rust-src" "rustfmt" ];
      };
    in
    pkgs.mkShell {
      nativeBuildInputs = with pkgs; [ pkg-config ];
      buildInputs = [ toolchain ] ++ (with pkgs; [ gdb lldb openssl rustPackages.clippy ]);
      RUST_LOG = "trace";
      RUST_SRC_PATH = "${toolchain}/lib/rustlib/src/rust/library";
    }

generate_package_expr — the default package, built with naersk against the
same toolchain.

The toolchain profile has no rustChannelOf counterpart and is not rendered;
it still contributes to ToolchainSpec.identity.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import TYPE_CHECKING

from devshell.resolver.environment import TOOLCHAIN_PLACEHOLDER
from devshell.resolver.toolchain import split_channel

if TYPE_CHECKING:
    from devshell.resolver.models import DevEnvironment, ToolchainSpec

# Attribute paths under pkgs, e.g. "openssl" or "rustPackages.clippy".
_ATTR_PATH_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_'-]*(?:\.[A-Za-z_][A-Za-z0-9_'-]*)*$")


def _nix_string(value: str) -> str:
    """Wrap a Python string as a Nix string literal.

    Escapes Nix special characters within double-quoted strings:
      \\  →  \\\\   (must be first to avoid double-escaping)
      "   →  \\"
      $   →  \\$    (prevents Nix string interpolation)
    """
    escaped = value.replace("\\", "\\\\").replace('"', '\\"').replace("$", "\\$")
    return f'"{escaped}"'


def _nix_env_value(value: str) -> str:
    """Nix string literal where TOOLCHAIN_PLACEHOLDER becomes ${toolchain}."""
    return _nix_string(value).replace(TOOLCHAIN_PLACEHOLDER, "${toolchain}")


def _nix_list(items: tuple[str, ...] | list[str]) -> str:
    """Format strings as a Nix list literal: ["a", "b"] → '[ "a" "b" ]'."""
    return "[ " + " ".join(_nix_string(item) for item in items) + " ]"


def _nix_attr_list(names: tuple[str, ...]) -> str:
    """Format package attribute paths as a bare Nix list: '[ gdb openssl ]'."""
    bad = [name for name in names if not _ATTR_PATH_RE.match(name)]
    if bad:
        msg = f"Not a nixpkgs attribute path: {', '.join(bad)}"
        raise ValueError(msg)
    if not names:
        return "[ ]"
    return "[ " + " ".join(names) + " ]"


def _toolchain_binding(toolchain: ToolchainSpec) -> str:
    """The `toolchain = ...;` binding shared by both expressions."""
    channel, date = split_channel(toolchain.version)

    channel_args = f"\n    channel = {_nix_string(channel)};"
    if date:
        channel_args += f"\n    date = {_nix_string(date)};"
    if toolchain.sha256:
        channel_args += f"\n    sha256 = {_nix_string(toolchain.sha256)};"

    override_args = f"\n    extensions = {_nix_list(toolchain.extensions)};"
    if toolchain.targets:
        override_args += f"\n    targets = {_nix_list(toolchain.targets)};"

    return f"""\
  toolchain = (pkgs.rustChannelOf {{{channel_args}
  }}).rust.override {{{override_args}
  }};"""


def _source_path(src: str) -> str:
    """Import the project source by absolute path under a fixed store name."""
    resolved = str(Path(src).resolve())
    return f'builtins.path {{ path = {_nix_string(resolved)}; name = "source"; }}'


def generate_shell_expr(env: DevEnvironment) -> str:
    """Render the dev shell of a resolved environment as a Nix expression.

    The expression is a function `{ pkgs }: ...` that evaluates to a
    mkShell derivation. Variables are rendered in sorted key order, so the
    output is byte-identical for equal environments.
    """
    variables = "".join(
        f"\n  {key} = {_nix_env_value(value)};"
        for key, value in sorted(env.environment.variables.items())
    )
    native = _nix_attr_list(env.packages.native_build_inputs)
    build = _nix_attr_list(env.packages.build_inputs)

    return f"""\
{{ pkgs }}:
let
{_toolchain_binding(env.toolchain)}
in
pkgs.mkShell {{
  nativeBuildInputs = with pkgs; {native};
  buildInputs = [ toolchain ] ++ (with pkgs; {build});{variables}
}}
"""


def generate_package_expr(env: DevEnvironment) -> str:
    """Render the default package as a naersk buildPackage expression.

    The expression is a function `{ pkgs, naersk }: ...`; naersk is the
    flake input, called with the resolved toolchain as cargo and rustc.
    """
    package = env.package
    native = _nix_attr_list(package.native_build_inputs)
    build = _nix_attr_list(package.build_inputs)

    return f"""\
{{ pkgs, naersk }}:
let
{_toolchain_binding(env.toolchain)}
  naersk-lib = pkgs.callPackage naersk {{
    cargo = toolchain;
    rustc = toolchain;
  }};
in
naersk-lib.buildPackage {{
  src = {_source_path(package.src)};
  nativeBuildInputs = with pkgs; {native};
  buildInputs = with pkgs; {build};
}}
"""
