"""devshell — reproducible Rust dev environment resolution for Nix flakes.

Public API:
  resolve_toolchain    — pick the toolchain from the project's declaration files
  resolve_environment  — toolchain, packages and variables for one platform
  resolve_all_systems  — resolve_environment for every supported platform
  generate_shell_expr  — render a DevEnvironment as a mkShell expression

Typical usage:
    from devshell import resolve_environment, generate_shell_expr
    env = resolve_environment("x86_64-linux", "/path/to/project")
    print(generate_shell_expr(env))
"""

from devshell.resolver.environment import resolve_all_systems, resolve_environment
from devshell.resolver.generator import generate_package_expr, generate_shell_expr
from devshell.resolver.toolchain import resolve_toolchain

__all__ = [
    "generate_package_expr",
    "generate_shell_expr",
    "resolve_all_systems",
    "resolve_environment",
    "resolve_toolchain",
]
