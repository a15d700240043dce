"""resolver — toolchain and dev environment resolution for devshell.

This package owns everything between the project's declaration files and
the Nix expressions handed to the package manager:
- Pydantic models for the resolved environment
- The declaration lookup chain (rust-toolchain.toml, then rust-toolchain)
- Per-platform composition of packages and shell variables
- Nix expression rendering
"""
