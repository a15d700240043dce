"""Toolchain resolution — picks the Rust toolchain for a project.

Lookup is a fixed first-match chain over the project root:

  1. rust-toolchain.toml  (primary)  — TOML, [toolchain] table
  2. rust-toolchain       (legacy)   — a single channel line, or TOML
  3. neither present                 — the default toolchain from settings

Nothing here checks whether a channel exists upstream. A well-formed but
unknown channel resolves fine and fails later inside Nix, which owns
fetching. Malformed declaration files raise ToolchainDeclarationError.

Resolution is pure apart from reading the declaration file: the same file
contents and settings always produce a ToolchainSpec with the same identity.
"""

from __future__ import annotations

import logging
import re
import tomllib
from pathlib import Path
from typing import TYPE_CHECKING, Any

import logfire

from devshell.config import get_settings
from devshell.resolver.models import CHANNEL_RE, ToolchainSource, ToolchainSpec

if TYPE_CHECKING:
    from devshell.config import DevshellSettings

logger = logging.getLogger(__name__)

PRIMARY_DECLARATION = "rust-toolchain.toml"
LEGACY_DECLARATION = "rust-toolchain"

# Priority order of the lookup chain.
DECLARATION_FILES: tuple[tuple[str, ToolchainSource], ...] = (
    (PRIMARY_DECLARATION, ToolchainSource.PRIMARY),
    (LEGACY_DECLARATION, ToolchainSource.LEGACY),
)

# A [toolchain] table header on its own line; comments mentioning it do not count.
_TOML_HEADER_RE = re.compile(r"^\s*\[toolchain\]\s*(?:#.*)?$", re.MULTILINE)


class ToolchainDeclarationError(Exception):
    """Raised when a declaration file exists but cannot be understood."""


def find_declaration(project_root: Path) -> tuple[Path, ToolchainSource] | None:
    """Return the first declaration file present under project_root, if any."""
    for filename, source in DECLARATION_FILES:
        candidate = project_root / filename
        if candidate.is_file():
            return candidate, source
    return None


def split_channel(version: str) -> tuple[str, str | None]:
    """Split a channel string into (channel, date) for rustChannelOf.

    "nightly-2023-06-01" → ("nightly", "2023-06-01")
    "stable-latest"      → ("stable", None)
    "1.70.0"             → ("1.70.0", None)

    Raises:
        ValueError: version is not channel-shaped.
    """
    match = CHANNEL_RE.match(version)
    if match is None:
        msg = f"'{version}' is not a toolchain channel"
        raise ValueError(msg)
    if match["release"]:
        return match["release"], None
    return match["channel"], match["date"]


def _validate_channel(channel: object, path: Path) -> str:
    if not isinstance(channel, str) or not channel.strip():
        msg = f"{path}: toolchain channel must be a non-empty string"
        raise ToolchainDeclarationError(msg)
    channel = channel.strip()
    if not CHANNEL_RE.match(channel):
        msg = (
            f"{path}: '{channel}' is not a toolchain channel "
            "(expected e.g. 'stable', '1.70.0' or 'nightly-2023-06-01')"
        )
        raise ToolchainDeclarationError(msg)
    return channel


def _string_list(table: dict[str, Any], key: str, path: Path) -> tuple[str, ...]:
    value = table.get(key, [])
    if not isinstance(value, list) or not all(isinstance(item, str) for item in value):
        msg = f"{path}: toolchain.{key} must be a list of strings"
        raise ToolchainDeclarationError(msg)
    return tuple(value)


def _parse_toml(text: str, path: Path) -> dict[str, Any]:
    """Parse a TOML declaration and return its [toolchain] table."""
    try:
        parsed = tomllib.loads(text)
    except tomllib.TOMLDecodeError as e:
        msg = f"{path}: invalid TOML: {e}"
        raise ToolchainDeclarationError(msg) from e

    table = parsed.get("toolchain")
    if not isinstance(table, dict):
        msg = f"{path}: missing [toolchain] table"
        raise ToolchainDeclarationError(msg)
    if "path" in table:
        msg = f"{path}: custom toolchain paths cannot be pinned reproducibly"
        raise ToolchainDeclarationError(msg)
    if "channel" not in table:
        msg = f"{path}: [toolchain] has no channel"
        raise ToolchainDeclarationError(msg)
    return table


def _parse_legacy(text: str, path: Path) -> str:
    """Extract the channel from a one-line legacy declaration."""
    lines = [
        line.strip()
        for line in text.splitlines()
        if line.strip() and not line.strip().startswith("#")
    ]
    if not lines:
        msg = f"{path}: declaration file is empty"
        raise ToolchainDeclarationError(msg)
    if len(lines) > 1:
        msg = f"{path}: expected a single channel line, found {len(lines)}"
        raise ToolchainDeclarationError(msg)
    return lines[0]


def _merge_extensions(defaults: list[str], declared: tuple[str, ...]) -> tuple[str, ...]:
    return tuple(dict.fromkeys([*defaults, *declared]))


def parse_declaration(
    path: Path,
    source: ToolchainSource,
    settings: DevshellSettings,
) -> ToolchainSpec:
    """Build a ToolchainSpec from one declaration file.

    A legacy file whose body is TOML with a [toolchain] table is read as
    the primary format, as rustup does.

    Raises:
        ToolchainDeclarationError: unreadable file, bad TOML, missing channel,
            non-channel string, or non-list components/targets.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        msg = f"{path}: cannot read declaration: {e}"
        raise ToolchainDeclarationError(msg) from e

    is_toml = source is ToolchainSource.PRIMARY or _TOML_HEADER_RE.search(text) is not None
    if not is_toml:
        channel = _validate_channel(_parse_legacy(text, path), path)
        return ToolchainSpec(
            version=channel,
            extensions=tuple(settings.default_extensions),
            source=source,
            declaration=str(path),
            sha256=settings.channel_sha256,
        )

    table = _parse_toml(text, path)
    channel = _validate_channel(table["channel"], path)
    components = _string_list(table, "components", path)
    targets = _string_list(table, "targets", path)
    profile = table.get("profile")
    if profile is not None and not isinstance(profile, str):
        msg = f"{path}: toolchain.profile must be a string"
        raise ToolchainDeclarationError(msg)

    return ToolchainSpec(
        version=channel,
        extensions=_merge_extensions(settings.default_extensions, components),
        targets=targets,
        profile=profile,
        source=source,
        declaration=str(path),
        sha256=settings.channel_sha256,
    )


def default_toolchain(settings: DevshellSettings | None = None) -> ToolchainSpec:
    """The toolchain used when the project declares none."""
    settings = settings or get_settings()
    return ToolchainSpec(
        version=settings.default_channel,
        extensions=tuple(settings.default_extensions),
        source=ToolchainSource.DEFAULT,
        sha256=settings.channel_sha256,
    )


def resolve_toolchain(
    project_root: str | Path | None = None,
    settings: DevshellSettings | None = None,
) -> ToolchainSpec:
    """Resolve the toolchain for a project.

    Args:
        project_root: Directory to search for declaration files. If omitted,
            resolved from DEVSHELL_PROJECT_ROOT via DevshellSettings.
        settings: Settings override (tests). Defaults to get_settings().

    Returns:
        The ToolchainSpec of the first declaration found, or the default.

    Raises:
        ToolchainDeclarationError: A declaration file exists but is malformed.
    """
    settings = settings or get_settings()
    root = Path(project_root if project_root is not None else settings.devshell_project_root)

    with logfire.span("toolchain.resolve", project_root=str(root)):
        found = find_declaration(root)
        if found is None:
            spec = default_toolchain(settings)
            logger.info("No toolchain declaration in %s, using %s", root, spec.version)
        else:
            path, source = found
            spec = parse_declaration(path, source, settings)
            logger.info("Resolved toolchain %s from %s", spec.version, path)

        logfire.info(
            "Toolchain resolved: {version} ({source})",
            version=spec.version,
            source=str(spec.source),
            extensions=list(spec.extensions),
            identity=spec.identity,
        )
        return spec
