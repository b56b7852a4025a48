"""pnpm-workspace.yaml handling and workspace member discovery.

The workspace file is rewritten with fixed sorting and serialization settings
so that formatting hooks run after us see no diff against our own output.
"""

from __future__ import annotations

import glob
from pathlib import Path
from typing import Any

import yaml

from .errors import ParseError
from .manifest import load_manifest, write_atomic
from .models import ROOT_PACKAGE, WorkspacePackage
from .shell import info, warn

WORKSPACE_FILE = "pnpm-workspace.yaml"
CONFIG_DEPENDENCIES_KEY = "configDependencies"

# Array values under these keys are kept sorted.
SORTABLE_ARRAY_KEYS = frozenset({"packages", "onlyBuiltDependencies", "publicHoistPattern"})
# Mapping values under these keys are kept sorted by key.
SORTABLE_MAP_KEYS = frozenset({CONFIG_DEPENDENCIES_KEY})
# Always the first top-level key.
FIRST_KEY = "packages"


class _WorkspaceDumper(yaml.SafeDumper):
    """SafeDumper that indents block sequences and prefers double quotes."""

    def increase_indent(self, flow: bool = False, indentless: bool = False) -> None:
        return super().increase_indent(flow, False)

    def choose_scalar_style(self) -> str:
        style = super().choose_scalar_style()
        return '"' if style == "'" else style


def parse_config_entry(entry: str) -> tuple[str, str | None] | None:
    """Split a config dependency entry into ``(version, integrity)``.

    Entries look like ``0.6.3+sha512-abc==`` or plain ``0.6.3``. The base64
    hash may itself contain ``+``, so the split is at the first ``+sha``.

    Examples:
        "0.6.3+sha512-abc=="  → ("0.6.3", "sha512-abc==")
        "0.6.3"               → ("0.6.3", None)
        ""                    → None
    """
    if not entry or not entry.strip():
        return None
    index = entry.find("+sha")
    if index == -1:
        return entry, None
    return entry[:index], entry[index + 1 :]


def format_config_entry(version: str, integrity: str | None) -> str:
    return f"{version}+{integrity}" if integrity else version


def read_workspace_yaml(root: Path) -> dict[str, Any] | None:
    """Load pnpm-workspace.yaml, or None when the workspace has none.

    Raises:
        ParseError: If the file is unreadable or not a YAML mapping.
    """
    path = root / WORKSPACE_FILE
    if not path.exists():
        return None
    try:
        content = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise ParseError(str(path), f"Invalid YAML: {exc}") from exc
    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ParseError(str(path), "expected a mapping at the top level")
    return content


def sort_workspace_content(content: dict[str, Any]) -> dict[str, Any]:
    """Return a sorted copy of workspace content.

    Sorts:
    - ``packages``, ``onlyBuiltDependencies`` and ``publicHoistPattern`` arrays
    - ``configDependencies`` keys
    - all top-level keys, keeping ``packages`` first
    """
    keys = sorted(content, key=lambda k: (k != FIRST_KEY, k))
    result: dict[str, Any] = {}
    for key in keys:
        value = content[key]
        if key in SORTABLE_ARRAY_KEYS and isinstance(value, list):
            result[key] = sorted(value, key=str)
        elif key in SORTABLE_MAP_KEYS and isinstance(value, dict):
            result[key] = {k: value[k] for k in sorted(value)}
        else:
            result[key] = value
    return result


def dump_workspace_yaml(content: dict[str, Any]) -> str:
    """Serialize workspace content: 2-space indent, no wrapping, double quotes."""
    return yaml.dump(
        content,
        Dumper=_WorkspaceDumper,
        indent=2,
        width=float("inf"),
        sort_keys=False,
        default_flow_style=False,
        allow_unicode=True,
    )


def write_workspace_yaml(root: Path, content: dict[str, Any]) -> None:
    """Sort and write content to pnpm-workspace.yaml in one pass."""
    write_atomic(root / WORKSPACE_FILE, dump_workspace_yaml(sort_workspace_content(content)))


def format_workspace_yaml(root: Path) -> bool:
    """Re-sort and re-serialize pnpm-workspace.yaml in place.

    Returns:
        True if the file exists and was rewritten.
    """
    content = read_workspace_yaml(root)
    if content is None:
        warn(f"{WORKSPACE_FILE} not found at {root}")
        return False
    write_workspace_yaml(root, content)
    info(f"Formatted {WORKSPACE_FILE}")
    return True



def get_member_globs(content: dict[str, Any] | None) -> list[str]:
    packages = (content or {}).get("packages") or []
    return [str(p) for p in packages]


def _expand(root: Path, pattern: str) -> set[Path]:
    matches = glob.glob(str(root / pattern), recursive=True)
    return {Path(m) for m in matches if Path(m).is_dir()}


def discover_packages(root: Path) -> list[WorkspacePackage]:
    """Find every workspace member listed in pnpm-workspace.yaml.

    Expands the ``packages`` globs (``!`` entries exclude) to directories
    holding a package.json. The root package itself is not included.

    Returns:
        Members sorted by path.
    """
    member_globs = get_member_globs(read_workspace_yaml(root))
    included: set[Path] = set()
    excluded: set[Path] = set()
    for pattern in member_globs:
        if pattern.startswith("!"):
            excluded |= _expand(root, pattern[1:])
        else:
            included |= _expand(root, pattern)

    root = root.resolve()
    packages: list[WorkspacePackage] = []
    for d in sorted(included - excluded):
        d = d.resolve()
        manifest_path = d / "package.json"
        if d == root or "node_modules" in d.parts or not manifest_path.exists():
            continue
        try:
            manifest = load_manifest(manifest_path)
        except ParseError as exc:
            warn(str(exc))
            continue
        packages.append(
            WorkspacePackage(
                name=str(manifest.get("name") or d.name),
                path=d.relative_to(root).as_posix(),
                manifest_path=manifest_path,
            )
        )
    return sorted(packages, key=lambda p: p.path)


def importer_package_map(root: Path, packages: list[WorkspacePackage]) -> dict[str, str]:
    """Map lockfile importer ids (relative paths) to package names.

    The root importer ``.`` maps to the root package.json name when it has one.
    """
    mapping = {pkg.path: pkg.name for pkg in packages}
    root_manifest = root / "package.json"
    if root_manifest.exists():
        try:
            name = load_manifest(root_manifest).get("name")
        except ParseError:
            name = None
        mapping["."] = str(name) if name else ROOT_PACKAGE
    return mapping
