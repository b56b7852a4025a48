"""Regular dependency updates via direct package.json editing.

Instead of ``pnpm up --latest`` (which can promote dependencies to catalogs
under ``catalogMode: strict``), this module asks npm for the latest version of
each matched dependency and rewrites the specifiers in place, keeping each
specifier's original ``^``/``~`` prefix.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from .errors import LookupFailure, ParseError, WriteFailure
from .manifest import read_manifest, save_manifest
from .models import (
    DEPENDENCY_FIELDS,
    ROOT_PACKAGE,
    DependencyKind,
    DependencyUpdateResult,
    UpdateBatch,
)
from .registry import query_latest_version
from .shell import UpdateContext, debug_state, info, step, warn
from .specifiers import format_specifier, matches_any, parse_specifier
from .workspace import discover_packages


@dataclass
class ManifestFile:
    """A loaded package.json and the edits staged for it."""

    path: Path
    owner: str
    data: dict[str, Any]
    indent: str | int
    # dependency name → latest version
    staged: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Occurrence:
    """One manifest declaring a matched dependency."""

    manifest: ManifestFile
    specifier: str


def load_workspace_manifests(ctx: UpdateContext) -> list[ManifestFile]:
    """Load the root package.json followed by every workspace member's.

    Raises:
        ParseError: If the root package.json is missing or invalid. Broken
            member manifests are skipped with a warning.
    """
    root_path = ctx.root / "package.json"
    data, indent = read_manifest(root_path)
    manifests = [ManifestFile(root_path, ROOT_PACKAGE, data, indent)]

    for pkg in discover_packages(ctx.root):
        try:
            data, indent = read_manifest(pkg.manifest_path)
        except ParseError as exc:
            warn(str(exc))
            continue
        manifests.append(ManifestFile(pkg.manifest_path, pkg.name, data, indent))
    return manifests


def collect_matching_deps(
    manifests: list[ManifestFile], patterns: list[str]
) -> dict[str, list[Occurrence]]:
    """Find dependencies whose names match any pattern, grouped by name.

    A dependency listed in several fields of the same manifest yields a single
    occurrence for that manifest. catalog:/workspace: specifiers and
    specifiers that are not plain versions are never collected.
    """
    dep_map: dict[str, list[Occurrence]] = {}
    for manifest in manifests:
        for dep_field in DEPENDENCY_FIELDS:
            deps = manifest.data.get(dep_field)
            if not isinstance(deps, dict):
                continue
            for name, specifier in deps.items():
                if not isinstance(specifier, str) or not matches_any(name, patterns):
                    continue
                if parse_specifier(specifier) is None:
                    continue
                entries = dep_map.setdefault(name, [])
                if any(e.manifest is manifest for e in entries):
                    continue
                entries.append(Occurrence(manifest, specifier))
    return dep_map


def apply_staged(manifest: ManifestFile) -> bool:
    """Write a manifest's staged versions back in a single rewrite.

    Each field keeps its own range prefix. Specifiers that do not parse
    (indirections, compound ranges) are left alone even if the name was staged.

    Returns:
        True if the file was rewritten.
    """
    changed = False
    for dep_field in DEPENDENCY_FIELDS:
        deps = manifest.data.get(dep_field)
        if not isinstance(deps, dict):
            continue
        for name, latest in manifest.staged.items():
            current = deps.get(name)
            parsed = parse_specifier(current) if isinstance(current, str) else None
            if parsed is None:
                continue
            new_specifier = format_specifier(latest, parsed.prefix)
            if current != new_specifier:
                deps[name] = new_specifier
                changed = True
    if changed:
        save_manifest(manifest.path, manifest.data, manifest.indent)
    return changed


def update_regular_deps(ctx: UpdateContext, patterns: list[str]) -> UpdateBatch:
    """Update every dependency matching ``patterns`` to its latest release.

    The registry is queried once per distinct dependency name. A failed query
    skips that dependency's occurrences; a failed write drops that file's
    results. Everything else proceeds.

    Args:
        ctx: Workspace root and command executor.
        patterns: Exact names or globs (``@scope/*``, ``*``).

    Raises:
        ParseError: If the root package.json cannot be read.
    """
    batch = UpdateBatch()
    if not patterns:
        return batch

    step("Updating regular dependencies")

    manifests = load_workspace_manifests(ctx)
    dep_map = collect_matching_deps(manifests, patterns)
    if not dep_map:
        info("No matching dependencies found")
        return batch

    info(f"Found {len(dep_map)} unique dependencies matching patterns")
    debug_state(
        "Matched dependencies",
        {name: [str(o.manifest.path) for o in occ] for name, occ in dep_map.items()},
    )

    pending: list[tuple[ManifestFile, DependencyUpdateResult]] = []
    for name, occurrences in dep_map.items():
        try:
            latest = query_latest_version(ctx, name)
        except LookupFailure as exc:
            warn(str(exc))
            batch.fail(name, exc.reason)
            continue

        for occurrence in occurrences:
            # other fields of the same file may still be behind
            occurrence.manifest.staged[name] = latest
            parsed = parse_specifier(occurrence.specifier)
            if parsed is None or parsed.version == latest:
                continue
            new_specifier = format_specifier(latest, parsed.prefix)
            pending.append(
                (
                    occurrence.manifest,
                    DependencyUpdateResult(
                        dependency=name,
                        from_=occurrence.specifier,
                        to=new_specifier,
                        kind=DependencyKind.REGULAR,
                        owning_package=occurrence.manifest.owner,
                    ),
                )
            )

    failed: set[Path] = set()
    for manifest in manifests:
        if not manifest.staged:
            continue
        try:
            if apply_staged(manifest):
                info(f"Updated {len(manifest.staged)} dependencies in {manifest.path}")
        except WriteFailure as exc:
            warn(str(exc))
            failed.add(manifest.path)

    for manifest, result in pending:
        if manifest.path in failed:
            batch.fail(result.dependency, f"could not write {manifest.path}")
        else:
            batch.updates.append(result)
    return batch
