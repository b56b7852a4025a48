"""Lockfile snapshots and the diff between them.

A snapshot keeps the two sections of pnpm-lock.yaml that tell us which
packages a change belongs to: ``catalogs`` (shared version tables referenced
through ``catalog:`` specifiers) and ``importers`` (one record per workspace
package). Config dependencies are not diffed here; their changes come straight
from the config updater's results.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from .errors import ParseError
from .models import (
    DEPENDENCY_FIELDS,
    REMOVED,
    CatalogEntry,
    DependencyKind,
    ImporterSnapshot,
    LockfileChange,
    LockfileSnapshot,
)
from .shell import debug, debug_state, info, warn
from .specifiers import is_indirect

LOCKFILE = "pnpm-lock.yaml"
DEFAULT_CATALOG = "default"


def catalog_marker(catalog_name: str) -> str:
    """Specifier prefix packages use to reference a catalog."""
    return "catalog:" if catalog_name == DEFAULT_CATALOG else f"catalog:{catalog_name}"


def _entry_specifier(value: Any, legacy: dict[str, Any], name: str) -> str | None:
    if isinstance(value, dict):
        specifier = value.get("specifier")
        return str(specifier) if specifier is not None else None
    if name in legacy:
        return str(legacy[name])
    return str(value) if value is not None else None


def _parse_importer(raw: dict[str, Any]) -> ImporterSnapshot:
    # lockfile v5 kept specifiers in one flat map beside name → version fields
    legacy = raw.get("specifiers") or {}
    by_field: dict[str, dict[str, str]] = {}
    for dep_field in DEPENDENCY_FIELDS:
        deps = raw.get(dep_field) or {}
        specs = {}
        for name, value in deps.items():
            specifier = _entry_specifier(value, legacy, name)
            if specifier is not None:
                specs[str(name)] = specifier
        if specs:
            by_field[dep_field] = specs
    return ImporterSnapshot(by_field=by_field)


def parse_lockfile(data: dict[str, Any]) -> LockfileSnapshot:
    """Build a snapshot from parsed pnpm-lock.yaml content."""
    catalogs: dict[str, dict[str, CatalogEntry]] = {}
    for catalog_name, entries in (data.get("catalogs") or {}).items():
        catalogs[str(catalog_name)] = {
            str(dep): CatalogEntry(
                specifier=str(entry.get("specifier")),
                version=str(entry["version"]) if entry.get("version") is not None else None,
            )
            for dep, entry in (entries or {}).items()
            if isinstance(entry, dict) and entry.get("specifier") is not None
        }

    importers = {
        str(importer_id): _parse_importer(raw)
        for importer_id, raw in (data.get("importers") or {}).items()
        if isinstance(raw, dict)
    }
    # single-package repos have no importers section, just top-level fields
    if not importers and any(f in data for f in DEPENDENCY_FIELDS):
        importers["."] = _parse_importer(data)
    return LockfileSnapshot(catalogs=catalogs, importers=importers)


def load_lockfile(path: Path) -> LockfileSnapshot:
    """Read a pnpm-lock.yaml (or saved copy of one) into a snapshot.

    Raises:
        ParseError: If the file cannot be read or is not a YAML mapping.
    """
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise ParseError(str(path), str(exc)) from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ParseError(str(path), "expected a mapping at the top level")
    return parse_lockfile(data)


def capture_lockfile_state(root: Path) -> LockfileSnapshot | None:
    """Snapshot the workspace lockfile, or None if there is none yet."""
    path = root / LOCKFILE
    if not path.exists():
        warn(f"{LOCKFILE} not found at {root}")
        return None
    snapshot = load_lockfile(path)
    debug_state(
        "Lockfile state",
        {"catalogs": list(snapshot.catalogs), "importers": list(snapshot.importers)},
    )
    return snapshot


def references_catalog(specifier: str, catalog_name: str) -> bool:
    """Return True if a specifier points at the named catalog.

    ``catalog:`` and ``catalog:default`` both mean the default catalog, and
    ``catalog:silk`` does not reference ``catalog:silkworm``.
    """
    # Exact match, unlike a plain prefix test where catalog:silk would also
    # claim catalog:silkworm.
    if catalog_name == DEFAULT_CATALOG:
        return specifier in ("catalog:", "catalog:default")
    return specifier == catalog_marker(catalog_name)


def find_packages_using_catalog(
    snapshot: LockfileSnapshot,
    catalog_name: str,
    dependency: str,
    importer_map: dict[str, str],
) -> list[str]:
    """List packages whose specifier for ``dependency`` points at the catalog."""
    packages: list[str] = []
    for importer_id, importer in snapshot.importers.items():
        for deps in importer.by_field.values():
            specifier = deps.get(dependency)
            if specifier is None or not references_catalog(specifier, catalog_name):
                continue
            name = importer_map.get(importer_id, importer_id)
            if name not in packages:
                packages.append(name)
    return packages


def compare_catalogs(
    before: LockfileSnapshot,
    after: LockfileSnapshot,
    importer_map: dict[str, str],
) -> list[LockfileChange]:
    """Detect catalog entries that were added, changed or removed.

    Changed and added entries are attributed to every package referencing the
    catalog in ``after``. Removed entries carry no packages since ``after`` no
    longer references them.
    """
    changes: list[LockfileChange] = []
    for catalog_name, after_entries in after.catalogs.items():
        before_entries = before.catalogs.get(catalog_name, {})
        for dep, after_entry in after_entries.items():
            before_entry = before_entries.get(dep)
            before_spec = before_entry.specifier if before_entry else None
            if before_spec == after_entry.specifier:
                continue
            affected = find_packages_using_catalog(after, catalog_name, dep, importer_map)
            debug(
                f"Catalog change: {dep} ({catalog_marker(catalog_name)}): "
                f"{before_spec} -> {after_entry.specifier}"
            )
            changes.append(
                LockfileChange(
                    kind=DependencyKind.REGULAR,
                    dependency=dep,
                    from_=before_spec,
                    to=after_entry.specifier,
                    affected_packages=affected,
                )
            )

    for catalog_name, before_entries in before.catalogs.items():
        after_entries = after.catalogs.get(catalog_name, {})
        for dep, before_entry in before_entries.items():
            if dep in after_entries:
                continue
            debug(f"Catalog removed: {dep} ({catalog_marker(catalog_name)})")
            changes.append(
                LockfileChange(
                    kind=DependencyKind.REGULAR,
                    dependency=dep,
                    from_=before_entry.specifier,
                    to=REMOVED,
                    affected_packages=[],
                )
            )
    return changes


def compare_importers(
    before: LockfileSnapshot,
    after: LockfileSnapshot,
    importer_map: dict[str, str],
) -> list[LockfileChange]:
    """Detect specifier changes in importers present in both snapshots.

    Indirected specifiers (catalog:, workspace:) are skipped; catalog changes
    are reported by compare_catalogs instead.
    """
    changes: list[LockfileChange] = []
    for importer_id, after_importer in after.importers.items():
        before_importer = before.importers.get(importer_id)
        if before_importer is None:
            continue
        package = importer_map.get(importer_id, importer_id)
        before_specs = before_importer.specifiers()
        after_specs = after_importer.specifiers()

        for dep, after_spec in after_specs.items():
            if is_indirect(after_spec):
                continue
            before_spec = before_specs.get(dep)
            if before_spec != after_spec:
                changes.append(
                    LockfileChange(
                        kind=DependencyKind.REGULAR,
                        dependency=dep,
                        from_=before_spec,
                        to=after_spec,
                        affected_packages=[package],
                    )
                )

        for dep, before_spec in before_specs.items():
            if dep not in after_specs:
                changes.append(
                    LockfileChange(
                        kind=DependencyKind.REGULAR,
                        dependency=dep,
                        from_=before_spec,
                        to=REMOVED,
                        affected_packages=[package],
                    )
                )
    return changes


def compare_lockfiles(
    before: LockfileSnapshot | None,
    after: LockfileSnapshot | None,
    importer_map: dict[str, str] | None = None,
) -> list[LockfileChange]:
    """Diff two snapshots into catalog changes followed by importer changes.

    Args:
        before: Snapshot taken before updating.
        after: Snapshot taken after installing.
        importer_map: Importer id → package name. Unmapped importers are
            reported under their id.
    """
    if before is None or after is None:
        warn("Cannot compare lockfiles: one or both are missing")
        return []
    importer_map = importer_map or {}
    debug_state("Importer to package map", importer_map)

    changes = compare_catalogs(before, after, importer_map)
    changes += compare_importers(before, after, importer_map)
    for change in changes:
        debug(
            f"  - {change.dependency} in [{', '.join(change.affected_packages)}]: "
            f"{change.from_} -> {change.to}"
        )
    info(f"Detected {len(changes)} dependency change(s)")
    return changes
