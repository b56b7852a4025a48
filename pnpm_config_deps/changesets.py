"""Changeset generation for dependency updates.

Changes are grouped by the package they affect and one changeset file is
written per group under ``.changeset/``. Config dependency changes are
workspace tooling rather than package dependencies, so they land in a single
changeset that bumps nothing.
"""

from __future__ import annotations

import secrets
from pathlib import Path
from typing import assert_never

from .errors import WriteFailure
from .manifest import write_atomic
from .models import (
    ROOT_PACKAGE,
    ChangedPackage,
    ChangesetArtifact,
    DependencyKind,
    LockfileChange,
)
from .shell import debug, info, warn

CHANGESET_DIR = ".changeset"

_ADJECTIVES = (
    "brave", "calm", "eager", "fair", "giant", "happy", "jolly", "kind", "lucky", "merry",
)
_NOUNS = (
    "apple", "beach", "cloud", "dream", "eagle", "flame", "grape", "heart", "island", "jewel",
)


def has_changesets(root: Path) -> bool:
    """Return True if the repository uses changesets."""
    return (root / CHANGESET_DIR).is_dir()


def generate_changeset_id() -> str:
    """Generate an id like ``happy-cloud-1a2b3c4d``."""
    return f"{secrets.choice(_ADJECTIVES)}-{secrets.choice(_NOUNS)}-{secrets.token_hex(4)}"


def group_changes_by_package(changes: list[LockfileChange]) -> dict[str, list[LockfileChange]]:
    """Group changes under the packages they affect.

    Config changes, and regular changes attributed to no package, all go under
    the ``(root)`` key. A change affecting two packages appears in both groups.
    """
    grouped: dict[str, list[LockfileChange]] = {}
    for change in changes:
        if change.kind is DependencyKind.CONFIG:
            keys = [ROOT_PACKAGE]
        elif change.kind is DependencyKind.REGULAR:
            keys = change.affected_packages or [ROOT_PACKAGE]
        else:
            assert_never(change.kind)
        for key in keys:
            grouped.setdefault(key, []).append(change)
    return grouped


def format_change(change: LockfileChange) -> str:
    if change.from_:
        return f"- {change.dependency}: {change.from_} → {change.to}"
    return f"- {change.dependency}: {change.to} (new)"


def format_changeset_summary(changes: list[LockfileChange]) -> str:
    """Render the changeset body, config changes first."""
    config = [c for c in changes if c.kind is DependencyKind.CONFIG]
    regular = [c for c in changes if c.kind is DependencyKind.REGULAR]

    lines = ["Update dependencies:", ""]
    if config:
        lines.append("**Config dependencies:**")
        lines.extend(format_change(c) for c in config)
        lines.append("")
    if regular:
        lines.append("**Dependencies:**")
        lines.extend(format_change(c) for c in regular)
    return "\n".join(lines).strip()


def render_changeset(packages: list[str], summary: str) -> str:
    """Render a changeset file: front-matter of patch bumps, then the summary."""
    front_matter = "".join(f'"{name}": patch\n' for name in packages)
    return f"---\n{front_matter}---\n\n{summary}\n"


def write_changeset(
    changeset_dir: Path, packages: list[str], changes: list[LockfileChange]
) -> ChangesetArtifact:
    """Write one changeset file.

    Raises:
        WriteFailure: If the file cannot be written.
    """
    changeset_id = generate_changeset_id()
    while (changeset_dir / f"{changeset_id}.md").exists():
        changeset_id = generate_changeset_id()

    summary = format_changeset_summary(changes)
    write_atomic(changeset_dir / f"{changeset_id}.md", render_changeset(packages, summary))
    debug(f"Created changeset {changeset_id} for {', '.join(packages) or 'root workspace'}")
    return ChangesetArtifact(id=changeset_id, affected_packages=packages, summary=summary)


def create_changesets(root: Path, changes: list[LockfileChange]) -> list[ChangesetArtifact]:
    """Write one changeset per affected package plus one for root changes.

    A changeset that fails to write is reported and skipped; changesets
    already written stay in place.
    """
    if not has_changesets(root):
        info("Repository does not use changesets, skipping changeset creation")
        return []

    grouped = group_changes_by_package(changes)
    if not grouped:
        info("No changes to create changesets for")
        return []

    changeset_dir = root / CHANGESET_DIR
    artifacts: list[ChangesetArtifact] = []
    groups = [(name, grouped[name]) for name in grouped if name != ROOT_PACKAGE]
    if ROOT_PACKAGE in grouped:
        groups.append((ROOT_PACKAGE, grouped[ROOT_PACKAGE]))

    for name, group in groups:
        packages = [] if name == ROOT_PACKAGE else [name]
        try:
            artifacts.append(write_changeset(changeset_dir, packages, group))
        except WriteFailure as exc:
            warn(str(exc))

    info(f"Created {len(artifacts)} changeset(s)")
    return artifacts


def analyze_affected_packages(changes: list[LockfileChange]) -> list[ChangedPackage]:
    """List the workspace packages touched by a set of changes."""
    return [
        ChangedPackage(name=name, changes=group)
        for name, group in group_changes_by_package(changes).items()
        if name != ROOT_PACKAGE
    ]
