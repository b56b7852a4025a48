"""Data models for pnpm-config-deps.

These Pydantic models represent the values passed between the updaters, the
lockfile diff engine and the changeset emitter. All of them are created fresh
per run; the manifests on disk are the only persistent state.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

# Owning package recorded for updates made in the root package.json, and the
# group key config changes are collected under.
ROOT_PACKAGE = "(root)"

# Placeholder "to" value for dependencies that disappeared between snapshots.
REMOVED = "(removed)"

DEPENDENCY_FIELDS = ("dependencies", "devDependencies", "optionalDependencies")


class DependencyKind(str, Enum):
    """Where a dependency is declared."""

    CONFIG = "config"
    REGULAR = "regular"


class VersionSpecifier(BaseModel):
    """A parsed ``^1.2.3`` / ``~1.2.3`` / ``1.2.3`` specifier."""

    model_config = ConfigDict(frozen=True)

    prefix: Literal["", "^", "~"] = ""
    version: str


class DependencyUpdateResult(BaseModel):
    """One successful rewrite of a dependency declaration.

    Attributes:
        dependency: Package name that was updated.
        from_: Previous version or specifier (None for a new dependency).
        to: New version or specifier.
        kind: Config or regular dependency.
        owning_package: Workspace package whose manifest changed; None for
            config dependencies, ``(root)`` for the root manifest.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    dependency: str = Field(min_length=1)
    from_: str | None = Field(default=None, alias="from")
    to: str = Field(min_length=1)
    kind: DependencyKind
    owning_package: str | None = None


class DependencyFailure(BaseModel):
    """A dependency that could not be updated, and why."""

    model_config = ConfigDict(frozen=True)

    dependency: str
    reason: str


class UpdateBatch(BaseModel):
    """Successes and failures accumulated over one updater pass."""

    updates: list[DependencyUpdateResult] = Field(default_factory=list)
    failures: list[DependencyFailure] = Field(default_factory=list)

    def fail(self, dependency: str, reason: str) -> None:
        self.failures.append(DependencyFailure(dependency=dependency, reason=reason))


class LockfileChange(BaseModel):
    """A dependency change detected between two lockfile snapshots."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    kind: DependencyKind
    dependency: str = Field(min_length=1)
    from_: str | None = Field(default=None, alias="from")
    to: str = Field(min_length=1)
    affected_packages: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _config_changes_have_no_packages(self) -> LockfileChange:
        if self.kind is DependencyKind.CONFIG and self.affected_packages:
            raise ValueError("config changes cannot name affected packages")
        return self

    @classmethod
    def from_update(cls, update: DependencyUpdateResult) -> LockfileChange:
        """Convert a config updater result into a change for changeset grouping."""
        return cls(
            kind=update.kind,
            dependency=update.dependency,
            from_=update.from_,
            to=update.to,
            affected_packages=[],
        )


class CatalogEntry(BaseModel):
    """One dependency in a lockfile catalog."""

    specifier: str
    version: str | None = None


class ImporterSnapshot(BaseModel):
    """Resolved specifiers for one workspace member, per dependency field."""

    by_field: dict[str, dict[str, str]] = Field(default_factory=dict)

    def specifiers(self) -> dict[str, str]:
        """Flatten all dependency fields into one name → specifier map."""
        merged: dict[str, str] = {}
        for field in DEPENDENCY_FIELDS:
            merged.update(self.by_field.get(field, {}))
        return merged


class LockfileSnapshot(BaseModel):
    """The parts of pnpm-lock.yaml the diff engine looks at."""

    catalogs: dict[str, dict[str, CatalogEntry]] = Field(default_factory=dict)
    importers: dict[str, ImporterSnapshot] = Field(default_factory=dict)


class ChangesetArtifact(BaseModel):
    """A changeset file written for a group of changes.

    An empty ``affected_packages`` list marks the root/config changeset.
    """

    id: str = Field(min_length=1)
    affected_packages: list[str] = Field(default_factory=list)
    bump: Literal["patch"] = "patch"
    summary: str = Field(min_length=1)


class ChangedPackage(BaseModel):
    """A workspace package together with the changes that affect it."""

    name: str
    changes: list[LockfileChange] = Field(default_factory=list)


class ParsedPnpmVersion(BaseModel):
    """A package manager version read from package.json."""

    model_config = ConfigDict(frozen=True)

    version: str
    has_caret: bool = False
    has_sha: bool = False


class PnpmUpgradeResult(BaseModel):
    """Outcome of a pnpm self-upgrade."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    from_: str = Field(alias="from")
    to: str
    package_manager_updated: bool = False
    dev_engines_updated: bool = False


class WorkspacePackage(BaseModel):
    """A workspace member discovered through pnpm-workspace.yaml.

    Attributes:
        name: Package name from its package.json.
        path: POSIX path relative to the workspace root (the lockfile
              importer id).
        manifest_path: Absolute path to its package.json.
    """

    name: str
    path: str
    manifest_path: Path


class UpdateReport(BaseModel):
    """Everything one pipeline run produced."""

    updates: list[DependencyUpdateResult] = Field(default_factory=list)
    failures: list[DependencyFailure] = Field(default_factory=list)
    changes: list[LockfileChange] = Field(default_factory=list)
    changesets: list[ChangesetArtifact] = Field(default_factory=list)
    upgrade: PnpmUpgradeResult | None = None

    @property
    def has_changes(self) -> bool:
        return bool(self.updates or self.changes or self.upgrade)
