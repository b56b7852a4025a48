"""Tests for pnpm_config_deps.regular_deps."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from conftest import FakeRunner, npm_latest, write_json
from pnpm_config_deps.errors import ParseError, WriteFailure
from pnpm_config_deps.manifest import save_manifest
from pnpm_config_deps.regular_deps import (
    collect_matching_deps,
    load_workspace_manifests,
    update_regular_deps,
)
from pnpm_config_deps.shell import UpdateContext


def _load(path: Path) -> dict:
    return json.loads(path.read_text())


class TestLoadWorkspaceManifests:
    def test_root_first(self, workspace: Path, ctx: UpdateContext) -> None:
        manifests = load_workspace_manifests(ctx)

        assert [m.owner for m in manifests] == ["(root)", "@savvy-web/core", "@savvy-web/utils"]
        assert [m.indent for m in manifests] == [2, "\t", 4]

    def test_missing_root_manifest(self, tmp_path: Path, ctx: UpdateContext) -> None:
        with pytest.raises(ParseError):
            load_workspace_manifests(ctx)


class TestCollectMatchingDeps:
    def test_dedupes_within_a_manifest(self, workspace: Path, ctx: UpdateContext) -> None:
        """effect in both dependencies and devDependencies counts once per file."""
        dep_map = collect_matching_deps(load_workspace_manifests(ctx), ["effect"])

        assert [o.manifest.owner for o in dep_map["effect"]] == ["(root)", "@savvy-web/core"]

    def test_skips_indirect_specifiers(self, workspace: Path, ctx: UpdateContext) -> None:
        dep_map = collect_matching_deps(load_workspace_manifests(ctx), ["*"])

        assert "turbo" not in dep_map
        assert "@savvy-web/utils" not in dep_map
        assert "@savvy-web/utils" not in [o.manifest.owner for o in dep_map["effect"]]

    def test_glob(self, workspace: Path, ctx: UpdateContext) -> None:
        dep_map = collect_matching_deps(load_workspace_manifests(ctx), ["@effect/*"])

        assert list(dep_map) == ["@effect/schema"]


class TestUpdateRegularDeps:
    def test_updates_across_workspace(
        self, workspace: Path, ctx: UpdateContext, runner: FakeRunner
    ) -> None:
        """One registry query per name, every occurrence rewritten with its prefix."""
        runner.responses.update([npm_latest("effect", "3.12.0")])

        batch = update_regular_deps(ctx, ["effect"])

        assert runner.calls == [("npm", "view", "effect", "dist-tags.latest", "--json")]
        assert [(u.owning_package, u.from_, u.to) for u in batch.updates] == [
            ("(root)", "^3.0.0", "^3.12.0"),
            ("@savvy-web/core", "^3.0.0", "^3.12.0"),
        ]
        core = _load(workspace / "packages/core/package.json")
        assert core["dependencies"]["effect"] == "^3.12.0"
        assert core["devDependencies"]["effect"] == "^3.12.0"
        assert core["dependencies"]["@savvy-web/utils"] == "workspace:*"
        utils = _load(workspace / "packages/utils/package.json")
        assert utils["dependencies"]["effect"] == "catalog:"

    def test_keeps_file_indentation(
        self, workspace: Path, ctx: UpdateContext, runner: FakeRunner
    ) -> None:
        runner.responses.update([npm_latest("effect", "3.12.0")])

        update_regular_deps(ctx, ["effect"])

        assert '\n\t"dependencies"' in (workspace / "packages/core/package.json").read_text()
        assert '\n  "devDependencies"' in (workspace / "package.json").read_text()

    def test_tilde_and_exact_prefixes(
        self, workspace: Path, ctx: UpdateContext, runner: FakeRunner
    ) -> None:
        runner.responses.update(
            [npm_latest("vitest", "1.6.0"), npm_latest("@effect/schema", "0.75.0")]
        )

        batch = update_regular_deps(ctx, ["vitest", "@effect/*"])

        assert sorted(u.to for u in batch.updates) == ["0.75.0", "~1.6.0"]

    def test_already_latest_is_a_no_op(
        self, workspace: Path, ctx: UpdateContext, runner: FakeRunner
    ) -> None:
        runner.responses.update([npm_latest("effect", "3.0.0")])
        before = (workspace / "package.json").read_text()

        batch = update_regular_deps(ctx, ["effect"])

        assert batch.updates == []
        assert (workspace / "package.json").read_text() == before

    def test_lookup_failure_skips_that_dependency(
        self, workspace: Path, ctx: UpdateContext, runner: FakeRunner
    ) -> None:
        runner.responses.update([npm_latest("vitest", "1.6.0")])

        batch = update_regular_deps(ctx, ["effect", "vitest"])

        assert [f.dependency for f in batch.failures] == ["effect"]
        assert [u.dependency for u in batch.updates] == ["vitest"]

    def test_no_matches(self, workspace: Path, ctx: UpdateContext, runner: FakeRunner) -> None:
        batch = update_regular_deps(ctx, ["left-pad"])

        assert batch.updates == []
        assert runner.calls == []

    def test_write_failure_drops_that_files_results(
        self, workspace: Path, ctx: UpdateContext, runner: FakeRunner
    ) -> None:
        runner.responses.update([npm_latest("effect", "3.12.0")])
        core_path = (workspace / "packages/core/package.json").resolve()

        def flaky_save(path: Path, data: dict, indent: str | int) -> None:
            if path == core_path:
                raise WriteFailure(str(path), "disk full")
            save_manifest(path, data, indent)

        with patch("pnpm_config_deps.regular_deps.save_manifest", side_effect=flaky_save):
            batch = update_regular_deps(ctx, ["effect"])

        assert [u.owning_package for u in batch.updates] == ["(root)"]
        assert [f.dependency for f in batch.failures] == ["effect"]
        assert _load(workspace / "package.json")["devDependencies"]["effect"] == "^3.12.0"

    def test_each_field_keeps_its_own_prefix(
        self, tmp_path: Path, ctx: UpdateContext, runner: FakeRunner
    ) -> None:
        """Fields sharing a name are rewritten with their own prefix; compound ranges stay."""
        (tmp_path / "pnpm-workspace.yaml").write_text("packages: []\n")
        write_json(
            tmp_path / "package.json",
            {
                "name": "single",
                "dependencies": {"effect": "^3.0.0"},
                "devDependencies": {"effect": "~3.0.0"},
                "optionalDependencies": {"effect": ">=3.0.0 <4"},
            },
        )
        runner.responses.update([npm_latest("effect", "3.1.0")])

        batch = update_regular_deps(ctx, ["effect"])

        assert [(u.from_, u.to) for u in batch.updates] == [("^3.0.0", "^3.1.0")]
        data = _load(tmp_path / "package.json")
        assert data["dependencies"]["effect"] == "^3.1.0"
        assert data["devDependencies"]["effect"] == "~3.1.0"
        assert data["optionalDependencies"]["effect"] == ">=3.0.0 <4"

    def test_lagging_field_updated_when_first_is_current(
        self, tmp_path: Path, ctx: UpdateContext, runner: FakeRunner
    ) -> None:
        (tmp_path / "pnpm-workspace.yaml").write_text("packages: []\n")
        write_json(
            tmp_path / "package.json",
            {
                "name": "single",
                "dependencies": {"effect": "^3.1.0"},
                "devDependencies": {"effect": "~3.0.0"},
            },
        )
        runner.responses.update([npm_latest("effect", "3.1.0")])

        update_regular_deps(ctx, ["effect"])

        assert _load(tmp_path / "package.json")["devDependencies"]["effect"] == "~3.1.0"
