"""Tests for pnpm_config_deps.cli."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
import yaml
from click.testing import CliRunner

from conftest import FakeRunner, npm_config, npm_latest
from pnpm_config_deps.cli import cli
from pnpm_config_deps.models import DependencyKind, DependencyUpdateResult, UpdateReport


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def invoke(workspace: Path, fake_runner: FakeRunner):
    def run(*args: str):
        with patch("pnpm_config_deps.cli.ShellRunner", return_value=fake_runner):
            return CliRunner().invoke(cli, ["--root", str(workspace), *args])

    return run


class TestConfigCommand:
    def test_reports_updates(self, invoke, fake_runner: FakeRunner, workspace: Path) -> None:
        fake_runner.responses.update([npm_config("@savvy-web/silk", "0.7.0", "sha512-new==")])

        result = invoke("config", "@savvy-web/silk")

        assert result.exit_code == 0
        assert "✓ @savvy-web/silk: 0.6.3 → 0.7.0" in result.output
        assert "0.7.0+sha512-new==" in (workspace / "pnpm-workspace.yaml").read_text()

    def test_reports_failures(self, invoke) -> None:
        result = invoke("config", "missing")

        assert result.exit_code == 0
        assert "✗ missing: not declared in configDependencies" in result.output

    def test_requires_arguments(self, invoke) -> None:
        assert invoke("config").exit_code != 0


class TestRegularCommand:
    def test_reports_owner(self, invoke, fake_runner: FakeRunner) -> None:
        fake_runner.responses.update([npm_latest("vitest", "1.6.0")])

        result = invoke("regular", "vitest")

        assert result.exit_code == 0
        assert "✓ vitest (@savvy-web/core): ~1.2.0 → ~1.6.0" in result.output

    def test_nothing_matched(self, invoke) -> None:
        result = invoke("regular", "left-pad")

        assert "Everything is up to date." in result.output

    def test_unreadable_root_manifest(self, invoke, workspace: Path) -> None:
        (workspace / "package.json").write_text("{")

        result = invoke("regular", "effect")

        assert result.exit_code == 1
        assert "Failed to parse" in result.output


class TestUpgradePnpmCommand:
    def test_no_fields(self, invoke) -> None:
        result = invoke("upgrade-pnpm")

        assert result.exit_code == 0
        assert "pnpm is already up to date." in result.output


class TestDiffCommand:
    def test_lists_changes(self, invoke, workspace: Path, tmp_path_factory: pytest.TempPathFactory) -> None:
        saved = tmp_path_factory.mktemp("locks")
        for name, spec in (("before.yaml", "^3.0.0"), ("after.yaml", "^3.12.0")):
            data = {
                "importers": {
                    "packages/core": {"dependencies": {"effect": {"specifier": spec, "version": spec[1:]}}}
                }
            }
            (saved / name).write_text(yaml.safe_dump(data))

        result = invoke("diff", str(saved / "before.yaml"), str(saved / "after.yaml"))

        assert result.exit_code == 0
        assert "effect: ^3.0.0 → ^3.12.0 [@savvy-web/core]" in result.output
        assert "Affected packages: @savvy-web/core" in result.output


class TestFormatWorkspaceCommand:
    def test_sorts_file(self, invoke, workspace: Path) -> None:
        result = invoke("format-workspace")

        assert result.exit_code == 0
        content = (workspace / "pnpm-workspace.yaml").read_text()
        assert content.index('"@savvy-web/silk"') < content.index("typescript")


class TestUpdateCommand:
    def test_invalid_settings(self, invoke) -> None:
        result = invoke("update", "--no-update-pnpm")

        assert result.exit_code == 1
        assert "Invalid settings" in result.output

    @patch("pnpm_config_deps.cli.run_update")
    def test_passes_options_through(self, mock_run_update: MagicMock, invoke) -> None:
        mock_run_update.return_value = MagicMock(failures=[])

        result = invoke("update", "--dep", "effect", "--dep", "@effect/*", "--no-changesets", "--dry-run")

        assert result.exit_code == 0
        _, settings = mock_run_update.call_args.args
        assert settings.dependencies == ["effect", "@effect/*"]
        assert settings.changesets is False
        assert mock_run_update.call_args.kwargs == {"dry_run": True}

    @patch("pnpm_config_deps.cli.run_update")
    def test_writes_message_files(
        self, mock_run_update: MagicMock, invoke, tmp_path_factory: pytest.TempPathFactory
    ) -> None:
        out = tmp_path_factory.mktemp("out")
        mock_run_update.return_value = UpdateReport(
            updates=[
                DependencyUpdateResult(
                    dependency="effect",
                    from_="^3.0.0",
                    to="^3.12.0",
                    kind=DependencyKind.REGULAR,
                    owning_package="(root)",
                )
            ]
        )

        result = invoke(
            "update",
            "--dep",
            "effect",
            "--commit-message-file",
            str(out / "msg.txt"),
            "--pr-body-file",
            str(out / "body.md"),
            "--bot-name",
            "savvy-bot",
        )

        assert result.exit_code == 0
        message = (out / "msg.txt").read_text()
        assert message.startswith("chore(deps): update 1 regular dependencies")
        assert "savvy-bot[bot]" in message
        assert (out / "body.md").read_text().startswith("## Dependency Updates")
