"""Tests for pnpm_config_deps.report."""

from __future__ import annotations

from pnpm_config_deps.models import ChangesetArtifact, DependencyKind, DependencyUpdateResult
from pnpm_config_deps.report import (
    clean_version,
    generate_commit_message,
    generate_pr_body,
    generate_summary,
)

UPDATES = [
    DependencyUpdateResult(
        dependency="@savvy-web/silk", from_="0.6.3", to="0.7.0", kind=DependencyKind.CONFIG
    ),
    DependencyUpdateResult(
        dependency="effect",
        from_="^3.0.0",
        to="^3.12.0",
        kind=DependencyKind.REGULAR,
        owning_package="@savvy-web/core",
    ),
]
CHANGESETS = [
    ChangesetArtifact(
        id="happy-cloud-1a2b3c4d",
        affected_packages=["@savvy-web/core"],
        summary="Update dependencies:\n\n**Dependencies:**\n- effect: ^3.0.0 → ^3.12.0",
    )
]


class TestCleanVersion:
    def test_strips_integrity(self) -> None:
        assert clean_version("0.7.0+sha512-abc==") == "0.7.0"

    def test_none(self) -> None:
        assert clean_version(None) is None


class TestGenerateCommitMessage:
    def test_default_bot(self) -> None:
        message = generate_commit_message(UPDATES)

        assert message.startswith("chore(deps): update 1 config and 1 regular dependencies\n")
        assert "- effect: ^3.0.0 -> ^3.12.0" in message
        assert message.endswith(
            "Signed-off-by: github-actions[bot] "
            "<41898282+github-actions[bot]@users.noreply.github.com>"
        )

    def test_named_bot(self) -> None:
        message = generate_commit_message(UPDATES[:1], bot_name="savvy-bot")

        assert message.startswith("chore(deps): update 1 config dependencies")
        assert "Signed-off-by: savvy-bot[bot] <savvy-bot[bot]@users.noreply.github.com>" in message


class TestGeneratePrBody:
    def test_sections(self) -> None:
        body = generate_pr_body(UPDATES, CHANGESETS)

        assert "Updates 1 config and 1 regular dependencies." in body
        assert "### Config Dependencies" in body
        assert "| [`effect`](https://www.npmjs.com/package/effect) | ^3.0.0 | ^3.12.0 |" in body
        assert "**Changeset:** `happy-cloud-1a2b3c4d`" in body
        assert "**Type:** patch" in body

    def test_new_dependency(self) -> None:
        update = DependencyUpdateResult(dependency="zod", to="^3.23.0", kind=DependencyKind.REGULAR)

        assert "| _new_ | ^3.23.0 |" in generate_pr_body([update], [])


class TestGenerateSummary:
    def test_counts(self) -> None:
        summary = generate_summary(UPDATES, CHANGESETS)

        assert "- **Dependencies updated:** 2" in summary
        assert "- **Changesets created:** 1" in summary
        assert "PR Body Preview" not in summary

    def test_dry_run_preview(self) -> None:
        summary = generate_summary(UPDATES, [], dry_run=True)

        assert "### PR Body Preview" in summary
        assert "## Dependency Updates" in summary
