"""Commit message, pull request body and run summary text."""

from __future__ import annotations

from .models import ChangesetArtifact, DependencyKind, DependencyUpdateResult

NPM_URL = "https://www.npmjs.com/package/{}"
DEFAULT_BOT = "github-actions[bot]"
DEFAULT_BOT_EMAIL = "41898282+github-actions[bot]@users.noreply.github.com"


def clean_version(version: str | None) -> str | None:
    """Strip a ``+sha512-...`` integrity suffix from a version."""
    if not version:
        return None
    return version.split("+", 1)[0]


def _split(
    updates: list[DependencyUpdateResult],
) -> tuple[list[DependencyUpdateResult], list[DependencyUpdateResult]]:
    config = [u for u in updates if u.kind is DependencyKind.CONFIG]
    regular = [u for u in updates if u.kind is DependencyKind.REGULAR]
    return config, regular


def _counts(updates: list[DependencyUpdateResult]) -> list[str]:
    config, regular = _split(updates)
    parts = []
    if config:
        parts.append(f"{len(config)} config")
    if regular:
        parts.append(f"{len(regular)} regular")
    return parts


def generate_commit_message(
    updates: list[DependencyUpdateResult], bot_name: str | None = None
) -> str:
    """Build a conventional commit message with a sign-off for the bot.

    Args:
        updates: Everything that was updated.
        bot_name: App slug to sign off as; defaults to github-actions.
    """
    if bot_name:
        name, email = f"{bot_name}[bot]", f"{bot_name}[bot]@users.noreply.github.com"
    else:
        name, email = DEFAULT_BOT, DEFAULT_BOT_EMAIL

    listing = "\n".join(f"- {u.dependency}: {u.from_ or 'new'} -> {u.to}" for u in updates)
    return (
        f"chore(deps): update {' and '.join(_counts(updates))} dependencies\n\n"
        f"Updated dependencies:\n{listing}\n\n"
        f"Signed-off-by: {name} <{email}>"
    )


def _update_table(
    updates: list[DependencyUpdateResult], *, link: bool, clean: bool
) -> list[str]:
    lines = ["| Package | From | To |", "|---------|------|-----|"]
    for u in updates:
        from_ = (clean_version(u.from_) if clean else u.from_) or "_new_"
        to = clean_version(u.to) if clean else u.to
        if link and "*" not in u.dependency:
            pkg = f"[`{u.dependency}`]({NPM_URL.format(u.dependency)})"
        else:
            pkg = f"`{u.dependency}`"
        lines.append(f"| {pkg} | {from_} | {to} |")
    lines.append("")
    return lines


def _changeset_details(changesets: list[ChangesetArtifact], *, with_type: bool) -> list[str]:
    lines: list[str] = []
    for cs in changesets:
        label = ", ".join(cs.affected_packages) if cs.affected_packages else "root workspace"
        lines += ["<details>", f"<summary>{label}</summary>", "", f"**Changeset:** `{cs.id}`"]
        if with_type:
            lines.append(f"**Type:** {cs.bump}")
        lines += ["", "```", cs.summary, "```", "", "</details>", ""]
    return lines


def generate_pr_body(
    updates: list[DependencyUpdateResult], changesets: list[ChangesetArtifact]
) -> str:
    """Render a Dependabot-style pull request body."""
    config, regular = _split(updates)
    parts = _counts(updates)
    noun = "dependencies" if len(parts) > 1 else "dependency"

    lines = ["## Dependency Updates", "", f"Updates {' and '.join(parts)} {noun}.", ""]
    if config:
        lines += ["### Config Dependencies", ""]
        lines += _update_table(config, link=True, clean=True)
    if regular:
        lines += ["### Regular Dependencies", ""]
        lines += _update_table(regular, link=True, clean=False)
    if changesets:
        lines += [
            "### Changesets",
            "",
            f"{len(changesets)} changeset(s) created for version management.",
            "",
        ]
        lines += _changeset_details(changesets, with_type=True)
    lines += ["---", "", "_This PR was automatically created by pnpm-config-deps_"]
    return "\n".join(lines)


def generate_summary(
    updates: list[DependencyUpdateResult],
    changesets: list[ChangesetArtifact],
    dry_run: bool = False,
) -> str:
    """Render the end-of-run summary, with a PR body preview on dry runs."""
    config, regular = _split(updates)
    lines = [
        "### Summary",
        "",
        f"- **Dependencies updated:** {len(updates)}",
        f"- **Changesets created:** {len(changesets)}",
        "",
        "### Updated Dependencies",
        "",
    ]
    if config:
        lines += ["#### Config Dependencies", ""]
        lines += _update_table(config, link=False, clean=True)
    if regular:
        lines += ["#### Regular Dependencies", ""]
        lines += _update_table(regular, link=False, clean=False)
    if changesets:
        lines += ["### Changesets Created", ""]
        lines += _changeset_details(changesets, with_type=False)
    if dry_run and updates:
        lines += [
            "### PR Body Preview",
            "",
            "<details>",
            "<summary>View PR body</summary>",
            "",
            generate_pr_body(updates, changesets),
            "",
            "</details>",
        ]
    return "\n".join(lines)
