"""CLI entry point for pnpm-config-deps."""

from __future__ import annotations

from pathlib import Path

import click

from .changesets import analyze_affected_packages, create_changesets
from .config import load_settings
from .config_deps import update_config_deps
from .errors import PnpmDepsError
from .lockfile import compare_lockfiles, load_lockfile
from .models import UpdateBatch
from .pipeline import run_update
from .regular_deps import update_regular_deps
from .report import generate_commit_message, generate_pr_body
from .shell import ShellRunner, UpdateContext, set_debug
from .upgrade import upgrade_pnpm
from .workspace import discover_packages, format_workspace_yaml, importer_package_map


def _context(ctx: click.Context) -> UpdateContext:
    root: Path = ctx.obj["root"]
    return UpdateContext(root=root, runner=ShellRunner(root))


def _echo_batch(batch: UpdateBatch) -> None:
    for u in batch.updates:
        where = f" ({u.owning_package})" if u.owning_package else ""
        click.echo(f"✓ {u.dependency}{where}: {u.from_ or 'new'} → {u.to}")
    for f in batch.failures:
        click.echo(f"✗ {f.dependency}: {f.reason}", err=True)
    if not batch.updates and not batch.failures:
        click.echo("Everything is up to date.")


@click.group()
@click.version_option(package_name="pnpm-config-deps")
@click.option(
    "--root",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
    show_default=True,
    help="Workspace root (directory holding pnpm-workspace.yaml).",
)
@click.option("--debug", is_flag=True, help="Print [DEBUG] state dumps.")
@click.pass_context
def cli(ctx: click.Context, root: Path, debug: bool) -> None:
    """Keep pnpm config dependencies, package specifiers and pnpm itself current."""
    ctx.ensure_object(dict)
    ctx.obj["root"] = root.resolve()
    ctx.obj["debug"] = debug
    set_debug(debug)


@cli.command()
@click.option(
    "--config-dep",
    "config_dependencies",
    multiple=True,
    help="Config dependency to update (exact name).",
)
@click.option("--dep", "dependencies", multiple=True, help="Dependency name or glob to update.")
@click.option(
    "--update-pnpm/--no-update-pnpm", default=None, help="Upgrade pnpm within its ^ range."
)
@click.option("--run", "run", multiple=True, help="Command to run after updating.")
@click.option(
    "--changesets/--no-changesets",
    default=None,
    help="Write changesets for affected packages.",
)
@click.option("--dry-run", is_flag=True, help="Report changes without writing changesets.")
@click.option(
    "--commit-message-file",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write a commit message for the updates to this file.",
)
@click.option(
    "--pr-body-file",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write a pull request body for the updates to this file.",
)
@click.option("--bot-name", help="App slug to sign the commit message off as.")
@click.pass_context
def update(
    ctx: click.Context,
    config_dependencies: tuple[str, ...],
    dependencies: tuple[str, ...],
    update_pnpm: bool | None,
    run: tuple[str, ...],
    changesets: bool | None,
    dry_run: bool,
    commit_message_file: Path | None,
    pr_body_file: Path | None,
    bot_name: str | None,
) -> None:
    """Run the whole update pipeline.

    Committing and opening a pull request are left to the caller; the
    message files give it the text to use.
    """
    update_ctx = _context(ctx)
    try:
        settings = load_settings(
            update_ctx.root,
            config_dependencies=list(config_dependencies),
            dependencies=list(dependencies),
            update_pnpm=update_pnpm,
            run=list(run),
            changesets=changesets,
        )
        if settings.debug:
            set_debug(True)
        report = run_update(update_ctx, settings, dry_run=dry_run)
    except PnpmDepsError as exc:
        raise click.ClickException(str(exc)) from exc
    for f in report.failures:
        click.echo(f"✗ {f.dependency}: {f.reason}", err=True)
    if report.updates:
        if commit_message_file:
            commit_message_file.write_text(generate_commit_message(report.updates, bot_name) + "\n")
        if pr_body_file:
            pr_body_file.write_text(generate_pr_body(report.updates, report.changesets) + "\n")


@cli.command("config")
@click.argument("deps", nargs=-1, required=True)
@click.pass_context
def config_cmd(ctx: click.Context, deps: tuple[str, ...]) -> None:
    """Update config dependencies in pnpm-workspace.yaml."""
    try:
        batch = update_config_deps(_context(ctx), list(deps))
    except PnpmDepsError as exc:
        raise click.ClickException(str(exc)) from exc
    _echo_batch(batch)


@cli.command()
@click.argument("patterns", nargs=-1, required=True)
@click.pass_context
def regular(ctx: click.Context, patterns: tuple[str, ...]) -> None:
    """Update matching dependencies in every package.json."""
    try:
        batch = update_regular_deps(_context(ctx), list(patterns))
    except PnpmDepsError as exc:
        raise click.ClickException(str(exc)) from exc
    _echo_batch(batch)


@cli.command("upgrade-pnpm")
@click.pass_context
def upgrade_pnpm_cmd(ctx: click.Context) -> None:
    """Upgrade pnpm to the newest release in its ^ range."""
    try:
        result = upgrade_pnpm(_context(ctx))
    except PnpmDepsError as exc:
        raise click.ClickException(str(exc)) from exc
    if result is None:
        click.echo("pnpm is already up to date.")
    else:
        click.echo(f"✓ pnpm: {result.from_} → {result.to}")


@cli.command()
@click.argument("before", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("after", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--changesets", "write_changesets", is_flag=True, help="Write changesets for the changes."
)
@click.pass_context
def diff(ctx: click.Context, before: Path, after: Path, write_changesets: bool) -> None:
    """Show dependency changes between two lockfiles."""
    root: Path = ctx.obj["root"]
    try:
        importer_map = importer_package_map(root, discover_packages(root))
        changes = compare_lockfiles(load_lockfile(before), load_lockfile(after), importer_map)
    except PnpmDepsError as exc:
        raise click.ClickException(str(exc)) from exc

    for change in changes:
        packages = ", ".join(change.affected_packages) or "(none)"
        click.echo(f"{change.dependency}: {change.from_ or 'new'} → {change.to} [{packages}]")
    affected = analyze_affected_packages(changes)
    if affected:
        click.echo(f"Affected packages: {', '.join(p.name for p in affected)}")
    if write_changesets:
        for artifact in create_changesets(root, changes):
            click.echo(f"✓ Wrote .changeset/{artifact.id}.md")


@cli.command("format-workspace")
@click.pass_context
def format_workspace(ctx: click.Context) -> None:
    """Sort and re-serialize pnpm-workspace.yaml."""
    try:
        format_workspace_yaml(ctx.obj["root"])
    except PnpmDepsError as exc:
        raise click.ClickException(str(exc)) from exc
