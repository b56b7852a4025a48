"""Update pipeline: snapshot → update → install → diff → changesets.

This module orchestrates one pnpm-config-deps run:
1. Capture the lockfile before touching anything
2. Update config dependencies in pnpm-workspace.yaml
3. Update regular dependencies in every package.json
4. Upgrade pnpm itself within its ``^`` range
5. Run ``pnpm install`` so the lockfile reflects the new specifiers
6. Re-format pnpm-workspace.yaml
7. Run any custom commands
8. Capture the lockfile again and diff it against the first snapshot
9. Write changesets for the affected packages

Committing, pushing and opening pull requests are left to the caller.
"""

from __future__ import annotations

from .changesets import create_changesets
from .config import Settings
from .config_deps import update_config_deps
from .errors import CommandError, LookupFailure, PnpmDepsError, WriteFailure
from .lockfile import capture_lockfile_state, compare_lockfiles
from .models import DependencyFailure, DependencyKind, LockfileChange, UpdateReport
from .regular_deps import update_regular_deps
from .report import generate_summary
from .shell import UpdateContext, debug_state, info, shell_command, step, warn
from .upgrade import upgrade_pnpm
from .versions import PNPM
from .workspace import discover_packages, format_workspace_yaml, importer_package_map


def install(ctx: UpdateContext) -> None:
    """Run ``pnpm install`` to refresh the lockfile."""
    step("Running pnpm install")
    ctx.runner.run("pnpm", "install")


def run_commands(ctx: UpdateContext, commands: list[str]) -> tuple[list[str], list[CommandError]]:
    """Run custom commands in order.

    Every command is attempted even if an earlier one fails.

    Returns:
        Tuple of (commands that succeeded, errors for those that failed).
    """
    step("Running custom commands")
    successful: list[str] = []
    failed: list[CommandError] = []
    for command in commands:
        info(f"Running: {command}")
        try:
            shell_command(ctx.runner, command)
        except CommandError as exc:
            warn(f"Command failed: {command}")
            debug_state(
                "Command error",
                {"command": command, "exit_code": exc.exit_code, "stderr": exc.stderr},
            )
            failed.append(exc)
        else:
            successful.append(command)
    return successful, failed


def run_update(ctx: UpdateContext, settings: Settings, *, dry_run: bool = False) -> UpdateReport:
    """Execute the full update pipeline.

    Args:
        ctx: Workspace root and command executor.
        settings: What to update.
        dry_run: Detect and report changes without writing changesets.

    Raises:
        PnpmDepsError: If a primary input is unreadable, ``pnpm install``
            fails, or any custom command fails.
    """
    report = UpdateReport()

    step("Capturing lockfile state (before)")
    before = capture_lockfile_state(ctx.root)

    config_batch = update_config_deps(ctx, settings.config_dependencies)
    regular_batch = update_regular_deps(ctx, settings.dependencies)
    report.updates = config_batch.updates + regular_batch.updates
    report.failures = config_batch.failures + regular_batch.failures

    if settings.update_pnpm:
        try:
            report.upgrade = upgrade_pnpm(ctx)
        except (LookupFailure, CommandError, WriteFailure) as exc:
            warn(f"pnpm upgrade skipped: {exc}")
            report.failures.append(DependencyFailure(dependency=PNPM, reason=str(exc)))

    if report.updates or report.upgrade or settings.dependencies:
        install(ctx)

    step("Formatting pnpm-workspace.yaml")
    format_workspace_yaml(ctx.root)

    if settings.run:
        _, failed = run_commands(ctx, settings.run)
        if failed:
            raise PnpmDepsError(
                f"{len(failed)} command(s) failed: {', '.join(e.command for e in failed)}"
            )

    step("Capturing lockfile state (after)")
    after = capture_lockfile_state(ctx.root)

    step("Detecting changes")
    importer_map = importer_package_map(ctx.root, discover_packages(ctx.root))
    report.changes = compare_lockfiles(before, after, importer_map)

    if not report.has_changes:
        info("No dependency updates available")
        return report

    if settings.changesets and not dry_run:
        step("Creating changesets")
        config_changes = [
            LockfileChange.from_update(u) for u in report.updates if u.kind is DependencyKind.CONFIG
        ]
        report.changesets = create_changesets(ctx.root, config_changes + report.changes)

    step("Summary")
    print(generate_summary(report.updates, report.changesets, dry_run))
    return report
