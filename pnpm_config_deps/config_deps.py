"""Config dependency updates via direct pnpm-workspace.yaml editing.

Config dependencies are declared once in pnpm-workspace.yaml as
``name: version+integrity``. Rather than ``pnpm add --config`` (which promotes
workspace dependencies into the default catalog under ``catalogMode: strict``)
we ask npm for the latest version and integrity and edit the file ourselves.
"""

from __future__ import annotations

from .errors import LookupFailure, WriteFailure
from .models import DependencyKind, DependencyUpdateResult, UpdateBatch
from .registry import query_config_version
from .shell import UpdateContext, info, step, warn
from .workspace import (
    CONFIG_DEPENDENCIES_KEY,
    WORKSPACE_FILE,
    format_config_entry,
    parse_config_entry,
    read_workspace_yaml,
    write_workspace_yaml,
)


def update_config_deps(ctx: UpdateContext, deps: list[str]) -> UpdateBatch:
    """Bring the named config dependencies up to their latest release.

    Names missing from ``configDependencies``, failed registry queries and
    unparsable entries are recorded as failures and skipped; the rest of the
    batch still runs. The file is rewritten once, sorted, and only if at
    least one entry changed.

    Raises:
        ParseError: If pnpm-workspace.yaml exists but cannot be parsed.
    """
    batch = UpdateBatch()
    if not deps:
        return batch

    step("Updating config dependencies")

    content = read_workspace_yaml(ctx.root)
    if content is None:
        warn(f"{WORKSPACE_FILE} not found at {ctx.root}")
        return batch

    config_deps = content.get(CONFIG_DEPENDENCIES_KEY)
    if not isinstance(config_deps, dict):
        info(f"No {CONFIG_DEPENDENCIES_KEY} section in {WORKSPACE_FILE}")
        return batch

    changed = False
    for dep in deps:
        current_entry = config_deps.get(dep)
        if current_entry is None:
            warn(f"Config dependency {dep} not found in {WORKSPACE_FILE}, skipping")
            batch.fail(dep, f"not declared in {CONFIG_DEPENDENCIES_KEY}")
            continue

        parsed = parse_config_entry(str(current_entry))
        if parsed is None:
            warn(f"Could not parse config dependency entry for {dep}: {current_entry!r}")
            batch.fail(dep, f"unparsable entry {current_entry!r}")
            continue
        current_version, _ = parsed

        info(f"Querying npm for latest version of {dep}")
        try:
            latest_version, integrity = query_config_version(ctx, dep)
        except LookupFailure as exc:
            warn(str(exc))
            batch.fail(dep, exc.reason)
            continue

        if current_version == latest_version:
            info(f"{dep} is already up-to-date at {current_version}")
            continue

        config_deps[dep] = format_config_entry(latest_version, integrity)
        changed = True
        batch.updates.append(
            DependencyUpdateResult(
                dependency=dep,
                from_=current_version,
                to=latest_version,
                kind=DependencyKind.CONFIG,
                owning_package=None,
            )
        )
        info(f"{dep}: {current_version} → {latest_version}")

    if changed:
        try:
            write_workspace_yaml(ctx.root, content)
        except WriteFailure as exc:
            warn(str(exc))
            for update in batch.updates:
                batch.fail(update.dependency, exc.reason)
            batch.updates.clear()

    return batch
