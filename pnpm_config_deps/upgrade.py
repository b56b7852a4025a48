"""pnpm self-upgrade.

Reads the pnpm version from the ``packageManager`` and
``devEngines.packageManager`` fields of the root package.json, resolves the
newest stable release inside the ``^`` range, upgrades via ``corepack use``
and then brings ``devEngines.packageManager.version`` in line.
"""

from __future__ import annotations

from typing import Any

from .manifest import read_manifest, save_manifest
from .models import ParsedPnpmVersion, PnpmUpgradeResult
from .registry import query_available_versions
from .shell import UpdateContext, debug_state, info, step
from .versions import (
    PNPM,
    format_pnpm_version,
    max_version,
    parse_pnpm_version,
    resolve_latest_in_range,
)


def read_pnpm_fields(
    manifest: dict[str, Any],
) -> tuple[ParsedPnpmVersion | None, ParsedPnpmVersion | None]:
    """Parse ``(packageManager, devEngines.packageManager)`` from a manifest.

    ``devEngines.packageManager`` only counts when its ``name`` is pnpm.
    """
    package_manager = manifest.get("packageManager")
    pm_parsed = (
        parse_pnpm_version(package_manager, strip_pnpm_prefix=True)
        if isinstance(package_manager, str)
        else None
    )

    dev_engines_pm = _dev_engines_pm(manifest)
    de_parsed = None
    if dev_engines_pm is not None and dev_engines_pm.get("name") == PNPM:
        version = dev_engines_pm.get("version")
        if isinstance(version, str):
            de_parsed = parse_pnpm_version(version)
    return pm_parsed, de_parsed


def _dev_engines_pm(manifest: dict[str, Any]) -> dict[str, Any] | None:
    dev_engines = manifest.get("devEngines")
    if not isinstance(dev_engines, dict):
        return None
    pm = dev_engines.get("packageManager")
    return pm if isinstance(pm, dict) else None


def resolve_upgrade_target(
    versions: list[str],
    pm_parsed: ParsedPnpmVersion | None,
    de_parsed: ParsedPnpmVersion | None,
) -> tuple[str, str] | None:
    """Work out ``(current, target)`` for an upgrade.

    Each present field resolves within its own ``^`` range and the greater
    result wins. Current is the greater of the two declared versions.

    Returns:
        None when nothing is declared, nothing satisfies the range, or the
        target equals the current version.
    """
    resolved = [
        r
        for r in (
            resolve_latest_in_range(versions, p.version)
            for p in (pm_parsed, de_parsed)
            if p is not None
        )
        if r is not None
    ]
    if not resolved:
        return None
    target = resolved[0] if len(resolved) == 1 else max_version(*resolved)

    declared = [p.version for p in (pm_parsed, de_parsed) if p is not None]
    current = declared[0] if len(declared) == 1 else max_version(*declared)
    if target == current:
        return None
    return current, target


def upgrade_pnpm(ctx: UpdateContext) -> PnpmUpgradeResult | None:
    """Upgrade pnpm to the newest release within the declared ``^`` range.

    1. Read root package.json and parse both version fields
    2. Query ``npm view pnpm versions``
    3. Resolve the target version (stable releases only, no major jump)
    4. ``corepack use pnpm@<target>`` rewrites packageManager
    5. Re-read package.json and update devEngines.packageManager.version,
       keeping its caret style and the file's indentation

    Returns:
        The upgrade result, or None if no upgrade was needed.

    Raises:
        ParseError: If the root package.json is missing or invalid.
        LookupFailure: If the pnpm version list cannot be fetched.
        CommandError: If ``corepack use`` fails.
        WriteFailure: If package.json cannot be written.
    """
    step("Checking for pnpm upgrade")
    path = ctx.root / "package.json"
    manifest, _ = read_manifest(path)

    pm_parsed, de_parsed = read_pnpm_fields(manifest)
    if pm_parsed is None and de_parsed is None:
        info("No pnpm version fields found in package.json, skipping upgrade")
        return None
    debug_state(
        "pnpm version fields",
        {
            "packageManager": pm_parsed.model_dump() if pm_parsed else None,
            "devEngines": de_parsed.model_dump() if de_parsed else None,
        },
    )

    versions = query_available_versions(ctx, PNPM)
    target = resolve_upgrade_target(versions, pm_parsed, de_parsed)
    if target is None:
        info("pnpm is already the latest in range")
        return None
    current, resolved = target

    package_manager_updated = False
    if pm_parsed is not None:
        info(f"Running corepack use {PNPM}@{resolved}")
        ctx.runner.run("corepack", "use", f"{PNPM}@{resolved}")
        package_manager_updated = True

    dev_engines_updated = False
    if de_parsed is not None:
        # corepack may have reformatted package.json
        updated, indent = read_manifest(path)
        dev_engines_pm = _dev_engines_pm(updated)
        if dev_engines_pm is not None:
            dev_engines_pm["version"] = format_pnpm_version(resolved, de_parsed.has_caret)
            save_manifest(path, updated, indent)
            dev_engines_updated = True

    info(f"pnpm: {current} → {resolved}")
    return PnpmUpgradeResult(
        from_=current,
        to=resolved,
        package_manager_updated=package_manager_updated,
        dev_engines_updated=dev_engines_updated,
    )
