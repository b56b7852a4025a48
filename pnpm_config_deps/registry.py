"""npm registry queries run through the injected command executor.

Every function raises LookupFailure when the command fails or its output is
not what ``npm view --json`` should produce, so callers can skip the one
dependency and carry on.
"""

from __future__ import annotations

import json
from typing import Any

from .errors import CommandError, LookupFailure
from .shell import UpdateContext, debug


def _npm_view(ctx: UpdateContext, name: str, *args: str) -> Any:
    try:
        output = ctx.runner.run("npm", "view", *args, "--json")
    except CommandError as exc:
        raise LookupFailure(name, exc.stderr or str(exc)) from exc
    debug(f"npm view {' '.join(args)} → {output}")
    try:
        return json.loads(output)
    except json.JSONDecodeError as exc:
        raise LookupFailure(name, f"unparsable npm output: {exc}") from exc


def query_latest_version(ctx: UpdateContext, name: str) -> str:
    """Return the ``latest`` dist-tag of a package."""
    parsed = _npm_view(ctx, name, name, "dist-tags.latest")
    if not isinstance(parsed, str) or not parsed:
        raise LookupFailure(name, f"expected a version string, got {parsed!r}")
    return parsed


def query_config_version(ctx: UpdateContext, name: str) -> tuple[str, str]:
    """Return ``(version, integrity)`` for the latest release of a package."""
    parsed = _npm_view(ctx, name, f"{name}@latest", "version", "dist.integrity")
    if not isinstance(parsed, dict):
        raise LookupFailure(name, f"expected an object, got {parsed!r}")
    version = parsed.get("version")
    integrity = parsed.get("dist.integrity")
    if not isinstance(version, str) or not isinstance(integrity, str):
        raise LookupFailure(name, "missing version or dist.integrity")
    return version, integrity


def query_available_versions(ctx: UpdateContext, name: str) -> list[str]:
    """Return every published version of a package."""
    parsed = _npm_view(ctx, name, name, "versions")
    # npm prints a bare string when only one version exists
    if isinstance(parsed, str):
        return [parsed]
    if not isinstance(parsed, list) or not all(isinstance(v, str) for v in parsed):
        raise LookupFailure(name, "expected a list of version strings")
    return parsed
