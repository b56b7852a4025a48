"""Semver helpers for the package manager self-upgrade.

Handles parsing of the ``packageManager`` / ``devEngines.packageManager``
version strings and caret-range resolution against the published versions.
"""

from __future__ import annotations

import semver

from .models import ParsedPnpmVersion

PNPM = "pnpm"


def parse_version(version_str: str) -> semver.Version | None:
    """Parse a strict semver string, returning None when it is not one."""
    try:
        return semver.Version.parse(version_str)
    except (ValueError, TypeError):
        return None


def caret_upper_bound(base: semver.Version) -> semver.Version:
    """Exclusive upper bound of ``^base`` under npm caret semantics.

    Examples:
        ^1.2.3 → <2.0.0
        ^0.2.3 → <0.3.0
        ^0.0.3 → <0.0.4
    """
    if base.major > 0:
        return base.bump_major()
    if base.minor > 0:
        return base.bump_minor()
    return base.bump_patch()


def satisfies_caret(version: semver.Version, base: semver.Version) -> bool:
    """Return True if version falls within ``^base``."""
    return base <= version < caret_upper_bound(base.finalize_version())


def resolve_latest_in_range(versions: list[str], current: str) -> str | None:
    """Pick the highest stable version satisfying ``^current``.

    Pre-release versions are dropped before matching, so a ``11.0.0-beta.1``
    never wins and the range never crosses into the next major. Entries that
    are not valid semver are ignored.

    Returns:
        The chosen version string as it appeared in ``versions``, or None if
        nothing satisfies the range.
    """
    base = parse_version(current)
    if base is None:
        return None

    best: tuple[semver.Version, str] | None = None
    for raw in versions:
        parsed = parse_version(raw)
        if parsed is None or parsed.prerelease:
            continue
        if not satisfies_caret(parsed, base):
            continue
        if best is None or parsed > best[0]:
            best = (parsed, raw)
    return best[1] if best else None


def max_version(a: str, b: str) -> str:
    """Return whichever of two semver strings is greater."""
    return a if semver.Version.parse(a) > semver.Version.parse(b) else b


def parse_pnpm_version(
    raw: str | None, strip_pnpm_prefix: bool = False
) -> ParsedPnpmVersion | None:
    """Parse a pnpm version from ``packageManager`` or ``devEngines``.

    Handles formats:
    - ``pnpm@10.28.2`` (packageManager, exact)
    - ``pnpm@10.28.2+sha512.abc`` (packageManager, with integrity hash)
    - ``pnpm@^10.28.2`` (packageManager, with caret)
    - ``10.28.2`` / ``^10.28.2`` (devEngines version field)

    Args:
        raw: The raw field value.
        strip_pnpm_prefix: Require and strip a leading ``pnpm@`` (the
            packageManager field); other package managers yield None.
    """
    if not raw:
        return None

    value = raw.strip()
    if strip_pnpm_prefix:
        if not value.startswith(f"{PNPM}@"):
            return None
        value = value[len(PNPM) + 1 :]

    has_sha = "+" in value
    if has_sha:
        value = value.split("+", 1)[0]

    has_caret = value.startswith("^")
    if has_caret:
        value = value[1:]

    if parse_version(value) is None:
        return None
    return ParsedPnpmVersion(version=value, has_caret=has_caret, has_sha=has_sha)


def format_pnpm_version(version: str, has_caret: bool) -> str:
    return f"^{version}" if has_caret else version
