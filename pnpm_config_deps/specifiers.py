"""Version specifier parsing and dependency name matching.

A specifier is the string stored against a dependency in package.json:
``^1.2.3``, ``~1.2.3``, ``1.2.3``, or an indirection such as ``catalog:``,
``catalog:silk`` or ``workspace:*``. Indirected specifiers are never
rewritten directly, so they parse to None.
"""

from __future__ import annotations

import fnmatch
import re

from .models import VersionSpecifier

INDIRECTION_MARKERS = ("catalog:", "workspace:")

_SPECIFIER_RE = re.compile(r"^(\^|~)?(\d+\.\d+\.\d+.*)$")


def is_indirect(specifier: str) -> bool:
    """Return True for catalog: and workspace: specifiers."""
    return specifier.startswith(INDIRECTION_MARKERS)


def parse_specifier(specifier: str) -> VersionSpecifier | None:
    """Split a specifier into its range prefix and version.

    Returns None for indirected or malformed specifiers, which callers leave
    untouched.

    Examples:
        "^3.0.0"      → VersionSpecifier(prefix="^", version="3.0.0")
        "1.2.3-rc.1"  → VersionSpecifier(prefix="", version="1.2.3-rc.1")
        "catalog:"    → None
        ">=1.0.0"     → None
    """
    if is_indirect(specifier):
        return None
    match = _SPECIFIER_RE.match(specifier)
    if not match:
        return None
    return VersionSpecifier(prefix=match.group(1) or "", version=match.group(2))


def format_specifier(version: str, prefix: str = "") -> str:
    """Re-apply a range prefix to a version (inverse of parse_specifier)."""
    return f"{prefix}{version}"


def matches_pattern(name: str, pattern: str) -> bool:
    """Check a dependency name against an exact name or glob pattern.

    - ``effect`` matches only ``effect``
    - ``@savvy-web/*`` matches every package in the scope
    - ``*`` matches everything

    Dots in package names are literal.
    """
    return fnmatch.fnmatchcase(name, pattern)


def matches_any(name: str, patterns: list[str] | tuple[str, ...]) -> bool:
    return any(matches_pattern(name, p) for p in patterns)
