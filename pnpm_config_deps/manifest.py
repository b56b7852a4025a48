"""package.json reading and writing.

Manifests are rewritten with the indentation they were read with (tabs or
N spaces) so a rewrite only shows up as changed values in a diff.
"""

from __future__ import annotations

import json
import os
import re
import tempfile
from pathlib import Path
from typing import Any

from .errors import ParseError, WriteFailure

_INDENT_RE = re.compile(r'^([ \t]+)"', re.MULTILINE)


def detect_indent(content: str) -> str | int:
    """Detect the indentation of a JSON document.

    Looks at the first indented key line. Returns ``"\\t"`` for tabs, the
    number of spaces otherwise, and ``"\\t"`` when nothing is indented.
    """
    match = _INDENT_RE.search(content)
    if match:
        indent = match.group(1)
        if "\t" in indent:
            return "\t"
        return len(indent)
    return "\t"


def parse_manifest(content: str, path: Path) -> dict[str, Any]:
    try:
        data = json.loads(content)
    except json.JSONDecodeError as exc:
        raise ParseError(str(path), f"Invalid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ParseError(str(path), "expected a JSON object at the top level")
    return data


def read_manifest(path: Path) -> tuple[dict[str, Any], str | int]:
    """Load a package.json, returning its data and detected indentation."""
    try:
        content = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ParseError(str(path), str(exc)) from exc
    return parse_manifest(content, path), detect_indent(content)


def load_manifest(path: Path) -> dict[str, Any]:
    return read_manifest(path)[0]


def dump_manifest(data: dict[str, Any], indent: str | int) -> str:
    return json.dumps(data, indent=indent, ensure_ascii=False) + "\n"


def write_atomic(path: Path, content: str) -> None:
    """Replace a file's content in one step via a sibling temp file."""
    try:
        fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(content)
            if path.exists():
                os.chmod(tmp, path.stat().st_mode)
            os.replace(tmp, path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
    except OSError as exc:
        raise WriteFailure(str(path), str(exc)) from exc


def save_manifest(path: Path, data: dict[str, Any], indent: str | int) -> None:
    write_atomic(path, dump_manifest(data, indent))
