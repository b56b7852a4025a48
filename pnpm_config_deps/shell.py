"""Command execution and console output helpers.

Provides the command executor capability used for registry queries and the
package manager's own commands, plus output formatting helpers shared by the
pipeline and CLI.
"""

from __future__ import annotations

import json
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from .errors import CommandError

_debug_enabled = False


class CommandRunner(Protocol):
    """Anything that can run a command and hand back its stdout."""

    def run(self, *args: str) -> str:
        """Run a command, returning stripped stdout or raising CommandError."""
        ...


class ShellRunner:
    """Run commands as subprocesses rooted at a working directory.

    Args:
        cwd: Directory the commands run in.
        timeout: Seconds before a command is abandoned. None waits forever.
    """

    def __init__(self, cwd: Path, timeout: float | None = 300) -> None:
        self.cwd = cwd
        self.timeout = timeout

    def run(self, *args: str) -> str:
        try:
            result = subprocess.run(
                list(args),
                cwd=self.cwd,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            raise CommandError(" ".join(args), -1, str(exc)) from exc
        if result.returncode != 0:
            raise CommandError(" ".join(args), result.returncode, result.stderr.strip())
        return result.stdout.strip()


def shell_command(runner: CommandRunner, command: str) -> str:
    """Run an arbitrary shell string (e.g. ``pnpm lint:fix``) through sh -c."""
    return runner.run("sh", "-c", command)


@dataclass(frozen=True)
class UpdateContext:
    """Workspace root plus the command executor every component runs against."""

    root: Path
    runner: CommandRunner


def set_debug(enabled: bool) -> None:
    """Turn [DEBUG] output on or off."""
    global _debug_enabled
    _debug_enabled = enabled


def step(msg: str) -> None:
    """Print a visually distinct step header.

    Used to separate major phases of the update pipeline in terminal output.
    """
    print(f"\n{'─' * 60}\n{msg}\n{'─' * 60}")


def info(msg: str) -> None:
    print(f"  {msg}")


def warn(msg: str) -> None:
    """Print a non-fatal warning to stderr."""
    print(f"WARNING: {msg}", file=sys.stderr)


def debug(msg: str) -> None:
    if _debug_enabled:
        print(f"[DEBUG] {msg}")


def debug_state(label: str, state: Any) -> None:
    """Dump a JSON rendering of some state when debug output is enabled."""
    if _debug_enabled:
        print(f"[DEBUG] {label}:")
        print(json.dumps(state, indent=2, default=str))
