"""Exceptions raised while reading, querying and rewriting workspace files."""

from __future__ import annotations


class PnpmDepsError(Exception):
    """Base exception with a user-facing message and optional hint."""

    def __init__(self, message: str, hint: str = "") -> None:
        self.message = message
        self.hint = hint
        super().__init__(message)

    def __str__(self) -> str:
        if self.hint:
            return f"{self.message}\nHint: {self.hint}"
        return self.message


class ConfigError(PnpmDepsError):
    """Settings file or option values are invalid."""


class ParseError(PnpmDepsError):
    """A document or command output could not be parsed."""

    def __init__(self, path: str, reason: str, hint: str = "") -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to parse {path}: {reason}", hint)


class LookupFailure(PnpmDepsError):
    """A registry query failed or returned data we could not use."""

    def __init__(self, dependency: str, reason: str) -> None:
        self.dependency = dependency
        self.reason = reason
        super().__init__(f"Could not query {dependency}: {reason}")


class WriteFailure(PnpmDepsError):
    """Writing a file back to disk failed."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to write {path}: {reason}")


class CommandError(PnpmDepsError):
    """An external command exited non-zero or could not be started."""

    def __init__(self, command: str, exit_code: int, stderr: str) -> None:
        self.command = command
        self.exit_code = exit_code
        self.stderr = stderr
        super().__init__(f"`{command}` failed (exit {exit_code}): {stderr}")
