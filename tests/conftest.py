"""Shared test fixtures."""

from __future__ import annotations

import json
from collections.abc import Callable
from pathlib import Path

import pytest

from pnpm_config_deps.errors import CommandError
from pnpm_config_deps.shell import UpdateContext

Response = str | Exception | Callable[[], str]


class FakeRunner:
    """Command executor returning canned output keyed by argv.

    Unknown commands fail the way a missing binary would.
    """

    def __init__(self, responses: dict[tuple[str, ...], Response] | None = None) -> None:
        self.responses: dict[tuple[str, ...], Response] = dict(responses or {})
        self.calls: list[tuple[str, ...]] = []

    def run(self, *args: str) -> str:
        self.calls.append(args)
        response = self.responses.get(args)
        if response is None:
            raise CommandError(" ".join(args), 127, "command not found")
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response()
        return response


def npm_latest(name: str, version: str) -> tuple[tuple[str, ...], str]:
    return ("npm", "view", name, "dist-tags.latest", "--json"), json.dumps(version)


def npm_config(name: str, version: str, integrity: str) -> tuple[tuple[str, ...], str]:
    return (
        ("npm", "view", f"{name}@latest", "version", "dist.integrity", "--json"),
        json.dumps({"version": version, "dist.integrity": integrity}),
    )


def npm_versions(name: str, versions: list[str]) -> tuple[tuple[str, ...], str]:
    return ("npm", "view", name, "versions", "--json"), json.dumps(versions)


def write_json(path: Path, data: dict, indent: str | int = 2) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, indent=indent) + "\n")
    return path


@pytest.fixture
def runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def ctx(tmp_path: Path, runner: FakeRunner) -> UpdateContext:
    return UpdateContext(root=tmp_path, runner=runner)


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """A two-package pnpm workspace with a root manifest."""
    (tmp_path / "pnpm-workspace.yaml").write_text(
        "packages:\n"
        "  - packages/*\n"
        "configDependencies:\n"
        '  "@savvy-web/silk": 0.6.3+sha512-oldHash==\n'
        "  typescript: 5.4.0+sha512-ts+old/hash==\n"
    )
    write_json(
        tmp_path / "package.json",
        {
            "name": "monorepo",
            "private": True,
            "devDependencies": {"effect": "^3.0.0", "turbo": "catalog:"},
        },
    )
    write_json(
        tmp_path / "packages" / "core" / "package.json",
        {
            "name": "@savvy-web/core",
            "version": "1.0.0",
            "dependencies": {"effect": "^3.0.0", "@savvy-web/utils": "workspace:*"},
            "devDependencies": {"effect": "^3.0.0", "vitest": "~1.2.0"},
        },
        indent="\t",
    )
    write_json(
        tmp_path / "packages" / "utils" / "package.json",
        {
            "name": "@savvy-web/utils",
            "version": "1.0.0",
            "dependencies": {"effect": "catalog:", "@effect/schema": "0.60.0"},
        },
        indent=4,
    )
    return tmp_path
