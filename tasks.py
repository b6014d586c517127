"""Invoke tasks for developing tabcycle.

Every task shells out to ``uv`` so the virtual environment, the test run and
local engine simulations all use the same locked toolchain.
"""

from __future__ import annotations

import shlex
import shutil
from collections.abc import Sequence
from pathlib import Path

from invoke import Collection, Context, task

PROJECT_ROOT = Path(__file__).parent
DIST_DIR = PROJECT_ROOT / "dist"
SOURCES = ("src", "tests")


def _uv(ctx: Context, *args: str, extra: Sequence[str] = ()) -> None:
    """Run ``uv`` with ``args`` followed by ``extra``, echoing the command."""
    ctx.run(shlex.join(("uv", *args, *extra)), echo=True, pty=True)


@task(help={"dev": "Install the dev extra (pytest, ruff, mypy, invoke)."})
def sync(ctx: Context, dev: bool = True) -> None:
    """Create or refresh the virtual environment."""
    _uv(ctx, "sync", extra=("--extra", "dev") if dev else ())


@task(help={"clean": "Empty dist/ first."})
def build(ctx: Context, clean: bool = False) -> None:
    """Build the sdist and wheel into dist/."""
    if clean and DIST_DIR.exists():
        shutil.rmtree(DIST_DIR)
    _uv(ctx, "build")


@task(
    help={
        "k": "pytest -k expression.",
        "path": "Test file or directory (defaults to tests/).",
        "options": "Extra flags passed to pytest verbatim.",
    }
)
def tests(ctx: Context, k: str = "", path: str = "tests", options: str = "") -> None:
    """Run the pytest suite.

    Args:
        ctx: Invoke execution context.
        k: Select tests by keyword expression.
        path: Where pytest collects from.
        options: Additional pytest arguments, split shell-style.
    """
    extra: list[str] = []
    if k:
        extra.extend(["-k", k])
    extra.extend(shlex.split(options))
    extra.append(path)
    _uv(ctx, "run", "pytest", extra=extra)


@task(
    help={
        "world": "World snapshot (JSON) describing the simulated browser.",
        "once": "Stop after the startup cycle.",
        "json": "Print the cycle report as JSON.",
    }
)
def simulate(ctx: Context, world: str, once: bool = True, json: bool = False) -> None:
    """Run the engine against a simulated browser; the snapshot is rewritten with the result."""
    extra = [flag for flag, wanted in (("--once", once), ("--json", json)) if wanted]
    _uv(ctx, "run", "tabcycle", "run", world, extra=extra)


@task(help={"fix": "Let ruff apply fixes.", "check_format": "Also run `ruff format --check`."})
def lint(ctx: Context, fix: bool = False, check_format: bool = False) -> None:
    """Lint (and optionally format-check) the sources with ruff."""
    if check_format:
        _uv(ctx, "run", "ruff", "format", "--check", *SOURCES)
    _uv(ctx, "run", "ruff", "check", *SOURCES, extra=["--fix"] if fix else [])


@task
def mypy(ctx: Context) -> None:
    """Type-check the package."""
    _uv(ctx, "run", "mypy", "src")


@task
def ci(ctx: Context) -> None:
    """Run the same checks CI does: format, lint, types, tests."""
    ctx.invoke(lint, check_format=True)
    ctx.invoke(mypy)
    ctx.invoke(tests)


namespace = Collection(sync, build, tests, simulate, lint, mypy, ci)
