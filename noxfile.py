"""Nox session management for the rugby_sync quality pipeline.

Running ``nox`` executes Ruff (lint/format) -> Mypy (type check) -> Pytest (tests).
Individual sessions can be invoked with ``nox -s <session>``; ``docs`` is
not part of the default run.
"""

from __future__ import annotations

import nox

nox.options.sessions = ["lint", "typecheck", "tests"]


@nox.session(python=False)
def lint(session: nox.Session) -> None:
    """Run Ruff linting with auto-fix and format checking."""
    session.run("ruff", "check", ".", "--fix")
    session.run("ruff", "format", "--check", ".")


@nox.session(python=False)
def typecheck(session: nox.Session) -> None:
    """Run mypy strict type checking on source, CLI and test files."""
    session.run(
        "mypy",
        "--strict",
        "--show-error-codes",
        "--namespace-packages",
        "src/rugby_sync",
        "sync.py",
        "tests",
    )


@nox.session(python=False)
def tests(session: nox.Session) -> None:
    """Run the full pytest test suite; extra arguments go to pytest (e.g. ``-m smoke``)."""
    session.run("pytest", "--tb=short", *session.posargs)


@nox.session(python=False)
def docs(session: nox.Session) -> None:
    """Build the Sphinx HTML documentation into docs/_build."""
    session.run("sphinx-build", "-W", "-b", "html", "docs", "docs/_build/html")
