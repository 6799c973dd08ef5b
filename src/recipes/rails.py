"""Generator-style helpers for Rails application templates.

Each helper expands to a plain engine step, so a recipe written with
`route(...)` or `environment(...)` stays idempotent like any other step.
"""

from __future__ import annotations

import shlex

from src.patch_engine.commands import CollaboratorCommand
from src.patch_engine.operations import EnsureLine, InsertAfterAnchor, WriteFile

GEMFILE_PATH = "Gemfile"
ROUTES_PATH = "config/routes.rb"
APPLICATION_PATH = "config/application.rb"

_ROUTES_ANCHOR = r"Rails\.application\.routes\.draw do[ \t]*\n"
_APPLICATION_ANCHOR = r"class Application < Rails::Application[ \t]*\n"
_ENVIRONMENT_ANCHOR = r"Rails\.application\.configure do[ \t]*\n"

_RAILS_BIN = "bin/rails"


def _indent(text: str, prefix: str) -> str:
    lines = (text or "").strip("\n").split("\n")
    out = "\n".join(prefix + ln if ln.strip() else "" for ln in lines)
    return out + "\n"


def route(line: str) -> InsertAfterAnchor:
    return InsertAfterAnchor(
        ROUTES_PATH,
        anchor=_ROUTES_ANCHOR,
        content=_indent(line, "  "),
        regex=True,
    )


def environment(data: str, env: str | None = None) -> InsertAfterAnchor:
    """Add configuration to config/application.rb, or to one environment file."""
    env = (env or "").strip()
    if not env:
        return InsertAfterAnchor(
            APPLICATION_PATH,
            anchor=_APPLICATION_ANCHOR,
            content=_indent(data, "    "),
            regex=True,
        )
    if "/" in env or env.startswith("."):
        raise ValueError(f"environment: invalid env name {env!r}")
    return InsertAfterAnchor(
        f"config/environments/{env}.rb",
        anchor=_ENVIRONMENT_ANCHOR,
        content=_indent(data, "  "),
        regex=True,
    )


def initializer(name: str, content: str, *, force: bool = False) -> WriteFile:
    return WriteFile(f"config/initializers/{name}", content, force=force)


def gem(name: str, version: str | None = None) -> EnsureLine:
    line = f'gem "{name}"'
    if version:
        line += f', "{version}"'
    return EnsureLine(GEMFILE_PATH, line)


def generate(
    what: str,
    *args: str,
    creates: str | None = None,
    best_effort: bool = False,
) -> CollaboratorCommand:
    return CollaboratorCommand(
        _RAILS_BIN,
        ("generate", what, *args),
        creates=creates,
        best_effort=best_effort,
    )


def rails_command(task: str, *, best_effort: bool = False) -> CollaboratorCommand:
    return CollaboratorCommand(_RAILS_BIN, tuple(shlex.split(task)), best_effort=best_effort)


def git(*args: str, best_effort: bool = False) -> CollaboratorCommand:
    return CollaboratorCommand("git", tuple(args), best_effort=best_effort)


def run(
    cmdline: str,
    *,
    shell: bool = False,
    cwd: str | None = None,
    env: dict[str, str] | None = None,
    creates: str | None = None,
    best_effort: bool = False,
) -> CollaboratorCommand:
    """Build a command from a command line.

    Pipelines and `||` need `shell=True`; otherwise the line is split with
    shell quoting rules and run directly.
    """
    if shell:
        return CollaboratorCommand(
            "sh", ("-c", cmdline), cwd=cwd, env=env, creates=creates, best_effort=best_effort
        )
    argv = shlex.split(cmdline)
    if not argv:
        raise ValueError("run: empty command line")
    return CollaboratorCommand(
        argv[0], tuple(argv[1:]), cwd=cwd, env=env, creates=creates, best_effort=best_effort
    )
