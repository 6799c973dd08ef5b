from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence
from typing import Any

from src.patch_engine.commands import CommandRunner
from src.patch_engine.config import log_level
from src.patch_engine.engine import PatchEngine
from src.patch_engine.errors import PatchEngineError
from src.patch_engine.tree import DiskTree
from src.recipes.loader import load_recipe, step_kinds


def _parse_var(raw: str) -> tuple[str, str]:
    key, sep, value = raw.partition("=")
    key = key.strip()
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"expected KEY=VALUE, got {raw!r}")
    return key, value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="scaffold-patch",
        description="Apply an idempotent patch recipe to a generated project tree.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="log command output and skipped steps")
    sub = parser.add_subparsers(dest="command", required=True)

    apply_p = sub.add_parser("apply", help="apply a recipe to a project directory")
    apply_p.add_argument("recipe", help="recipe file (.yaml, .yml or .json)")
    apply_p.add_argument("--root", default=".", help="project directory (default: current directory)")
    apply_p.add_argument(
        "--dry-run",
        action="store_true",
        default=None,
        help="report what would change without writing files or running commands",
    )
    apply_p.add_argument(
        "--var",
        dest="vars",
        action="append",
        type=_parse_var,
        default=[],
        metavar="KEY=VALUE",
        help="override a recipe variable (repeatable)",
    )

    check_p = sub.add_parser("check", help="validate a recipe without applying it")
    check_p.add_argument("recipe")
    check_p.add_argument("--var", dest="vars", action="append", type=_parse_var, default=[], metavar="KEY=VALUE")

    sub.add_parser("kinds", help="list the supported step kinds")
    return parser


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, log_level()),
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _cmd_apply(args: argparse.Namespace, *, runner: CommandRunner | None, session: Any) -> int:
    recipe = load_recipe(args.recipe, variables=dict(args.vars))
    tree = DiskTree(args.root)
    engine = PatchEngine(tree, runner=runner, session=session, dry_run=args.dry_run)
    report = engine.run(recipe.steps, after=recipe.after)
    for w in report.warnings:
        print(f"warning: {w}", file=sys.stderr)
    print(report.summary())
    return 0


def _cmd_check(args: argparse.Namespace) -> int:
    recipe = load_recipe(args.recipe, variables=dict(args.vars))
    engine = PatchEngine(DiskTree("."), dry_run=True)
    engine.validate([*recipe.steps, *recipe.after])
    print(f"{recipe.name}: {len(recipe.steps)} steps, {len(recipe.after)} deferred")
    return 0


def main(
    argv: Sequence[str] | None = None,
    *,
    runner: CommandRunner | None = None,
    session: Any = None,
) -> int:
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose)

    try:
        if args.command == "apply":
            return _cmd_apply(args, runner=runner, session=session)
        if args.command == "check":
            return _cmd_check(args)
        for kind in step_kinds():
            print(kind)
        return 0
    except PatchEngineError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
