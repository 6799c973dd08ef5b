"""Load recipes (ordered step lists) from YAML or JSON files.

A recipe file is either a list of steps or a mapping::

    name: devise
    vars:
      ruby_version: "3.4.5"
    steps:
      - write_file: {path: .ruby-version, content: "${ruby_version}\\n"}
      - replace_match: {path: Gemfile, pattern: '^ruby .*$', replacement: 'ruby "${ruby_version}"'}
      - generate: {what: "devise:install", creates: config/initializers/devise.rb}
    after:
      - git: [init]

Each step is a single-key mapping naming its kind.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from string import Template
from typing import Any

import yaml

from src.patch_engine.commands import CollaboratorCommand
from src.patch_engine.config import file_encoding
from src.patch_engine.download import DownloadFile
from src.patch_engine.engine import Step
from src.patch_engine.errors import InvalidPatternError, RecipeError
from src.patch_engine.operations import OPERATION_KINDS
from src.recipes import rails

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Recipe:
    name: str
    steps: list[Step]
    after: list[Step] = field(default_factory=list)
    vars: dict[str, str] = field(default_factory=dict)


# kind -> (required fields, optional fields)
_OPERATION_FIELDS: dict[str, tuple[set[str], set[str]]] = {
    "write_file": ({"path", "content"}, {"force", "mode"}),
    "append_if_absent": ({"path", "content"}, {"default"}),
    "replace_match": ({"path", "pattern", "replacement"}, {"literal", "count", "glob"}),
    "insert_after": ({"path", "anchor", "content"}, {"regex"}),
    "insert_before": ({"path", "anchor", "content"}, {"regex"}),
    "ensure_line": ({"path", "line"}, set()),
}

_BOOL_FIELDS = {"force", "literal", "regex", "best_effort", "shell", "glob"}
_STR_FIELDS = {
    "path",
    "content",
    "pattern",
    "replacement",
    "anchor",
    "line",
    "default",
    "url",
    "cmd",
    "cwd",
    "creates",
    "what",
    "task",
    "name",
    "data",
}


def _substitute(value: Any, variables: Mapping[str, str]) -> Any:
    if isinstance(value, str):
        return Template(value).safe_substitute(variables)
    if isinstance(value, list):
        return [_substitute(v, variables) for v in value]
    if isinstance(value, dict):
        return {k: _substitute(v, variables) for k, v in value.items()}
    return value


def _check_fields(kind: str, body: Any, required: set[str], optional: set[str]) -> dict[str, Any]:
    if not isinstance(body, dict):
        raise RecipeError(f"{kind}: expected a mapping, got {type(body).__name__}")
    missing = sorted(required - set(body))
    if missing:
        raise RecipeError(f"{kind}: missing field(s): {', '.join(missing)}")
    unknown = sorted(set(body) - required - optional)
    if unknown:
        raise RecipeError(f"{kind}: unknown field(s): {', '.join(unknown)}")
    for k in _BOOL_FIELDS & set(body):
        if not isinstance(body[k], bool):
            raise RecipeError(f"{kind}: field {k!r} must be true or false")
    for k in _STR_FIELDS & set(body):
        if not isinstance(body[k], str):
            raise RecipeError(f"{kind}: field {k!r} must be a string")
    return dict(body)


def _parse_mode(raw: Any) -> int:
    # YAML turns 0755 into 493 and "0755" stays a string; accept both.
    if isinstance(raw, bool):
        raise RecipeError("write_file: mode must be an octal string or integer")
    if isinstance(raw, int):
        return raw
    try:
        return int(str(raw), 8)
    except ValueError as exc:
        raise RecipeError(f"write_file: invalid mode {raw!r}") from exc


def _build_operation(kind: str, body: Any) -> Step:
    required, optional = _OPERATION_FIELDS[kind]
    kwargs = _check_fields(kind, body, required, optional)
    if "count" in kwargs and (isinstance(kwargs["count"], bool) or not isinstance(kwargs["count"], int)):
        raise RecipeError(f"{kind}: field 'count' must be an integer")
    if "mode" in kwargs:
        kwargs["mode"] = _parse_mode(kwargs["mode"])
    return OPERATION_KINDS[kind](**kwargs)


def _build_download(body: Any) -> Step:
    kwargs = _check_fields("download", body, {"path", "url"}, {"force", "best_effort"})
    return DownloadFile(**kwargs)


def _build_run(body: Any) -> Step:
    if isinstance(body, str):
        return rails.run(body)
    if isinstance(body, list):
        body = {"argv": body}
    kwargs = _check_fields("run", body, set(), {"argv", "cmd", "shell", "cwd", "env", "creates", "best_effort"})
    if ("argv" in kwargs) == ("cmd" in kwargs):
        raise RecipeError("run: exactly one of 'argv' or 'cmd' is required")
    if "env" in kwargs:
        env = kwargs["env"]
        if not isinstance(env, dict) or any(isinstance(v, (dict, list)) for v in env.values()):
            raise RecipeError("run: 'env' must be a mapping of names to values")
        kwargs["env"] = {str(k): str(v) for k, v in env.items()}
    if "argv" in kwargs:
        argv = kwargs.pop("argv")
        if kwargs.pop("shell", False):
            raise RecipeError("run: 'shell' only applies to 'cmd'")
        if not isinstance(argv, list) or not argv:
            raise RecipeError("run: 'argv' must be a non-empty list")
        return CollaboratorCommand(str(argv[0]), tuple(str(a) for a in argv[1:]), **kwargs)
    return rails.run(str(kwargs.pop("cmd")), **kwargs)


def _build_route(body: Any) -> Step:
    if isinstance(body, dict):
        body = _check_fields("route", body, {"line"}, set())["line"]
    return rails.route(str(body))


def _build_environment(body: Any) -> Step:
    if isinstance(body, str):
        return rails.environment(body)
    kwargs = _check_fields("environment", body, {"data"}, {"env"})
    if kwargs.get("env") is not None and not isinstance(kwargs["env"], str):
        raise RecipeError("environment: field 'env' must be a string")
    return rails.environment(str(kwargs["data"]), kwargs.get("env"))


def _build_initializer(body: Any) -> Step:
    kwargs = _check_fields("initializer", body, {"name", "content"}, {"force"})
    return rails.initializer(str(kwargs["name"]), str(kwargs["content"]), force=kwargs.get("force", False))


def _build_gem(body: Any) -> Step:
    if isinstance(body, str):
        return rails.gem(body)
    kwargs = _check_fields("gem", body, {"name"}, {"version"})
    version = kwargs.get("version")
    return rails.gem(str(kwargs["name"]), str(version) if version is not None else None)


def _build_generate(body: Any) -> Step:
    if isinstance(body, str):
        return rails.generate(body)
    kwargs = _check_fields("generate", body, {"what"}, {"args", "creates", "best_effort"})
    args = kwargs.get("args") or []
    if not isinstance(args, list):
        raise RecipeError("generate: 'args' must be a list")
    return rails.generate(
        str(kwargs["what"]),
        *[str(a) for a in args],
        creates=kwargs.get("creates"),
        best_effort=kwargs.get("best_effort", False),
    )


def _build_rails_command(body: Any) -> Step:
    if isinstance(body, str):
        return rails.rails_command(body)
    kwargs = _check_fields("rails_command", body, {"task"}, {"best_effort"})
    return rails.rails_command(str(kwargs["task"]), best_effort=kwargs.get("best_effort", False))


def _build_git(body: Any) -> Step:
    if isinstance(body, list):
        return rails.git(*[str(a) for a in body])
    kwargs = _check_fields("git", body, {"args"}, {"best_effort"})
    if not isinstance(kwargs["args"], list):
        raise RecipeError("git: 'args' must be a list")
    return rails.git(*[str(a) for a in kwargs["args"]], best_effort=kwargs.get("best_effort", False))


_BUILDERS: dict[str, Callable[[Any], Step]] = {
    "download": _build_download,
    "run": _build_run,
    "route": _build_route,
    "environment": _build_environment,
    "initializer": _build_initializer,
    "gem": _build_gem,
    "generate": _build_generate,
    "rails_command": _build_rails_command,
    "git": _build_git,
}


def step_kinds() -> list[str]:
    return sorted([*_OPERATION_FIELDS, *_BUILDERS])


def parse_step(raw: Any, *, variables: Mapping[str, str] | None = None, index: int | None = None) -> Step:
    if not isinstance(raw, dict) or len(raw) != 1:
        raise RecipeError("a step must be a mapping with exactly one kind", step_index=index)
    kind, body = next(iter(raw.items()))
    body = _substitute(body, variables or {})
    try:
        if kind in _OPERATION_FIELDS:
            return _build_operation(kind, body)
        if kind in _BUILDERS:
            return _BUILDERS[kind](body)
    except InvalidPatternError:
        raise
    except RecipeError as exc:
        if index is None or exc.step_index is not None:
            raise
        raise RecipeError(str(exc), step_index=index) from exc
    except (TypeError, ValueError) as exc:
        raise RecipeError(f"{kind}: {exc}", step_index=index) from exc
    raise RecipeError(f"unknown step kind {kind!r}", step_index=index)


def _parse_steps(raw: Any, *, variables: Mapping[str, str], section: str, offset: int = 0) -> list[Step]:
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise RecipeError(f"'{section}' must be a list of steps")
    return [parse_step(s, variables=variables, index=offset + i) for i, s in enumerate(raw, start=1)]


def parse_recipe(
    data: Any,
    *,
    name: str = "recipe",
    variables: Mapping[str, str] | None = None,
) -> Recipe:
    """Validate and build a recipe. Caller variables override the file's `vars`."""
    if isinstance(data, list):
        data = {"steps": data}
    if not isinstance(data, dict):
        raise RecipeError("recipe must be a mapping or a list of steps")

    unknown = sorted(set(data) - {"name", "vars", "steps", "after"})
    if unknown:
        raise RecipeError(f"unknown recipe field(s): {', '.join(unknown)}")

    file_vars = data.get("vars") or {}
    if not isinstance(file_vars, dict):
        raise RecipeError("'vars' must be a mapping")
    merged = {str(k): str(v) for k, v in file_vars.items()}
    merged.update({str(k): str(v) for k, v in (variables or {}).items()})

    steps = _parse_steps(data.get("steps"), variables=merged, section="steps")
    after = _parse_steps(data.get("after"), variables=merged, section="after", offset=len(steps))
    return Recipe(
        name=str(data.get("name") or name),
        steps=steps,
        after=after,
        vars=merged,
    )


def load_recipe(path: str | Path, *, variables: Mapping[str, str] | None = None) -> Recipe:
    p = Path(path)
    try:
        text = p.read_text(encoding=file_encoding())
    except FileNotFoundError as exc:
        raise RecipeError(f"recipe not found: {p}") from exc

    try:
        data = json.loads(text) if p.suffix.lower() == ".json" else yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise RecipeError(f"could not parse {p}: {exc}") from exc

    recipe = parse_recipe(data, name=p.stem, variables=variables)
    logger.debug("Loaded recipe %s: %d steps, %d deferred", recipe.name, len(recipe.steps), len(recipe.after))
    return recipe
