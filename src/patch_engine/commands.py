from __future__ import annotations

import logging
import os
import shlex
import subprocess
from dataclasses import dataclass, field
from typing import ClassVar, Protocol

from src.patch_engine.context import ApplyContext, StepResult, changed, unchanged
from src.patch_engine.errors import CollaboratorFailure
from src.patch_engine.policy import normalize_tree_path
from src.patch_engine.tree import ProjectTree

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CommandResult:
    argv: tuple[str, ...]
    returncode: int
    stdout: str = ""
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandRunner(Protocol):
    def run(
        self,
        args: list[str],
        *,
        cwd: str | None = None,
        env: dict[str, str] | None = None,
    ) -> CommandResult: ...


@dataclass
class SubprocessRunner:
    def run(
        self,
        args: list[str],
        *,
        cwd: str | None = None,
        env: dict[str, str] | None = None,
    ) -> CommandResult:
        try:
            cp = subprocess.run(
                args,
                cwd=cwd,
                env=env,
                text=True,
                capture_output=True,
                check=False,
            )
        except OSError as exc:
            # Missing program or bad cwd: report it like a failed exit.
            return CommandResult(argv=tuple(args), returncode=127, stderr=str(exc))
        return CommandResult(
            argv=tuple(args),
            returncode=cp.returncode,
            stdout=cp.stdout or "",
            stderr=cp.stderr or "",
        )


def _log_output(result: CommandResult) -> None:
    for stream, text in (("stdout", result.stdout), ("stderr", result.stderr)):
        for line in (text or "").splitlines():
            logger.debug("[%s] %s", stream, line)


@dataclass(frozen=True)
class CollaboratorCommand:
    """An external program run as a black box inside the project tree.

    Only the exit code and captured output are observed. A non-zero exit is
    fatal unless `best_effort` is set. `creates` names a path or glob in the
    tree; when it already matches, the command is skipped.
    """

    program: str
    args: tuple[str, ...] = ()
    cwd: str | None = None
    env: dict[str, str] | None = field(default=None, hash=False)
    best_effort: bool = False
    creates: str | None = None

    kind: ClassVar[str] = "run"

    def __post_init__(self) -> None:
        if not (self.program or "").strip():
            raise ValueError("run: program must not be empty")
        object.__setattr__(self, "args", tuple(str(a) for a in self.args))

    @property
    def argv(self) -> list[str]:
        return [self.program, *self.args]

    def describe(self) -> str:
        return f"{self.kind} {shlex.join(self.argv)}"

    def target_paths(self) -> tuple[str, ...]:
        # Commands do not write through the tree; only validate what they reference.
        return ()

    def referenced_paths(self) -> tuple[str, ...]:
        return tuple(p for p in (self.cwd, self.creates) if p)

    def _already_created(self, tree: ProjectTree) -> bool:
        if not self.creates:
            return False
        if any(ch in self.creates for ch in ("*", "?", "[")):
            return bool(tree.glob(self.creates))
        return tree.exists(self.creates)

    def apply(self, tree: ProjectTree, ctx: ApplyContext) -> StepResult:
        if self._already_created(tree):
            return unchanged("creates_exists")
        if ctx.dry_run:
            return changed(ctx)

        cwd = tree.root if not self.cwd else tree.root / normalize_tree_path(self.cwd)
        env = None
        if self.env:
            env = os.environ.copy()
            env.update({str(k): str(v) for k, v in self.env.items()})

        logger.info("$ %s", shlex.join(self.argv))
        result = ctx.runner.run(self.argv, cwd=str(cwd), env=env)
        _log_output(result)

        if not result.ok:
            detail = (result.stderr or result.stdout or "").strip()
            msg = f"command failed with exit code {result.returncode}: {shlex.join(self.argv)}"
            if detail:
                msg = f"{msg}: {detail.splitlines()[-1]}"
            raise CollaboratorFailure(msg, result=result)
        return StepResult(changed=True, command=result)
