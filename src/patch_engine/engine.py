from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Any, Union

import requests

from src.patch_engine.commands import CollaboratorCommand, CommandRunner, SubprocessRunner
from src.patch_engine.config import download_timeout_s, dry_run_default
from src.patch_engine.context import ApplyContext, StepResult
from src.patch_engine.download import DownloadFile
from src.patch_engine.errors import (
    CollaboratorFailure,
    DownloadError,
    PatchEngineError,
    RecipeError,
)
from src.patch_engine.operations import FileOperation
from src.patch_engine.policy import WritePolicy, normalize_tree_path, require_write_allowed
from src.patch_engine.tree import ProjectTree

logger = logging.getLogger(__name__)

Step = Union[FileOperation, DownloadFile, CollaboratorCommand]
_STEP_TYPES = (FileOperation, DownloadFile, CollaboratorCommand)


@dataclass(frozen=True)
class StepOutcome:
    index: int
    phase: str
    description: str
    result: StepResult


@dataclass
class RunReport:
    outcomes: list[StepOutcome] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    anchor_misses: list[str] = field(default_factory=list)
    error: PatchEngineError | None = None
    dry_run: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def changed_count(self) -> int:
        return sum(1 for o in self.outcomes if o.result.changed)

    @property
    def skipped_count(self) -> int:
        return sum(1 for o in self.outcomes if not o.result.changed)

    def summary(self) -> str:
        status = "ok" if self.ok else "failed"
        prefix = "[dry-run] " if self.dry_run else ""
        return (
            f"{prefix}{status}: {len(self.outcomes)} steps, "
            f"{self.changed_count} changed, {self.skipped_count} unchanged, "
            f"{len(self.warnings)} warnings"
        )


class PatchEngine:
    """Apply an ordered list of steps to a project tree.

    Steps run strictly in declared order, one at a time. The first fatal
    error stops the run and is re-raised; steps already applied stay applied.
    """

    def __init__(
        self,
        tree: ProjectTree,
        *,
        runner: CommandRunner | None = None,
        session: Any = None,
        dry_run: bool | None = None,
        policy: WritePolicy | None = None,
    ) -> None:
        self.tree = tree
        self.policy = policy or WritePolicy.from_env()
        self.dry_run = dry_run_default() if dry_run is None else bool(dry_run)
        self._ctx = ApplyContext(
            runner=runner or SubprocessRunner(),
            session=session or requests.Session(),
            dry_run=self.dry_run,
            download_timeout_s=download_timeout_s(),
            policy=self.policy,
        )
        self.last_report: RunReport | None = None

    def validate(self, steps: Iterable[Any]) -> None:
        """Reject unknown steps and unsafe paths before anything is mutated."""
        for i, step in enumerate(steps, start=1):
            if not isinstance(step, _STEP_TYPES):
                raise RecipeError(f"unsupported step type {type(step).__name__}", step_index=i)
            for p in step.target_paths():
                require_write_allowed(p, policy=self.policy)
            if isinstance(step, CollaboratorCommand):
                for p in step.referenced_paths():
                    normalize_tree_path(p)

    def run(self, steps: Sequence[Step], *, after: Sequence[Step] = ()) -> RunReport:
        steps = list(steps)
        after = list(after)
        self.validate([*steps, *after])

        report = RunReport(dry_run=self.dry_run)
        self.last_report = report
        total = len(steps) + len(after)
        try:
            for i, step in enumerate(steps, start=1):
                self._apply_step(report, step, index=i, total=total, phase="main")
            for j, step in enumerate(after, start=len(steps) + 1):
                self._apply_step(report, step, index=j, total=total, phase="after")
        except PatchEngineError as exc:
            report.error = exc
            logger.error("Run stopped: %s", exc)
            raise

        logger.info("%s", report.summary())
        return report

    def _apply_step(self, report: RunReport, step: Step, *, index: int, total: int, phase: str) -> None:
        desc = step.describe()
        try:
            result = step.apply(self.tree, self._ctx)
        except (CollaboratorFailure, DownloadError) as exc:
            if not getattr(step, "best_effort", False):
                raise
            logger.warning("[%d/%d] %s failed (best effort): %s", index, total, desc, exc)
            report.warnings.append(f"{desc}: {exc}")
            result = StepResult(
                changed=False,
                reason="best_effort_failed",
                command=getattr(exc, "result", None),
            )

        if result.warning is not None:
            report.anchor_misses.append(str(result.warning))
        report.outcomes.append(StepOutcome(index=index, phase=phase, description=desc, result=result))

        state = "changed" if result.changed else (result.reason or "unchanged")
        if result.changed and result.reason == "dry_run":
            state = "would change"
        logger.info("[%d/%d] %s: %s", index, total, desc, state)
