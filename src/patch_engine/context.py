from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:  # pragma: no cover
    from src.patch_engine.commands import CommandResult, CommandRunner
    from src.patch_engine.errors import AnchorNotFoundWarning
    from src.patch_engine.policy import WritePolicy


@dataclass(frozen=True)
class StepResult:
    changed: bool
    reason: str | None = None
    warning: AnchorNotFoundWarning | None = None
    command: CommandResult | None = None


@dataclass(frozen=True)
class ApplyContext:
    runner: CommandRunner
    session: Any
    dry_run: bool = False
    download_timeout_s: int = 30
    policy: WritePolicy | None = None


def unchanged(reason: str, **kwargs: Any) -> StepResult:
    return StepResult(changed=False, reason=reason, **kwargs)


def changed(ctx: ApplyContext, **kwargs: Any) -> StepResult:
    # In a dry run the step reports what it would do without having done it.
    if ctx.dry_run:
        return StepResult(changed=True, reason="dry_run", **kwargs)
    return StepResult(changed=True, **kwargs)
