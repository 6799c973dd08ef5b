"""Idempotent file operations applied to a project tree.

Every operation checks whether its effect is already present before touching
the file, so a recipe can be replayed against a tree it already patched.
Patterns are compiled when the operation is built: a malformed expression
fails before anything in the tree is mutated.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import ClassVar

from src.patch_engine.context import ApplyContext, StepResult, changed, unchanged
from src.patch_engine.errors import AnchorNotFoundWarning, InvalidPatternError, MissingFileError
from src.patch_engine.policy import WritePolicy, is_denied_path
from src.patch_engine.tree import ProjectTree

logger = logging.getLogger(__name__)


def compile_pattern(pattern: str, *, literal: bool = False) -> re.Pattern[str]:
    if not isinstance(pattern, str) or pattern == "":
        raise InvalidPatternError(str(pattern), "empty pattern")
    try:
        return re.compile(re.escape(pattern) if literal else pattern, re.MULTILINE)
    except re.error as exc:
        raise InvalidPatternError(pattern, str(exc)) from exc


@dataclass(frozen=True)
class FileOperation:
    path: str

    kind: ClassVar[str] = "file_operation"

    def describe(self) -> str:
        return f"{self.kind} {self.path}"

    def target_paths(self) -> tuple[str, ...]:
        return (self.path,)

    def apply(self, tree: ProjectTree, ctx: ApplyContext) -> StepResult:
        raise NotImplementedError

    def _commit(self, tree: ProjectTree, ctx: ApplyContext, text: str) -> StepResult:
        if not ctx.dry_run:
            tree.write_text(self.path, text)
        return changed(ctx)


@dataclass(frozen=True)
class WriteFile(FileOperation):
    content: str
    force: bool = False
    mode: int | None = None

    kind: ClassVar[str] = "write_file"

    def apply(self, tree: ProjectTree, ctx: ApplyContext) -> StepResult:
        if tree.exists(self.path):
            if not self.force:
                return unchanged("exists")
            if tree.read_text(self.path) == self.content:
                return unchanged("unchanged")
        if not ctx.dry_run:
            tree.write_text(self.path, self.content)
            if self.mode is not None:
                tree.chmod(self.path, self.mode)
        return changed(ctx)


@dataclass(frozen=True)
class AppendIfAbsent(FileOperation):
    content: str
    default: str | None = None

    kind: ClassVar[str] = "append_if_absent"

    def apply(self, tree: ProjectTree, ctx: ApplyContext) -> StepResult:
        if tree.exists(self.path):
            current = tree.read_text(self.path)
        elif self.default is not None:
            current = self.default
        else:
            raise MissingFileError(self.path)

        if self.content in current:
            return unchanged("already_present")
        return self._commit(tree, ctx, current + self.content)


@dataclass(frozen=True)
class ReplaceMatch(FileOperation):
    pattern: str
    replacement: str
    literal: bool = False
    count: int = 0
    glob: bool = False

    _regex: re.Pattern[str] = field(init=False, repr=False, compare=False)

    kind: ClassVar[str] = "replace_match"

    def __post_init__(self) -> None:
        object.__setattr__(self, "_regex", compile_pattern(self.pattern, literal=self.literal))
        if self.count < 0:
            raise ValueError("count must be >= 0")
        if not self.literal:
            # sub() compiles the template before scanning, so an empty string
            # is enough to reject bad escapes and unknown group references.
            try:
                self._regex.sub(self.replacement, "")
            except (re.error, IndexError) as exc:
                raise InvalidPatternError(self.replacement, str(exc)) from exc

    def _targets(self, tree: ProjectTree, ctx: ApplyContext) -> list[str]:
        # A glob with no matches is a no-op, a plain path must exist.
        if not self.glob:
            return [self.path]
        policy = ctx.policy or WritePolicy.from_env()
        paths = []
        for p in tree.glob(self.path):
            if is_denied_path(p, policy=policy):
                logger.debug("Skipping %s: writes not allowed", p)
                continue
            paths.append(p)
        return paths

    def apply(self, tree: ProjectTree, ctx: ApplyContext) -> StepResult:
        # Literal replacements must not go through backslash/group expansion.
        repl = (lambda _m: self.replacement) if self.literal else self.replacement

        matched = False
        edits: list[tuple[str, str]] = []
        for path in self._targets(tree, ctx):
            text = tree.read_text(path)
            new_text, n = self._regex.subn(repl, text, count=self.count)
            matched = matched or n > 0
            if n and new_text != text:
                edits.append((path, new_text))

        if not matched:
            return unchanged("no_match")
        if not edits:
            return unchanged("unchanged")
        if not ctx.dry_run:
            for path, new_text in edits:
                tree.write_text(path, new_text)
        return changed(ctx)


@dataclass(frozen=True)
class _AnchoredInsert(FileOperation):
    anchor: str
    content: str
    regex: bool = False

    _regex: re.Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_regex", compile_pattern(self.anchor, literal=not self.regex))
        if not self.content:
            raise ValueError(f"{self.kind}: content must not be empty")

    def describe(self) -> str:
        return f"{self.kind} {self.path} ({self.anchor!r})"

    def _splice(self, text: str, m: re.Match[str]) -> str:
        raise NotImplementedError

    def apply(self, tree: ProjectTree, ctx: ApplyContext) -> StepResult:
        text = tree.read_text(self.path)
        if self.content in text:
            return unchanged("already_present")

        m = self._regex.search(text)
        if m is None:
            warning = AnchorNotFoundWarning(f"anchor {self.anchor!r} not found in {self.path}")
            logger.debug("%s", warning)
            return unchanged("anchor_not_found", warning=warning)
        return self._commit(tree, ctx, self._splice(text, m))


@dataclass(frozen=True)
class InsertAfterAnchor(_AnchoredInsert):
    kind: ClassVar[str] = "insert_after"

    def _splice(self, text: str, m: re.Match[str]) -> str:
        at = m.end()
        sep = "" if m.group(0).endswith("\n") or self.content.startswith("\n") else "\n"
        return text[:at] + sep + self.content + text[at:]


@dataclass(frozen=True)
class InsertBeforeAnchor(_AnchoredInsert):
    kind: ClassVar[str] = "insert_before"

    def _splice(self, text: str, m: re.Match[str]) -> str:
        at = m.start()
        sep = "" if self.content.endswith("\n") or m.group(0).startswith("\n") else "\n"
        return text[:at] + self.content + sep + text[at:]


@dataclass(frozen=True)
class EnsureLine(FileOperation):
    line: str

    kind: ClassVar[str] = "ensure_line"

    def __post_init__(self) -> None:
        if "\n" in self.line or "\r" in self.line:
            raise ValueError("ensure_line: line must not contain newlines")

    def apply(self, tree: ProjectTree, ctx: ApplyContext) -> StepResult:
        text = tree.read_text(self.path)
        if self.line in text.splitlines():
            return unchanged("already_present")

        # Follow the file's own line ending so CRLF files stay CRLF.
        nl = "\r\n" if "\r\n" in text else "\n"
        sep = "" if not text or text.endswith(("\n", "\r")) else nl
        return self._commit(tree, ctx, text + sep + self.line + nl)


OPERATION_KINDS: dict[str, type[FileOperation]] = {
    cls.kind: cls
    for cls in (
        WriteFile,
        AppendIfAbsent,
        ReplaceMatch,
        InsertAfterAnchor,
        InsertBeforeAnchor,
        EnsureLine,
    )
}
