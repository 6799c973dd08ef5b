from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import ClassVar

import requests

from src.patch_engine.context import ApplyContext, StepResult, changed, unchanged
from src.patch_engine.errors import DownloadError
from src.patch_engine.tree import ProjectTree

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DownloadFile:
    """Fetch a remote partial (a layout snippet, a config file) into the tree."""

    path: str
    url: str
    force: bool = False
    best_effort: bool = False

    kind: ClassVar[str] = "download"

    def __post_init__(self) -> None:
        if not isinstance(self.url, str) or not self.url.startswith(("http://", "https://")):
            raise ValueError(f"download: unsupported url {self.url!r}")

    def describe(self) -> str:
        return f"{self.kind} {self.url} -> {self.path}"

    def target_paths(self) -> tuple[str, ...]:
        return (self.path,)

    def _fetch(self, ctx: ApplyContext) -> str:
        try:
            res = ctx.session.get(self.url, timeout=ctx.download_timeout_s)
        except requests.RequestException as exc:
            raise DownloadError(f"download failed for {self.url}: {exc}", url=self.url) from exc
        if res.status_code >= 400:
            raise DownloadError(
                f"download failed for {self.url}: HTTP {res.status_code}",
                url=self.url,
                status_code=res.status_code,
            )
        return res.text

    def apply(self, tree: ProjectTree, ctx: ApplyContext) -> StepResult:
        if tree.exists(self.path) and not self.force:
            return unchanged("exists")
        if ctx.dry_run:
            return changed(ctx)

        text = self._fetch(ctx)
        if tree.exists(self.path) and tree.read_text(self.path) == text:
            return unchanged("unchanged")
        logger.info("Downloaded %s (%d bytes)", self.url, len(text))
        tree.write_text(self.path, text)
        return changed(ctx)
