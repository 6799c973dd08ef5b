from __future__ import annotations

import posixpath
from dataclasses import dataclass

from src.patch_engine.config import deny_write_prefixes
from src.patch_engine.errors import UnsafePathError


@dataclass(frozen=True)
class WritePolicy:
    deny_write_prefixes: tuple[str, ...]

    @classmethod
    def from_env(cls) -> WritePolicy:
        return cls(deny_write_prefixes=tuple(deny_write_prefixes()))


def normalize_tree_path(path: str) -> str:
    """Normalize a project-relative POSIX path like 'config/routes.rb'."""
    raw = (path or "").strip()
    if not raw:
        raise UnsafePathError("empty path")
    if "\x00" in raw:
        raise UnsafePathError("invalid path")

    # Tree-rooted paths ("/Gemfile") are accepted and made relative.
    raw = raw.replace("\\", "/").lstrip("/")
    segments = raw.split("/")
    if ".." in segments:
        raise UnsafePathError(f"path traversal not allowed: {path!r}")

    norm = posixpath.normpath(raw)
    if norm in (".", ""):
        raise UnsafePathError(f"path resolves to the tree root: {path!r}")
    return norm


def is_denied_path(path: str, *, policy: WritePolicy) -> bool:
    normalized = path.rstrip("/") + "/"
    return any(normalized.startswith(p) for p in policy.deny_write_prefixes)


def require_write_allowed(path: str, *, policy: WritePolicy) -> str:
    p = normalize_tree_path(path)
    if is_denied_path(p, policy=policy):
        raise UnsafePathError(f"writes not allowed for '{p}'")
    return p
