from __future__ import annotations

import fnmatch
import os
from pathlib import Path
from typing import Protocol

from src.patch_engine.config import file_encoding
from src.patch_engine.errors import FileAccessError, MissingFileError
from src.patch_engine.policy import normalize_tree_path


class ProjectTree(Protocol):
    root: Path

    def exists(self, path: str) -> bool: ...

    def read_text(self, path: str) -> str: ...

    def write_text(self, path: str, content: str) -> None: ...

    def chmod(self, path: str, mode: int) -> None: ...

    def glob(self, pattern: str) -> list[str]: ...


def _match_segments(parts: list[str], pats: list[str]) -> bool:
    # `*` stays inside one path segment; a `**` segment spans any number of them.
    if not pats:
        return not parts
    if pats[0] == "**":
        return any(_match_segments(parts[i:], pats[1:]) for i in range(len(parts) + 1))
    return bool(parts) and fnmatch.fnmatchcase(parts[0], pats[0]) and _match_segments(parts[1:], pats[1:])


def glob_match(path: str, pattern: str) -> bool:
    """Match a tree path against a glob the way both tree implementations do."""
    return _match_segments(path.split("/"), pattern.split("/"))


class DiskTree:
    """Project tree backed by a directory on disk.

    Text is read and written without newline translation so CRLF files keep
    their line endings. Decoding and OS errors surface as `FileAccessError`.
    """

    def __init__(self, root: str | Path, *, encoding: str | None = None) -> None:
        self.root = Path(root)
        self.encoding = encoding or file_encoding()

    def _abs(self, path: str) -> Path:
        return self.root / normalize_tree_path(path)

    def exists(self, path: str) -> bool:
        return self._abs(path).exists()

    def read_text(self, path: str) -> str:
        p = self._abs(path)
        if not p.is_file():
            raise MissingFileError(normalize_tree_path(path))
        try:
            with p.open("r", encoding=self.encoding, newline="") as f:
                return f.read()
        except UnicodeDecodeError as exc:
            raise FileAccessError(normalize_tree_path(path), f"not valid {self.encoding} text") from exc
        except OSError as exc:
            raise FileAccessError(normalize_tree_path(path), exc.strerror or str(exc)) from exc

    def write_text(self, path: str, content: str) -> None:
        p = self._abs(path)
        try:
            p.parent.mkdir(parents=True, exist_ok=True)
            with p.open("w", encoding=self.encoding, newline="") as f:
                f.write(content)
        except UnicodeEncodeError as exc:
            raise FileAccessError(normalize_tree_path(path), f"cannot encode as {self.encoding}") from exc
        except OSError as exc:
            raise FileAccessError(normalize_tree_path(path), exc.strerror or str(exc)) from exc

    def chmod(self, path: str, mode: int) -> None:
        p = self._abs(path)
        if not p.exists():
            raise MissingFileError(normalize_tree_path(path))
        try:
            os.chmod(p, mode)
        except OSError as exc:
            raise FileAccessError(normalize_tree_path(path), exc.strerror or str(exc)) from exc

    def glob(self, pattern: str) -> list[str]:
        pat = normalize_tree_path(pattern)
        return sorted(p.relative_to(self.root).as_posix() for p in self.root.glob(pat) if p.is_file())


class MemoryTree:
    """In-memory project tree, mostly for tests and dry planning."""

    def __init__(self, files: dict[str, str] | None = None, *, root: str | Path = ".") -> None:
        self.root = Path(root)
        self.files: dict[str, str] = {}
        self.modes: dict[str, int] = {}
        for k, v in (files or {}).items():
            self.files[normalize_tree_path(k)] = v

    def exists(self, path: str) -> bool:
        p = normalize_tree_path(path)
        if p in self.files:
            return True
        prefix = p + "/"
        return any(k.startswith(prefix) for k in self.files)

    def read_text(self, path: str) -> str:
        p = normalize_tree_path(path)
        if p not in self.files:
            raise MissingFileError(p)
        return self.files[p]

    def write_text(self, path: str, content: str) -> None:
        self.files[normalize_tree_path(path)] = content

    def chmod(self, path: str, mode: int) -> None:
        p = normalize_tree_path(path)
        if p not in self.files:
            raise MissingFileError(p)
        self.modes[p] = mode

    def glob(self, pattern: str) -> list[str]:
        pat = normalize_tree_path(pattern)
        return sorted(k for k in self.files if glob_match(k, pat))

    def snapshot(self) -> dict[str, str]:
        return dict(self.files)
