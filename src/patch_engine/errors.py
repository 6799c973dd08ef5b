from __future__ import annotations

from typing import Any


class PatchEngineError(Exception):
    """Base class for every fatal error raised while patching a project tree."""


class MissingFileError(PatchEngineError):
    def __init__(self, path: str):
        super().__init__(f"file not found: {path}")
        self.path = path


class FileAccessError(PatchEngineError):
    def __init__(self, path: str, reason: str):
        super().__init__(f"cannot access {path}: {reason}")
        self.path = path
        self.reason = reason


class InvalidPatternError(PatchEngineError, ValueError):
    def __init__(self, pattern: str, reason: str):
        super().__init__(f"invalid pattern {pattern!r}: {reason}")
        self.pattern = pattern
        self.reason = reason


class UnsafePathError(PatchEngineError, ValueError):
    pass


class RecipeError(PatchEngineError, ValueError):
    def __init__(self, message: str, *, step_index: int | None = None):
        if step_index is not None:
            message = f"step {step_index}: {message}"
        super().__init__(message)
        self.step_index = step_index


class CollaboratorFailure(PatchEngineError):
    def __init__(self, message: str, *, result: Any = None):
        super().__init__(message)
        self.result = result


class DownloadError(PatchEngineError):
    def __init__(self, message: str, *, url: str, status_code: int | None = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class AnchorNotFoundWarning(UserWarning):
    """Recorded on a step result when an insert anchor is absent. Never raised."""
