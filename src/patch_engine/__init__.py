from src.patch_engine.commands import (
    CollaboratorCommand,
    CommandResult,
    CommandRunner,
    SubprocessRunner,
)
from src.patch_engine.context import ApplyContext, StepResult
from src.patch_engine.download import DownloadFile
from src.patch_engine.engine import PatchEngine, RunReport, Step, StepOutcome
from src.patch_engine.errors import (
    AnchorNotFoundWarning,
    CollaboratorFailure,
    DownloadError,
    FileAccessError,
    InvalidPatternError,
    MissingFileError,
    PatchEngineError,
    RecipeError,
    UnsafePathError,
)
from src.patch_engine.operations import (
    AppendIfAbsent,
    EnsureLine,
    InsertAfterAnchor,
    InsertBeforeAnchor,
    ReplaceMatch,
    WriteFile,
)
from src.patch_engine.tree import DiskTree, MemoryTree, ProjectTree

__all__ = [
    "AnchorNotFoundWarning",
    "AppendIfAbsent",
    "ApplyContext",
    "CollaboratorCommand",
    "CollaboratorFailure",
    "CommandResult",
    "CommandRunner",
    "DiskTree",
    "DownloadError",
    "DownloadFile",
    "FileAccessError",
    "EnsureLine",
    "InsertAfterAnchor",
    "InsertBeforeAnchor",
    "InvalidPatternError",
    "MemoryTree",
    "MissingFileError",
    "PatchEngine",
    "PatchEngineError",
    "ProjectTree",
    "RecipeError",
    "ReplaceMatch",
    "RunReport",
    "Step",
    "StepOutcome",
    "StepResult",
    "SubprocessRunner",
    "UnsafePathError",
    "WriteFile",
]
