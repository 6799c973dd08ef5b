import sys
from pathlib import Path

import pytest

# Ensure the repo root is on sys.path so tests can import the local `src/` package.
ROOT = str(Path(__file__).resolve().parents[1])
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)


@pytest.fixture(autouse=True)
def _isolate_engine_env(monkeypatch: pytest.MonkeyPatch) -> None:
    # A developer shell may export these; tests start from the defaults.
    for name in (
        "SCAFFOLD_PATCH_DRY_RUN",
        "SCAFFOLD_PATCH_LOG_LEVEL",
        "SCAFFOLD_PATCH_ENCODING",
        "SCAFFOLD_PATCH_DOWNLOAD_TIMEOUT_S",
        "SCAFFOLD_PATCH_DENY_WRITE_PREFIXES",
    ):
        monkeypatch.delenv(name, raising=False)
