from __future__ import annotations

import os


def _env_bool(name: str, *, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    v = raw.strip().lower()
    if v in ("1", "true", "yes", "on"):
        return True
    if v in ("0", "false", "no", "off"):
        return False
    return default


def _env_int(name: str, default: int) -> int:
    raw = (os.environ.get(name) or "").strip()
    if not raw:
        return int(default)
    try:
        return int(raw)
    except ValueError:
        return int(default)


def _env_str(name: str) -> str:
    return str(os.environ.get(name) or "").strip()


def dry_run_default() -> bool:
    return _env_bool("SCAFFOLD_PATCH_DRY_RUN", default=False)


def log_level() -> str:
    v = _env_str("SCAFFOLD_PATCH_LOG_LEVEL").upper()
    return v if v in ("DEBUG", "INFO", "WARNING", "ERROR") else "INFO"


def file_encoding() -> str:
    return _env_str("SCAFFOLD_PATCH_ENCODING") or "utf-8"


def download_timeout_s() -> int:
    return max(1, _env_int("SCAFFOLD_PATCH_DOWNLOAD_TIMEOUT_S", 30))


_DEFAULT_DENY_WRITE_PREFIXES = [".git/"]


def deny_write_prefixes() -> list[str]:
    raw = _env_str("SCAFFOLD_PATCH_DENY_WRITE_PREFIXES")
    if not raw:
        return list(_DEFAULT_DENY_WRITE_PREFIXES)
    out = [p.strip().lstrip("/") for p in raw.split(",") if p.strip()]
    out = [p if p.endswith("/") else p + "/" for p in out]

    # Git metadata stays protected even when the list is overridden.
    if ".git/" not in out:
        out.append(".git/")
    return out
