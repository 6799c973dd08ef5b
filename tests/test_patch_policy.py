from __future__ import annotations

import pytest

from src.patch_engine.config import deny_write_prefixes, download_timeout_s, dry_run_default, log_level
from src.patch_engine.errors import UnsafePathError
from src.patch_engine.policy import WritePolicy, normalize_tree_path, require_write_allowed


def test_normalize_tree_path_strips_leading_slash() -> None:
    assert normalize_tree_path("/config/routes.rb") == "config/routes.rb"


def test_normalize_tree_path_collapses_dots() -> None:
    assert normalize_tree_path("app/./views//layouts/application.html.erb") == (
        "app/views/layouts/application.html.erb"
    )


def test_normalize_tree_path_rejects_empty() -> None:
    with pytest.raises(UnsafePathError):
        normalize_tree_path("  ")


def test_normalize_tree_path_rejects_traversal() -> None:
    with pytest.raises(UnsafePathError):
        normalize_tree_path("config/../../etc/passwd")


def test_normalize_tree_path_rejects_root() -> None:
    with pytest.raises(UnsafePathError):
        normalize_tree_path("/")


def test_require_write_denies_git_metadata() -> None:
    policy = WritePolicy(deny_write_prefixes=(".git/",))
    with pytest.raises(UnsafePathError):
        require_write_allowed(".git/config", policy=policy)
    assert require_write_allowed("Gemfile", policy=policy) == "Gemfile"


def test_deny_prefixes_override_keeps_git(monkeypatch) -> None:
    monkeypatch.setenv("SCAFFOLD_PATCH_DENY_WRITE_PREFIXES", "node_modules, /vendor/")
    assert deny_write_prefixes() == ["node_modules/", "vendor/", ".git/"]


def test_config_defaults() -> None:
    assert dry_run_default() is False
    assert log_level() == "INFO"
    assert download_timeout_s() == 30
    assert deny_write_prefixes() == [".git/"]


def test_config_env_overrides(monkeypatch) -> None:
    monkeypatch.setenv("SCAFFOLD_PATCH_DRY_RUN", "yes")
    monkeypatch.setenv("SCAFFOLD_PATCH_LOG_LEVEL", "debug")
    monkeypatch.setenv("SCAFFOLD_PATCH_DOWNLOAD_TIMEOUT_S", "0")
    assert dry_run_default() is True
    assert log_level() == "DEBUG"
    assert download_timeout_s() == 1


def test_config_ignores_garbage(monkeypatch) -> None:
    monkeypatch.setenv("SCAFFOLD_PATCH_DRY_RUN", "maybe")
    monkeypatch.setenv("SCAFFOLD_PATCH_LOG_LEVEL", "loud")
    monkeypatch.setenv("SCAFFOLD_PATCH_DOWNLOAD_TIMEOUT_S", "soon")
    assert dry_run_default() is False
    assert log_level() == "INFO"
    assert download_timeout_s() == 30
