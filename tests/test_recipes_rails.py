from __future__ import annotations

import pytest

from src.patch_engine.commands import CollaboratorCommand
from src.patch_engine.context import ApplyContext
from src.patch_engine.operations import EnsureLine, InsertAfterAnchor, WriteFile
from src.patch_engine.tree import MemoryTree
from src.recipes import rails

CTX = ApplyContext(runner=None, session=None)

APPLICATION_RB = (
    'require_relative "boot"\n\n'
    "module Blog\n"
    "  class Application < Rails::Application\n"
    "    config.load_defaults 8.0\n"
    "  end\n"
    "end\n"
)
DEVELOPMENT_RB = 'require "active_support/core_ext/integer/time"\n\nRails.application.configure do\n  config.enable_reloading = true\nend\n'


def test_route_inserts_inside_draw_block_once() -> None:
    tree = MemoryTree({"config/routes.rb": "Rails.application.routes.draw do\n  resources :posts\nend\n"})
    step = rails.route('root to: "pages#home"')
    assert isinstance(step, InsertAfterAnchor)
    step.apply(tree, CTX)
    step.apply(tree, CTX)
    assert tree.read_text("config/routes.rb") == (
        'Rails.application.routes.draw do\n  root to: "pages#home"\n  resources :posts\nend\n'
    )


def test_environment_without_env_targets_application_rb() -> None:
    tree = MemoryTree({"config/application.rb": APPLICATION_RB})
    data = "config.generators do |generate|\n  generate.helper false\nend"
    rails.environment(data).apply(tree, CTX)
    rails.environment(data).apply(tree, CTX)
    text = tree.read_text("config/application.rb")
    assert (
        "  class Application < Rails::Application\n"
        "    config.generators do |generate|\n"
        "      generate.helper false\n"
        "    end\n"
        "    config.load_defaults 8.0\n"
    ) in text
    assert text.count("generate.helper false") == 1


def test_environment_with_env_targets_environment_file() -> None:
    tree = MemoryTree({"config/environments/development.rb": DEVELOPMENT_RB})
    line = 'config.action_mailer.default_url_options = { host: "localhost", port: 3000 }'
    step = rails.environment(line, env="development")
    assert step.path == "config/environments/development.rb"
    step.apply(tree, CTX)
    assert f"Rails.application.configure do\n  {line}\n  config.enable_reloading" in tree.read_text(
        "config/environments/development.rb"
    )


def test_environment_rejects_path_like_env() -> None:
    with pytest.raises(ValueError):
        rails.environment("x", env="../production")


def test_initializer_writes_under_config_initializers() -> None:
    step = rails.initializer("assets.rb", 'Rails.application.config.assets.version = "1.0"\n')
    assert isinstance(step, WriteFile)
    assert step.path == "config/initializers/assets.rb"
    assert step.force is False


def test_gem_is_an_exact_line() -> None:
    step = rails.gem("propshaft", "1.2.1")
    assert step == EnsureLine("Gemfile", 'gem "propshaft", "1.2.1"')
    assert rails.gem("devise").line == 'gem "devise"'


def test_generate_and_rails_command() -> None:
    g = rails.generate("devise", "User", creates="app/models/user.rb")
    assert g.argv == ["bin/rails", "generate", "devise", "User"]
    assert g.creates == "app/models/user.rb"
    r = rails.rails_command("db:migrate")
    assert r.argv == ["bin/rails", "db:migrate"]


def test_git_helper() -> None:
    step = rails.git("commit", "-m", "Initial commit")
    assert isinstance(step, CollaboratorCommand)
    assert step.argv == ["git", "commit", "-m", "Initial commit"]


def test_run_splits_or_uses_shell() -> None:
    assert rails.run('npm pkg set engines.node=">=18"').argv == ["npm", "pkg", "set", "engines.node=>=18"]
    shell = rails.run("pgrep -f spring | xargs -r kill -9 || true", shell=True, best_effort=True)
    assert shell.argv == ["sh", "-c", "pgrep -f spring | xargs -r kill -9 || true"]
    assert shell.best_effort is True
    with pytest.raises(ValueError):
        rails.run("   ")
