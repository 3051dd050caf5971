"""Tests for copilot_mirror.config -- env-var config loading and validation.

NOT to be confused with test_config_loader.py (hierarchical YAML config)
or test_config_schema.py (Pydantic models).
"""

import logging
from pathlib import Path

import pytest

from copilot_mirror.config import Config, load_config, validate_config
from copilot_mirror.validators import KNOWN_CATEGORIES

_ENV_KEYS = (
    "COPILOT_MIRROR_REPO",
    "COPILOT_MIRROR_BRANCH",
    "COPILOT_MIRROR_API_URL",
    "COPILOT_MIRROR_CACHE_DIR",
    "COPILOT_MIRROR_CATEGORIES",
    "COPILOT_MIRROR_ALLOW_DELETE",
    "COPILOT_MIRROR_BACKUP_RETENTION",
    "COPILOT_MIRROR_TIMEOUT",
    "COPILOT_MIRROR_DEBUG",
    "GITHUB_TOKEN",
    "GH_TOKEN",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in _ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


# -------------------------------------------------------------------------
# validate_config()
# -------------------------------------------------------------------------


class TestValidateConfig:
    """Tests for validate_config() -- repository, URL and limit checks."""

    def test_defaults_valid(self):
        validate_config(Config())

    @pytest.mark.parametrize("repo", ["awesome-copilot", "a/b/c", "", "own er/x"])
    def test_invalid_repo(self, repo):
        with pytest.raises(ValueError, match="expected owner/name"):
            validate_config(Config(repo=repo))

    def test_repo_whitespace_stripped(self):
        config = Config(repo="  github/awesome-copilot ")
        validate_config(config)
        assert config.repo == "github/awesome-copilot"

    def test_invalid_api_scheme(self):
        with pytest.raises(ValueError, match="must start with http:// or https://"):
            validate_config(Config(api_url="ftp://api.github.com"))

    def test_api_url_without_host(self):
        with pytest.raises(ValueError, match="must include a hostname"):
            validate_config(Config(api_url="https://"))

    def test_api_url_trailing_slash_stripped(self):
        config = Config(api_url="https://ghe.example.com/api/v3/")
        validate_config(config)
        assert config.api_url == "https://ghe.example.com/api/v3"

    def test_empty_branch(self):
        with pytest.raises(ValueError, match="Branch cannot be empty"):
            validate_config(Config(branch=" "))

    def test_unknown_category(self):
        with pytest.raises(ValueError, match="is not one of"):
            validate_config(Config(categories=["prompts", "agents"]))

    def test_repeated_categories_collapsed(self):
        config = Config(categories=["prompts", "chatmodes", "prompts"])
        validate_config(config)
        assert config.categories == ["prompts", "chatmodes"]

    def test_no_categories(self):
        with pytest.raises(ValueError, match="At least one category"):
            validate_config(Config(categories=[]))

    def test_retention_floor(self):
        with pytest.raises(ValueError, match="backup retention"):
            validate_config(Config(backup_retention=0))

    def test_timeouts_positive(self):
        with pytest.raises(ValueError, match="Timeouts must be positive"):
            validate_config(Config(run_timeout=0))

    def test_max_attempts(self):
        with pytest.raises(ValueError, match="max_attempts"):
            validate_config(Config(max_attempts=0))

    def test_missing_token_logged(self, caplog):
        with caplog.at_level(logging.INFO, logger="copilot_mirror.config"):
            validate_config(Config(token=None))
        assert "No GitHub token configured" in caplog.text


class TestConfigPaths:
    def test_derived_paths(self, tmp_path: Path):
        config = Config(cache_dir=str(tmp_path))
        assert config.cache_root == tmp_path
        assert config.backup_root == tmp_path / ".backups"
        assert config.combined_root == tmp_path / "combined"

    def test_explicit_paths(self, tmp_path: Path):
        config = Config(
            cache_dir=str(tmp_path),
            backup_dir=str(tmp_path / "b"),
            combined_dir=str(tmp_path / "c"),
        )
        assert config.backup_root == tmp_path / "b"
        assert config.combined_root == tmp_path / "c"

    def test_tilde_expanded(self):
        assert "~" not in str(Config().cache_root)


# -------------------------------------------------------------------------
# load_config()
# -------------------------------------------------------------------------


class TestLoadConfig:
    """Tests for load_config() -- env vars, CLI overrides, YAML fallbacks."""

    def test_defaults(self):
        config = load_config()
        assert config.repo == "github/awesome-copilot"
        assert config.branch == "main"
        assert config.categories == list(KNOWN_CATEGORIES)
        assert config.allow_delete is True
        assert config.token is None
        assert config.run_timeout == 600.0

    def test_env_vars(self, monkeypatch):
        monkeypatch.setenv("COPILOT_MIRROR_REPO", "octo/prompts")
        monkeypatch.setenv("COPILOT_MIRROR_BRANCH", "dev")
        monkeypatch.setenv("COPILOT_MIRROR_CATEGORIES", "prompts, chatmodes")
        monkeypatch.setenv("COPILOT_MIRROR_ALLOW_DELETE", "false")
        monkeypatch.setenv("COPILOT_MIRROR_BACKUP_RETENTION", "9")
        monkeypatch.setenv("COPILOT_MIRROR_TIMEOUT", "120")
        monkeypatch.setenv("GITHUB_TOKEN", "ghp_env")

        config = load_config()

        assert config.repo == "octo/prompts"
        assert config.branch == "dev"
        assert config.categories == ["prompts", "chatmodes"]
        assert config.allow_delete is False
        assert config.backup_retention == 9
        assert config.run_timeout == 120.0
        assert config.token == "ghp_env"

    def test_gh_token_fallback(self, monkeypatch):
        monkeypatch.setenv("GH_TOKEN", "gh_cli")
        assert load_config().token == "gh_cli"

    def test_cli_overrides_env(self, monkeypatch):
        monkeypatch.setenv("COPILOT_MIRROR_REPO", "env/repo")
        monkeypatch.setenv("COPILOT_MIRROR_ALLOW_DELETE", "true")
        monkeypatch.setenv("COPILOT_MIRROR_TIMEOUT", "120")

        config = load_config(
            repo="cli/repo",
            categories=["prompts"],
            allow_delete=False,
            run_timeout=30,
        )

        assert config.repo == "cli/repo"
        assert config.categories == ["prompts"]
        assert config.allow_delete is False
        assert config.run_timeout == 30.0

    def test_env_overrides_yaml(self, monkeypatch):
        monkeypatch.setenv("COPILOT_MIRROR_BRANCH", "env-branch")
        config = load_config(
            yaml_fallbacks={"branch": "yaml-branch", "repo": "yaml/repo"}
        )
        assert config.branch == "env-branch"
        assert config.repo == "yaml/repo"

    def test_yaml_fallbacks(self, tmp_path: Path):
        config = load_config(
            yaml_fallbacks={
                "cache_dir": str(tmp_path),
                "categories": ["collections"],
                "extensions": [".yml"],
                "allow_delete": False,
                "backup_retention": 2,
                "request_timeout": 5,
                "max_attempts": 4,
                "publish_targets": ["~/profile"],
                "force_copy": True,
            }
        )
        assert config.cache_root == tmp_path
        assert config.categories == ["collections"]
        assert config.extensions == [".yml"]
        assert config.allow_delete is False
        assert config.backup_retention == 2
        assert config.request_timeout == 5.0
        assert config.max_attempts == 4
        assert config.publish_targets == ["~/profile"]
        assert config.force_copy is True

    @pytest.mark.parametrize("value", ["abc", "0", "5000"])
    def test_invalid_retention_env(self, monkeypatch, value):
        monkeypatch.setenv("COPILOT_MIRROR_BACKUP_RETENTION", value)
        with pytest.raises(ValueError, match="COPILOT_MIRROR_BACKUP_RETENTION"):
            load_config()

    def test_invalid_timeout_env(self, monkeypatch):
        monkeypatch.setenv("COPILOT_MIRROR_TIMEOUT", "-1")
        with pytest.raises(ValueError, match="COPILOT_MIRROR_TIMEOUT"):
            load_config()

    def test_debug_from_env(self, monkeypatch):
        monkeypatch.setenv("COPILOT_MIRROR_DEBUG", "yes")
        assert load_config().debug is True

    def test_invalid_values_rejected(self):
        with pytest.raises(ValueError):
            load_config(categories=["nonsense"])
