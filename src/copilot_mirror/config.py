"""Runtime configuration for copilot-mirror.

Reads mirror settings from CLI args, environment variables, .env files,
and YAML config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    COPILOT_MIRROR_REPO: Source repository, owner/name (default: github/awesome-copilot)
    COPILOT_MIRROR_BRANCH: Git ref to mirror (default: main)
    COPILOT_MIRROR_API_URL: GitHub API base URL (default: https://api.github.com)
    COPILOT_MIRROR_CACHE_DIR: Local destination root (default: ~/.cache/copilot-mirror)
    COPILOT_MIRROR_CATEGORIES: Comma-separated categories (default: all)
    COPILOT_MIRROR_ALLOW_DELETE: Propagate upstream deletions (default: true)
    COPILOT_MIRROR_BACKUP_RETENTION: Archives to keep (default: 5)
    COPILOT_MIRROR_TIMEOUT: Run-wide deadline in seconds (default: 600)
    GITHUB_TOKEN / GH_TOKEN: Optional bearer token
"""

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlparse

from .validators import KNOWN_CATEGORIES, validate_category

logger = logging.getLogger(__name__)

DEFAULT_REPO = "github/awesome-copilot"
DEFAULT_BRANCH = "main"
DEFAULT_API_URL = "https://api.github.com"
DEFAULT_CACHE_DIR = "~/.cache/copilot-mirror"

_REPO_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")


@dataclass
class Config:
    repo: str = DEFAULT_REPO
    branch: str = DEFAULT_BRANCH
    api_url: str = DEFAULT_API_URL
    token: str | None = None
    cache_dir: str = DEFAULT_CACHE_DIR
    categories: list[str] = field(
        default_factory=lambda: list(KNOWN_CATEGORIES)
    )
    extensions: list[str] = field(default_factory=lambda: [".md", ".json"])
    allow_delete: bool = True
    backup_dir: str | None = None
    backup_retention: int = 5
    run_timeout: float = 600.0
    request_timeout: float = 30.0
    max_attempts: int = 3
    combined_dir: str | None = None
    publish_targets: list[str] = field(default_factory=list)
    force_copy: bool = False
    debug: bool = False

    @property
    def cache_root(self) -> Path:
        return Path(self.cache_dir).expanduser()

    @property
    def backup_root(self) -> Path:
        if self.backup_dir:
            return Path(self.backup_dir).expanduser()
        return self.cache_root / ".backups"

    @property
    def combined_root(self) -> Path:
        if self.combined_dir:
            return Path(self.combined_dir).expanduser()
        return self.cache_root / "combined"


def validate_config(config: Config) -> None:
    """Validate configuration values and raise ValueError if invalid.

    Args:
        config: Config instance to validate.

    Raises:
        ValueError: If the repository, API URL, categories or numeric
            limits are invalid.
    """
    config.repo = config.repo.strip()
    if not _REPO_PATTERN.match(config.repo):
        raise ValueError(
            f"Invalid repository '{config.repo}': expected owner/name"
        )

    config.api_url = config.api_url.strip()
    if not config.api_url.startswith(("http://", "https://")):
        raise ValueError(
            f"Invalid API URL '{config.api_url}': must start with http:// or https://"
        )
    if not urlparse(config.api_url).hostname:
        raise ValueError(
            f"Invalid API URL '{config.api_url}': URL must include a hostname"
        )
    config.api_url = config.api_url.removesuffix("/")

    if not config.branch.strip():
        raise ValueError("Branch cannot be empty")

    config.categories = list(dict.fromkeys(config.categories))
    if not config.categories:
        raise ValueError("At least one category must be configured")
    for category in config.categories:
        ok, reason = validate_category(category)
        if not ok:
            raise ValueError(reason)

    if config.backup_retention < 1:
        raise ValueError(
            f"Invalid backup retention {config.backup_retention}: must be >= 1"
        )
    if config.run_timeout <= 0 or config.request_timeout <= 0:
        raise ValueError("Timeouts must be positive")
    if config.max_attempts < 1:
        raise ValueError("max_attempts must be >= 1")

    if not config.token:
        logger.info(
            "No GitHub token configured; unauthenticated requests have a low rate limit"
        )


def _get_bool_env(key: str) -> bool | None:
    """Return True/False from env var, or None if unset."""
    val = os.getenv(key)
    if val is None:
        return None
    return val.lower() in ("true", "1", "yes", "on")


def _get_number_env(key: str, kind: type, low: float, high: float):
    raw = os.getenv(key)
    if raw is None:
        return None
    try:
        value = kind(raw)
    except ValueError:
        raise ValueError(
            f"Invalid {key} '{raw}': must be a number between {low} and {high}"
        ) from None
    if not (low <= value <= high):
        raise ValueError(
            f"Invalid {key} '{raw}': must be a number between {low} and {high}"
        )
    return value


def load_config(
    repo: str | None = None,
    branch: str | None = None,
    token: str | None = None,
    cache_dir: str | None = None,
    categories: list[str] | None = None,
    allow_delete: bool | None = None,
    run_timeout: float | None = None,
    debug: bool = False,
    yaml_fallbacks: dict | None = None,
) -> Config:
    """Load configuration with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    The caller is responsible for calling ``load_dotenv()`` before this
    function so that .env values are available via ``os.getenv()``.

    Args:
        repo: Override source repository.
        branch: Override git ref.
        token: Override bearer token.
        cache_dir: Override destination root.
        categories: Override category list.
        allow_delete: Override deletion propagation (``None`` = not given).
        run_timeout: Override run-wide deadline.
        debug: Enable debug logging (CLI flag).
        yaml_fallbacks: Flattened values from the YAML config
            (see ``config_schema.to_fallbacks``).

    Returns:
        Validated Config instance.

    Raises:
        ValueError: If any resolved value is invalid.
    """
    fb = yaml_fallbacks or {}

    # --- String fields: CLI > env > YAML > default ---

    final_repo = (
        repo or os.getenv("COPILOT_MIRROR_REPO") or fb.get("repo") or DEFAULT_REPO
    )
    final_branch = (
        branch
        or os.getenv("COPILOT_MIRROR_BRANCH")
        or fb.get("branch")
        or DEFAULT_BRANCH
    )
    final_api_url = (
        os.getenv("COPILOT_MIRROR_API_URL") or fb.get("api_url") or DEFAULT_API_URL
    )
    final_token = (
        token
        or os.getenv("GITHUB_TOKEN")
        or os.getenv("GH_TOKEN")
        or fb.get("token")
        or None
    )
    final_cache_dir = (
        cache_dir
        or os.getenv("COPILOT_MIRROR_CACHE_DIR")
        or fb.get("cache_dir")
        or DEFAULT_CACHE_DIR
    )

    # --- List fields ---

    if categories:
        final_categories = list(categories)
    elif os.getenv("COPILOT_MIRROR_CATEGORIES"):
        final_categories = [
            c.strip()
            for c in os.environ["COPILOT_MIRROR_CATEGORIES"].split(",")
            if c.strip()
        ]
    else:
        final_categories = list(fb.get("categories") or KNOWN_CATEGORIES)

    # --- Boolean fields: CLI > env > YAML > default ---

    if allow_delete is not None:
        final_allow_delete = allow_delete
    else:
        env_allow = _get_bool_env("COPILOT_MIRROR_ALLOW_DELETE")
        if env_allow is not None:
            final_allow_delete = env_allow
        else:
            final_allow_delete = bool(fb.get("allow_delete", True))

    if debug:
        final_debug = True
    else:
        env_debug = _get_bool_env("COPILOT_MIRROR_DEBUG")
        final_debug = env_debug if env_debug is not None else False

    # --- Numeric fields: CLI > env > YAML > default ---

    env_retention = _get_number_env(
        "COPILOT_MIRROR_BACKUP_RETENTION", int, 1, 1000
    )
    final_retention = (
        env_retention
        if env_retention is not None
        else int(fb.get("backup_retention", 5))
    )

    if run_timeout is not None:
        final_timeout = float(run_timeout)
    else:
        env_timeout = _get_number_env(
            "COPILOT_MIRROR_TIMEOUT", float, 1, 86400
        )
        final_timeout = (
            env_timeout
            if env_timeout is not None
            else float(fb.get("run_timeout", 600.0))
        )

    config = Config(
        repo=final_repo,
        branch=final_branch,
        api_url=final_api_url,
        token=final_token,
        cache_dir=final_cache_dir,
        categories=final_categories,
        extensions=list(fb.get("extensions", [".md", ".json"])),
        allow_delete=final_allow_delete,
        backup_dir=fb.get("backup_dir"),
        backup_retention=final_retention,
        run_timeout=final_timeout,
        request_timeout=float(fb.get("request_timeout", 30.0)),
        max_attempts=int(fb.get("max_attempts", 3)),
        combined_dir=fb.get("combined_dir"),
        publish_targets=list(fb.get("publish_targets", [])),
        force_copy=bool(fb.get("force_copy", False)),
        debug=final_debug,
    )

    validate_config(config)

    return config
