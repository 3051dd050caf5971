"""Unified configuration schema for copilot-mirror.

Defines Pydantic models for the YAML config structure with dedicated
sections for the remote repository, the local mirror, publishing, and
logging, plus an adapter that flattens them into fallback values for
``load_config()``.

Usage:
    from copilot_mirror.config_schema import build_config, to_fallbacks

    raw = load_hierarchical_config()
    unified = build_config(raw)
    config = load_config(yaml_fallbacks=to_fallbacks(unified))
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field, field_validator

from .validators import KNOWN_CATEGORIES

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class RemoteConfig(BaseModel):
    """Remote repository settings.

    All fields are optional so env vars and CLI args can supply them.
    """

    repo: str | None = Field(
        default=None, description="Source repository as owner/name"
    )
    branch: str | None = Field(default=None, description="Git ref to mirror")
    api_url: str | None = Field(default=None, description="GitHub API base URL")
    token: str | None = Field(
        default=None, description="Bearer token (raises the request quota)"
    )
    request_timeout: float = Field(
        default=30.0,
        gt=0,
        le=600,
        description="Per-request timeout in seconds",
    )
    max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts per request for transient failures",
    )

    model_config = {"frozen": True}


class MirrorConfig(BaseModel):
    """Local cache and reconciliation settings."""

    cache_dir: str | None = Field(
        default=None, description="Root of the per-category destination tree"
    )
    categories: list[str] | None = Field(
        default=None, description="Categories to mirror"
    )
    extensions: list[str] = Field(
        default_factory=lambda: [".md", ".json"],
        description="Accepted file extensions",
    )
    allow_delete: bool | None = Field(
        default=None, description="Delete files that vanished upstream"
    )
    backup_dir: str | None = Field(
        default=None, description="Directory holding pre-deletion archives"
    )
    backup_retention: int | None = Field(
        default=None, ge=1, le=1000, description="Archives to keep"
    )
    run_timeout: float | None = Field(
        default=None, gt=0, description="Run-wide deadline in seconds"
    )

    model_config = {"frozen": True}

    @field_validator("categories")
    @classmethod
    def _known_categories(cls, value: list[str] | None) -> list[str] | None:
        if value is None:
            return value
        unknown = [c for c in value if c not in KNOWN_CATEGORIES]
        if unknown:
            raise ValueError(
                f"Unknown categories {unknown}; expected any of {list(KNOWN_CATEGORIES)}"
            )
        return value

    @field_validator("extensions")
    @classmethod
    def _dotted_extensions(cls, value: list[str]) -> list[str]:
        return [ext if ext.startswith(".") else f".{ext}" for ext in value]


class PublishConfig(BaseModel):
    """Combine/publish settings.

    Attributes:
        combined_dir: Flat merged collection directory.
        targets: Profile directories that receive the collection.
        force_copy: Skip link strategies and always copy.
    """

    combined_dir: str | None = None
    targets: list[str] = Field(default_factory=list)
    force_copy: bool = False

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
        format: ``text`` or ``json``.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")
    format: str = Field(default="text", pattern="^(text|json)$")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level configuration; ``UnifiedConfig()`` is always valid."""

    remote: RemoteConfig = Field(default_factory=RemoteConfig)
    mirror: MirrorConfig = Field(default_factory=MirrorConfig)
    publish: PublishConfig = Field(default_factory=PublishConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from ``load_hierarchical_config()`` output.

    Missing sections get defaults.
    """
    if not raw_data:
        return UnifiedConfig()

    return UnifiedConfig(**raw_data)


def to_fallbacks(unified: UnifiedConfig) -> dict:
    """Flatten the YAML sections into ``load_config`` fallback values.

    ``None`` values are dropped so they never shadow built-in defaults.
    """
    merged: dict = {}
    for section in (unified.remote, unified.mirror):
        merged.update(
            {k: v for k, v in section.model_dump().items() if v is not None}
        )
    merged["combined_dir"] = unified.publish.combined_dir
    merged["publish_targets"] = list(unified.publish.targets)
    merged["force_copy"] = unified.publish.force_copy
    return {k: v for k, v in merged.items() if v is not None}
