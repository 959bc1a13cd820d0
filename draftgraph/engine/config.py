"""
draftgraph Configuration — Load and validate draftgraph.yaml at startup.

Usage:
    from draftgraph.engine.config import load_config, get_config
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import BaseModel, Field, field_validator

from draftgraph.engine.errors import DraftGraphConfigError

CONFIG_FILENAME = "draftgraph.yaml"


# ---------------------------------------------------------------------------
# Pydantic models for draftgraph.yaml
# ---------------------------------------------------------------------------

class StorageConfig(BaseModel):
    backend: str = "memory"
    url: str = "sqlite:///.draftgraph/graph.db"
    pool_size: int = 5
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 1800
    pool_pre_ping: bool = True
    create_tables: bool = True

    @field_validator("backend")
    @classmethod
    def validate_backend(cls, v: str) -> str:
        if v not in ("memory", "sql"):
            raise ValueError(f"storage.backend must be memory/sql, got '{v}'")
        return v


class ChunkConfig(BaseModel):
    chunk_size: int = Field(default=256 * 1024, gt=0)
    encryption_key_env: str = "CHUNK_ENC_KEY"
    secret_target_template: str = "git-cms-{environment}-enc-key"


class HistoryConfig(BaseModel):
    default_limit: int = Field(default=20, ge=1)


class LoggingConfig(BaseModel):
    level: str = "INFO"
    directory: str = ".draftgraph/logs"
    audit: bool = False


class CmsConfig(BaseModel):
    """Root model for draftgraph.yaml."""
    ref_prefix: str = "refs/cms"
    environment: str = "dev"
    author: str = "draftgraph"
    sign: bool = False

    storage: StorageConfig = StorageConfig()
    chunks: ChunkConfig = ChunkConfig()
    history: HistoryConfig = HistoryConfig()
    logging: LoggingConfig = LoggingConfig()

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        v = v.lower()
        if v not in ("dev", "staging", "prod"):
            raise ValueError(f"environment must be dev/staging/prod, got '{v}'")
        return v

    @field_validator("ref_prefix")
    @classmethod
    def validate_ref_prefix(cls, v: str) -> str:
        v = v.strip().rstrip("/")
        if not v:
            raise ValueError("ref_prefix cannot be empty")
        return v

    @property
    def secret_target(self) -> str:
        """Credential-store target name for the chunk encryption key."""
        return self.chunks.secret_target_template.format(environment=self.environment)


# ---------------------------------------------------------------------------
# Config Loading Functions
# ---------------------------------------------------------------------------

_config: Optional[CmsConfig] = None


def _find_project_root() -> Path:
    """Find the project root by looking for draftgraph.yaml."""
    current = Path.cwd()
    for parent in [current, *current.parents]:
        if (parent / CONFIG_FILENAME).exists():
            return parent
    return current


def get_project_root() -> Path:
    """Return the project root directory."""
    return _find_project_root()


def _apply_env_overrides(data: Dict[str, Any]) -> Dict[str, Any]:
    """Environment variables win over file values."""
    if os.environ.get("CMS_SIGN") == "1":
        data["sign"] = True
    env_name = os.environ.get("DRAFTGRAPH_ENV")
    if env_name:
        data["environment"] = env_name
    return data


def load_config(config_path: Optional[str] = None) -> CmsConfig:
    """
    Load and validate draftgraph.yaml.

    Args:
        config_path: Explicit path to draftgraph.yaml. If None, auto-discovers.

    Returns:
        Validated CmsConfig instance.
    """
    global _config

    if config_path is None:
        config_path = str(_find_project_root() / CONFIG_FILENAME)

    path = Path(config_path)
    if not path.exists():
        _config = CmsConfig(**_apply_env_overrides({}))
        return _config

    with open(path, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}

    if not isinstance(raw, dict):
        raise DraftGraphConfigError(
            f"{path} must contain a mapping, got {type(raw).__name__}",
            object_ref=str(path),
        )

    # Settings may be nested under a top-level "cms" key
    cms_data = raw.get("cms", {}) or {}
    config_data: Dict[str, Any] = {
        key: cms_data.get(key, raw.get(key))
        for key in ("ref_prefix", "environment", "author", "sign")
        if cms_data.get(key, raw.get(key)) is not None
    }
    for section in ("storage", "chunks", "history", "logging"):
        if raw.get(section):
            config_data[section] = raw[section]

    _config = CmsConfig(**_apply_env_overrides(config_data))
    return _config


def get_config() -> CmsConfig:
    """Get the currently loaded config, loading if necessary."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def get_environment() -> str:
    """Get the current environment."""
    return get_config().environment
