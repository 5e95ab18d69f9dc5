"""drivergen CLI configuration management.

Loads configuration from TOML files with environment variable overrides
(``DRIVERGEN_`` prefix).  Uses :mod:`tomllib` on Python 3.11+.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError, model_validator

from drivergen.cli.errors import ConfigError
from drivergen.llm.models import GatewayConfig
from drivergen.vectordb.models import VectorStoreConfig

# ---------------------------------------------------------------------------
# Default paths
# ---------------------------------------------------------------------------

DEFAULT_CONFIG_DIR = ".drivergen"
DEFAULT_CONFIG_FILE = "config.toml"
DEFAULT_STATE_DIR = "drivers"
DEFAULT_INDEX_FILE = "index.json"

# ---------------------------------------------------------------------------
# Configuration model
# ---------------------------------------------------------------------------


class DriverGenConfig(BaseModel):
    """Application configuration with sensible defaults.

    All fields can be overridden via environment variables with the
    ``DRIVERGEN_`` prefix.  For example ``DRIVERGEN_LLM_MODEL=gpt-4o``.
    ``state_dir`` and ``index_path`` default to locations under
    ``<project_dir>/.drivergen/``.
    """

    project_dir: Path = Field(default_factory=lambda: Path.cwd())
    llm_model: str = "claude-3-5-sonnet-20240620"
    max_tokens: int = Field(default=8000, gt=0)
    max_retries: int = Field(default=3, ge=0, le=10)
    base_retry_delay: float = Field(default=5.0, ge=0.0)
    embedding_model: str = "all-MiniLM-L6-v2"
    state_dir: Optional[Path] = None
    index_path: Optional[Path] = None
    max_iterations: int = Field(default=3, ge=1)
    remote_fs_url: str = "http://api.membrane.io"
    remote_fs_token: Optional[str] = None
    log_level: str = "INFO"
    log_file: Optional[Path] = None

    model_config = {"extra": "ignore"}

    @model_validator(mode="after")
    def _default_paths(self) -> DriverGenConfig:
        base = self.project_dir / DEFAULT_CONFIG_DIR
        if self.state_dir is None:
            self.state_dir = base / DEFAULT_STATE_DIR
        if self.index_path is None:
            self.index_path = base / DEFAULT_INDEX_FILE
        return self

    def gateway_config(self) -> GatewayConfig:
        return GatewayConfig(
            model=self.llm_model,
            max_tokens=self.max_tokens,
            max_retries=self.max_retries,
            base_retry_delay=self.base_retry_delay,
        )

    def vector_config(self) -> VectorStoreConfig:
        return VectorStoreConfig(embedding_model=self.embedding_model)


# ---------------------------------------------------------------------------
# Loader helpers
# ---------------------------------------------------------------------------


def _apply_env_overrides(data: dict) -> dict:
    """Apply DRIVERGEN_ environment variable overrides to *data*."""
    prefix = "DRIVERGEN_"
    field_names = set(DriverGenConfig.model_fields.keys())
    for key, value in os.environ.items():
        if key.startswith(prefix):
            field = key[len(prefix):].lower()
            if field in field_names:
                data[field] = value
    return data


def load_config(config_path: Path | None = None, project_dir: Path | None = None) -> DriverGenConfig:
    """Load configuration from a TOML file with env-var overrides.

    Parameters
    ----------
    config_path:
        Explicit path to a TOML file.  When *None*, looks for
        ``<project_dir>/.drivergen/config.toml``.
    project_dir:
        Project root directory.  Defaults to :func:`Path.cwd`.

    Raises
    ------
    ConfigError
        If the file is not valid TOML or a value fails validation.
    """
    project = project_dir or Path.cwd()
    path = config_path or (project / DEFAULT_CONFIG_DIR / DEFAULT_CONFIG_FILE)

    if config_path is not None and not path.exists():
        raise ConfigError(f"Configuration file not found: {path}")

    data: dict = {}
    if path.exists():
        try:
            with open(path, "rb") as fh:
                data = tomllib.load(fh)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigError(f"Invalid TOML in {path}: {exc}") from exc

    # Flatten nested TOML sections if present
    flat: dict = {}
    for k, v in data.items():
        if isinstance(v, dict):
            flat.update(v)
        else:
            flat[k] = v

    flat.setdefault("project_dir", str(project))

    flat = _apply_env_overrides(flat)
    try:
        return DriverGenConfig(**flat)
    except ValidationError as exc:
        raise ConfigError(f"Invalid configuration: {exc}") from exc


def default_config_toml() -> str:
    """Return default configuration as a TOML string."""
    return """\
# drivergen configuration

[llm]
llm_model = "claude-3-5-sonnet-20240620"
max_retries = 3
base_retry_delay = 5.0

[pipeline]
max_iterations = 3
embedding_model = "all-MiniLM-L6-v2"

[general]
log_level = "INFO"
"""
