"""
Runtime configuration for the upload jobs backend.

Settings are assembled in layers with OmegaConf, later layers winning:

1. ``DEFAULTS`` below
2. An optional YAML file (``config/config.yaml`` next to the project, or the
   path named by ``UPLOAD_JOBS_CONFIG``)
3. Environment variables ``UPLOAD_JOBS_<KEY>`` (and ``PORT``), after loading
   a ``.env`` file if present
4. Explicit overrides passed by the caller

The merged container is validated into a :class:`Settings` model so the rest
of the code works with typed values.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from dotenv import load_dotenv
from omegaconf import DictConfig, OmegaConf
from pydantic import BaseModel, Field, model_validator

ENV_PREFIX = "UPLOAD_JOBS_"
CONFIG_PATH_ENV = "UPLOAD_JOBS_CONFIG"

_HERE = Path(__file__).resolve()
_CANDIDATE_CONFIG_PATHS = [parent / "config/config.yaml" for parent in _HERE.parents[:4]]

DEFAULTS: Dict[str, Any] = {
    "host": "0.0.0.0",
    "port": 3001,
    "cors_origins": ["*"],
    "log_level": "INFO",
    "admission_delay_seconds": 1.0,
    "min_duration_seconds": 5.0,
    "max_duration_seconds": 10.0,
    "failure_probability": 0.1,
    "expected_duration_seconds": 7.5,
    "progress_cap": 95,
    "max_upload_bytes": 50 * 1024 * 1024,
    "max_workers": 64,
    "history_default_limit": 50,
}


class Settings(BaseModel):
    host: str
    port: int = Field(ge=0, le=65535)
    cors_origins: List[str]
    log_level: str
    admission_delay_seconds: float = Field(ge=0)
    min_duration_seconds: float = Field(ge=0)
    max_duration_seconds: float = Field(ge=0)
    failure_probability: float = Field(ge=0, le=1)
    expected_duration_seconds: float = Field(gt=0)
    progress_cap: int = Field(ge=0, le=99)
    max_upload_bytes: int = Field(gt=0)
    max_workers: int = Field(ge=1)
    history_default_limit: int = Field(ge=0)

    @model_validator(mode="after")
    def _check_duration_bounds(self) -> "Settings":
        if self.min_duration_seconds > self.max_duration_seconds:
            raise ValueError("min_duration_seconds must not exceed max_duration_seconds")
        return self


def find_config_file() -> Optional[Path]:
    explicit = os.environ.get(CONFIG_PATH_ENV)
    if explicit:
        path = Path(explicit)
        if not path.exists():
            raise FileNotFoundError(f"Config file named by {CONFIG_PATH_ENV} not found: {path}")
        return path
    return next((path for path in _CANDIDATE_CONFIG_PATHS if path.exists()), None)


def _env_overrides(environ: Mapping[str, str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    if environ.get("PORT"):
        overrides["port"] = environ["PORT"]
    for key in DEFAULTS:
        value = environ.get(f"{ENV_PREFIX}{key.upper()}")
        if value is None:
            continue
        if key == "cors_origins":
            overrides[key] = [origin.strip() for origin in value.split(",") if origin.strip()]
        else:
            overrides[key] = value
    return overrides


def make_runtime_config(
    overrides: Optional[Dict[str, Any]] = None,
    config_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> DictConfig:
    """
    Merge defaults, the YAML file, environment and explicit overrides.

    The base config is in struct mode, so unknown keys in any layer raise
    instead of being silently ignored.
    """
    base = OmegaConf.create(DEFAULTS)
    OmegaConf.set_struct(base, True)

    layers = []
    if config_path is not None:
        layers.append(OmegaConf.load(config_path))
    layers.append(OmegaConf.create(_env_overrides(os.environ if environ is None else environ)))
    if overrides:
        layers.append(OmegaConf.create(overrides))

    return DictConfig(OmegaConf.merge(base, *layers))


def load_settings(
    overrides: Optional[Dict[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
    use_config_file: bool = True,
) -> Settings:
    if environ is None:
        load_dotenv()
    config_path = find_config_file() if use_config_file else None
    runtime_config = make_runtime_config(overrides, config_path=config_path, environ=environ)
    container = OmegaConf.to_container(runtime_config, resolve=True)
    return Settings.model_validate(container)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
