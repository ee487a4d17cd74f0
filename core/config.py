"""
Configuration loading.

Settings come from a YAML file (``changelog.yml`` by default, overridable with
``CHANGELOG_CONFIG``) validated into :class:`RadarConfig`. A ``.env`` file is
loaded first, and a few environment variables win over the file:

==========================  ==========================
``CHANGELOG_DATA_DIR``      ``data_dir``
``SCHEDULER_MODE``          ``schedule.mode``
``SCHEDULER_TIMEZONE``      ``schedule.timezone``
``API_HOST`` / ``API_PORT`` ``api.host`` / ``api.port``
==========================  ==========================
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

from .adapter import LoadMorePolicy, SelectorProfile
from .errors import ChangelogError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = "changelog.yml"
DEFAULT_ALLOW_LIST = ["vercel", "supabase", "figma", "notion", "gumroad"]


class RendererSettings(BaseModel):
    kind: Literal["playwright", "static"] = "playwright"
    headless: bool = True
    timeout_ms: int = 30_000
    settle_seconds: float = 5.0
    stealth: bool = True


class ScheduleSettings(BaseModel):
    mode: Literal["enabled", "disabled"] = "enabled"
    cron: str = "0 6 * * *"
    timezone: str = "UTC"
    persist_jobs: bool = False
    job_store_url: str = "sqlite:///data/scheduler_jobs.db"


class ApiSettings(BaseModel):
    host: str = "0.0.0.0"
    port: int = 8080


class RadarConfig(BaseModel):
    data_dir: Path = Path("data")
    allow_list: List[str] = Field(default_factory=lambda: list(DEFAULT_ALLOW_LIST))
    cooldown_seconds: float = 3.0
    source_timeout_seconds: float = 300.0
    run_log_limit: int = 30
    cache_ttl_seconds: float = 300.0
    renderer: RendererSettings = Field(default_factory=RendererSettings)
    load_more: LoadMorePolicy = Field(default_factory=LoadMorePolicy)
    schedule: ScheduleSettings = Field(default_factory=ScheduleSettings)
    api: ApiSettings = Field(default_factory=ApiSettings)
    custom_sources: List[SelectorProfile] = Field(default_factory=list)

    @field_validator("allow_list")
    @classmethod
    def _lower_ids(cls, v: List[str]) -> List[str]:
        return [s.strip().lower() for s in v if s.strip()]


_ENV_OVERRIDES = {
    "CHANGELOG_DATA_DIR": ("data_dir",),
    "SCHEDULER_MODE": ("schedule", "mode"),
    "SCHEDULER_TIMEZONE": ("schedule", "timezone"),
    "API_HOST": ("api", "host"),
    "API_PORT": ("api", "port"),
}


def _apply_env(raw: Dict[str, Any]) -> Dict[str, Any]:
    for env_name, keys in _ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value is None or value == "":
            continue
        target = raw
        for key in keys[:-1]:
            if not isinstance(target.get(key), dict):
                target[key] = {}
            target = target[key]
        target[keys[-1]] = value
    return raw


def load_config(path: Optional[str] = None) -> RadarConfig:
    """Load settings; a missing file yields the defaults.

    Raises :class:`ChangelogError` when the file exists but is invalid.
    """
    load_dotenv()
    path = path or os.getenv("CHANGELOG_CONFIG", DEFAULT_CONFIG_PATH)
    config_path = Path(path)

    raw: Dict[str, Any] = {}
    if config_path.exists():
        with config_path.open() as f:
            try:
                raw = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ChangelogError(f"Could not parse {config_path}: {e}") from e
        logger.debug(f"Loaded configuration from {config_path}")
    else:
        logger.info(f"Config file not found: {config_path}, using defaults")

    try:
        return RadarConfig.model_validate(_apply_env(raw))
    except ValidationError as e:
        raise ChangelogError(f"Invalid configuration in {config_path}: {e}") from e
