import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml
from dotenv import find_dotenv, load_dotenv
from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_USER_AGENT = "SearchCrawlerBot/1.0"
DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config" / "config.yaml"

PathLike = Union[str, Path]

# keys accepted in the yaml file under a shorter name
_YAML_ALIASES = {"user_agent": "crawler_user_agent"}


class Config(BaseSettings):
    database_url: Optional[str] = None

    max_crawl_depth: int = Field(default=5, ge=0)
    crawler_user_agent: str = DEFAULT_USER_AGENT
    scheduled_delay_ms: int = Field(default=60_000, ge=0)
    politeness_delay_ms: int = Field(default=500, ge=0)
    robots_fetch_timeout_ms: int = Field(default=5_000, gt=0)
    request_timeout: int = Field(default=10, gt=0)

    min_workers: int = Field(default=5, ge=1)
    max_workers: int = Field(default=10, ge=1)
    backlog_capacity: int = Field(default=50, ge=1)
    shutdown_grace_seconds: float = Field(default=30.0, ge=0)

    http_port: int = 8000
    seed_urls: List[str] = Field(default_factory=list)

    log_level: str = "INFO"
    log_path: str = "logs/crawler.log"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @model_validator(mode="after")
    def _check_pool_bounds(self) -> "Config":
        if self.max_workers < self.min_workers:
            raise ValueError(
                f"max_workers ({self.max_workers}) must be >= min_workers ({self.min_workers})"
            )
        return self


def load_environment(dotenv_path: PathLike | None = None, *, override: bool = False) -> bool:
    """Load environment variables from a .env file.

    Without an explicit path the first .env found from the current working
    directory upwards is used. Returns True when a file was loaded.
    """

    path = dotenv_path
    if path is None:
        path = find_dotenv(usecwd=True)

    if not path:
        return False

    return load_dotenv(dotenv_path=path, override=override)


def _load_yaml_config(config_path: PathLike | None = None) -> Dict[str, Any]:
    path = Path(config_path) if config_path is not None else DEFAULT_CONFIG_PATH
    if not path.exists():
        return {}

    with open(path, "r") as f:
        return yaml.safe_load(f) or {}


def load_config(config_path: PathLike | None = None) -> Config:
    """Build the runtime config: environment > yaml ``crawler`` section > defaults."""
    load_environment()
    file_data = _load_yaml_config(config_path)
    crawler_settings: Dict[str, Any] = file_data.get("crawler") or {}

    overrides: Dict[str, Any] = {}
    for key, value in crawler_settings.items():
        field = _YAML_ALIASES.get(key, key)
        # init kwargs beat env in pydantic-settings, so leave env-provided fields alone
        if field.upper() in os.environ or value is None:
            continue
        overrides[field] = value

    return Config(**overrides)


def get_crawler_user_agent() -> str:
    """Return the configured crawler user-agent string."""
    config = load_config()
    return config.crawler_user_agent
