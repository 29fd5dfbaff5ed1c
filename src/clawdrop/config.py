"""Settings, API key and target-game persistence."""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

import platformdirs
import yaml
from pydantic import ValidationError as PydanticValidationError

from .constants import (
    API_KEY_ENV,
    APP_NAME,
    CONFIG_FILE,
    DEFAULT_API_BASE_URL,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_UPLOAD_CONCURRENCY,
    TARGET_FILE,
)
from .core import Game
from .errors import ConfigError
from .utils import atomic_write_text


def get_config_dir(env: Optional[Mapping[str, str]] = None) -> Path:
    """Per-user configuration directory.

    CLAWDROP_CONFIG_DIR wins; otherwise the platform's roaming config dir.
    """
    env = os.environ if env is None else env

    override = env.get("CLAWDROP_CONFIG_DIR")
    if override:
        return Path(override)
    return Path(platformdirs.user_config_dir(APP_NAME, appauthor=False, roaming=True))


@dataclass
class Settings:
    """Runtime settings (config.yaml in the config directory)."""

    config_dir: Path = field(default_factory=get_config_dir)
    api_base_url: str = DEFAULT_API_BASE_URL
    upload_concurrency: int = DEFAULT_UPLOAD_CONCURRENCY
    s3_endpoint_url: Optional[str] = None
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT

    @property
    def target_path(self) -> Path:
        return self.config_dir / TARGET_FILE


def load_settings(
    config_dir: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Load settings from config.yaml if present, then apply env overrides.

    A missing or unreadable file yields defaults.

    Raises:
        ConfigError: If a numeric setting is not a number or is out of range
    """
    env = os.environ if env is None else env
    config_dir = config_dir or get_config_dir(env)

    data = {}
    cfg_path = config_dir / CONFIG_FILE
    if cfg_path.exists():
        try:
            data = yaml.safe_load(cfg_path.read_text()) or {}
        except (OSError, yaml.YAMLError):
            data = {}
        if not isinstance(data, dict):
            data = {}

    try:
        upload_concurrency = int(data.get("upload_concurrency", DEFAULT_UPLOAD_CONCURRENCY))
        request_timeout = float(data.get("request_timeout", DEFAULT_REQUEST_TIMEOUT))
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid number in {cfg_path}: {e}") from e

    settings = Settings(
        config_dir=config_dir,
        api_base_url=str(data.get("api_base_url", DEFAULT_API_BASE_URL)),
        upload_concurrency=upload_concurrency,
        s3_endpoint_url=data.get("s3_endpoint_url"),
        request_timeout=request_timeout,
    )

    if env.get("CLAWDROP_API_URL"):
        settings.api_base_url = env["CLAWDROP_API_URL"]
    if env.get("CLAWDROP_S3_ENDPOINT_URL"):
        settings.s3_endpoint_url = env["CLAWDROP_S3_ENDPOINT_URL"]

    settings.api_base_url = settings.api_base_url.rstrip("/")
    if settings.upload_concurrency < 1:
        raise ConfigError(
            f"upload_concurrency must be at least 1, got {settings.upload_concurrency}"
        )
    return settings


def get_api_key(env: Optional[Mapping[str, str]] = None) -> str:
    """API key from the environment.

    Raises:
        ConfigError: If the variable is unset or blank
    """
    env = os.environ if env is None else env
    key = env.get(API_KEY_ENV, "")
    if not key.strip():
        raise ConfigError(
            f"{API_KEY_ENV} is not set. Export your Raccreative API key to push builds."
        )
    return key.strip()


def load_target(settings: Settings) -> Optional[Game]:
    """Currently targeted game, or None when no target is set."""
    path = settings.target_path
    if not path.exists():
        return None
    try:
        return Game.model_validate(json.loads(path.read_text()))
    except (OSError, ValueError, PydanticValidationError) as e:
        raise ConfigError(f"Target file {path} is unreadable: {e}") from e


def save_target(game: Game, settings: Settings) -> None:
    """Persist the target game atomically."""
    text = json.dumps(game.model_dump(by_alias=True), indent=2)
    try:
        atomic_write_text(settings.target_path, text)
    except OSError as e:
        raise ConfigError(f"Cannot write {settings.target_path}: {e}") from e


def clear_target(settings: Settings) -> bool:
    """Remove the target. Returns False if none was set."""
    if not settings.target_path.exists():
        return False
    settings.target_path.unlink()
    return True
