"""
Settings and logging setup.

Values are read from the process environment after loading a `.env` file,
then optionally overridden by command line flags.
"""

import logging
import os
from dataclasses import dataclass, replace
from typing import Optional

from dotenv import load_dotenv

from .errors import ConfigurationError

# Configuration
DEFAULT_STAGE = "dev"
DEFAULT_REGION = "us-east-1"
DEFAULT_MAX_ATTEMPTS = 5
DEFAULT_BASE_DELAY = 1.0
DEFAULT_MAX_DELAY = 16.0
DEFAULT_MAX_WORKERS = 4
LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'


@dataclass(frozen=True)
class Settings:
    stage: str = DEFAULT_STAGE
    region: str = DEFAULT_REGION
    max_attempts: int = DEFAULT_MAX_ATTEMPTS
    base_delay: float = DEFAULT_BASE_DELAY
    max_delay: float = DEFAULT_MAX_DELAY
    max_workers: int = DEFAULT_MAX_WORKERS
    log_level: str = "INFO"

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ConfigurationError("max_attempts must be at least 1")
        if self.base_delay < 0 or self.max_delay < 0:
            raise ConfigurationError("Retry delays cannot be negative")
        if self.max_workers < 1:
            raise ConfigurationError("max_workers must be at least 1")

    def override(self, **values) -> 'Settings':
        """Return a copy with every non-None value applied."""
        changes = {k: v for k, v in values.items() if v is not None}
        return replace(self, **changes)


def _env_number(name: str, default, cast):
    raw = os.environ.get(name)
    if raw is None or raw == '':
        return default
    try:
        return cast(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}")


def load_settings(env_file: Optional[str] = None) -> Settings:
    """Load settings from the environment (and `.env`, if present)."""
    load_dotenv(env_file)

    region = (os.environ.get('AWS_REGION')
              or os.environ.get('AWS_DEFAULT_REGION')
              or DEFAULT_REGION)

    return Settings(
        stage=os.environ.get('ENDPOINT_BUILDER_STAGE', DEFAULT_STAGE),
        region=region,
        max_attempts=_env_number(
            'ENDPOINT_BUILDER_MAX_ATTEMPTS', DEFAULT_MAX_ATTEMPTS, int),
        base_delay=_env_number(
            'ENDPOINT_BUILDER_BASE_DELAY', DEFAULT_BASE_DELAY, float),
        max_delay=_env_number(
            'ENDPOINT_BUILDER_MAX_DELAY', DEFAULT_MAX_DELAY, float),
        max_workers=_env_number(
            'ENDPOINT_BUILDER_MAX_WORKERS', DEFAULT_MAX_WORKERS, int),
        log_level=os.environ.get('ENDPOINT_BUILDER_LOG_LEVEL', 'INFO').upper(),
    )


def configure_logging(level: str = "INFO") -> None:
    """Setup logging for command line use."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT
    )
