"""
Configuration for the auction house.

Values are layered, later layers winning:
1. dataclass defaults
2. optional JSON config file
3. a .env file (python-dotenv)
4. AUCTIONHOUSE_* process environment variables
"""

import json
import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Literal, Mapping, Optional

from dotenv import dotenv_values, find_dotenv
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from auctionhouse.core.errors import ConfigError

ENV_PREFIX = "AUCTIONHOUSE_"


@dataclass
class AuctionHouseConfig:
    """Operational configuration"""

    # Storage
    db_path: Path = Path("data/auctionhouse.db")

    # Logging
    log_dir: Path = Path("logs")
    log_level: str = "INFO"
    log_to_file: bool = False

    # Scheduling (used by `auctionhouse watch`)
    cycle_interval: float = 60.0  # Seconds between work cycles

    @property
    def level(self) -> int:
        return logging.getLevelName(self.log_level)

    def ensure_dirs(self):
        """Create the database and log directories"""
        self.db_path.parent.mkdir(exist_ok=True, parents=True)
        if self.log_to_file:
            self.log_dir.mkdir(exist_ok=True, parents=True)


class ConfigOverrides(BaseModel):
    """Validated subset of settings coming from a file or the environment"""

    model_config = ConfigDict(extra="forbid")

    db_path: Optional[Path] = None
    log_dir: Optional[Path] = None
    log_level: Optional[Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]] = None
    log_to_file: Optional[bool] = None
    cycle_interval: Optional[float] = Field(default=None, gt=0)


def _env_overrides(environ: Mapping[str, Optional[str]]) -> Dict[str, Any]:
    names = {f.name for f in fields(AuctionHouseConfig)}
    overrides = {}
    for key, value in environ.items():
        if not key.startswith(ENV_PREFIX) or value is None:
            continue
        name = key[len(ENV_PREFIX):].lower()
        if name in names:
            overrides[name] = value.upper() if name == "log_level" else value
    return overrides


def _apply(config: AuctionHouseConfig, raw: Mapping[str, Any], source: str) -> None:
    try:
        overrides = ConfigOverrides.model_validate(dict(raw))
    except PydanticValidationError as exc:
        raise ConfigError(f"Invalid configuration in {source}: {exc}") from exc

    for name, value in overrides.model_dump(exclude_none=True).items():
        setattr(config, name, value)


def load_config(
    config_path: Optional[str] = None,
    env_file: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> AuctionHouseConfig:
    """
    Load configuration from file, .env and environment.

    Args:
        config_path: Optional path to a JSON config file
        env_file: .env file to read; searched from the working directory if None
        environ: Environment mapping; os.environ if None

    Returns:
        AuctionHouseConfig instance

    Raises:
        ConfigError: unreadable file or invalid values
    """
    config = AuctionHouseConfig()

    if config_path:
        path = Path(config_path)
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise ConfigError(f"Cannot read config file {path}: {exc}") from exc
        if not isinstance(raw, dict):
            raise ConfigError(f"Config file {path} must hold a JSON object")
        _apply(config, raw, str(path))

    dotenv_path = env_file if env_file is not None else find_dotenv(usecwd=True)
    if dotenv_path:
        _apply(config, _env_overrides(dotenv_values(dotenv_path)), str(dotenv_path))

    _apply(config, _env_overrides(os.environ if environ is None else environ), "environment")

    return config
