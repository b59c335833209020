"""Configuration management for dbmig-probe."""

import logging
import os
import tomllib
from pathlib import Path

import tomli_w
from pydantic import BaseModel, Field, model_validator

from .probe import DEFAULT_HIGH_VERSION_EXCLUSIVE, DEFAULT_LOW_VERSION, MigrationRange
from .utils import ensure_dir, expand_path

logger = logging.getLogger(__name__)


class Config(BaseModel):
    """Configuration for dbmig-probe.

    Pydantic model holding the probed version range and the sentinel values
    written to the installer when no version can be reported.
    """

    low_version: int = Field(default=DEFAULT_LOW_VERSION, ge=1, description="First probed version")
    high_version_exclusive: int = Field(
        default=DEFAULT_HIGH_VERSION_EXCLUSIVE, description="First version not probed"
    )
    no_prior_install_sentinel: int = 999999
    failure_sentinel: int = 0
    report_top_of_range: bool = False

    @model_validator(mode="after")
    def check_sentinels(self) -> "Config":
        """Ensure the range is valid and sentinels cannot collide with real versions."""
        if self.high_version_exclusive <= self.low_version:
            raise ValueError(
                f"high_exclusive ({self.high_version_exclusive}) must be greater than "
                f"low ({self.low_version})"
            )
        if self.no_prior_install_sentinel < self.high_version_exclusive:
            raise ValueError(
                f"no_prior_install sentinel ({self.no_prior_install_sentinel}) must not be "
                f"below {self.high_version_exclusive}"
            )
        if self.failure_sentinel >= self.low_version - 1:
            raise ValueError(
                f"failure sentinel ({self.failure_sentinel}) must be below {self.low_version - 1}"
            )
        return self

    @property
    def migration_range(self) -> MigrationRange:
        """Versions to probe as a MigrationRange."""
        return MigrationRange(low=self.low_version, high_exclusive=self.high_version_exclusive)

    def save(self, path: Path) -> None:
        """
        Save configuration to TOML file.

        Args:
            path: Path to save config file
        """
        ensure_dir(path.parent)

        data = {
            "range": {
                "low": self.low_version,
                "high_exclusive": self.high_version_exclusive,
            },
            "sentinels": {
                "no_prior_install": self.no_prior_install_sentinel,
                "failure": self.failure_sentinel,
            },
            "behavior": {
                "report_top_of_range": self.report_top_of_range,
            },
        }

        with open(path, "wb") as f:
            tomli_w.dump(data, f)


def get_config_path() -> Path:
    """
    Get configuration file path.

    Priority:
    1. DBMIG_PROBE_CONFIG environment variable
    2. Default: ~/.config/dbmig-probe/config.toml

    Returns:
        Path to config file
    """
    env_config = os.environ.get("DBMIG_PROBE_CONFIG")
    if env_config:
        return expand_path(env_config)

    return expand_path("~/.config/dbmig-probe/config.toml")


def load_config(config_path: Path | None = None) -> Config:
    """
    Load configuration from TOML file using Pydantic validation.

    Args:
        config_path: Optional custom config path

    Returns:
        Config instance with validated values

    Raises:
        ValueError: If the file is not valid TOML or config validation fails
    """
    if config_path is None:
        config_path = get_config_path()

    if config_path.exists():
        try:
            with open(config_path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ValueError(f"Invalid TOML in {config_path}: {e}") from e

        flat_data = {
            "low_version": data.get("range", {}).get("low", DEFAULT_LOW_VERSION),
            "high_version_exclusive": data.get("range", {}).get(
                "high_exclusive", DEFAULT_HIGH_VERSION_EXCLUSIVE
            ),
            "no_prior_install_sentinel": data.get("sentinels", {}).get("no_prior_install", 999999),
            "failure_sentinel": data.get("sentinels", {}).get("failure", 0),
            "report_top_of_range": data.get("behavior", {}).get("report_top_of_range", False),
        }

        # pydantic's ValidationError is a ValueError subclass
        return Config.model_validate(flat_data)

    config = Config()

    try:
        config.save(config_path)
    except (OSError, PermissionError) as e:
        # Read-only filesystem or no permission: keep the in-memory defaults
        logger.warning(f"Could not save default config to {config_path}: {e}")

    return config
