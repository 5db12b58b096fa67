from __future__ import annotations

import os
from typing import Optional

import yaml
from pydantic import BaseModel

from .constants import (
    DEFAULT_CONFIG_FILE,
    DEFAULT_FAN_OUT_PRIMARY,
    DEFAULT_PRIMARY_SPACING,
    DEFAULT_SECONDARY_SPACING,
)


class LayoutConfig(BaseModel):
    """Spacing used when laying out staged graphs."""

    primary_spacing: float = DEFAULT_PRIMARY_SPACING
    secondary_spacing: float = DEFAULT_SECONDARY_SPACING
    fan_out_primary: float = DEFAULT_FAN_OUT_PRIMARY
    cumulative_base: bool = True


class StagegraphConfig(BaseModel):
    """Top-level configuration model."""

    layout: LayoutConfig = LayoutConfig()
    database_url: Optional[str] = None


def load_config(path: Optional[str] = None) -> StagegraphConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to STAGEGRAPH_CONFIG env
            variable or 'config.yaml' in the current directory.
    """

    config_path = path or os.getenv("STAGEGRAPH_CONFIG", DEFAULT_CONFIG_FILE)
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = StagegraphConfig(**data)
    else:
        config = StagegraphConfig()

    env_db_url = os.getenv("STAGEGRAPH_DATABASE_URL") or os.getenv("DATABASE_URL")
    if env_db_url:
        config.database_url = env_db_url
    return config
