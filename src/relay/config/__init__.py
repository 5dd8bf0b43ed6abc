"""Configuration module for the relay."""

from relay.config.regions import (
    DEFAULT_REGIONS,
    RegionBucket,
    RegionsConfig,
    RegionsLoadError,
    load_regions_config,
)
from relay.config.settings import LogLevel, Settings, get_settings

__all__ = [
    "DEFAULT_REGIONS",
    "LogLevel",
    "RegionBucket",
    "RegionsConfig",
    "RegionsLoadError",
    "Settings",
    "get_settings",
    "load_regions_config",
]
