"""Configuration file support for histreport."""

from histreport.config.loader import (
    CLIOverrides,
    ConfigLoader,
    FileConfig,
    load_config,
)

__all__ = [
    "CLIOverrides",
    "ConfigLoader",
    "FileConfig",
    "load_config",
]
