"""YAML configuration for histreport.

A ``histreport.yaml`` file holds an ``engine`` section (retention, flaky
window, identity fields), a ``history`` section and a ``quality_gate``
section. Command line flags win over the file, the file wins over defaults.
"""

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError

from histreport.exceptions import ConfigurationError
from histreport.identity.resolver import validate_identity_fields
from histreport.models.config import EngineConfig, HistoryConfig, QualityGateConfig

# ${NAME} or ${NAME:-fallback}
ENV_REFERENCE = re.compile(r"\$\{([^}:-]+)(?::-([^}]*))?\}")

# Looked up in the working directory, first match wins
CONFIG_FILE_NAMES = ["histreport.yaml", ".histreport.yaml", "histreport.yml", ".histreport.yml"]


class CLIOverrides(BaseModel):
    """Values given on the command line; None means "not given"."""

    history_retention: int | None = None
    flaky_window: int | None = None
    allow_empty: bool | None = None
    merge_workers: int | None = None
    history_dir: str | None = None


class FileConfig(BaseModel):
    """Contents of a histreport.yaml file."""

    engine: EngineConfig = Field(default_factory=EngineConfig)
    history: HistoryConfig = Field(default_factory=HistoryConfig)
    quality_gate: QualityGateConfig = Field(default_factory=QualityGateConfig)


def _expand_env(text: str) -> str:
    def lookup(match: re.Match[str]) -> str:
        name, fallback = match.group(1), match.group(2)
        if name in os.environ:
            return os.environ[name]
        if fallback is None:
            msg = f"Environment variable {name} is not set"
            raise ConfigurationError(msg)
        return fallback

    return ENV_REFERENCE.sub(lookup, text)


class ConfigLoader:
    """Finds, reads and resolves histreport configuration."""

    @staticmethod
    def discover_config_file(explicit_path: Path | None = None) -> Path | None:
        """Locate the configuration file to use.

        An explicit path must exist. Without one, the working directory is
        searched for the names in ``CONFIG_FILE_NAMES``.

        Raises:
            ConfigurationError: If ``explicit_path`` is given but missing.
        """
        if explicit_path is not None:
            if explicit_path.exists():
                return explicit_path
            msg = f"Configuration file not found: {explicit_path}"
            raise ConfigurationError(msg)

        candidates = (Path.cwd() / name for name in CONFIG_FILE_NAMES)
        return next((path for path in candidates if path.exists()), None)

    @staticmethod
    def load_yaml(path: Path) -> dict[str, Any]:
        """Read a YAML file that must hold a mapping; an empty file is ``{}``.

        Raises:
            ConfigurationError: On I/O errors, YAML errors or a non-mapping root.
        """
        try:
            content = yaml.safe_load(path.read_text(encoding="utf-8"))
        except yaml.YAMLError as e:
            msg = f"Failed to parse configuration file {path}: {e}"
            raise ConfigurationError(msg) from e
        except (OSError, UnicodeDecodeError) as e:
            msg = f"Failed to read configuration file {path}: {e}"
            raise ConfigurationError(msg) from e

        if content is None:
            return {}
        if not isinstance(content, dict):
            msg = f"Configuration file {path} must contain a mapping"
            raise ConfigurationError(msg)
        return content

    @staticmethod
    def interpolate_env_vars(value: Any) -> Any:
        """Expand ``${NAME}`` and ``${NAME:-fallback}`` in every string.

        Mappings and lists are walked; other values are returned unchanged.

        Raises:
            ConfigurationError: If a referenced variable without fallback is unset.
        """
        if isinstance(value, str):
            return _expand_env(value)
        if isinstance(value, dict):
            return {key: ConfigLoader.interpolate_env_vars(item) for key, item in value.items()}
        if isinstance(value, list):
            return [ConfigLoader.interpolate_env_vars(item) for item in value]
        return value

    @staticmethod
    def parse(data: dict[str, Any], source: str = "<dict>") -> FileConfig:
        """Validate a configuration mapping.

        Raises:
            ConfigurationError: If the mapping is invalid.
        """
        try:
            config = FileConfig.model_validate(data)
        except ValidationError as e:
            msg = f"Invalid configuration in {source}: {e}"
            raise ConfigurationError(msg) from e

        validate_identity_fields(config.engine.identity_fields)
        return config

    @staticmethod
    def load_config(explicit_path: Path | None = None) -> FileConfig | None:
        """Read the discovered configuration file, None when there is none.

        Raises:
            ConfigurationError: If the file is unreadable or invalid.
        """
        path = ConfigLoader.discover_config_file(explicit_path)
        if path is None:
            return None

        data = ConfigLoader.interpolate_env_vars(ConfigLoader.load_yaml(path))
        return ConfigLoader.parse(data, source=str(path))

    @staticmethod
    def resolve_engine_config(
        file_config: FileConfig | None,
        cli_overrides: CLIOverrides | None = None,
    ) -> EngineConfig:
        """Combine defaults, the ``engine`` section and command line flags.

        Flags that were given replace file values field by field.

        Raises:
            ConfigurationError: If the merged values are invalid.
        """
        base = file_config.engine if file_config else EngineConfig()
        if cli_overrides is None:
            return base

        updates = cli_overrides.model_dump(
            exclude_none=True,
            include={"history_retention", "flaky_window", "allow_empty", "merge_workers"},
        )
        try:
            return EngineConfig.model_validate({**base.model_dump(), **updates})
        except ValidationError as e:
            msg = f"Invalid engine options: {e}"
            raise ConfigurationError(msg) from e

    @staticmethod
    def resolve_history_config(
        file_config: FileConfig | None,
        cli_overrides: CLIOverrides | None = None,
    ) -> HistoryConfig:
        """Resolve history storage configuration."""
        history_dir = "test-history"

        if file_config:
            history_dir = file_config.history.dir
        if cli_overrides and cli_overrides.history_dir is not None:
            history_dir = cli_overrides.history_dir

        return HistoryConfig(dir=history_dir)

    @staticmethod
    def resolve_quality_gate_config(file_config: FileConfig | None) -> QualityGateConfig:
        """Resolve quality gate thresholds."""
        if file_config:
            return file_config.quality_gate
        return QualityGateConfig()


def load_config(explicit_path: Path | None = None) -> FileConfig | None:
    """Shortcut for ``ConfigLoader.load_config``."""
    return ConfigLoader.load_config(explicit_path)
