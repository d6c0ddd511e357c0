"""
Load Harness - Configuration Management

Provides configuration for the load and timing decorators with:
- YAML-based configuration file
- Environment variable overrides, optionally seeded from a .env file
- Validation of every section
- Sensible defaults when no file exists

Usage:
    config_manager = ConfigManager()
    config = config_manager.load_config()

    # Defaults picked up by decorators constructed with None flags
    config.load.enforce_atomicity
    config.timing.quiet
"""

import logging
import os
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_PATH_ENV = 'LOADHARNESS_CONFIG'
DEFAULT_CONFIG_FILE = 'loadharness.yaml'

VALID_LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')
VALID_LOG_FORMATS = ('console', 'json')


@dataclass
class LoadConfig:
    """Defaults for LoadTest episodes"""
    enforce_atomicity: bool = False


@dataclass
class TimingConfig:
    """Defaults for TimedTest"""
    quiet: bool = False
    wait_for_completion: bool = True


@dataclass
class LoggingConfig:
    """Logging output for the harness loggers"""
    level: str = "WARNING"
    format: str = "console"  # console, json


@dataclass
class HarnessConfig:
    """Main harness configuration"""
    load: LoadConfig = field(default_factory=LoadConfig)
    timing: TimingConfig = field(default_factory=TimingConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _parse_bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ('true', '1', 'yes', 'on'):
            return True
        if lowered in ('false', '0', 'no', 'off'):
            return False
    raise ConfigurationError(f"Invalid boolean for {name}: {value!r}")


class ConfigManager:
    """
    Configuration management for the harness

    Features:
    - YAML-based configuration with environment overrides
    - Unknown keys and invalid values are rejected
    """

    SECTIONS = {
        'load': LoadConfig,
        'timing': TimingConfig,
        'logging': LoggingConfig,
    }

    def __init__(self, config_path: Optional[str] = None, env_file: Optional[str] = None):
        self.config_path = config_path or self._get_default_config_path()
        self.env_file = env_file
        self._config: Optional[HarnessConfig] = None

    def _get_default_config_path(self) -> str:
        return os.getenv(CONFIG_PATH_ENV) or os.path.join(os.getcwd(), DEFAULT_CONFIG_FILE)

    def _load_yaml_config(self, config_path: str) -> Dict[str, Any]:
        """Load configuration from YAML file"""
        if not os.path.exists(config_path):
            logger.debug(f"Configuration file not found: {config_path}, using defaults")
            return {}

        try:
            with open(config_path, 'r') as f:
                config_data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Failed to load configuration from {config_path}: {e}", e)

        if not isinstance(config_data, dict):
            raise ConfigurationError(f"Configuration root in {config_path} must be a mapping")
        return config_data

    def _get_environment_variable_overrides(self) -> Dict[str, Any]:
        """Get configuration overrides from environment variables"""
        overrides: Dict[str, Dict[str, Any]] = {}

        if atomic := os.getenv('LOADHARNESS_ENFORCE_ATOMICITY'):
            overrides.setdefault('load', {})['enforce_atomicity'] = atomic
        if quiet := os.getenv('LOADHARNESS_QUIET'):
            overrides.setdefault('timing', {})['quiet'] = quiet
        if wait := os.getenv('LOADHARNESS_WAIT_FOR_COMPLETION'):
            overrides.setdefault('timing', {})['wait_for_completion'] = wait
        if log_level := os.getenv('LOADHARNESS_LOG_LEVEL'):
            overrides.setdefault('logging', {})['level'] = log_level.upper()
        if log_format := os.getenv('LOADHARNESS_LOG_FORMAT'):
            overrides.setdefault('logging', {})['format'] = log_format.lower()

        return overrides

    def _deep_merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two dictionaries"""
        result = base.copy()

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result

    def _create_config_from_dict(self, config_data: Dict[str, Any]) -> HarnessConfig:
        """Create HarnessConfig from dictionary data"""
        unknown = set(config_data) - set(self.SECTIONS)
        if unknown:
            raise ConfigurationError(f"Unknown configuration sections: {sorted(unknown)}")

        sections = {}
        for name, section_cls in self.SECTIONS.items():
            data = config_data.get(name) or {}
            if not isinstance(data, dict):
                raise ConfigurationError(f"Configuration section '{name}' must be a mapping")
            try:
                sections[name] = section_cls(**data)
            except TypeError as e:
                raise ConfigurationError(f"Invalid keys in section '{name}': {e}", e)

        return HarnessConfig(**sections)

    def _normalize(self, config: HarnessConfig) -> HarnessConfig:
        for section_name in self.SECTIONS:
            section = getattr(config, section_name)
            for f in fields(section):
                if f.type in (bool, 'bool'):
                    name = f"{section_name}.{f.name}"
                    setattr(section, f.name, _parse_bool(name, getattr(section, f.name)))
        config.logging.level = str(config.logging.level).upper()
        config.logging.format = str(config.logging.format).lower()
        return config

    def validate_config(self, config: HarnessConfig) -> None:
        """Validate configuration values"""
        if config.logging.level not in VALID_LOG_LEVELS:
            raise ConfigurationError(
                f"Invalid log level {config.logging.level!r}; expected one of {VALID_LOG_LEVELS}"
            )
        if config.logging.format not in VALID_LOG_FORMATS:
            raise ConfigurationError(
                f"Invalid log format {config.logging.format!r}; expected one of {VALID_LOG_FORMATS}"
            )

    def load_config(self) -> HarnessConfig:
        """Load, merge, validate and cache the configuration"""
        if self.env_file:
            load_dotenv(self.env_file)
        config_data = self._load_yaml_config(self.config_path)
        config_data = self._deep_merge(config_data, self._get_environment_variable_overrides())

        config = self._normalize(self._create_config_from_dict(config_data))
        self.validate_config(config)
        self._config = config

        logger.debug(f"Configuration loaded from {self.config_path}")
        return config

    @property
    def config(self) -> HarnessConfig:
        if self._config is None:
            return self.load_config()
        return self._config


# Global configuration instance
_global_config: Optional[HarnessConfig] = None


def get_config() -> HarnessConfig:
    """Get or load the process-wide harness configuration"""
    global _global_config
    if _global_config is None:
        load_dotenv()
        _global_config = ConfigManager().load_config()
    return _global_config


def set_config(config: HarnessConfig) -> None:
    """Set the process-wide harness configuration"""
    global _global_config
    _global_config = config


def reset_config() -> None:
    """Drop the cached configuration so the next get_config() reloads it"""
    global _global_config
    _global_config = None
