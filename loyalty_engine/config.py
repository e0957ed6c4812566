"""
Configuration management for the Loyalty Engine
"""

import json
import os
import sys
from pathlib import Path
from typing import Any, Dict, Optional
from loguru import logger
from pydantic import BaseModel, Field, ValidationError

from .exceptions import ConfigurationError

ENV_PREFIX = "LOYALTY_ENGINE_"

VALID_LOG_LEVELS = ['TRACE', 'DEBUG', 'INFO', 'SUCCESS', 'WARNING', 'ERROR', 'CRITICAL']


class LoyaltyEngineConfig(BaseModel):
    """Configuration model for the Loyalty Engine"""

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(
        default="<green>{time:HH:mm:ss}</green> | <level>{level}</level> | {message}",
        description="loguru format string for the console sink"
    )
    log_file: Optional[str] = Field(default=None, description="Optional log file path")
    log_rotation: str = Field(default="10 MB", description="Log rotation size")
    log_retention: str = Field(default="30 days", description="Log retention period")

    # Pipeline behaviour
    isolate_rule_failures: bool = Field(
        default=False,
        description="Log and skip a failing rule instead of aborting the event"
    )
    validate_tiers_on_evaluate: bool = Field(
        default=False,
        description="Warn about duplicate tier ids/thresholds on every tier evaluation"
    )

    # Declarative rules
    rules_file: Optional[str] = Field(default=None, description="JSON file or directory of rules")


class ConfigManager:
    """Configuration manager for the Loyalty Engine"""

    def __init__(self, config_file: Optional[str] = None):
        """
        Initialize configuration manager

        Args:
            config_file: Path to configuration file
        """
        self.config_file = config_file or "loyalty_engine_config.json"
        self._config = None
        self._load_config()

    def _load_config(self) -> None:
        """Load configuration from file, then apply environment overrides"""
        try:
            config_data: Dict[str, Any] = {}
            if Path(self.config_file).exists():
                with open(self.config_file, 'r', encoding='utf-8') as f:
                    config_data = json.load(f)

            config_data.update(self.get_environment_config())
            self._config = LoyaltyEngineConfig(**config_data)

        except (OSError, json.JSONDecodeError, ValidationError) as e:
            logger.warning(f"Failed to load configuration: {e}")
            self._config = LoyaltyEngineConfig()

    def get_config(self) -> LoyaltyEngineConfig:
        """Get current configuration"""
        return self._config

    def update_config(self, **kwargs) -> None:
        """Update configuration with new values; unknown keys are ignored"""
        known = {k: v for k, v in kwargs.items() if k in LoyaltyEngineConfig.model_fields}
        if known:
            self._config = self._config.model_copy(update=known)

    def save_config(self) -> None:
        """Save current configuration to file"""
        with open(self.config_file, 'w', encoding='utf-8') as f:
            json.dump(self._config.model_dump(), f, indent=2)

    def reset_to_defaults(self) -> None:
        """Reset configuration to defaults"""
        self._config = LoyaltyEngineConfig()

    def validate_config(self) -> Dict[str, Any]:
        """Validate current configuration"""
        validation_results = {
            'valid': True,
            'warnings': [],
            'errors': []
        }

        if self._config.log_level.upper() not in VALID_LOG_LEVELS:
            validation_results['errors'].append(f"Invalid log level: {self._config.log_level}")
            validation_results['valid'] = False

        if self._config.rules_file and not Path(self._config.rules_file).exists():
            validation_results['errors'].append(f"Rules file does not exist: {self._config.rules_file}")
            validation_results['valid'] = False

        if self._config.log_file:
            log_dir = Path(self._config.log_file).parent
            if not log_dir.exists():
                validation_results['warnings'].append(f"Log directory does not exist: {log_dir}")

        if self._config.isolate_rule_failures:
            validation_results['warnings'].append(
                "isolate_rule_failures is enabled; failing rules are skipped instead of aborting the event"
            )

        return validation_results

    def get_environment_config(self) -> Dict[str, str]:
        """Get configuration from environment variables"""
        env_config = {}

        for field_name in LoyaltyEngineConfig.model_fields:
            env_var_name = f"{ENV_PREFIX}{field_name.upper()}"
            env_value = os.getenv(env_var_name)

            if env_value is not None:
                env_config[field_name] = env_value

        return env_config


def configure_logging(config: LoyaltyEngineConfig) -> None:
    """
    Replace loguru sinks with the ones described by config

    Args:
        config: Engine configuration
    """
    level = config.log_level.upper()
    if level not in VALID_LOG_LEVELS:
        raise ConfigurationError(f"Invalid log level: {config.log_level}")

    logger.remove()
    logger.add(sys.stderr, level=level, format=config.log_format)

    if config.log_file:
        logger.add(
            config.log_file,
            level=level,
            rotation=config.log_rotation,
            retention=config.log_retention,
        )


# Global configuration instance, created on first use
_config_manager: Optional[ConfigManager] = None


def get_config_manager() -> ConfigManager:
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager


def get_config() -> LoyaltyEngineConfig:
    """Get the global configuration instance"""
    return get_config_manager().get_config()


def update_config(**kwargs) -> None:
    """Update the global configuration"""
    get_config_manager().update_config(**kwargs)
