"""
Configuration Management for Interactivity

🔧 Unified Configuration System:
Environment-aware settings for rendering, hydration and logging. Mirrors the
application configuration layout used across the rest of the stack.
"""

import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional, Union

PAYLOAD_SCRIPT_ID = "wp-script-module-data-@wordpress/interactivity"


class Environment(Enum):
    """Application environments"""
    DEVELOPMENT = "development"
    TESTING = "testing"
    STAGING = "staging"
    PRODUCTION = "production"


@dataclass
class LoggingConfig:
    """Logging configuration"""
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file_path: Optional[str] = None
    max_file_size: int = 10 * 1024 * 1024  # 10MB
    backup_count: int = 5


@dataclass
class InteractivityConfig:
    """Complete interactivity configuration"""
    environment: Environment = Environment.DEVELOPMENT
    debug: bool = False

    # Serialize every plain state value unless it is wrapped in server_only().
    # When False only values wrapped in client_visible() reach the client.
    expose_state_by_default: bool = True
    payload_script_id: str = PAYLOAD_SCRIPT_ID
    # Upper bound on chained re-renders caused by watchers mutating state
    max_flush_iterations: int = 100

    logging: LoggingConfig = field(default_factory=LoggingConfig)
    custom: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def for_environment(cls, environment: Environment) -> 'InteractivityConfig':
        """Create configuration for specific environment"""
        config = cls(environment=environment)

        if environment == Environment.DEVELOPMENT:
            config.debug = True
            config.logging.level = "DEBUG"

        elif environment == Environment.TESTING:
            config.logging.level = "WARNING"

        elif environment == Environment.PRODUCTION:
            config.debug = False
            config.logging.level = "INFO"

        return config

    @classmethod
    def from_dict(cls, config_dict: Dict[str, Any]) -> 'InteractivityConfig':
        """Create configuration from dictionary"""
        environment = Environment(config_dict.get("environment", Environment.DEVELOPMENT.value))
        config = cls.for_environment(environment)

        for key in ("debug", "expose_state_by_default", "payload_script_id", "max_flush_iterations"):
            if key in config_dict:
                setattr(config, key, config_dict[key])

        for key, value in config_dict.get("logging", {}).items():
            if hasattr(config.logging, key):
                setattr(config.logging, key, value)

        config.custom.update(config_dict.get("custom", {}))
        return config

    @classmethod
    def from_file(cls, config_path: Union[str, Path]) -> 'InteractivityConfig':
        """Load configuration from a JSON or YAML file"""
        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        if config_path.suffix == '.json':
            import json
            with open(config_path) as f:
                config_dict = json.load(f)
        elif config_path.suffix in ('.yml', '.yaml'):
            try:
                import yaml
            except ImportError:
                raise ImportError("PyYAML is required for YAML configuration files")
            with open(config_path) as f:
                config_dict = yaml.safe_load(f) or {}
        else:
            raise ValueError(f"Unsupported configuration file format: {config_path.suffix}")

        return cls.from_dict(config_dict)

    @classmethod
    def from_environment(cls) -> 'InteractivityConfig':
        """Create configuration from environment variables"""
        env_name = os.getenv('INTERACTIVITY_ENV', 'development')
        config = cls.for_environment(Environment(env_name))

        if os.getenv('INTERACTIVITY_DEBUG'):
            config.debug = os.getenv('INTERACTIVITY_DEBUG').lower() == 'true'

        if os.getenv('INTERACTIVITY_LOG_LEVEL'):
            config.logging.level = os.getenv('INTERACTIVITY_LOG_LEVEL').upper()

        return config

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary"""
        return {
            "environment": self.environment.value,
            "debug": self.debug,
            "expose_state_by_default": self.expose_state_by_default,
            "payload_script_id": self.payload_script_id,
            "max_flush_iterations": self.max_flush_iterations,
            "logging": {
                "level": self.logging.level,
                "format": self.logging.format,
                "file_path": self.logging.file_path,
                "max_file_size": self.logging.max_file_size,
                "backup_count": self.logging.backup_count,
            },
            "custom": self.custom,
        }


def configure_logging(config: LoggingConfig, logger_name: str = "interactivity") -> logging.Logger:
    """Apply a LoggingConfig to the package logger"""
    logger = logging.getLogger(logger_name)
    logger.setLevel(config.level)

    formatter = logging.Formatter(config.format)
    if not logger.handlers:
        stream = logging.StreamHandler()
        stream.setFormatter(formatter)
        logger.addHandler(stream)

    if config.file_path and not any(isinstance(h, RotatingFileHandler) for h in logger.handlers):
        file_handler = RotatingFileHandler(
            config.file_path, maxBytes=config.max_file_size, backupCount=config.backup_count
        )
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


# Global configuration management
_current_config: Optional[InteractivityConfig] = None


def set_config(config: InteractivityConfig):
    """Set the global configuration"""
    global _current_config
    _current_config = config


def get_config() -> InteractivityConfig:
    """Get the current global configuration"""
    global _current_config

    if _current_config is None:
        # Auto-create from environment if not set
        _current_config = InteractivityConfig.from_environment()

    return _current_config


def configure_from_dict(config_dict: Dict[str, Any]) -> InteractivityConfig:
    """Configure interactivity from dictionary"""
    config = InteractivityConfig.from_dict(config_dict)
    set_config(config)
    return config


__all__ = [
    "PAYLOAD_SCRIPT_ID", "Environment", "LoggingConfig", "InteractivityConfig",
    "configure_logging", "set_config", "get_config", "configure_from_dict",
]
