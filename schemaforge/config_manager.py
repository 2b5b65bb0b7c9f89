"""Configuration management for schemaforge.

This module provides:
- YAML configuration loading with override files
- Environment variable overrides for connection settings
- Configuration schema validation
- Secrets redaction
"""

import os
import yaml
import logging
from pathlib import Path
from typing import Dict, Any, Optional, Union
from copy import deepcopy
from jsonschema import validate, ValidationError

from .logging_utils import sanitize_log_message

logger = logging.getLogger(__name__)


DEFAULT_CONFIG: Dict[str, Any] = {
    'database': {
        'type': 'sqlite',
        'connection_params': {
            'database': 'schemaforge.db',
        },
    },
    'migrations': {
        'path': 'migrations',
        'ledger_table': 'migrations',
        'fk_verify_delay': 0.1,
        'fk_verify_attempts': 3,
    },
    'logging': {
        'level': 'INFO',
        'log_file': None,
        'max_log_size_mb': 10,
        'backup_count': 3,
    },
}

# Configuration schema for validation
CONFIG_SCHEMA = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "required": ["database", "migrations"],
    "properties": {
        "database": {
            "type": "object",
            "properties": {
                "type": {"type": "string", "enum": ["mysql", "postgresql", "sqlite", "mssql"]},
                "url": {"type": ["string", "null"]},
                "connection_params": {
                    "type": "object",
                    "properties": {
                        "host": {"type": "string"},
                        "port": {"type": "integer", "minimum": 1, "maximum": 65535},
                        "user": {"type": "string"},
                        "password": {"type": ["string", "null"]},
                        "database": {"type": "string"},
                        "odbc_driver": {"type": "string"},
                        "engine_args": {"type": "object"}
                    }
                },
                "engine_args": {"type": "object"}
            },
            "anyOf": [
                {"required": ["type"]},
                {"required": ["url"]}
            ]
        },
        "migrations": {
            "type": "object",
            "required": ["path"],
            "properties": {
                "path": {"type": "string"},
                "ledger_table": {"type": "string", "pattern": "^[A-Za-z_][A-Za-z0-9_]*$"},
                "fk_verify_delay": {"type": "number", "minimum": 0},
                "fk_verify_attempts": {"type": "integer", "minimum": 1}
            }
        },
        "logging": {
            "type": "object",
            "properties": {
                "level": {"type": "string", "enum": ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]},
                "log_file": {"type": ["string", "null"]},
                "max_log_size_mb": {"type": "number", "minimum": 1},
                "backup_count": {"type": "integer", "minimum": 0}
            }
        }
    }
}


class ConfigManager:
    """Loads, merges and validates schemaforge configuration."""

    # Environment variable overrides
    ENV_MAPPINGS = {
        'database.url': 'SCHEMAFORGE_DB_URL',
        'database.connection_params.password': 'SCHEMAFORGE_DB_PASSWORD',
        'migrations.path': 'SCHEMAFORGE_MIGRATIONS_PATH',
    }

    SENSITIVE_KEYS = ['password', 'secret', 'token', 'credential', 'api_key']

    def __init__(self, base_config_path: Optional[Union[str, Path]] = None):
        """Initialize config manager.

        Args:
            base_config_path: Path to base configuration YAML file; the
                built-in defaults are used when omitted
        """
        self.base_config = deepcopy(DEFAULT_CONFIG)
        self.base_config_path = Path(base_config_path) if base_config_path else None
        if self.base_config_path is not None:
            if not self.base_config_path.exists():
                raise FileNotFoundError(f"Base config not found: {base_config_path}")
            self.base_config = self._deep_merge(self.base_config, self._load_yaml_file(self.base_config_path))

        self.merged_config = deepcopy(self.base_config)
        self._apply_env_overrides()

    def _load_yaml_file(self, path: Path) -> Dict[str, Any]:
        """Safely load YAML file.

        Args:
            path: Path to YAML file

        Returns:
            Loaded configuration dictionary
        """
        try:
            with open(path, 'r') as f:
                config = yaml.safe_load(f)

            if config is None:
                return {}
            if not isinstance(config, dict):
                raise ValueError(f"Config file must contain a dictionary, got {type(config)}")

            return config

        except yaml.YAMLError as e:
            logger.error(f"Failed to parse YAML file {path}: {e}")
            raise

    def merge_override(self, override_path: Union[str, Path]) -> None:
        """Merge override configuration file.

        Args:
            override_path: Path to override configuration file
        """
        override_path = Path(override_path)
        if not override_path.exists():
            raise FileNotFoundError(f"Override config not found: {override_path}")

        override_config = self._load_yaml_file(override_path)
        self.merged_config = self._deep_merge(self.merged_config, override_config)
        self._apply_env_overrides()

        logger.info(f"Merged override config from: {override_path}")

    def _deep_merge(self, base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
        result = deepcopy(base)

        for key, value in override.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = deepcopy(value)

        return result

    def _apply_env_overrides(self) -> None:
        """Apply environment variable overrides to configuration."""
        for config_path, env_var in self.ENV_MAPPINGS.items():
            env_value = os.environ.get(env_var)
            if env_value:
                self._set_nested_value(self.merged_config, config_path, env_value)
                logger.info(f"Applied environment override for {config_path}")

    def _set_nested_value(self, config: Dict[str, Any], path: str, value: Any) -> None:
        keys = path.split('.')
        current = config

        for key in keys[:-1]:
            if not isinstance(current.get(key), dict):
                current[key] = {}
            current = current[key]

        current[keys[-1]] = value

    def _get_nested_value(self, config: Dict[str, Any], path: str,
                          default: Any = None) -> Any:
        keys = path.split('.')
        current = config

        for key in keys:
            if isinstance(current, dict) and key in current:
                current = current[key]
            else:
                return default

        return current

    def validate(self, schema: Optional[Dict[str, Any]] = None) -> None:
        """Validate configuration against schema.

        Args:
            schema: JSON schema to validate against (uses default if None)

        Raises:
            ValidationError: If configuration is invalid
        """
        schema = schema or CONFIG_SCHEMA

        try:
            validate(self.merged_config, schema)
            logger.debug("Configuration validation successful")
        except ValidationError as e:
            logger.error(f"Configuration validation failed: {e.message}")
            logger.error(f"Failed at path: {'.'.join(str(p) for p in e.path)}")
            raise

    def get(self, path: str, default: Any = None) -> Any:
        """Get a configuration value using dot notation.

        Args:
            path: Dot-separated path (e.g., 'migrations.path')
            default: Default value if path not found

        Returns:
            Configuration value or default
        """
        return self._get_nested_value(self.merged_config, path, default)

    def get_config(self, redact_secrets: bool = True) -> Dict[str, Any]:
        """Get the merged configuration.

        Args:
            redact_secrets: Whether to redact sensitive values

        Returns:
            Configuration dictionary
        """
        if redact_secrets:
            return self._redact_secrets(deepcopy(self.merged_config))
        return deepcopy(self.merged_config)

    def _redact_secrets(self, config: Dict[str, Any]) -> Dict[str, Any]:
        def redact_dict(d: Dict[str, Any]) -> Dict[str, Any]:
            for key, value in d.items():
                key_lower = key.lower()
                if any(sensitive in key_lower for sensitive in self.SENSITIVE_KEYS):
                    d[key] = '***REDACTED***'
                elif key_lower == 'url' and isinstance(value, str):
                    d[key] = sanitize_log_message(value)
                elif isinstance(value, dict):
                    d[key] = redact_dict(value)
            return d

        return redact_dict(config)


def load_config(base_path: Optional[Union[str, Path]] = None,
                override_path: Optional[Union[str, Path]] = None,
                validate_schema: bool = True) -> Dict[str, Any]:
    """Convenience function to load configuration.

    Args:
        base_path: Path to base configuration file (defaults when None)
        override_path: Optional path to override configuration
        validate_schema: Whether to validate against schema

    Returns:
        Merged and validated configuration
    """
    manager = ConfigManager(base_path)

    if override_path:
        manager.merge_override(override_path)

    if validate_schema:
        manager.validate()

    return manager.get_config(redact_secrets=False)
