"""
Configuration management for the SmartStock ledger.

Loads and validates config.yaml with environment variable overrides.
Uses Pydantic v2 for schema validation with fail-fast behavior.
"""

import os
import yaml
from typing import Optional
import logging

from pydantic import ValidationError
from .config_models import LedgerConfig

logger = logging.getLogger(__name__)

CONFIG_FILE = os.environ.get("SMARTSTOCK_CONFIG", "config.yaml")
_config: Optional[LedgerConfig] = None

ENV_OVERRIDES = {
    "SMARTSTOCK_USER_ID": ("user_id",),
    "SMARTSTOCK_GCP_BUCKET": ("storage", "gcp", "bucket_name"),
    "SMARTSTOCK_STORAGE_BACKEND": ("storage", "backend"),
    "SMARTSTOCK_DATA_DIR": ("storage", "local", "data_dir"),
    "SMARTSTOCK_AI_MODEL": ("ai", "model"),
    "SMARTSTOCK_LOG_LEVEL": ("logging", "level"),
}


def load_config(config_path: Optional[str] = None) -> LedgerConfig:
    """
    Load and validate configuration from YAML file.

    Applies environment variable overrides after loading YAML.
    Fails fast if configuration is invalid or missing.

    Args:
        config_path: Path to config.yaml (default: $SMARTSTOCK_CONFIG or "config.yaml")

    Returns:
        LedgerConfig: Validated configuration object

    Raises:
        FileNotFoundError: If config.yaml doesn't exist
        ValueError: If configuration is invalid
        yaml.YAMLError: If YAML syntax is invalid
    """
    global _config

    if _config is not None:
        return _config

    config_path = config_path or CONFIG_FILE

    if not os.path.exists(config_path):
        raise FileNotFoundError(
            f"❌ CRITICAL: Configuration file not found: {config_path}\n\n"
            f"To create config.yaml:\n"
            f"  1. Copy the example configuration:\n"
            f"     cp config.yaml.example config.yaml\n\n"
            f"  2. Edit config.yaml with your settings:\n"
            f"     - Set your user_id\n"
            f"     - Set storage backend (hybrid/gcp/local)\n"
        )

    try:
        logger.info(f"Loading configuration from {config_path}...")
        with open(config_path, 'r') as f:
            yaml_data = yaml.safe_load(f)

        # An empty file is a valid config: every section has defaults
        if yaml_data is None:
            yaml_data = {}
        if not isinstance(yaml_data, dict):
            raise ValueError(f"Configuration file must contain a mapping: {config_path}")

        yaml_data = _apply_env_overrides(yaml_data)

        config = LedgerConfig(**yaml_data)

        _config = config
        logger.info(f"✅ Configuration loaded and validated from {config_path}")
        logger.info(f"   Using storage backend: {config.storage.backend}")
        logger.info(f"   User id: {config.user_id}")

        return config

    except yaml.YAMLError as e:
        raise yaml.YAMLError(
            f"❌ CRITICAL: Invalid YAML syntax in {config_path}\n\n"
            f"Error: {e}\n\n"
            f"Please fix the YAML syntax errors above."
        )
    except ValidationError as e:
        raise ValueError(
            f"❌ CRITICAL: Configuration validation failed.\n\n"
            f"Errors in {config_path}:\n{e}\n\n"
            f"Please fix the configuration errors above."
        )


def _apply_env_overrides(yaml_data: dict) -> dict:
    """
    Apply SMARTSTOCK_* environment variable overrides to configuration.

    Args:
        yaml_data: Loaded YAML data

    Returns:
        dict: YAML data with environment variable overrides applied
    """
    for env_name, path in ENV_OVERRIDES.items():
        if env_name not in os.environ:
            continue

        value = os.environ[env_name]
        section = yaml_data
        for key in path[:-1]:
            section = section.setdefault(key, {})
        section[path[-1]] = value
        logger.info(f"   ENV override: {'.'.join(path)} = {value}")

    return yaml_data


def get_config() -> LedgerConfig:
    """
    Get cached configuration or load if not yet loaded.

    Returns:
        LedgerConfig: Validated configuration object
    """
    if _config is None:
        return load_config()
    return _config


def reload_config(config_path: Optional[str] = None) -> LedgerConfig:
    """
    Force reload configuration from file.

    Useful for testing or when configuration changes at runtime.
    """
    global _config
    _config = None
    return load_config(config_path)


# ============================================================================
# Convenience accessor functions
# ============================================================================

def get_user_id() -> str:
    """Get the user id whose portfolio document is used."""
    return get_config().user_id


def get_storage_backend() -> str:
    """Get storage backend type (hybrid/gcp/local)."""
    return get_config().storage.backend


def get_ai_model() -> str:
    """Get default model for portfolio analysis."""
    return get_config().ai.model


def get_log_level() -> str:
    """Get logging level."""
    return get_config().logging.level
