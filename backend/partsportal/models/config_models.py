"""
Pydantic models for YAML configuration validation.

This module defines the schema for config.yml, providing type-safe configuration
with validation and sensible defaults.

Usage:
    from partsportal.models.config_models import AppConfig
    config = AppConfig.from_yaml("config.yml")
"""

import os
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class MinIOConfig(BaseModel):
    """
    Object storage configuration for the parts bucket.

    Overrides the MINIO_* environment variables when present in config.yml.
    """
    model_config = ConfigDict(extra='forbid')

    enabled: bool = Field(default=True, description="Enable object storage")
    endpoint: str = Field(description="MinIO host:port")
    access_key: str = Field(description="Access key")
    secret_key: str = Field(description="Secret key")
    secure: bool = Field(default=False, description="Use HTTPS")
    bucket_parts: str = Field(default="part-files", description="Bucket for part files")


class AppConfig(BaseModel):
    """
    Root application configuration.

    This is the top-level configuration object that contains all service configs.
    """
    model_config = ConfigDict(extra='forbid')

    version: str = Field(
        default="1.0",
        description="Configuration file version"
    )
    minio: Optional[MinIOConfig] = Field(
        default=None,
        description="Object storage configuration"
    )

    @classmethod
    def from_yaml(cls, yaml_path: str) -> "AppConfig":
        """
        Load configuration from a YAML file.

        Args:
            yaml_path: Path to config.yml

        Returns:
            Validated AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If YAML is invalid or validation fails
        """
        import yaml

        if not os.path.exists(yaml_path):
            raise FileNotFoundError(f"Configuration file not found: {yaml_path}")

        with open(yaml_path, 'r') as f:
            raw_config = yaml.safe_load(f) or {}

        # Resolve environment variable references
        resolved_config = cls._resolve_env_vars(raw_config)

        return cls(**resolved_config)

    @classmethod
    def _resolve_env_vars(cls, obj: Any) -> Any:
        """
        Recursively resolve ${ENV_VAR} references in configuration.

        Args:
            obj: Configuration object (dict, list, str, etc.)

        Returns:
            Configuration with environment variables resolved
        """
        if isinstance(obj, dict):
            return {k: cls._resolve_env_vars(v) for k, v in obj.items()}
        elif isinstance(obj, list):
            return [cls._resolve_env_vars(item) for item in obj]
        elif isinstance(obj, str):
            if obj.startswith("${") and obj.endswith("}"):
                var_name = obj[2:-1]
                value = os.getenv(var_name)
                if value is None:
                    raise ValueError(f"Environment variable not set: {var_name}")
                return value
            return obj
        else:
            return obj
