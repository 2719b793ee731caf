"""
Configuration loader service for YAML-based configuration.

Loads and caches config.yml, providing typed access to the sections that can
override environment settings.

Usage:
    from partsportal.core.shared.config_loader import config_loader

    minio_config = config_loader.get_minio_config()
    config_loader.reload()
"""

import logging
from pathlib import Path
from typing import Optional

from partsportal.models.config_models import AppConfig, MinIOConfig

logger = logging.getLogger("partsportal.config_loader")


class ConfigLoader:
    """
    Configuration loader and cache manager.

    Loads config.yml from the project root, validates it against Pydantic
    models and resolves ${ENV_VAR} references.
    """

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize configuration loader.

        Args:
            config_path: Path to config.yml (defaults to project root)
        """
        if config_path is None:
            backend_dir = Path(__file__).resolve().parents[3]
            candidate_paths = [
                backend_dir.parent / "config.yml",
                Path("/app/config.yml"),
                Path.cwd() / "config.yml",
            ]
            config_path = str(candidate_paths[0])
            for candidate in candidate_paths:
                if candidate.exists():
                    config_path = str(candidate)
                    break

        self.config_path = config_path
        self._config: Optional[AppConfig] = None
        self._loaded = False

    def load(self) -> AppConfig:
        """
        Load and parse configuration file.

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If YAML is invalid or validation fails
        """
        logger.info(f"Loading configuration from: {self.config_path}")

        try:
            self._config = AppConfig.from_yaml(self.config_path)
            self._loaded = True
            logger.info("Configuration loaded successfully")
            return self._config
        except FileNotFoundError:
            logger.warning(f"Configuration file not found: {self.config_path}")
            logger.warning("Falling back to environment variables")
            self._loaded = False
            raise
        except Exception as e:
            logger.error(f"Failed to load configuration: {e}")
            self._loaded = False
            raise ValueError(f"Configuration error: {e}") from e

    def reload(self) -> AppConfig:
        """Reload configuration from file."""
        logger.info("Reloading configuration")
        self._config = None
        self._loaded = False
        return self.load()

    def is_loaded(self) -> bool:
        return self._loaded and self._config is not None

    def get_config(self) -> Optional[AppConfig]:
        """
        Get the full configuration object.

        Returns:
            AppConfig instance or None if no usable config.yml exists
        """
        if not self.is_loaded():
            try:
                return self.load()
            except (FileNotFoundError, ValueError):
                return None
        return self._config

    def get_minio_config(self) -> Optional[MinIOConfig]:
        """Typed MinIO configuration, or None when config.yml has no minio section."""
        config = self.get_config()
        if config is None:
            return None
        return config.minio


config_loader = ConfigLoader()
