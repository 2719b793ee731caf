"""
Tests for configuration loader service.

Tests YAML configuration loading, validation, and environment variable resolution.
"""

from unittest.mock import patch

import pytest

from partsportal.core.shared.config_loader import ConfigLoader
from partsportal.core.storage.minio_service import MinIOService


class TestConfigLoader:
    """Test suite for ConfigLoader."""

    def test_load_valid_config(self, tmp_path):
        config_file = tmp_path / "config.yml"
        config_file.write_text("""
version: "1.0"
minio:
  endpoint: storage.internal:9000
  access_key: parts
  secret_key: parts-secret
  secure: true
  bucket_parts: vendor-parts
""")

        config = ConfigLoader(str(config_file)).load()

        assert config.version == "1.0"
        assert config.minio.endpoint == "storage.internal:9000"
        assert config.minio.secure is True
        assert config.minio.bucket_parts == "vendor-parts"
        assert config.minio.enabled is True

    def test_load_missing_file(self, tmp_path):
        loader = ConfigLoader(str(tmp_path / "nonexistent.yml"))

        with pytest.raises(FileNotFoundError):
            loader.load()
        assert loader.get_config() is None
        assert loader.get_minio_config() is None

    def test_env_var_resolution(self, tmp_path, monkeypatch):
        monkeypatch.setenv("TEST_MINIO_SECRET", "secret-key-123")
        config_file = tmp_path / "config.yml"
        config_file.write_text("""
minio:
  endpoint: minio:9000
  access_key: parts
  secret_key: ${TEST_MINIO_SECRET}
""")

        minio = ConfigLoader(str(config_file)).get_minio_config()
        assert minio.secret_key == "secret-key-123"

    def test_missing_env_var(self, tmp_path, monkeypatch):
        monkeypatch.delenv("TEST_UNSET_SECRET", raising=False)
        config_file = tmp_path / "config.yml"
        config_file.write_text("""
minio:
  endpoint: minio:9000
  access_key: parts
  secret_key: ${TEST_UNSET_SECRET}
""")

        loader = ConfigLoader(str(config_file))
        with pytest.raises(ValueError, match="TEST_UNSET_SECRET"):
            loader.load()
        assert loader.get_config() is None

    def test_unknown_section_rejected(self, tmp_path):
        config_file = tmp_path / "config.yml"
        config_file.write_text("llm:\n  provider: openai\n")

        with pytest.raises(ValueError):
            ConfigLoader(str(config_file)).load()

    def test_no_minio_section(self, tmp_path):
        config_file = tmp_path / "config.yml"
        config_file.write_text('version: "1.0"\n')

        loader = ConfigLoader(str(config_file))
        assert loader.get_config() is not None
        assert loader.get_minio_config() is None

    def test_reload_picks_up_changes(self, tmp_path):
        config_file = tmp_path / "config.yml"
        config_file.write_text('version: "1.0"\n')
        loader = ConfigLoader(str(config_file))
        assert loader.get_config().version == "1.0"

        config_file.write_text('version: "1.1"\n')
        assert loader.get_config().version == "1.0"
        assert loader.reload().version == "1.1"


class TestMinIOConfigSource:

    def test_yaml_overrides_environment(self, tmp_path):
        config_file = tmp_path / "config.yml"
        config_file.write_text("""
minio:
  endpoint: yaml-host:9000
  access_key: a
  secret_key: b
  bucket_parts: from-yaml
""")
        with patch("partsportal.core.storage.minio_service.config_loader", ConfigLoader(str(config_file))):
            service = MinIOService()

        assert service.enabled is True
        assert service.endpoint == "yaml-host:9000"
        assert service.bucket == "from-yaml"

    def test_environment_used_without_yaml(self, tmp_path):
        with patch(
            "partsportal.core.storage.minio_service.config_loader",
            ConfigLoader(str(tmp_path / "missing.yml")),
        ):
            service = MinIOService()

        # conftest disables object storage through USE_OBJECT_STORAGE
        assert service.enabled is False
