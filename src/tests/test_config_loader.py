"""
Test suite for ConfigLoader component
Following TDD approach with AAA pattern and descriptive naming
"""

import pytest
import tempfile
from pathlib import Path
from unittest.mock import patch

from zotero_adapter.config_loader import ConfigLoader, ConfigurationError, EngineSettings, EnvironmentError
from zotero_adapter.request_config import RequestConfig


def _write_temp(content: str, suffix: str) -> Path:
    with tempfile.NamedTemporaryFile(mode='w', suffix=suffix, delete=False) as f:
        f.write(content)
        return Path(f.name)


class TestConfigLoader:
    """Test suite for ConfigLoader settings loading functionality"""

    def test_load_settings_with_valid_toml_returns_engine_settings(self):
        """
        Test that loading a valid TOML file returns properly populated EngineSettings
        """
        # Arrange
        config_path = _write_temp(
            """
            [api]
            base_url = "https://zotero.example.org/api/"

            [retries]
            max_attempts = 3
            delay_seconds = 0.5

            [headers]
            zotero_schema_version = 30
            """,
            '.toml',
        )

        try:
            # Act
            result = ConfigLoader.load_settings(config_path)

            # Assert
            assert isinstance(result, EngineSettings)
            assert result.api_scheme == "https"
            assert result.api_authority_part == "zotero.example.org"
            assert result.api_path == "api"
            assert result.retry == 3
            assert result.retry_delay == 0.5
            assert result.headers == {'zotero_schema_version': 30}
        finally:
            config_path.unlink()

    def test_load_settings_with_valid_yaml_returns_engine_settings(self):
        """
        Test that YAML settings files are accepted alongside TOML
        """
        # Arrange
        config_path = _write_temp(
            "api:\n"
            "  scheme: http\n"
            "  authority: localhost:8080\n"
            "retries:\n"
            "  max_attempts: 2\n",
            '.yaml',
        )

        try:
            # Act
            result = ConfigLoader.load_settings(config_path)

            # Assert
            assert result.api_scheme == "http"
            assert result.api_authority_part == "localhost:8080"
            assert result.api_path == ""
            assert result.retry == 2
            assert result.retry_delay is None
        finally:
            config_path.unlink()

    def test_load_settings_with_missing_file_raises_file_not_found_error(self):
        """
        Test that a missing settings file raises FileNotFoundError
        """
        # Act & Assert
        with pytest.raises(FileNotFoundError) as exc_info:
            ConfigLoader.load_settings(Path("does_not_exist.toml"))

        assert "Configuration file not found" in str(exc_info.value)

    def test_load_settings_with_invalid_toml_raises_configuration_error(self):
        """
        Test that malformed TOML is reported as a ConfigurationError
        """
        # Arrange
        config_path = _write_temp("[api\nbase_url = ", '.toml')

        try:
            # Act & Assert
            with pytest.raises(ConfigurationError) as exc_info:
                ConfigLoader.load_settings(config_path)

            assert "Invalid TOML syntax" in str(exc_info.value)
        finally:
            config_path.unlink()

    def test_parse_settings_with_missing_api_section_raises_configuration_error(self):
        """
        Test that the [api] section is mandatory
        """
        # Act & Assert
        with pytest.raises(ConfigurationError) as exc_info:
            ConfigLoader.parse_settings({'retries': {'max_attempts': 1}})

        assert "Section [api]" in str(exc_info.value)

    def test_parse_settings_without_base_url_or_authority_raises_configuration_error(self):
        """
        Test that [api] must name an endpoint
        """
        # Act & Assert
        with pytest.raises(ConfigurationError) as exc_info:
            ConfigLoader.parse_settings({'api': {'scheme': 'https'}})

        assert "'base_url' or 'authority'" in str(exc_info.value)

    def test_parse_settings_with_api_key_env_reads_environment(self):
        """
        Test that api_key_env is resolved from the environment
        """
        # Arrange
        config_data = {'api': {'authority': 'api.zotero.org', 'api_key_env': 'ZOTERO_API_KEY'}}

        # Act
        with patch.dict('os.environ', {'ZOTERO_API_KEY': 'secret'}):
            result = ConfigLoader.parse_settings(config_data)

        # Assert
        assert result.api_key == 'secret'

    def test_parse_settings_with_unset_api_key_env_raises_environment_error(self):
        """
        Test that a referenced but unset environment variable is reported
        """
        # Arrange
        config_data = {'api': {'authority': 'api.zotero.org', 'api_key_env': 'ZOTERO_MISSING_KEY'}}

        # Act & Assert
        with patch.dict('os.environ', {}, clear=True):
            with pytest.raises(EnvironmentError) as exc_info:
                ConfigLoader.parse_settings(config_data)

        assert "ZOTERO_MISSING_KEY" in str(exc_info.value)

    def test_to_request_config_carries_endpoint_retry_and_authorization(self):
        """
        Test that settings produce a base RequestConfig
        """
        # Arrange
        settings = EngineSettings(
            api_authority_part='zotero.example.org',
            retry=2,
            retry_delay=1.5,
            api_key='abc',
            headers={'zotero_schema_version': 30},
        )

        # Act
        config = settings.to_request_config()

        # Assert
        assert isinstance(config, RequestConfig)
        assert config.api_authority_part == 'zotero.example.org'
        assert config.retry == 2
        assert config.retry_delay == 1.5
        assert config.authorization == 'Bearer abc'
        assert config.zotero_schema_version == 30
