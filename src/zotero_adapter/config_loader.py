"""
ConfigLoader module for loading and validating engine settings files
"""

import os
import tomllib
from pathlib import Path
from dataclasses import dataclass, field
from typing import Dict, Any, Optional
from urllib.parse import urlsplit

import yaml


class ConfigurationError(ValueError):
    """Raised when configuration is invalid, incomplete or contradictory"""
    pass


class EnvironmentError(Exception):
    """Raised when required environment variables are missing"""
    pass


@dataclass
class EngineSettings:
    """Endpoint, retry and default header settings for the request engine"""
    api_scheme: str = "https"
    api_authority_part: str = "api.zotero.org"
    api_path: str = ""
    retry: int = 0
    retry_delay: Optional[float] = None
    api_key: Optional[str] = None
    headers: Dict[str, Any] = field(default_factory=dict)

    def to_request_config(self):
        """
        Build a base RequestConfig carrying these settings

        Returns:
            RequestConfig to be refined with with_patch()
        """
        from .request_config import RequestConfig, with_patch

        patch = {
            'api_scheme': self.api_scheme,
            'api_authority_part': self.api_authority_part,
            'api_path': self.api_path,
            'retry': self.retry,
            'retry_delay': self.retry_delay,
            **self.headers,
        }
        if self.api_key:
            patch['authorization'] = f"Bearer {self.api_key}"
        return with_patch(RequestConfig(), patch)


class ConfigLoader:
    """Loads and validates TOML or YAML engine settings files"""

    # Required configuration sections and their mandatory keys
    REQUIRED_SECTIONS = {
        'api': [],
    }

    # Optional sections that can have default empty values
    OPTIONAL_SECTIONS = [
        'retries',
        'headers',
    ]

    @staticmethod
    def load_settings(config_path: Path) -> EngineSettings:
        """
        Load engine settings from a TOML or YAML file

        Args:
            config_path: Path to the settings file (.toml, .yml or .yaml)

        Returns:
            EngineSettings object with all configuration data

        Raises:
            FileNotFoundError: If config file doesn't exist
            ConfigurationError: If required configuration is missing or the
                file cannot be parsed
        """
        config_path = Path(config_path)
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        if config_path.suffix.lower() == '.toml':
            config_data = ConfigLoader._load_toml(config_path)
        elif config_path.suffix.lower() in ('.yml', '.yaml'):
            config_data = ConfigLoader._load_yaml(config_path)
        else:
            raise ConfigurationError(f"Unsupported configuration format: {config_path.suffix}")

        return ConfigLoader.parse_settings(config_data)

    @staticmethod
    def _load_toml(config_path: Path) -> Dict[str, Any]:
        try:
            with open(config_path, 'rb') as f:
                return tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(f"Invalid TOML syntax in {config_path}: {e}")

    @staticmethod
    def _load_yaml(config_path: Path) -> Dict[str, Any]:
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                config_data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML syntax in {config_path}: {e}")
        if not isinstance(config_data, dict):
            raise ConfigurationError(f"Configuration file {config_path} must contain a mapping")
        return config_data

    @staticmethod
    def parse_settings(config_data: Dict[str, Any]) -> EngineSettings:
        """
        Build EngineSettings from already-parsed configuration data

        Args:
            config_data: Parsed settings mapping

        Returns:
            EngineSettings object

        Raises:
            ConfigurationError: If required sections or keys are missing
            EnvironmentError: If api_key_env names an unset variable
        """
        ConfigLoader._validate_required_sections(config_data)

        api_section = config_data['api']
        retries = config_data.get('retries', {})
        headers = config_data.get('headers', {})

        if 'base_url' in api_section:
            parts = urlsplit(api_section['base_url'])
            scheme, authority, path = parts.scheme, parts.netloc, parts.path.strip('/')
        else:
            scheme = api_section.get('scheme', 'https')
            authority = api_section['authority']
            path = api_section.get('path', '').strip('/')

        if not scheme or not authority:
            raise ConfigurationError("Section [api] must define a scheme and an authority")

        api_key = None
        if 'api_key_env' in api_section:
            api_key = ConfigLoader.get_environment_value(api_section['api_key_env'])

        retry_delay = retries.get('delay_seconds')
        try:
            return EngineSettings(
                api_scheme=scheme,
                api_authority_part=authority,
                api_path=path,
                retry=int(retries.get('max_attempts', 0)),
                retry_delay=float(retry_delay) if retry_delay is not None else None,
                api_key=api_key,
                headers=dict(headers),
            )
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f"Invalid value in section [retries]: {e}")

    @staticmethod
    def _validate_required_sections(config_data: Dict[str, Any]) -> None:
        """
        Validate that all required configuration sections and keys are present

        Args:
            config_data: Parsed configuration data

        Raises:
            ConfigurationError: If any required section or key is missing
        """
        missing_items = []

        for section_name, required_keys in ConfigLoader.REQUIRED_SECTIONS.items():
            if section_name not in config_data:
                missing_items.append(f"Section [{section_name}]")
            else:
                section_data = config_data[section_name]
                for key in required_keys:
                    if key not in section_data:
                        missing_items.append(f"Key '{key}' in section [{section_name}]")

        api_section = config_data.get('api') or {}
        if 'api' in config_data and 'base_url' not in api_section and 'authority' not in api_section:
            missing_items.append("Key 'base_url' or 'authority' in section [api]")

        for section_name in ConfigLoader.OPTIONAL_SECTIONS:
            if section_name in config_data and not isinstance(config_data[section_name], dict):
                missing_items.append(f"Section [{section_name}] as a table")

        if missing_items:
            raise ConfigurationError(
                f"Missing required configuration items: {', '.join(missing_items)}"
            )

    @staticmethod
    def get_environment_value(env_var_name: str) -> str:
        """
        Get environment variable value with proper error handling

        Args:
            env_var_name: Name of the environment variable

        Returns:
            Value of the environment variable

        Raises:
            EnvironmentError: If environment variable is not set
        """
        value = os.getenv(env_var_name)
        if value is None:
            raise EnvironmentError(f"Environment variable '{env_var_name}' is not set")
        return value
