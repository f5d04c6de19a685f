"""Settings loading and validation for the CLI.

Settings come from three layers, later layers winning:

1. Environment variables (a ``.env`` file in the working directory is loaded
   first with python-dotenv)
2. An optional YAML config file passed with ``--config``
3. Command-line flags

Config file structure (every key optional):
    confluence:
      base_url: "https://company.atlassian.net"
      auth_mode: "Basic"
      custom_headers:
        X-Team: docs
    converter:
      render_mermaid: false
      title_prefix: "[Docs] "
    layout:
      image_alignment: center
"""

import logging
from dataclasses import fields, replace
from typing import Any, Dict, List, Optional
from urllib.parse import urlsplit

import yaml

from src.confluence_client.auth import settings_from_environment
from src.file_mapper.errors import ConfigError, FilesystemError
from src.models.options import ConfluenceSettings, SyncMode
from .errors import ConfigurationIncompleteError
from .models import Settings

logger = logging.getLogger(__name__)


class SettingsLoader:
    """Builds a Settings value from environment, config file and flag overrides."""

    SECTIONS = ('confluence', 'converter', 'layout')

    @classmethod
    def load(
        cls,
        config_path: Optional[str] = None,
        overrides: Optional[Dict[str, Dict[str, Any]]] = None,
        load_env_file: bool = True,
    ) -> Settings:
        """Load settings.

        Args:
            config_path: Optional YAML config file
            overrides: Flag values per section; None values mean "not given"
            load_env_file: Load ``.env`` before reading the environment

        Returns:
            Settings with every layer applied

        Raises:
            FilesystemError: If the config file cannot be read
            ConfigError: If the config file is invalid or has unknown keys
        """
        settings = Settings(confluence=settings_from_environment(load_env_file))

        if config_path:
            file_values = cls.read_config_file(config_path)
            settings = cls._apply_layer(settings, file_values, config_path)
            logger.debug(f"Applied config file {config_path}")

        if overrides:
            settings = cls._apply_layer(settings, overrides, "command line")

        return settings

    @classmethod
    def read_config_file(cls, config_path: str) -> Dict[str, Dict[str, Any]]:
        """Read and structurally validate a YAML config file.

        Raises:
            FilesystemError: If file cannot be read
            ConfigError: If the YAML is invalid, not a mapping, or has unknown sections
        """
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                content = f.read()
        except FileNotFoundError:
            raise FilesystemError(config_path, 'read', 'Configuration file not found')
        except PermissionError:
            raise FilesystemError(config_path, 'read', 'Permission denied')
        except OSError as e:
            raise FilesystemError(config_path, 'read', str(e))

        try:
            config_dict = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML syntax: {str(e)}")

        if config_dict is None:
            return {}

        if not isinstance(config_dict, dict):
            raise ConfigError(
                f"Configuration must be a YAML dictionary, got {type(config_dict).__name__}"
            )

        for key, value in config_dict.items():
            if key not in cls.SECTIONS:
                raise ConfigError(
                    f"Unknown section '{key}'. Must be one of: {', '.join(cls.SECTIONS)}",
                    str(key),
                )
            if value is not None and not isinstance(value, dict):
                raise ConfigError(
                    f"Section must be a dictionary, got {type(value).__name__}", key
                )

        return {key: value or {} for key, value in config_dict.items()}

    @classmethod
    def _apply_layer(cls, settings: Settings, layer: Dict[str, Dict[str, Any]], origin: str) -> Settings:
        for section, values in layer.items():
            if section not in cls.SECTIONS:
                raise ConfigError(f"Unknown section '{section}' from {origin}", section)
            current = getattr(settings, section)
            settings = replace(settings, **{section: cls._apply_section(current, section, values)})
        return settings

    @staticmethod
    def _apply_section(current: Any, section: str, values: Dict[str, Any]) -> Any:
        """Apply non-None values to a dataclass, checking names and basic types."""
        known = {f.name for f in fields(current)}
        changes: Dict[str, Any] = {}

        for key, value in values.items():
            if key not in known:
                raise ConfigError(f"Unknown key '{key}'", f"{section}.{key}")
            if value is None:
                continue

            existing = getattr(current, key)
            if isinstance(existing, bool):
                if not isinstance(value, bool):
                    raise ConfigError(
                        f"Expected true or false, got {type(value).__name__}", f"{section}.{key}"
                    )
            elif isinstance(existing, dict):
                if not isinstance(value, dict):
                    raise ConfigError(
                        f"Expected a dictionary, got {type(value).__name__}", f"{section}.{key}"
                    )
                value = {**existing, **{str(k): str(v) for k, v in value.items()}}
            elif isinstance(existing, int) and not isinstance(value, int):
                raise ConfigError(
                    f"Expected an integer, got {type(value).__name__}", f"{section}.{key}"
                )

            changes[key] = value

        return replace(current, **changes) if changes else current

    @staticmethod
    def parse_headers(entries: Optional[List[str]]) -> Dict[str, str]:
        """Parse repeated ``KEY=VALUE`` header flags.

        Raises:
            ConfigError: If an entry has no '=' or an empty key
        """
        headers: Dict[str, str] = {}
        for entry in entries or []:
            key, separator, value = entry.partition('=')
            if not separator or not key.strip():
                raise ConfigError(
                    f"Invalid header '{entry}'. Expected KEY=VALUE", 'headers'
                )
            headers[key.strip()] = value.strip()
        return headers


def credentials_required(mode: SyncMode) -> bool:
    """Whether the mode talks to the Confluence API."""
    return mode != SyncMode.LOCAL_EXPORT


def validate_settings(settings: ConfluenceSettings) -> List[str]:
    """Check the connection settings and normalize the base URL.

    A valid base URL is reduced to its origin; a path on it becomes the API
    path (it must agree with a configured non-empty API path).

    Args:
        settings: Settings to check; base_url and api_path may be rewritten

    Returns:
        One message per problem, empty when the settings are usable
    """
    problems: List[str] = []

    if not (settings.base_url or "").strip():
        problems.append("BaseUrl is required. Set via --conf-base-url or CONFLUENCE__BASEURL.")
    else:
        _normalize_base_url(settings, problems)

    auth_mode = (settings.auth_mode or "").strip().lower()
    if auth_mode == "basic":
        if not (settings.user_email or "").strip():
            problems.append(
                "UserEmail is required for Basic auth. Set via --conf-user-email or CONFLUENCE__USEREMAIL."
            )
        if not (settings.api_token or "").strip():
            problems.append(
                "ApiToken is required for Basic auth. Set via --conf-api-token or CONFLUENCE__APITOKEN."
            )
    elif auth_mode == "bearer":
        if not (settings.bearer_token or "").strip():
            problems.append(
                "BearerToken is required for Bearer auth. Set via --conf-bearer-token or CONFLUENCE__BEARERTOKEN."
            )
    else:
        problems.append(f"Unknown AuthMode '{settings.auth_mode}'. Must be 'Basic' or 'Bearer'.")

    return problems


def ensure_settings_complete(settings: ConfluenceSettings, mode: SyncMode) -> None:
    """Validate settings for a mode that needs credentials.

    Raises:
        ConfigurationIncompleteError: Listing every problem found
    """
    if not credentials_required(mode):
        return
    problems = validate_settings(settings)
    if problems:
        raise ConfigurationIncompleteError(problems)


def _normalize_api_path(api_path: Optional[str]) -> str:
    segment = (api_path or "").strip().strip('/')
    return f"/{segment}" if segment else ""


def _normalize_base_url(settings: ConfluenceSettings, problems: List[str]) -> None:
    parts = urlsplit(settings.base_url.strip())
    if parts.scheme.lower() != "https" or not parts.netloc:
        problems.append("BaseUrl must be a valid absolute HTTPS URL (e.g. https://yoursite.atlassian.net).")
        return

    if parts.query or parts.fragment:
        problems.append("BaseUrl must not contain query string or fragment.")

    api_path = _normalize_api_path(settings.api_path)
    base_path = parts.path.strip('/')
    if base_path:
        base_segment = f"/{base_path}"
        if not api_path:
            api_path = base_segment
        elif api_path.lower() != base_segment.lower():
            problems.append(
                f"BaseUrl contains path '{base_segment}' while ApiPath is '{api_path}'. "
                "Use a host-only BaseUrl or make ApiPath match the BaseUrl path."
            )

    settings.base_url = f"{parts.scheme}://{parts.netloc}"
    settings.api_path = api_path
