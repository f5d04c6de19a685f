"""Authentication for the Confluence REST API.

Credentials come from a ConfluenceSettings value, or from environment variables
loaded with python-dotenv. Two schemes are supported: Basic (account email plus
API token) and Bearer (personal access token).
"""

import os
from typing import NamedTuple, Optional

from dotenv import load_dotenv

from src.models.options import ConfluenceSettings
from .errors import InvalidCredentialsError

# Environment variable names, preferred spelling first
ENV_BASE_URL = ('CONFLUENCE__BASEURL', 'CONFLUENCE_URL')
ENV_AUTH_MODE = ('CONFLUENCE__AUTHMODE', 'CONFLUENCE_AUTH_MODE')
ENV_USER_EMAIL = ('CONFLUENCE__USEREMAIL', 'CONFLUENCE_USER')
ENV_API_TOKEN = ('CONFLUENCE__APITOKEN', 'CONFLUENCE_API_TOKEN')
ENV_BEARER_TOKEN = ('CONFLUENCE__BEARERTOKEN', 'CONFLUENCE_BEARER_TOKEN')


class Credentials(NamedTuple):
    """Resolved Confluence API credentials."""
    url: str
    auth_mode: str
    user: Optional[str]
    api_token: Optional[str]
    bearer_token: Optional[str]

    @property
    def is_bearer(self) -> bool:
        return self.auth_mode.lower() == 'bearer'


def _first_env(names) -> Optional[str]:
    for name in names:
        value = os.getenv(name)
        if value:
            return value
    return None


def settings_from_environment(load_env_file: bool = True) -> ConfluenceSettings:
    """Build ConfluenceSettings from environment variables.

    Args:
        load_env_file: Load a .env file from the working directory first

    Returns:
        ConfluenceSettings with every value found in the environment
    """
    if load_env_file:
        load_dotenv()
    return ConfluenceSettings(
        base_url=_first_env(ENV_BASE_URL) or "",
        auth_mode=_first_env(ENV_AUTH_MODE) or "Basic",
        user_email=_first_env(ENV_USER_EMAIL),
        api_token=_first_env(ENV_API_TOKEN),
        bearer_token=_first_env(ENV_BEARER_TOKEN),
    )


class Authenticator:
    """Provides validated credentials to the API wrapper.

    Credentials are never cached outside the settings object and never logged.

    Example:
        >>> auth = Authenticator(ConfluenceSettings(
        ...     base_url="https://company.atlassian.net",
        ...     user_email="me@company.com", api_token="token"))
        >>> creds = auth.get_credentials()
        >>> print(f"Connecting to {creds.url}")
    """

    def __init__(self, settings: Optional[ConfluenceSettings] = None):
        """Initialize the authenticator.

        Args:
            settings: Connection settings. When omitted they are read from the
                environment (after loading .env).
        """
        self.settings = settings if settings is not None else settings_from_environment()

    def get_credentials(self) -> Credentials:
        """Return credentials for the configured auth mode.

        Returns:
            Credentials: site url (without the API path prefix), mode and secrets

        Raises:
            InvalidCredentialsError: If the secrets required by the auth mode are missing
        """
        settings = self.settings
        url = settings.base_url.rstrip('/')
        api_path = (settings.api_path or '').rstrip('/')
        if api_path and url.endswith(api_path):
            url = url[:-len(api_path)]

        if not settings.base_url:
            raise InvalidCredentialsError(user=settings.user_email or "unknown", endpoint="unknown")

        if settings.auth_mode.lower() == 'bearer':
            if not settings.bearer_token:
                raise InvalidCredentialsError(user="bearer", endpoint=url)
        elif not settings.user_email or not settings.api_token:
            raise InvalidCredentialsError(user=settings.user_email or "unknown", endpoint=url)

        return Credentials(
            url=url,
            auth_mode=settings.auth_mode,
            user=settings.user_email,
            api_token=settings.api_token,
            bearer_token=settings.bearer_token,
        )
