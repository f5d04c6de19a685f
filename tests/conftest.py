"""Root pytest configuration for all tests."""

import logging

import pytest

# Connection pool chatter from requests drowns the logs under test
logging.getLogger("urllib3").setLevel(logging.WARNING)


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every Confluence variable from the environment."""
    for name in (
        'CONFLUENCE__BASEURL', 'CONFLUENCE_URL', 'CONFLUENCE__AUTHMODE', 'CONFLUENCE_AUTH_MODE',
        'CONFLUENCE__USEREMAIL', 'CONFLUENCE_USER', 'CONFLUENCE__APITOKEN', 'CONFLUENCE_API_TOKEN',
        'CONFLUENCE__BEARERTOKEN', 'CONFLUENCE_BEARER_TOKEN',
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch
