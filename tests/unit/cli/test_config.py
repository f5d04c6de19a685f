"""Unit tests for CLI settings loading and validation."""

import pytest

from src.cli.config import (
    SettingsLoader,
    credentials_required,
    ensure_settings_complete,
    validate_settings,
)
from src.cli.errors import ConfigurationIncompleteError
from src.file_mapper.errors import ConfigError, FilesystemError
from src.models.options import ConfluenceSettings, SyncMode


def write_config(tmp_path, text):
    path = tmp_path / "synkmd.yaml"
    path.write_text(text, encoding="utf-8")
    return str(path)


def complete_settings(**changes):
    values = dict(
        base_url="https://company.atlassian.net",
        auth_mode="Basic",
        user_email="user@example.com",
        api_token="token",
    )
    values.update(changes)
    return ConfluenceSettings(**values)


class TestReadConfigFile:
    """Test cases for SettingsLoader.read_config_file."""

    def test_missing_file(self, tmp_path):
        with pytest.raises(FilesystemError, match="Configuration file not found"):
            SettingsLoader.read_config_file(str(tmp_path / "missing.yaml"))

    def test_invalid_yaml(self, tmp_path):
        path = write_config(tmp_path, "confluence: [unclosed\n")

        with pytest.raises(ConfigError, match="Invalid YAML syntax"):
            SettingsLoader.read_config_file(path)

    def test_empty_file(self, tmp_path):
        assert SettingsLoader.read_config_file(write_config(tmp_path, "")) == {}

    def test_not_a_mapping(self, tmp_path):
        with pytest.raises(ConfigError, match="must be a YAML dictionary"):
            SettingsLoader.read_config_file(write_config(tmp_path, "- a\n- b\n"))

    def test_unknown_section(self, tmp_path):
        path = write_config(tmp_path, "sync:\n  mode: Upload\n")

        with pytest.raises(ConfigError) as exc_info:
            SettingsLoader.read_config_file(path)

        assert exc_info.value.config_field == "sync"
        assert "Unknown section 'sync'" in str(exc_info.value)

    def test_section_must_be_mapping(self, tmp_path):
        with pytest.raises(ConfigError, match="Section must be a dictionary"):
            SettingsLoader.read_config_file(write_config(tmp_path, "layout: wide\n"))

    def test_empty_section(self, tmp_path):
        assert SettingsLoader.read_config_file(write_config(tmp_path, "layout:\n")) == {"layout": {}}


class TestLoad:
    """Test cases for SettingsLoader.load layering."""

    def test_defaults_from_environment(self, clean_env):
        clean_env.setenv("CONFLUENCE__BASEURL", "https://env.atlassian.net")

        settings = SettingsLoader.load(load_env_file=False)

        assert settings.confluence.base_url == "https://env.atlassian.net"
        assert settings.converter.render_mermaid is True

    def test_file_overrides_environment(self, clean_env, tmp_path):
        clean_env.setenv("CONFLUENCE__BASEURL", "https://env.atlassian.net")
        path = write_config(
            tmp_path,
            "confluence:\n"
            "  base_url: https://file.atlassian.net\n"
            "  custom_headers:\n"
            "    X-Team: docs\n"
            "converter:\n"
            "  render_mermaid: false\n"
            "  title_prefix: '[Docs] '\n"
            "layout:\n"
            "  image_alignment: center\n",
        )

        settings = SettingsLoader.load(path, load_env_file=False)

        assert settings.confluence.base_url == "https://file.atlassian.net"
        assert settings.confluence.custom_headers == {"X-Team": "docs"}
        assert settings.converter.render_mermaid is False
        assert settings.converter.title_prefix == "[Docs] "
        assert settings.layout.image_alignment == "center"

    def test_flags_override_file(self, clean_env, tmp_path):
        """Flag values win; None means the flag was not given."""
        path = write_config(
            tmp_path,
            "converter:\n  title_prefix: 'File '\n  use_panel: true\n"
            "confluence:\n  custom_headers:\n    X-Team: docs\n",
        )
        overrides = {
            "converter": {"title_prefix": "Flag ", "use_panel": None},
            "confluence": {"custom_headers": {"X-Run": "1"}},
        }

        settings = SettingsLoader.load(path, overrides, load_env_file=False)

        assert settings.converter.title_prefix == "Flag "
        assert settings.converter.use_panel is True
        assert settings.confluence.custom_headers == {"X-Team": "docs", "X-Run": "1"}

    def test_unknown_key(self, clean_env, tmp_path):
        path = write_config(tmp_path, "converter:\n  bogus: 1\n")

        with pytest.raises(ConfigError) as exc_info:
            SettingsLoader.load(path, load_env_file=False)

        assert exc_info.value.config_field == "converter.bogus"

    def test_boolean_type_checked(self, clean_env, tmp_path):
        path = write_config(tmp_path, "converter:\n  render_mermaid: 'yes'\n")

        with pytest.raises(ConfigError, match="Expected true or false"):
            SettingsLoader.load(path, load_env_file=False)

    def test_integer_type_checked(self, clean_env, tmp_path):
        path = write_config(tmp_path, "confluence:\n  timeout: soon\n")

        with pytest.raises(ConfigError, match="Expected an integer"):
            SettingsLoader.load(path, load_env_file=False)


class TestParseHeaders:
    """Test cases for --headers parsing."""

    def test_parse(self):
        assert SettingsLoader.parse_headers(["X-A=1", " X-B = two=2 "]) == {"X-A": "1", "X-B": "two=2"}

    def test_none(self):
        assert SettingsLoader.parse_headers(None) == {}

    @pytest.mark.parametrize("entry", ["no-separator", "=value"])
    def test_invalid(self, entry):
        with pytest.raises(ConfigError, match="Expected KEY=VALUE"):
            SettingsLoader.parse_headers([entry])


class TestValidateSettings:
    """Test cases for connection settings validation."""

    def test_complete_basic_settings(self):
        assert validate_settings(complete_settings()) == []

    def test_everything_missing(self):
        problems = validate_settings(ConfluenceSettings())

        assert problems == [
            "BaseUrl is required. Set via --conf-base-url or CONFLUENCE__BASEURL.",
            "UserEmail is required for Basic auth. Set via --conf-user-email or CONFLUENCE__USEREMAIL.",
            "ApiToken is required for Basic auth. Set via --conf-api-token or CONFLUENCE__APITOKEN.",
        ]

    def test_bearer_requires_token(self):
        problems = validate_settings(complete_settings(auth_mode="Bearer"))

        assert problems == [
            "BearerToken is required for Bearer auth. Set via --conf-bearer-token or CONFLUENCE__BEARERTOKEN."
        ]

    def test_unknown_auth_mode(self):
        problems = validate_settings(complete_settings(auth_mode="OAuth"))

        assert problems == ["Unknown AuthMode 'OAuth'. Must be 'Basic' or 'Bearer'."]

    @pytest.mark.parametrize("url", ["http://company.atlassian.net", "company.atlassian.net"])
    def test_https_required(self, url):
        problems = validate_settings(complete_settings(base_url=url))

        assert problems == [
            "BaseUrl must be a valid absolute HTTPS URL (e.g. https://yoursite.atlassian.net)."
        ]

    def test_query_rejected(self):
        problems = validate_settings(complete_settings(base_url="https://company.atlassian.net?x=1"))

        assert problems == ["BaseUrl must not contain query string or fragment."]

    def test_path_becomes_api_path(self):
        """A base URL path moves into an empty API path."""
        settings = complete_settings(base_url="https://company.atlassian.net/wiki/", api_path="")

        assert validate_settings(settings) == []
        assert settings.base_url == "https://company.atlassian.net"
        assert settings.api_path == "/wiki"

    def test_matching_path_accepted(self):
        settings = complete_settings(base_url="https://company.atlassian.net/WIKI")

        assert validate_settings(settings) == []
        assert settings.api_path == "/wiki"

    def test_conflicting_path(self):
        settings = complete_settings(base_url="https://host.example.com/confluence")

        problems = validate_settings(settings)

        assert len(problems) == 1
        assert "BaseUrl contains path '/confluence' while ApiPath is '/wiki'" in problems[0]


class TestEnsureSettingsComplete:
    """Test cases for ensure_settings_complete."""

    def test_local_export_needs_nothing(self):
        ensure_settings_complete(ConfluenceSettings(), SyncMode.LOCAL_EXPORT)

    def test_incomplete_raises_with_all_problems(self):
        with pytest.raises(ConfigurationIncompleteError) as exc_info:
            ensure_settings_complete(ConfluenceSettings(), SyncMode.UPLOAD)

        assert len(exc_info.value.problems) == 3
        assert str(exc_info.value).startswith("Confluence configuration is incomplete:\n")
        assert "  • BaseUrl is required" in str(exc_info.value)

    def test_credentials_required(self):
        assert credentials_required(SyncMode.DOWNLOAD)
        assert not credentials_required(SyncMode.LOCAL_EXPORT)
