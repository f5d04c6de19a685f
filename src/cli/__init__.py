"""Command-line interface for confluence-synkmd.

This package provides the `confluence-synkmd` CLI tool: settings loading and
validation, terminal output, and assembly of the upload, download and local
export pipelines.
"""

from .config import SettingsLoader, ensure_settings_complete, validate_settings
from .errors import CLIError, ConfigurationIncompleteError
from .models import ExitCode, Settings
from .output import OutputHandler

__all__ = [
    'CLIError',
    'ConfigurationIncompleteError',
    'ExitCode',
    'OutputHandler',
    'Settings',
    'SettingsLoader',
    'ensure_settings_complete',
    'validate_settings',
]
