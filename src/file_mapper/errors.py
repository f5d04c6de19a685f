"""Errors raised while reading local documents and configuration files.

Everything derives from FileMapperError (a SyncError), so the CLI can report a
bad config file or an unreadable docs directory with one except clause.
"""

from typing import Optional

from src.confluence_client.errors import SyncError


class FileMapperError(SyncError):
    """Base class for local document and config file errors."""
    pass


class FilesystemError(FileMapperError):
    """A path could not be scanned, read or written.

    Attributes:
        file_path: Path the operation was attempted on
        operation: Short verb such as 'read', 'write' or 'scan'
        reason: Optional detail, e.g. 'directory not found'
    """

    def __init__(self, file_path: str, operation: str, reason: Optional[str] = None):
        detail = f": {reason}" if reason else ""
        super().__init__(f"Cannot {operation} '{file_path}'{detail}")
        self.file_path = file_path
        self.operation = operation
        self.reason = reason


class ConfigError(FileMapperError):
    """A settings value or the YAML config file is invalid.

    ``config_field`` is the dotted setting name (``converter.use_panel``) or a
    section name, when the problem can be pinned to one.
    """

    def __init__(self, message: str, config_field: Optional[str] = None):
        location = f" [{config_field}]" if config_field else ""
        super().__init__(f"Invalid configuration{location}: {message}")
        self.config_field = config_field
        self.original_message = message


class FrontmatterError(FileMapperError):
    """The metadata block of a markdown file cannot be used."""

    def __init__(self, file_path: str, message: str):
        super().__init__(f"Bad frontmatter in {file_path}: {message}")
        self.file_path = file_path
        self.message = message
