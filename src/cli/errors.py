"""Typed exception hierarchy for CLI-related errors.

All exceptions inherit from CLIError, itself a SyncError, so the entry point
can catch every expected failure with a single clause.
"""

from typing import List

from src.confluence_client.errors import SyncError


class CLIError(SyncError):
    """Base exception for all CLI-related errors."""
    pass


class ConfigurationIncompleteError(CLIError):
    """Raised when the Confluence connection settings are missing or invalid.

    Attributes:
        problems: One message per missing or invalid setting
    """

    def __init__(self, problems: List[str]):
        message = "Confluence configuration is incomplete:\n" + "\n".join(
            f"  • {problem}" for problem in problems
        )
        super().__init__(message)
        self.problems = problems
