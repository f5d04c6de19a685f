"""Typed exception hierarchy for Confluence-related errors.

This module defines all custom exceptions used by the Confluence client library.
All exceptions inherit from ConfluenceError base class for easy catching and
include descriptive messages with context to help with debugging.
"""

from typing import Optional


class SyncError(Exception):
    """Base exception for all confluence-synkmd errors.

    Use this to catch any application-level error from the sync tool.
    """
    pass


class ConfluenceError(SyncError):
    """Base exception for all Confluence-related errors."""
    pass


class InvalidCredentialsError(ConfluenceError):
    """Raised when API credentials are invalid or authentication fails."""

    def __init__(self, user: str, endpoint: str):
        super().__init__(
            f"Authentication failed (user: {user}, endpoint: {endpoint})"
        )
        self.user = user
        self.endpoint = endpoint


class PageNotFoundError(ConfluenceError):
    """Raised when a requested page does not exist."""

    def __init__(self, page_id: str):
        super().__init__(f"Page {page_id} not found")
        self.page_id = page_id


class SpaceNotFoundError(ConfluenceError):
    """Raised when a space key does not resolve to a space."""

    def __init__(self, space_key: str):
        super().__init__(f"Space '{space_key}' not found")
        self.space_key = space_key


class AmbiguousPageError(ConfluenceError):
    """Raised when a title matches several pages and none may be picked."""

    def __init__(self, title: str, total_matches: int, matches_under_parent: int):
        super().__init__(
            f"Page title '{title}' is ambiguous ({total_matches} matches, "
            f"{matches_under_parent} under the expected parent)"
        )
        self.title = title
        self.total_matches = total_matches
        self.matches_under_parent = matches_under_parent


class APIUnreachableError(ConfluenceError):
    """Raised when the Confluence API is not available or unreachable."""

    def __init__(self, endpoint: str):
        super().__init__(f"API is not available at {endpoint}")
        self.endpoint = endpoint


class APIAccessError(ConfluenceError):
    """Raised when API access fails after retries or due to access restrictions."""

    def __init__(self, message: str = "Confluence API failure (after 3 retries)"):
        super().__init__(message)


class ConversionError(ConfluenceError):
    """Raised when content conversion between formats fails."""

    def __init__(self, message: str, source: Optional[str] = None):
        if source:
            message = f"{message} ({source})"
        super().__init__(message)
        self.source = source
