"""Confluence client library for confluence-synkmd.

This package provides Python abstractions over the Confluence Cloud REST API,
the page hierarchy resolution protocol, and typed errors for API failures.
"""

from .errors import (
    SyncError,
    ConfluenceError,
    InvalidCredentialsError,
    PageNotFoundError,
    SpaceNotFoundError,
    AmbiguousPageError,
    APIUnreachableError,
    APIAccessError,
    ConversionError,
)

__all__ = [
    "SyncError",
    "ConfluenceError",
    "InvalidCredentialsError",
    "PageNotFoundError",
    "SpaceNotFoundError",
    "AmbiguousPageError",
    "APIUnreachableError",
    "APIAccessError",
    "ConversionError",
]
