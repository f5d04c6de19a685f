"""Local markdown documents: scanning, metadata and file naming.

This package turns a directory of markdown files into the DocumentNode tree
the pipeline uploads, and provides the naming helpers used when writing
downloaded pages back to disk.
"""

from .errors import (
    FileMapperError,
    FilesystemError,
    ConfigError,
    FrontmatterError,
)
from .filesafe_converter import FilesafeConverter
from .frontmatter_handler import FrontmatterHandler
from .hierarchy_builder import DocumentTreeBuilder

__all__ = [
    'FileMapperError',
    'FilesystemError',
    'ConfigError',
    'FrontmatterError',
    'FilesafeConverter',
    'FrontmatterHandler',
    'DocumentTreeBuilder',
]
