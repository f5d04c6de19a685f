"""Pipeline steps for the upload, download and local export directions."""

from .confluence_ingestion import ConfluenceIngestionStep
from .confluence_load import ConfluenceLoadStep
from .filesystem_load import FileSystemLoadStep
from .local_export import LocalExportStep
from .markdown_ingestion import MarkdownIngestionStep
from .markdown_transform import MarkdownTransformStep
from .write_back import WriteBackStep
from .xhtml_transform import ConfluenceXhtmlTransformStep

__all__ = [
    'ConfluenceIngestionStep',
    'ConfluenceLoadStep',
    'ConfluenceXhtmlTransformStep',
    'FileSystemLoadStep',
    'LocalExportStep',
    'MarkdownIngestionStep',
    'MarkdownTransformStep',
    'WriteBackStep',
]
