"""Data models shared by the converters, the API client and the pipeline."""

from src.models.confluence_page import (
    ConfluenceAttachment,
    ConfluencePage,
    ConfluencePageWithAttachments,
    ConfluenceSpace,
)
from src.models.conversion_result import ConversionResult
from src.models.converted_document import AttachmentInfo, ConvertedDocument
from src.models.document import DocumentMetadata, DocumentNode
from src.models.options import (
    ConfluenceSettings,
    ConverterOptions,
    LayoutOptions,
    SyncMode,
    SyncOptions,
)

__all__ = [
    'AttachmentInfo',
    'ConfluenceAttachment',
    'ConfluencePage',
    'ConfluencePageWithAttachments',
    'ConfluenceSettings',
    'ConfluenceSpace',
    'ConversionResult',
    'ConvertedDocument',
    'ConverterOptions',
    'DocumentMetadata',
    'DocumentNode',
    'LayoutOptions',
    'SyncMode',
    'SyncOptions',
]
