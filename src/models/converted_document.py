"""Converted document and attachment data models."""

from dataclasses import dataclass, field
from typing import List, Optional

from src.models.document import DocumentMetadata


@dataclass
class AttachmentInfo:
    """Binary content a converted document depends on.

    Attributes:
        file_name: Attachment name on the page (or on disk when downloading)
        source_path: Local path of the content, or a remote download URL
        media_type: MIME type of the content
        content: Rendered bytes for generated attachments (diagrams, formulas)
    """
    file_name: str
    source_path: str
    media_type: str = "application/octet-stream"
    content: Optional[bytes] = None


@dataclass
class ConvertedDocument:
    """A document after forward or reverse transformation.

    The content is storage format XHTML for uploads and markdown for downloads.

    Attributes:
        title: Resolved page title
        content: Rendered body
        metadata: Metadata parsed from the source document
        source_path: Absolute source file path (upload) or page ID (download)
        attachments: Attachments to upload or download
        parent_source_path: Source path of the parent document (upload)
        parent_page_id: Page ID of the parent page (download)
        has_children: Whether the page has children (download)
        original_filename: File name recovered from the provenance marker
        original_source_path: Relative path recovered from the provenance marker
        page_id: Remote page ID (download)
    """
    title: str
    content: str
    metadata: DocumentMetadata = field(default_factory=DocumentMetadata)
    source_path: str = ""
    attachments: List[AttachmentInfo] = field(default_factory=list)
    parent_source_path: Optional[str] = None
    parent_page_id: Optional[str] = None
    has_children: bool = False
    original_filename: Optional[str] = None
    original_source_path: Optional[str] = None
    page_id: Optional[str] = None
