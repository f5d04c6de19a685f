"""Confluence space, page and attachment data models."""

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class ConfluenceSpace:
    """Confluence space resolved from its key.

    Attributes:
        space_id: Numeric space identifier
        key: Space key (e.g., "TEAM")
        name: Human readable space name
        homepage_id: Page ID of the space homepage (None if the space has none)
    """
    space_id: str
    key: str
    name: str
    homepage_id: Optional[str] = None


@dataclass
class ConfluencePage:
    """Confluence page with storage format content.

    Represents a Confluence page fetched from the API with all
    metadata required for read and update operations.

    Attributes:
        page_id: Unique identifier for the page
        title: Page title
        space_id: Identifier of the space the page lives in
        space_key: Space key where the page resides (e.g., "TEAM")
        content_storage: Page content in Confluence storage format (XHTML)
        version: Current version number (required for updates)
        parent_id: Parent page ID (None if page is at root level)
    """
    page_id: str
    title: str
    space_id: str = ""
    space_key: str = ""
    content_storage: str = ""  # XHTML format
    version: int = 1
    parent_id: Optional[str] = None


@dataclass
class ConfluenceAttachment:
    """Attachment stored on a Confluence page.

    Attributes:
        attachment_id: Attachment content ID
        title: Attachment file name
        media_type: MIME type reported by Confluence
        download_link: Server-relative download URL (may be empty)
    """
    attachment_id: str
    title: str
    media_type: str = "application/octet-stream"
    download_link: str = ""


@dataclass
class ConfluencePageWithAttachments:
    """A page extracted for download together with its position in the tree.

    Attributes:
        page: The extracted page
        attachments: Attachments stored on the page
        parent_page_id: ID of the parent page inside the extracted subtree
        depth: Distance from the extraction root (root is 0)
        has_children: Whether the page has child pages
    """
    page: ConfluencePage
    attachments: List[ConfluenceAttachment] = field(default_factory=list)
    parent_page_id: Optional[str] = None
    depth: int = 0
    has_children: bool = False
