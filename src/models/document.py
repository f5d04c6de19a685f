"""Local markdown document tree models."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass
class DocumentMetadata:
    """Metadata parsed from a markdown document's frontmatter and id comments.

    Attributes:
        page_id: Confluence page ID the document is bound to
        space_key: Space key overriding the batch space
        title: Explicit page title
        tags: Labels to add to the page
        synchronized: False excludes the document from the batch
        generated_by: Override for the "generated by" banner text
        properties: Content properties to set on the page
        layout: Per-document layout override (LayoutOptions field names)
    """
    page_id: Optional[str] = None
    space_key: Optional[str] = None
    title: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    synchronized: bool = True
    generated_by: Optional[str] = None
    properties: Dict[str, object] = field(default_factory=dict)
    layout: Dict[str, object] = field(default_factory=dict)


@dataclass
class DocumentNode:
    """A markdown document discovered by the directory scanner.

    ``relative_path`` is forward-slash normalized and unique per batch; it is the
    join key used by link resolution.

    Attributes:
        source_path: Absolute path of the markdown file
        relative_path: Path relative to the scanned root
        metadata: Parsed metadata
        content: Markdown body with metadata removed
        children: Child documents in scan order
        parent_source_path: Source path of the parent document, set when the
            tree is flattened for the pipeline
    """
    source_path: str
    relative_path: str
    metadata: DocumentMetadata = field(default_factory=DocumentMetadata)
    content: str = ""
    children: List['DocumentNode'] = field(default_factory=list)
    parent_source_path: Optional[str] = None

    def walk(self):
        """Yield this node and its descendants in pre-order."""
        yield self
        for child in self.children:
            yield from child.walk()
