"""Reverse conversion result data model."""

from dataclasses import dataclass, field
from typing import List, Optional


@dataclass
class ConversionResult:
    """Result of storage format to markdown conversion.

    Contains the converted markdown content along with the provenance
    recovered from the hidden metadata macro, if the page carried one.

    Attributes:
        markdown: Converted markdown content
        source_file: Original file name recorded by the upload
        source_path: Original relative path recorded by the upload
        warnings: Messages about constructs that could not be converted
    """
    markdown: str
    source_file: Optional[str] = None
    source_path: Optional[str] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def has_provenance(self) -> bool:
        """True when the original relative path was recovered."""
        return bool(self.source_path)
