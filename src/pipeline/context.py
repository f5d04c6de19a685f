"""Shared state of one pipeline run.

A BatchContext is created by the CLI at the start of a run, passed to every
step and discarded at the end. Field ownership:

- options, converter_options, layout_options: set by the creator, read-only
- extracted_nodes / extracted_pages: written by the ingestion steps
- transformed_documents: written by the transform steps
- page_id_cache, space_key_cache, resolved_space, loaded_count, failed_count:
  written by the load steps, page_id_cache in document order so a parent is
  cached before any child reads it
- step_results: appended by the runner only
- link diagnostics: written through record_unresolved_link and
  record_webui_fallback, which are safe to call from worker threads
"""

import threading
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from src.models.confluence_page import ConfluencePageWithAttachments, ConfluenceSpace
from src.models.converted_document import ConvertedDocument
from src.models.document import DocumentNode
from src.models.options import ConverterOptions, LayoutOptions, SyncOptions
from .errors import PipelineCancelledError
from .result import PipelineResult

MAX_DIAGNOSTIC_SAMPLES = 10


class CancellationToken:
    """Cooperative cancellation flag checked between documents and steps."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        """Raise PipelineCancelledError once cancel() has been called."""
        if self._event.is_set():
            raise PipelineCancelledError()


@dataclass
class BatchContext:
    """Mutable state shared by the steps of one run."""
    options: SyncOptions
    converter_options: ConverterOptions = field(default_factory=ConverterOptions)
    layout_options: LayoutOptions = field(default_factory=LayoutOptions)

    # Extract
    extracted_nodes: List[DocumentNode] = field(default_factory=list)
    extracted_pages: List[ConfluencePageWithAttachments] = field(default_factory=list)

    # Transform
    transformed_documents: List[ConvertedDocument] = field(default_factory=list)

    # Load
    loaded_count: int = 0
    failed_count: int = 0
    page_id_cache: Dict[str, str] = field(default_factory=dict)
    space_key_cache: Dict[str, str] = field(default_factory=dict)
    resolved_space: Optional[ConfluenceSpace] = None

    # Diagnostics
    step_results: List[PipelineResult] = field(default_factory=list)
    unresolved_link_fallback_count: int = 0
    webui_page_id_fallback_count: int = 0
    unresolved_link_samples: List[str] = field(default_factory=list)
    webui_page_id_fallback_samples: List[str] = field(default_factory=list)

    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def record_unresolved_link(self, link: str, source: Optional[str], fallback: str) -> None:
        """Count an internal link that fell back to its file name stem."""
        with self._lock:
            self.unresolved_link_fallback_count += 1
            if len(self.unresolved_link_samples) < MAX_DIAGNOSTIC_SAMPLES:
                self.unresolved_link_samples.append(
                    f"source='{source or '<unknown>'}', link='{link}', fallback='{fallback}'"
                )

    def record_webui_fallback(self, link: str, source: Optional[str]) -> None:
        """Count a page-id web UI link that fell back to a space/title URL."""
        with self._lock:
            self.webui_page_id_fallback_count += 1
            if len(self.webui_page_id_fallback_samples) < MAX_DIAGNOSTIC_SAMPLES:
                self.webui_page_id_fallback_samples.append(
                    f"source='{source or '<unknown>'}', link='{link}'"
                )
