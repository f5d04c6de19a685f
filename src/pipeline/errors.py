"""Typed exceptions raised by the sync pipeline."""

from typing import Dict, List

from src.confluence_client.errors import SyncError


class PipelineError(SyncError):
    """Base exception for pipeline errors."""
    pass


class PipelineCancelledError(PipelineError):
    """Raised when a run is cancelled between documents or steps.

    Steps never convert this into a result; it always propagates to the caller.
    """

    def __init__(self, message: str = "Pipeline run was cancelled"):
        super().__init__(message)


class DuplicateTitleError(PipelineError):
    """Raised when two source documents of one upload resolve to the same title.

    Attributes:
        duplicates: Mapping of title to the source paths that share it
    """

    def __init__(self, duplicates: Dict[str, List[str]]):
        details = "; ".join(
            f"'{title}' ← {', '.join(paths)}" for title, paths in duplicates.items()
        )
        super().__init__(f"Duplicate page titles in upload batch: {details}")
        self.duplicates = duplicates
