"""Extract → Transform → Load pipeline for upload, download and local export runs."""

from .builder import PipelineBuilder
from .context import BatchContext, CancellationToken
from .errors import DuplicateTitleError, PipelineCancelledError, PipelineError
from .result import PipelineResult, PipelineStatus
from .runner import PipelineRunner, PipelineStep

__all__ = [
    'BatchContext',
    'CancellationToken',
    'DuplicateTitleError',
    'PipelineBuilder',
    'PipelineCancelledError',
    'PipelineError',
    'PipelineResult',
    'PipelineRunner',
    'PipelineStatus',
    'PipelineStep',
]
