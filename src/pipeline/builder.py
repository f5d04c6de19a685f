"""Fluent assembly of Extract → Transform → Load step sequences."""

from typing import List, Optional

from .context import BatchContext, CancellationToken
from .result import PipelineResult
from .runner import PipelineRunner, PipelineStep


class PipelineBuilder:
    """Collects steps per phase and orders them extractors first, loaders last.

    Example:
        >>> result = (
        ...     PipelineBuilder()
        ...     .add_extractor(MarkdownIngestionStep())
        ...     .add_transformer(ConfluenceXhtmlTransformStep())
        ...     .add_loader(LocalExportStep())
        ...     .execute(context, PipelineRunner())
        ... )
    """

    def __init__(self):
        self._extractors: List[PipelineStep] = []
        self._transformers: List[PipelineStep] = []
        self._loaders: List[PipelineStep] = []

    def add_extractor(self, step: PipelineStep) -> 'PipelineBuilder':
        self._extractors.append(self._require(step))
        return self

    def add_transformer(self, step: PipelineStep) -> 'PipelineBuilder':
        self._transformers.append(self._require(step))
        return self

    def add_loader(self, step: PipelineStep) -> 'PipelineBuilder':
        self._loaders.append(self._require(step))
        return self

    def build(self) -> List[PipelineStep]:
        """Return all steps in Extract → Transform → Load order."""
        return [*self._extractors, *self._transformers, *self._loaders]

    def execute(
        self,
        context: BatchContext,
        runner: Optional[PipelineRunner] = None,
        cancel_token: Optional[CancellationToken] = None,
    ) -> PipelineResult:
        """Build the step list and run it immediately."""
        return (runner or PipelineRunner()).run(self.build(), context, cancel_token)

    @staticmethod
    def _require(step: PipelineStep) -> PipelineStep:
        if step is None:
            raise ValueError("Pipeline step must not be None")
        return step
