"""Extract step: scan the local directory into document nodes."""

import logging
import time
from dataclasses import replace
from typing import Iterator, List, Optional

from src.file_mapper.errors import FilesystemError
from src.file_mapper.hierarchy_builder import DocumentTreeBuilder
from src.models.document import DocumentNode
from ..context import BatchContext, CancellationToken
from ..errors import PipelineCancelledError
from ..result import PipelineResult
from ..runner import PipelineStep, check_cancelled

logger = logging.getLogger(__name__)


def flatten_tree(
    nodes: List[DocumentNode], parent_source_path: Optional[str] = None
) -> Iterator[DocumentNode]:
    """Yield nodes pre-order, each annotated with its parent's source path.

    Parents come before their children so the load step can create parent pages
    first.
    """
    for node in nodes:
        annotated = replace(node, parent_source_path=parent_source_path)
        yield annotated
        yield from flatten_tree(node.children, annotated.source_path)


class MarkdownIngestionStep(PipelineStep):
    """Reads the markdown tree under ``options.path`` into the context."""

    name = "MarkdownIngestion"

    def __init__(self, tree_builder: Optional[DocumentTreeBuilder] = None):
        self.tree_builder = tree_builder or DocumentTreeBuilder()

    def execute(
        self,
        context: BatchContext,
        cancel_token: Optional[CancellationToken] = None,
    ) -> PipelineResult:
        started = time.monotonic()
        path = context.options.path

        try:
            logger.info(f"Extracting markdown files from '{path}'")
            tree = self.tree_builder.build(path)
            logger.info(f"Found {len(tree)} top-level document node(s)")

            count = 0
            for node in flatten_tree(tree):
                check_cancelled(cancel_token)
                context.extracted_nodes.append(node)
                count += 1
                logger.debug(f"Extracted: {node.relative_path}")
        except PipelineCancelledError:
            raise
        except FilesystemError as e:
            return PipelineResult.critical_error(self.name, f"Source directory not found: {e}", e)
        except Exception as e:
            return PipelineResult.critical_error(
                self.name, f"Failed to extract markdown files: {e}", e
            )

        if count == 0:
            return PipelineResult.abort(self.name, f"No markdown files found in '{path}'.")

        return PipelineResult.success(self.name, count, time.monotonic() - started)
