"""Load step (upload direction): record page IDs in the markdown sources."""

import logging
import time
from pathlib import Path
from typing import Optional

from src.file_mapper.frontmatter_handler import FrontmatterHandler
from ..context import BatchContext, CancellationToken
from ..result import PipelineResult
from ..runner import PipelineStep, check_cancelled

logger = logging.getLogger(__name__)


class WriteBackStep(PipelineStep):
    """Writes ``confluence-page-id`` and ``confluence-space-key`` comments back
    into every uploaded source file, so the next upload updates the same pages.

    Runs after ConfluenceLoadStep and reads its page ID cache. Disabled with
    ``--no-write-back``. A file that cannot be rewritten is logged and skipped.
    """

    name = "WriteBack"

    def execute(
        self,
        context: BatchContext,
        cancel_token: Optional[CancellationToken] = None,
    ) -> PipelineResult:
        if context.options.no_write_back:
            logger.info("Write-back disabled by --no-write-back flag.")
            return PipelineResult.success(self.name, 0)

        started = time.monotonic()
        count = 0
        for doc in context.transformed_documents:
            check_cancelled(cancel_token)

            page_id = context.page_id_cache.get(doc.source_path)
            if page_id is None:
                logger.debug(f"No cached page ID for '{doc.source_path}', skipping write-back")
                continue

            space_key = context.space_key_cache.get(doc.source_path) or context.options.space_key
            try:
                self._write_ids(Path(doc.source_path), page_id, space_key)
                count += 1
            except (OSError, UnicodeDecodeError) as e:
                logger.warning(f"Failed to write back page ID to '{doc.source_path}': {e}")

        logger.info(f"Write-back complete: {count} file(s) updated")
        return PipelineResult.success(self.name, count, time.monotonic() - started)

    @staticmethod
    def _write_ids(path: Path, page_id: str, space_key: str) -> None:
        # newline="" keeps CRLF files intact
        with open(path, encoding="utf-8", newline="") as f:
            content = f.read()
        updated = FrontmatterHandler.write_back_ids(content, page_id, space_key)
        if updated == content:
            return
        with open(path, "w", encoding="utf-8", newline="") as f:
            f.write(updated)
        logger.debug(f"Wrote page ID {page_id} into '{path}'")
