"""Extract step (download direction): read pages from Confluence."""

import logging
import time
from typing import List, Optional

from src.confluence_client.api_wrapper import APIWrapper
from src.models.confluence_page import ConfluencePage, ConfluencePageWithAttachments
from ..context import BatchContext, CancellationToken
from ..errors import PipelineCancelledError
from ..result import PipelineResult
from ..runner import PipelineStep, check_cancelled

logger = logging.getLogger(__name__)


class ConfluenceIngestionStep(PipelineStep):
    """Fetches the pages to download, with bodies and attachment lists.

    The extraction root is ``--conf-parent-id``, else the page titled
    ``--root-page``, else the whole space. With a root, the root page itself
    and its full subtree are extracted in pre-order, each with its parent ID,
    depth and whether it has children.
    """

    name = "ConfluenceIngestion"

    def __init__(self, api: APIWrapper):
        self.api = api

    def execute(
        self,
        context: BatchContext,
        cancel_token: Optional[CancellationToken] = None,
    ) -> PipelineResult:
        started = time.monotonic()
        options = context.options

        try:
            space = self.api.get_space(options.space_key)
            context.resolved_space = space
            logger.info(f"Extracting pages from space '{space.key}' (ID: {space.space_id})")

            parent_id = options.parent_id
            if parent_id is None and options.root_page:
                root_page = self.api.get_page_by_title(space.key, options.root_page)
                if root_page is None:
                    return PipelineResult.abort(
                        self.name,
                        f"Root page '{options.root_page}' not found in space '{space.key}'.",
                    )
                parent_id = root_page.page_id
                logger.info(f"Resolved --root-page '{options.root_page}' → ID '{parent_id}'")

            if parent_id is not None:
                logger.info(f"Fetching subtree under parent '{parent_id}'")
                # The root is always written as a directory index
                context.extracted_pages.append(
                    self._enrich(parent_id, parent_page_id=None, depth=0, has_children=True)
                )
                self._fetch_subtree(parent_id, 1, context, cancel_token)
            else:
                for summary in self.api.get_pages_in_space(space.key):
                    check_cancelled(cancel_token)
                    context.extracted_pages.append(self._enrich(summary.page_id))
        except (PipelineCancelledError, KeyboardInterrupt):
            raise
        except Exception as e:
            return PipelineResult.critical_error(
                self.name, f"Failed to extract Confluence pages: {e}", e
            )

        count = len(context.extracted_pages)
        if count == 0:
            return PipelineResult.abort(self.name, f"No pages found in space '{options.space_key}'.")

        logger.info(f"Extracted {count} Confluence page(s)")
        return PipelineResult.success(self.name, count, time.monotonic() - started)

    def _fetch_subtree(
        self,
        parent_id: str,
        depth: int,
        context: BatchContext,
        cancel_token: Optional[CancellationToken],
        children: Optional[List[ConfluencePage]] = None,
    ) -> None:
        if children is None:
            children = self.api.get_child_pages(parent_id)
        for child in children:
            check_cancelled(cancel_token)
            grandchildren = self.api.get_child_pages(child.page_id)
            context.extracted_pages.append(
                self._enrich(
                    child.page_id,
                    parent_page_id=parent_id,
                    depth=depth,
                    has_children=bool(grandchildren),
                )
            )
            if grandchildren:
                self._fetch_subtree(child.page_id, depth + 1, context, cancel_token, grandchildren)

    def _enrich(
        self,
        page_id: str,
        parent_page_id: Optional[str] = None,
        depth: int = 0,
        has_children: bool = False,
    ) -> ConfluencePageWithAttachments:
        """Fetch the full page and its attachment list."""
        page = self.api.get_page_by_id(page_id)
        attachments = self.api.get_attachments(page_id)
        logger.debug(
            f"Extracted page '{page.title}' (ID: {page.page_id}) with {len(attachments)} attachments"
        )
        return ConfluencePageWithAttachments(
            page=page,
            attachments=attachments,
            parent_page_id=parent_page_id,
            depth=depth,
            has_children=has_children,
        )
