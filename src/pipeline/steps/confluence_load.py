"""Load step (upload direction): create or update Confluence pages."""

import logging
import time
from pathlib import Path
from typing import Dict, List, Optional

from src.confluence_client.api_wrapper import APIWrapper
from src.confluence_client.errors import AmbiguousPageError, PageNotFoundError
from src.confluence_client.hierarchy_resolver import PageHierarchyResolver
from src.models.confluence_page import ConfluencePage, ConfluenceSpace
from src.models.converted_document import AttachmentInfo, ConvertedDocument
from ..context import BatchContext, CancellationToken
from ..errors import DuplicateTitleError, PipelineCancelledError
from ..result import PipelineResult
from ..runner import PipelineStep, check_cancelled

logger = logging.getLogger(__name__)


def find_duplicate_titles(documents: List[ConvertedDocument]) -> Dict[str, List[str]]:
    """Group source paths by page title, keeping only titles used more than once.

    Titles are compared case-insensitively, as Confluence does.
    """
    by_title: Dict[str, List[ConvertedDocument]] = {}
    for doc in documents:
        by_title.setdefault(doc.title.lower(), []).append(doc)
    return {
        docs[0].title: [doc.source_path for doc in docs]
        for docs in by_title.values()
        if len({doc.source_path for doc in docs}) > 1
    }


class ConfluenceLoadStep(PipelineStep):
    """Uploads the transformed documents to Confluence.

    Before anything is written remotely, the batch is checked for duplicate
    titles and the root parent page is resolved. Each document is then created
    or updated on its own; a failing document is counted and the batch goes on.

    Args:
        api: API wrapper used for every remote call
        hierarchy_resolver: Resolver for the root page; built from api if omitted
    """

    name = "ConfluenceLoad"

    def __init__(self, api: APIWrapper, hierarchy_resolver: Optional[PageHierarchyResolver] = None):
        self.api = api
        self.hierarchy_resolver = hierarchy_resolver or PageHierarchyResolver(api)

    def execute(
        self,
        context: BatchContext,
        cancel_token: Optional[CancellationToken] = None,
    ) -> PipelineResult:
        started = time.monotonic()
        options = context.options

        try:
            duplicates = find_duplicate_titles(context.transformed_documents)
            if duplicates:
                raise DuplicateTitleError(duplicates)

            if context.resolved_space is None:
                context.resolved_space = self.api.get_space(options.space_key)
            space = context.resolved_space
            logger.info(f"Resolved space '{space.key}' → ID '{space.space_id}'")

            root_parent_id = options.parent_id
            if root_parent_id is None and options.root_page and options.root_page.strip():
                try:
                    root_page = self._resolve_root_page(options.root_page, space)
                except AmbiguousPageError as e:
                    return PipelineResult.abort(
                        self.name,
                        f"Root page '{options.root_page}' is ambiguous in space '{space.key}' "
                        f"({e.total_matches} matches, {e.matches_under_parent} "
                        f"under homepage). Please resolve duplicates or use --conf-parent-id.",
                    )
                root_parent_id = root_page.page_id
                logger.info(f"Using root page '{options.root_page}' (ID: {root_parent_id})")

            if root_parent_id is None:
                root_parent_id = space.homepage_id
            if root_parent_id is None:
                return PipelineResult.critical_error(
                    self.name,
                    f"Space '{space.key}' has no homepage and no --conf-parent-id / "
                    f"--root-page was specified.",
                )

            for doc in context.transformed_documents:
                check_cancelled(cancel_token)
                try:
                    self._upload_document(doc, root_parent_id, space, context)
                    context.loaded_count += 1
                except PipelineCancelledError:
                    raise
                except Exception as e:
                    context.failed_count += 1
                    logger.error(f"Failed to upload '{doc.title}', continuing with next document: {e}")
        except (PipelineCancelledError, KeyboardInterrupt):
            raise
        except Exception as e:
            return PipelineResult.critical_error(self.name, f"Upload failed: {e}", e)

        duration = time.monotonic() - started
        attachment_count = sum(len(doc.attachments) for doc in context.transformed_documents)
        logger.info(
            f"Upload complete: {context.loaded_count}/{len(context.transformed_documents)} pages "
            f"uploaded, {attachment_count} attachments, {context.failed_count} failed "
            f"({duration * 1000:,.0f}ms, space '{options.space_key}')"
        )

        if context.loaded_count == 0 and context.failed_count > 0:
            return PipelineResult.critical_error(
                self.name, f"All {context.failed_count} documents failed to upload."
            )
        if context.failed_count > 0:
            return PipelineResult.warning(
                self.name, context.loaded_count, context.failed_count, duration,
                f"{context.loaded_count} uploaded, {context.failed_count} failed.",
            )
        return PipelineResult.success(self.name, context.loaded_count, duration)

    def _resolve_root_page(self, title: str, space: ConfluenceSpace) -> ConfluencePage:
        """Find or create the root page under the space homepage.

        Raises:
            AmbiguousPageError: If several pages could be the root
        """
        if space.homepage_id is None:
            raise ValueError(f"Space '{space.key}' has no homepage to create root page under.")

        logger.info(f"Resolving --root-page '{title}'")
        return self.hierarchy_resolver.get_or_create(title, space.homepage_id, space.key)

    def _upload_document(
        self,
        doc: ConvertedDocument,
        root_parent_id: str,
        space: ConfluenceSpace,
        context: BatchContext,
    ) -> None:
        options = context.options
        space_key = space.key

        # Per-document space override from frontmatter
        override_key = doc.metadata.space_key
        if override_key and override_key.lower() != space.key.lower():
            override_space = self.api.get_space(override_key)
            if override_space.homepage_id is None:
                raise ValueError(f"Override space '{override_key}' has no homepage.")
            space_key = override_space.key
            root_parent_id = override_space.homepage_id
            logger.info(f"Using per-document space '{space_key}' for '{doc.title}'")

        parent_id = root_parent_id
        if options.keep_hierarchy and doc.parent_source_path in context.page_id_cache:
            parent_id = context.page_id_cache[doc.parent_source_path]
            logger.debug(
                f"Resolved parent for '{doc.title}' → page ID '{parent_id}' "
                f"(from '{doc.parent_source_path}')"
            )

        existing = self._find_existing(doc, space_key, root_parent_id)
        if existing is None:
            page = self.api.create_page(space_key, doc.title, doc.content, parent_id=parent_id)
            logger.info(f"Created page '{doc.title}' (ID: {page.page_id}) under parent '{parent_id}'")
        elif options.skip_update and existing.content_storage == doc.content:
            page = existing
            logger.info(f"Skipping unchanged page '{doc.title}' (ID: {existing.page_id})")
        else:
            version = existing.version + 1
            page = self.api.update_page(existing.page_id, doc.title, doc.content, version)
            logger.info(f"Updated page '{doc.title}' (ID: {page.page_id}, v{version})")

        # Parents are cached before any child document reads the cache
        context.page_id_cache[doc.source_path] = page.page_id
        context.space_key_cache[doc.source_path] = space_key

        self._upload_attachments(doc, page)
        self._sync_labels(doc, page)
        self._set_properties(doc, page)

    def _find_existing(
        self, doc: ConvertedDocument, space_key: str, root_parent_id: str
    ) -> Optional[ConfluencePage]:
        """Locate the page a document should update, if any.

        An explicit page ID wins. Otherwise a page with the same title is reused
        only if it lives under the root page.
        """
        if doc.metadata.page_id:
            try:
                return self.api.get_page_by_id(doc.metadata.page_id)
            except PageNotFoundError:
                logger.warning(
                    f"Page ID '{doc.metadata.page_id}' not found, creating new page '{doc.title}'"
                )
                return None

        existing = self.api.get_page_by_title(space_key, doc.title)
        if existing is None:
            return None
        if not self.hierarchy_resolver.is_traceable_to_root(existing.page_id, root_parent_id):
            logger.warning(
                f"Page '{doc.title}' (ID: {existing.page_id}) exists but is not under root page "
                f"'{root_parent_id}', creating new page instead"
            )
            return None
        return existing

    def _upload_attachments(self, doc: ConvertedDocument, page: ConfluencePage) -> None:
        for attachment in doc.attachments:
            try:
                content = self._attachment_bytes(attachment)
                self.api.upload_attachment(
                    page.page_id, attachment.file_name, content, attachment.media_type
                )
                logger.debug(f"Uploaded attachment '{attachment.file_name}' to page '{page.page_id}'")
            except Exception as e:
                logger.warning(
                    f"Failed to upload attachment '{attachment.file_name}' to page '{doc.title}': {e}"
                )

    @staticmethod
    def _attachment_bytes(attachment: AttachmentInfo) -> bytes:
        if attachment.content is not None:
            return attachment.content
        return Path(attachment.source_path).read_bytes()

    def _sync_labels(self, doc: ConvertedDocument, page: ConfluencePage) -> None:
        if not doc.metadata.tags:
            return
        try:
            existing = {label.lower() for label in self.api.get_labels(page.page_id)}
            to_add = [tag for tag in doc.metadata.tags if tag.lower() not in existing]
            if to_add:
                self.api.add_labels(page.page_id, to_add)
                logger.debug(f"Added {len(to_add)} label(s) to page '{doc.title}'")
        except Exception as e:
            logger.warning(f"Failed to sync labels for page '{doc.title}': {e}")

    def _set_properties(self, doc: ConvertedDocument, page: ConfluencePage) -> None:
        for key, value in doc.metadata.properties.items():
            try:
                self.api.set_content_property(page.page_id, key, value)
            except Exception as e:
                logger.warning(f"Failed to set property '{key}' on page '{doc.title}': {e}")
