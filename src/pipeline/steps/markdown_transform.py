"""Transform step (download direction): storage format pages to markdown."""

import logging
import time
from typing import Optional

from src.content_converter.markdown_converter import MarkdownConverter
from src.file_mapper.frontmatter_handler import FrontmatterHandler
from src.models.confluence_page import ConfluencePageWithAttachments
from src.models.converted_document import AttachmentInfo, ConvertedDocument
from src.models.document import DocumentMetadata
from ..context import BatchContext, CancellationToken
from ..errors import PipelineCancelledError
from ..result import PipelineResult
from ..runner import PipelineStep, check_cancelled

logger = logging.getLogger(__name__)


class MarkdownTransformStep(PipelineStep):
    """Converts every extracted page to a markdown document.

    Each document starts with YAML frontmatter carrying the page title, page ID
    and space ID. Provenance recovered from the page's metadata macro is kept
    on the document so the file can be written back to its original path.
    """

    name = "MarkdownTransform"

    def __init__(self, converter: Optional[MarkdownConverter] = None):
        self.converter = converter or MarkdownConverter()

    def execute(
        self,
        context: BatchContext,
        cancel_token: Optional[CancellationToken] = None,
    ) -> PipelineResult:
        started = time.monotonic()
        success_count = 0
        failed_count = 0

        for extracted in context.extracted_pages:
            check_cancelled(cancel_token)
            try:
                document = self._transform(extracted)
            except PipelineCancelledError:
                raise
            except Exception as e:
                failed_count += 1
                logger.error(
                    f"Failed to transform page '{extracted.page.title}' "
                    f"(ID: {extracted.page.page_id}), skipping: {e}"
                )
                continue
            context.transformed_documents.append(document)
            success_count += 1

        duration = time.monotonic() - started
        if success_count == 0 and failed_count > 0:
            return PipelineResult.critical_error(
                self.name, f"All {failed_count} pages failed to transform."
            )
        if failed_count > 0:
            return PipelineResult.warning(
                self.name, success_count, failed_count, duration,
                f"{success_count} pages transformed, {failed_count} failed.",
            )
        return PipelineResult.success(self.name, success_count, duration)

    def _transform(self, extracted: ConfluencePageWithAttachments) -> ConvertedDocument:
        page = extracted.page
        logger.debug(
            f"Transforming page '{page.title}' ({len(page.content_storage)} chars XHTML) → markdown"
        )

        result = self.converter.convert(page.content_storage)
        for warning in result.warnings:
            logger.warning(f"Page '{page.title}': {warning}")

        content = FrontmatterHandler.generate(
            {
                'title': page.title,
                'page_id': page.page_id,
                'space_id': page.space_id or None,
            },
            result.markdown,
        )

        attachments = [
            AttachmentInfo(
                file_name=attachment.title,
                source_path=attachment.download_link,
                media_type=attachment.media_type,
            )
            for attachment in extracted.attachments
        ]

        return ConvertedDocument(
            title=page.title,
            content=content,
            metadata=DocumentMetadata(page_id=page.page_id, title=page.title),
            source_path=page.page_id,
            attachments=attachments,
            parent_page_id=extracted.parent_page_id,
            has_children=extracted.has_children,
            original_filename=result.source_file,
            original_source_path=result.source_path,
            page_id=page.page_id,
        )
