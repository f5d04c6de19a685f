"""Transform step (upload direction): markdown documents to storage format."""

import logging
import mimetypes
import os
import posixpath
import time
from typing import Dict, List, Optional, Tuple
from urllib.parse import unquote

from src.content_converter.admonitions import AdmonitionPreProcessor
from src.content_converter.diagram_renderers import DiagramRenderService
from src.content_converter.link_resolver import ConfluenceUrlBuilder, LinkResolver, collapse_path
from src.content_converter.page_metadata import (
    apply_generated_by_template,
    generated_by_macro,
    metadata_macro,
    resolve_title,
)
from src.content_converter.xhtml_renderer import XhtmlRenderer
from src.confluence_client.errors import ConversionError
from src.models.converted_document import AttachmentInfo, ConvertedDocument
from src.models.document import DocumentNode
from ..context import BatchContext, CancellationToken
from ..errors import PipelineCancelledError
from ..result import PipelineResult
from ..runner import PipelineStep, check_cancelled

logger = logging.getLogger(__name__)

MEDIA_TYPES = {
    '.png': 'image/png',
    '.jpg': 'image/jpeg',
    '.jpeg': 'image/jpeg',
    '.gif': 'image/gif',
    '.svg': 'image/svg+xml',
    '.webp': 'image/webp',
    '.pdf': 'application/pdf',
    '.drawio': 'application/vnd.jgraph.mxfile',
}


def media_type_for(file_name: str) -> str:
    """MIME type of an attachment, from its extension."""
    extension = posixpath.splitext(file_name.lower())[1]
    return MEDIA_TYPES.get(extension) or mimetypes.guess_type(file_name)[0] or 'application/octet-stream'


def build_page_mappings(
    nodes: List[DocumentNode], title_prefix: Optional[str] = None
) -> Tuple[Dict[str, str], Dict[str, str]]:
    """Build the path → title and path → page ID maps used for link resolution.

    Titles are resolved exactly as the transform resolves page titles, so a link
    to a document points at the page that document becomes.
    """
    titles: Dict[str, str] = {}
    page_ids: Dict[str, str] = {}
    for node in nodes:
        path = collapse_path(node.relative_path)
        titles[path] = resolve_title(node, title_prefix)
        if node.metadata.page_id and node.metadata.page_id.strip():
            page_ids[path] = node.metadata.page_id.strip()
    return titles, page_ids


class ConfluenceXhtmlTransformStep(PipelineStep):
    """Renders every extracted document to Confluence storage format.

    The link index is built from all documents before the first one is
    rendered. A document that fails to render is logged and skipped.
    """

    name = "ConfluenceXhtmlTransform"

    def __init__(self, diagram_service: Optional[DiagramRenderService] = None):
        self.diagram_service = diagram_service

    def execute(
        self,
        context: BatchContext,
        cancel_token: Optional[CancellationToken] = None,
    ) -> PipelineResult:
        started = time.monotonic()
        options = context.converter_options

        titles, page_ids = build_page_mappings(context.extracted_nodes, options.title_prefix)
        logger.debug(f"Built page mapping with {len(titles)} titles and {len(page_ids)} page IDs")
        link_resolver = LinkResolver(
            titles,
            space_key=context.options.space_key,
            page_ids=page_ids,
            url_builder=ConfluenceUrlBuilder(options.webui_link_strategy),
            on_unresolved_link=context.record_unresolved_link,
            on_webui_page_id_fallback=context.record_webui_fallback,
        )
        diagram_service = self.diagram_service or DiagramRenderService(
            output_format=options.diagram_output_format
        )

        success_count = 0
        failed_count = 0
        for node in context.extracted_nodes:
            check_cancelled(cancel_token)
            try:
                document = self._transform(node, context, link_resolver, diagram_service)
            except PipelineCancelledError:
                raise
            except Exception as e:
                failed_count += 1
                logger.error(f"Failed to transform '{node.relative_path}', skipping: {e}")
                continue
            context.transformed_documents.append(document)
            success_count += 1

        duration = time.monotonic() - started
        if success_count == 0 and failed_count > 0:
            return PipelineResult.critical_error(
                self.name, f"All {failed_count} documents failed to transform."
            )
        if failed_count > 0:
            return PipelineResult.warning(
                self.name, success_count, failed_count, duration,
                f"{success_count} documents transformed, {failed_count} failed.",
            )
        return PipelineResult.success(self.name, success_count, duration)

    def _transform(
        self,
        node: DocumentNode,
        context: BatchContext,
        link_resolver: LinkResolver,
        diagram_service: DiagramRenderService,
    ) -> ConvertedDocument:
        options = context.converter_options
        relative_path = collapse_path(node.relative_path)
        logger.debug(f"Transforming: {relative_path}")

        renderer = XhtmlRenderer(
            options=options,
            layout=context.layout_options.merged_with(node.metadata.layout),
            link_resolver=link_resolver,
            source_path=relative_path,
        )
        markdown = AdmonitionPreProcessor().convert(node.content)
        try:
            result = renderer.render(markdown)
        except Exception as e:
            if options.debug_line_markers:
                raise ConversionError(
                    f"Failed to convert markdown file: {relative_path}: {e}"
                ) from e
            raise

        title = resolve_title(node, options.title_prefix)
        xhtml = result.xhtml + metadata_macro(posixpath.basename(relative_path), relative_path)

        generated_by = node.metadata.generated_by or options.generated_by
        if generated_by:
            text = apply_generated_by_template(generated_by, relative_path)
            xhtml = generated_by_macro(text) + xhtml

        attachments = self._local_attachments(node, result.referenced_images)
        diagrams = list({diagram.file_name: diagram for diagram in result.diagrams}.values())
        attachments.extend(diagram_service.render_all(diagrams, title))

        logger.debug(
            f"Transformed '{title}' → {len(xhtml)} chars XHTML, {len(attachments)} attachment(s)"
        )
        return ConvertedDocument(
            title=title,
            content=xhtml,
            metadata=node.metadata,
            source_path=node.source_path,
            attachments=attachments,
            parent_source_path=node.parent_source_path,
            has_children=bool(node.children),
        )

    @staticmethod
    def _local_attachments(
        node: DocumentNode, referenced_images: List[Tuple[str, str]]
    ) -> List[AttachmentInfo]:
        """Attachments for the local images a document references.

        Images that do not exist on disk are skipped; they render as broken
        images on the page.
        """
        source_dir = os.path.dirname(node.source_path) or "."
        attachments: Dict[str, AttachmentInfo] = {}
        for file_name, link in referenced_images:
            if file_name in attachments:
                continue
            path = os.path.normpath(os.path.join(source_dir, unquote(link)))
            if not os.path.isfile(path):
                logger.debug(f"Referenced image not found, skipping: {path}")
                continue
            attachments[file_name] = AttachmentInfo(
                file_name=file_name,
                source_path=path,
                media_type=media_type_for(file_name),
            )
        return list(attachments.values())
