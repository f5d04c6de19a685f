"""Load step (download direction): write markdown documents to disk."""

import logging
import time
from pathlib import Path
from typing import Dict, Optional, Set

from src.confluence_client.api_wrapper import APIWrapper
from src.file_mapper.filesafe_converter import FilesafeConverter
from src.models.converted_document import ConvertedDocument
from ..context import BatchContext, CancellationToken
from ..errors import PipelineCancelledError
from ..result import PipelineResult
from ..runner import PipelineStep, check_cancelled

logger = logging.getLogger(__name__)

ATTACHMENT_DIRECTORY = "img"


class FileSystemLoadStep(PipelineStep):
    """Writes downloaded documents under ``options.path``.

    Placement:
        1. A page carrying provenance is written at its original relative path.
        2. Otherwise a page with children becomes ``{parent dir}/{slug}/index.md``
           and a leaf page ``{parent dir}/{name}.md``, where name is the
           original file stem if known, else the title slug; existing files get
           ``-1``, ``-2``... suffixes.
        3. An extraction root without provenance is not written; its children
           go directly under ``options.path``.

    Attachments are downloaded into ``img/`` next to the document; files that
    already exist are left alone.
    """

    name = "FileSystemLoad"

    def __init__(self, api: APIWrapper):
        self.api = api

    def execute(
        self,
        context: BatchContext,
        cancel_token: Optional[CancellationToken] = None,
    ) -> PipelineResult:
        started = time.monotonic()
        root = Path(context.options.path)
        root.mkdir(parents=True, exist_ok=True)

        directories: Dict[str, Path] = {}
        downloaded: Set[str] = set()

        for doc in context.transformed_documents:
            check_cancelled(cancel_token)
            try:
                self._save_document(doc, root, directories, downloaded)
                context.loaded_count += 1
            except PipelineCancelledError:
                raise
            except Exception as e:
                context.failed_count += 1
                logger.error(f"Failed to save '{doc.title}', continuing: {e}")

        duration = time.monotonic() - started
        logger.info(
            f"Download complete: {context.loaded_count} saved, {context.failed_count} failed"
        )

        if context.loaded_count == 0 and context.failed_count > 0:
            return PipelineResult.critical_error(
                self.name, f"All {context.failed_count} documents failed to save."
            )
        if context.failed_count > 0:
            return PipelineResult.warning(
                self.name, context.loaded_count, context.failed_count, duration,
                f"{context.loaded_count} saved, {context.failed_count} failed.",
            )
        return PipelineResult.success(self.name, context.loaded_count, duration)

    def _save_document(
        self,
        doc: ConvertedDocument,
        root: Path,
        directories: Dict[str, Path],
        downloaded: Set[str],
    ) -> None:
        target = self._provenance_path(doc, root)
        if target is not None:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(doc.content, encoding="utf-8")
            logger.info(f"Saved '{doc.title}' → {target} (from source-path)")
            if doc.page_id:
                directories[doc.page_id] = target.parent
            self._download_attachments(doc, target.parent, downloaded)
            return

        logger.debug(f"No source-path metadata for '{doc.title}', using slug fallback")

        if doc.parent_page_id is None and doc.has_children and doc.original_filename is None:
            if doc.page_id:
                directories[doc.page_id] = root
            logger.info(f"Skipped root page '{doc.title}' (no source-path, virtual root)")
            return

        slug = FilesafeConverter.slugify(doc.title)
        parent_dir = directories.get(doc.parent_page_id or "", root)

        if doc.has_children:
            doc_dir = parent_dir / slug
            doc_dir.mkdir(parents=True, exist_ok=True)
            file_path = doc_dir / "index.md"
            if doc.page_id:
                directories[doc.page_id] = doc_dir
        else:
            doc_dir = parent_dir
            doc_dir.mkdir(parents=True, exist_ok=True)
            base_name = Path(doc.original_filename).stem if doc.original_filename else slug
            file_path = doc_dir / f"{base_name}.md"
            counter = 1
            while file_path.exists():
                file_path = doc_dir / f"{base_name}-{counter}.md"
                counter += 1

        file_path.write_text(doc.content, encoding="utf-8")
        logger.info(f"Saved '{doc.title}' → {file_path}")
        self._download_attachments(doc, doc_dir, downloaded)

    @staticmethod
    def _provenance_path(doc: ConvertedDocument, root: Path) -> Optional[Path]:
        """Target path from recovered provenance, if it stays inside root."""
        if not doc.original_source_path:
            return None
        target = (root / doc.original_source_path.replace("\\", "/")).resolve()
        try:
            target.relative_to(root.resolve())
        except ValueError:
            logger.warning(
                f"Ignoring source-path '{doc.original_source_path}' of '{doc.title}': "
                f"it points outside {root}"
            )
            return None
        return target

    def _download_attachments(self, doc: ConvertedDocument, doc_dir: Path, downloaded: Set[str]) -> None:
        if not doc.attachments:
            return

        image_dir = doc_dir / ATTACHMENT_DIRECTORY
        image_dir.mkdir(parents=True, exist_ok=True)

        for attachment in doc.attachments:
            key = f"{doc_dir}|{attachment.file_name}".lower()
            if key in downloaded:
                logger.debug(f"Attachment '{attachment.file_name}' already downloaded here, skipping")
                continue
            downloaded.add(key)

            image_path = image_dir / Path(attachment.file_name).name
            if image_path.exists():
                logger.debug(f"Attachment '{attachment.file_name}' already exists on disk, skipping")
                continue

            try:
                image_path.write_bytes(self.api.download_attachment(attachment.source_path))
                logger.info(f"Downloaded attachment '{attachment.file_name}' → {image_path}")
            except Exception as e:
                logger.warning(f"Failed to download attachment '{attachment.file_name}', continuing: {e}")
