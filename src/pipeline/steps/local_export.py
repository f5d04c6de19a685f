"""Load step (local export): write storage format files instead of uploading."""

import logging
import shutil
import time
from pathlib import Path
from typing import Optional

from src.file_mapper.filesafe_converter import FilesafeConverter
from src.models.converted_document import AttachmentInfo
from ..context import BatchContext, CancellationToken
from ..result import PipelineResult
from ..runner import PipelineStep, check_cancelled

logger = logging.getLogger(__name__)

EXPORT_DIRECTORY = ".confluence-export"


class LocalExportStep(PipelineStep):
    """Saves each converted page as ``{title}.csf.html`` without any API call.

    Output layout under ``{path}/.confluence-export/``::

        {safe title}.csf.html
        attachments/{safe title}/{attachment file name}
    """

    name = "LocalExport"

    def execute(
        self,
        context: BatchContext,
        cancel_token: Optional[CancellationToken] = None,
    ) -> PipelineResult:
        started = time.monotonic()
        output_dir = Path(context.options.path) / EXPORT_DIRECTORY
        output_dir.mkdir(parents=True, exist_ok=True)

        exported = 0
        failed = 0
        for doc in context.transformed_documents:
            check_cancelled(cancel_token)
            try:
                safe_title = FilesafeConverter.safe_title(doc.title)
                output_path = output_dir / f"{safe_title}.csf.html"
                output_path.write_text(doc.content, encoding="utf-8")
                logger.info(f"Exported: {doc.title} → {output_path}")

                if doc.attachments:
                    attachment_dir = output_dir / "attachments" / safe_title
                    attachment_dir.mkdir(parents=True, exist_ok=True)
                    for attachment in doc.attachments:
                        self._export_attachment(attachment, attachment_dir)
                exported += 1
            except OSError as e:
                failed += 1
                logger.error(f"Failed to export '{doc.title}': {e}")

        duration = time.monotonic() - started
        logger.info(f"Local export complete: {exported} documents → {output_dir}")

        if exported == 0 and failed > 0:
            return PipelineResult.critical_error(self.name, f"All {failed} documents failed to export.")
        if failed > 0:
            return PipelineResult.warning(
                self.name, exported, failed, duration, f"{exported} exported, {failed} failed."
            )
        return PipelineResult.success(self.name, exported, duration)

    @staticmethod
    def _export_attachment(attachment: AttachmentInfo, attachment_dir: Path) -> None:
        target = attachment_dir / Path(attachment.file_name).name
        if attachment.content is not None:
            target.write_bytes(attachment.content)
        elif Path(attachment.source_path).is_file():
            shutil.copyfile(attachment.source_path, target)
