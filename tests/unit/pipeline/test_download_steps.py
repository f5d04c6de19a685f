"""Unit tests for the download and local export pipeline steps."""

from unittest.mock import MagicMock

import pytest

from src.content_converter.page_metadata import metadata_macro
from src.models.confluence_page import (
    ConfluenceAttachment,
    ConfluencePage,
    ConfluencePageWithAttachments,
    ConfluenceSpace,
)
from src.models.converted_document import AttachmentInfo, ConvertedDocument
from src.models.options import SyncMode, SyncOptions
from src.pipeline.context import BatchContext
from src.pipeline.result import PipelineStatus
from src.pipeline.steps.confluence_ingestion import ConfluenceIngestionStep
from src.pipeline.steps.filesystem_load import FileSystemLoadStep
from src.pipeline.steps.local_export import EXPORT_DIRECTORY, LocalExportStep
from src.pipeline.steps.markdown_transform import MarkdownTransformStep

SPACE = ConfluenceSpace(space_id="100", key="TEAM", name="Team", homepage_id="1")


def make_context(path="out", mode=SyncMode.DOWNLOAD, **options):
    return BatchContext(options=SyncOptions(mode=mode, path=str(path), space_key="TEAM", **options))


def page(page_id, title, body="<p>x</p>"):
    return ConfluencePage(page_id=page_id, title=title, space_id="100", content_storage=body)


def downloaded(title, page_id, parent=None, has_children=False, source_path=None,
               filename=None, attachments=None):
    return ConvertedDocument(
        title=title,
        content=f"# {title}\n",
        source_path=page_id,
        page_id=page_id,
        parent_page_id=parent,
        has_children=has_children,
        original_source_path=source_path,
        original_filename=filename,
        attachments=attachments or [],
    )


@pytest.fixture
def api():
    pages = {
        "10": page("10", "Root"),
        "11": page("11", "Child"),
        "12": page("12", "Grandchild"),
    }
    children = {"10": [pages["11"]], "11": [pages["12"]], "12": []}

    api = MagicMock()
    api.get_space.return_value = SPACE
    api.get_page_by_id.side_effect = lambda page_id: pages[page_id]
    api.get_child_pages.side_effect = lambda page_id: children.get(page_id, [])
    api.get_attachments.return_value = []
    api.get_pages_in_space.return_value = list(pages.values())
    return api


class TestConfluenceIngestionStep:
    """Test cases for ConfluenceIngestionStep."""

    def test_subtree_from_parent_id(self, api):
        """The root and its subtree are extracted in pre-order."""
        context = make_context(parent_id="10")

        result = ConfluenceIngestionStep(api).execute(context)

        assert result.status == PipelineStatus.SUCCESS
        extracted = context.extracted_pages
        assert [(e.page.page_id, e.parent_page_id, e.depth, e.has_children) for e in extracted] == [
            ("10", None, 0, True),
            ("11", "10", 1, True),
            ("12", "11", 2, False),
        ]

    def test_root_page_by_title(self, api):
        api.get_page_by_title.return_value = page("10", "Root")
        context = make_context(root_page="Root")

        ConfluenceIngestionStep(api).execute(context)

        api.get_page_by_title.assert_called_once_with("TEAM", "Root")
        assert context.extracted_pages[0].page.page_id == "10"

    def test_missing_root_page_aborts(self, api):
        api.get_page_by_title.return_value = None

        result = ConfluenceIngestionStep(api).execute(make_context(root_page="Nope"))

        assert result.status == PipelineStatus.ABORT
        assert result.message == "Root page 'Nope' not found in space 'TEAM'."

    def test_whole_space(self, api):
        context = make_context()

        result = ConfluenceIngestionStep(api).execute(context)

        assert result.items_processed == 3
        assert all(e.parent_page_id is None for e in context.extracted_pages)

    def test_empty_space_aborts(self, api):
        api.get_pages_in_space.return_value = []

        result = ConfluenceIngestionStep(api).execute(make_context())

        assert result.status == PipelineStatus.ABORT

    def test_api_failure_is_critical(self, api):
        api.get_space.side_effect = RuntimeError("down")

        result = ConfluenceIngestionStep(api).execute(make_context())

        assert result.status == PipelineStatus.CRITICAL_ERROR
        assert result.message == "Failed to extract Confluence pages: down"


class TestMarkdownTransformStep:
    """Test cases for MarkdownTransformStep."""

    def test_frontmatter_and_provenance(self):
        body = "<p>Hello</p>" + metadata_macro("setup.md", "guides/setup.md")
        extracted = ConfluencePageWithAttachments(
            page=page("11", "Setup", body),
            attachments=[ConfluenceAttachment("a1", "arch.png", "image/png", "/download/arch.png")],
            parent_page_id="10",
        )
        context = make_context()
        context.extracted_pages = [extracted]

        result = MarkdownTransformStep().execute(context)

        assert result.status == PipelineStatus.SUCCESS
        doc = context.transformed_documents[0]
        assert doc.content == "---\ntitle: Setup\npage_id: '11'\nspace_id: '100'\n---\n\nHello\n"
        assert doc.original_source_path == "guides/setup.md"
        assert doc.original_filename == "setup.md"
        assert doc.parent_page_id == "10"
        assert doc.attachments[0].source_path == "/download/arch.png"

    def test_failed_page_is_skipped(self):
        converter = MagicMock()
        converter.convert.side_effect = RuntimeError("bad xhtml")
        context = make_context()
        context.extracted_pages = [ConfluencePageWithAttachments(page=page("11", "Bad"))]

        result = MarkdownTransformStep(converter).execute(context)

        assert result.status == PipelineStatus.CRITICAL_ERROR
        assert result.message == "All 1 pages failed to transform."


class TestFileSystemLoadStep:
    """Test cases for FileSystemLoadStep."""

    def test_provenance_path_used(self, tmp_path, api):
        context = make_context(tmp_path)
        context.transformed_documents = [
            downloaded("Setup", "11", parent="10", source_path="guides/setup.md", filename="setup.md"),
        ]

        result = FileSystemLoadStep(api).execute(context)

        assert result.status == PipelineStatus.SUCCESS
        assert (tmp_path / "guides" / "setup.md").read_text(encoding="utf-8") == "# Setup\n"

    def test_virtual_root_skipped_and_children_slugged(self, tmp_path, api):
        """A root without provenance is not written; its subtree lands under path."""
        context = make_context(tmp_path)
        context.transformed_documents = [
            downloaded("Root", "10", has_children=True),
            downloaded("Child Section", "11", parent="10", has_children=True),
            downloaded("Leaf Page", "12", parent="11"),
        ]

        FileSystemLoadStep(api).execute(context)

        assert not (tmp_path / "root").exists()
        assert (tmp_path / "child-section" / "index.md").is_file()
        assert (tmp_path / "child-section" / "leaf-page.md").is_file()

    def test_existing_file_gets_suffix(self, tmp_path, api):
        (tmp_path / "leaf.md").write_text("old\n", encoding="utf-8")
        context = make_context(tmp_path)
        context.transformed_documents = [downloaded("Leaf", "12")]

        FileSystemLoadStep(api).execute(context)

        assert (tmp_path / "leaf.md").read_text(encoding="utf-8") == "old\n"
        assert (tmp_path / "leaf-1.md").read_text(encoding="utf-8") == "# Leaf\n"

    def test_original_filename_used_for_leaf(self, tmp_path, api):
        context = make_context(tmp_path)
        context.transformed_documents = [downloaded("Some Title", "12", filename="notes.md")]

        FileSystemLoadStep(api).execute(context)

        assert (tmp_path / "notes.md").is_file()

    def test_source_path_outside_root_ignored(self, tmp_path, api, caplog):
        out = tmp_path / "out"
        context = make_context(out)
        context.transformed_documents = [downloaded("Escape", "12", source_path="../../evil.md")]

        FileSystemLoadStep(api).execute(context)

        assert not (tmp_path / "evil.md").exists()
        assert (out / "escape.md").is_file()
        assert "points outside" in caplog.text

    def test_attachments_downloaded_once(self, tmp_path, api):
        api.download_attachment.return_value = b"png"
        attachment = AttachmentInfo("arch.png", "/download/arch.png", "image/png")
        context = make_context(tmp_path)
        context.transformed_documents = [
            downloaded("One", "12", attachments=[attachment]),
            downloaded("Two", "13", attachments=[attachment]),
        ]

        FileSystemLoadStep(api).execute(context)

        assert (tmp_path / "img" / "arch.png").read_bytes() == b"png"
        api.download_attachment.assert_called_once_with("/download/arch.png")

    def test_attachment_failure_does_not_fail_document(self, tmp_path, api):
        api.download_attachment.side_effect = RuntimeError("403")
        context = make_context(tmp_path)
        context.transformed_documents = [
            downloaded("One", "12", attachments=[AttachmentInfo("a.png", "/d/a.png")]),
        ]

        result = FileSystemLoadStep(api).execute(context)

        assert result.status == PipelineStatus.SUCCESS
        assert (tmp_path / "one.md").is_file()


class TestLocalExportStep:
    """Test cases for LocalExportStep."""

    def test_exports_pages_and_attachments(self, tmp_path):
        context = make_context(tmp_path, mode=SyncMode.LOCAL_EXPORT)
        context.transformed_documents = [
            ConvertedDocument(
                title="Q&A: Setup",
                content="<p>x</p>",
                attachments=[AttachmentInfo("d.png", "d.png", "image/png", b"bytes")],
            ),
        ]

        result = LocalExportStep().execute(context)

        export_dir = tmp_path / EXPORT_DIRECTORY
        assert result.items_processed == 1
        assert (export_dir / "Q&A_ Setup.csf.html").read_text(encoding="utf-8") == "<p>x</p>"
        assert (export_dir / "attachments" / "Q&A_ Setup" / "d.png").read_bytes() == b"bytes"

    def test_copies_local_attachment(self, tmp_path):
        image = tmp_path / "arch.png"
        image.write_bytes(b"img")
        context = make_context(tmp_path, mode=SyncMode.LOCAL_EXPORT)
        context.transformed_documents = [
            ConvertedDocument(title="A", content="", attachments=[AttachmentInfo("arch.png", str(image))]),
        ]

        LocalExportStep().execute(context)

        assert (tmp_path / EXPORT_DIRECTORY / "attachments" / "A" / "arch.png").read_bytes() == b"img"
