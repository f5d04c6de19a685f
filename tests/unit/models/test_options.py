"""Unit tests for option models."""

import pytest

from src.models.document import DocumentNode
from src.models.options import ConverterOptions, LayoutOptions, SyncMode


class TestSyncMode:
    """Test cases for SyncMode.parse."""

    @pytest.mark.parametrize("value,expected", [
        ("Upload", SyncMode.UPLOAD),
        ("download", SyncMode.DOWNLOAD),
        ("LocalExport", SyncMode.LOCAL_EXPORT),
        ("local-export", SyncMode.LOCAL_EXPORT),
        (" local_export ", SyncMode.LOCAL_EXPORT),
    ])
    def test_parse(self, value, expected):
        assert SyncMode.parse(value) is expected

    def test_unknown_mode(self):
        with pytest.raises(ValueError, match="Unknown mode 'sideways'"):
            SyncMode.parse("sideways")


class TestLayoutOptions:
    """Test cases for layout overrides."""

    def test_override_applied(self):
        base = LayoutOptions(image_alignment="left", table_width=600)

        merged = base.merged_with({"image_alignment": "center", "table_width": None})

        assert merged.image_alignment == "center"
        assert merged.table_width == 600

    def test_original_untouched(self):
        base = LayoutOptions(image_alignment="left")

        base.merged_with({"image_alignment": "right"})

        assert base.image_alignment == "left"

    def test_unknown_and_empty_keys_ignored(self):
        base = LayoutOptions()

        merged = base.merged_with({"bogus": 1, "content_alignment": ""})

        assert merged == base

    def test_empty_override_returns_self(self):
        base = LayoutOptions()

        assert base.merged_with({}) is base


class TestDefaults:
    """Test cases for default values."""

    def test_converter_defaults(self):
        options = ConverterOptions()

        assert options.render_mermaid is True
        assert options.render_drawio is False
        assert options.generated_by == "MARKDOWN"
        assert options.webui_link_strategy == "space-title"

    def test_document_walk(self):
        child = DocumentNode(source_path="/r/b.md", relative_path="b.md")
        root = DocumentNode(source_path="/r/index.md", relative_path="index.md", children=[child])

        assert [node.relative_path for node in root.walk()] == ["index.md", "b.md"]
