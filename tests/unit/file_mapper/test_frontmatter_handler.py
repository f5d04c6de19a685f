"""Unit tests for FrontmatterHandler."""

from src.file_mapper.frontmatter_handler import FrontmatterHandler


class TestParse:
    """Test cases for metadata extraction."""

    def test_no_metadata(self):
        """A plain document yields default metadata and unchanged content."""
        metadata, body = FrontmatterHandler.parse("# Title\n\nText\n")

        assert metadata.page_id is None
        assert metadata.synchronized is True
        assert body == "# Title\n\nText\n"

    def test_id_comments(self):
        content = (
            "<!-- confluence-page-id: 123456 -->\n"
            "<!-- confluence-space-key: TEAM -->\n"
            "# Title\n"
        )

        metadata, body = FrontmatterHandler.parse(content)

        assert metadata.page_id == "123456"
        assert metadata.space_key == "TEAM"
        assert "confluence-page-id" not in body
        assert "# Title" in body

    def test_frontmatter_fields(self):
        content = (
            "---\n"
            "title: Hello\n"
            "tags: [a, b]\n"
            "page_id: 42\n"
            "properties:\n"
            "  owner: docs\n"
            "---\n"
            "Body\n"
        )

        metadata, body = FrontmatterHandler.parse(content)

        assert metadata.title == "Hello"
        assert metadata.tags == ["a", "b"]
        assert metadata.page_id == "42"
        assert metadata.properties == {"owner": "docs"}
        assert body == "Body\n"

    def test_comment_takes_precedence(self):
        content = "---\npage_id: 2\n---\n<!-- confluence-page-id: 1 -->\nBody\n"

        metadata, _ = FrontmatterHandler.parse(content)

        assert metadata.page_id == "1"

    def test_not_synchronized(self):
        metadata, _ = FrontmatterHandler.parse("---\nsynchronized: false\n---\nBody\n")

        assert metadata.synchronized is False

    def test_generated_by_comment(self):
        metadata, _ = FrontmatterHandler.parse("<!-- generated-by: From %{filename} -->\nBody\n")

        assert metadata.generated_by == "From %{filename}"

    def test_invalid_yaml_kept_as_content(self, caplog):
        """Broken frontmatter is logged and left in the body."""
        content = "---\ntitle: [unclosed\n---\nBody\n"

        metadata, body = FrontmatterHandler.parse(content, "docs/a.md")

        assert metadata.title is None
        assert body == content
        assert "Failed to parse YAML frontmatter in docs/a.md" in caplog.text

    def test_non_mapping_frontmatter(self):
        content = "---\n- a\n- b\n---\nBody\n"

        _, body = FrontmatterHandler.parse(content)

        assert body == content

    def test_deeply_nested_frontmatter_rejected(self):
        nested = "x: " + "[" * 15 + "]" * 15
        content = f"---\n{nested}\n---\nBody\n"

        _, body = FrontmatterHandler.parse(content)

        assert body == content

    def test_layout_flattened(self):
        content = (
            "---\n"
            "layout:\n"
            "  image:\n"
            "    alignment: center\n"
            "  table_width: '800'\n"
            "  alignment: left\n"
            "  unknown: 1\n"
            "---\n"
            "Body\n"
        )

        metadata, _ = FrontmatterHandler.parse(content)

        assert metadata.layout == {
            "image_alignment": "center",
            "table_width": 800,
            "content_alignment": "left",
        }


class TestWriteBackIds:
    """Test cases for recording page IDs in documents."""

    def test_inserted_at_top(self):
        result = FrontmatterHandler.write_back_ids("# Title\n", "99", "TEAM")

        assert result == (
            "<!-- confluence-page-id: 99 -->\n"
            "<!-- confluence-space-key: TEAM -->\n"
            "# Title\n"
        )

    def test_inserted_after_frontmatter(self):
        result = FrontmatterHandler.write_back_ids("---\ntitle: x\n---\nBody\n", "99", "TEAM")

        assert result == (
            "---\ntitle: x\n---\n"
            "<!-- confluence-page-id: 99 -->\n"
            "<!-- confluence-space-key: TEAM -->\n"
            "Body\n"
        )

    def test_existing_comments_updated(self):
        content = "<!-- confluence-page-id: 1 -->\n<!-- confluence-space-key: OLD -->\nBody\n"

        result = FrontmatterHandler.write_back_ids(content, "2", "NEW")

        assert result == "<!-- confluence-page-id: 2 -->\n<!-- confluence-space-key: NEW -->\nBody\n"

    def test_missing_space_key_added(self):
        result = FrontmatterHandler.write_back_ids("<!-- confluence-page-id: 1 -->\nBody\n", "2", "S")

        assert result == "<!-- confluence-page-id: 2 -->\n<!-- confluence-space-key: S -->\nBody\n"

    def test_crlf_preserved(self):
        result = FrontmatterHandler.write_back_ids("# Title\r\nText\r\n", "1", "S")

        assert result.startswith("<!-- confluence-page-id: 1 -->\r\n<!-- confluence-space-key: S -->\r\n")

    def test_round_trip_parse(self):
        """Written ids are read back by parse."""
        written = FrontmatterHandler.write_back_ids("# Title\n", "77", "DOCS")

        metadata, body = FrontmatterHandler.parse(written)

        assert metadata.page_id == "77"
        assert metadata.space_key == "DOCS"


class TestGenerate:
    """Test cases for frontmatter generation."""

    def test_generate_omits_none(self):
        result = FrontmatterHandler.generate({"title": "T", "page_id": None, "tags": ["x"]}, "Body\n")

        assert result == "---\ntitle: T\ntags:\n- x\n---\n\nBody\n"

    def test_generate_without_fields(self):
        assert FrontmatterHandler.generate({"a": None}, "Body\n") == "Body\n"
