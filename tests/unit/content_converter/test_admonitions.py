"""Unit tests for AdmonitionPreProcessor."""

from src.content_converter.admonitions import AdmonitionPreProcessor


class TestAdmonitionPreProcessor:
    """Test cases for admonition rewriting."""

    def test_titled_admonition(self):
        """A titled admonition becomes an alert with a bold title line."""
        result = AdmonitionPreProcessor.convert('!!! warning "Heads up"\n    Be careful\n')

        assert result == "> [!WARNING]\n> **Heads up**\n> Be careful\n"

    def test_untitled_admonition(self):
        result = AdmonitionPreProcessor.convert("!!! tip\n    Use the cache\n")

        assert result == "> [!TIP]\n> Use the cache\n"

    def test_unknown_type_defaults_to_note(self):
        result = AdmonitionPreProcessor.convert("!!! custom\n    Text\n")

        assert result.startswith("> [!NOTE]\n")

    def test_danger_maps_to_caution(self):
        result = AdmonitionPreProcessor.convert("!!! danger\n    Stop\n")

        assert result.startswith("> [!CAUTION]\n")

    def test_blank_line_inside_body(self):
        """A blank line followed by more indented text stays in the block."""
        markdown = "!!! note\n    First\n\n    Second\nAfter\n"

        result = AdmonitionPreProcessor.convert(markdown)

        assert result == "> [!NOTE]\n> First\n>\n> Second\n\nAfter\n"

    def test_text_without_admonitions_unchanged(self):
        markdown = "# Title\n\nPlain text\n"

        assert AdmonitionPreProcessor.convert(markdown) == markdown

    def test_tab_indented_body(self):
        result = AdmonitionPreProcessor.convert("!!! info\n\tTabbed\n")

        assert result == "> [!NOTE]\n> Tabbed\n"
