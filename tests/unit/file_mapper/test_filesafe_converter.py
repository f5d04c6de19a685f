"""Unit tests for FilesafeConverter."""

import pytest

from src.file_mapper.filesafe_converter import FilesafeConverter


class TestSlugify:
    """Test cases for slug generation."""

    @pytest.mark.parametrize("title,expected", [
        ("My Page Title!", "my-page-title"),
        ("  Leading and trailing  ", "leading-and-trailing"),
        ("API -- Reference", "api-reference"),
        ("Ünïcode Title", "n-code-title"),
        ("???", "untitled"),
        ("", "untitled"),
    ])
    def test_slugify(self, title, expected):
        assert FilesafeConverter.slugify(title) == expected


class TestSafeTitle:
    """Test cases for file-name-safe titles."""

    def test_reserved_characters_replaced(self):
        assert FilesafeConverter.safe_title('Q&A: Setup/Run "now"?') == 'Q&A_ Setup_Run _now__'

    def test_plain_title_unchanged(self):
        assert FilesafeConverter.safe_title("Release Notes 2.0") == "Release Notes 2.0"

    def test_control_characters_replaced(self):
        assert FilesafeConverter.safe_title("a\tb") == "a_b"
