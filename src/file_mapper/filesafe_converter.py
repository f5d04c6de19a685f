"""Filesafe conversion of page titles.

Downloaded pages without provenance are written to slug-derived paths, and
local exports are named after the sanitized page title.
"""

import re

NON_SLUG_CHARS = re.compile(r'[^a-z0-9\-]')
REPEATED_DASHES = re.compile(r'-{2,}')
UNSAFE_FILENAME_CHARS = set('<>:"/\\|?*')


class FilesafeConverter:
    """Converts page titles to names that are safe on every file system.

    Examples:
        - "My Page Title!" → slug "my-page-title"
        - "Q&A: Setup" → safe title "Q&A_ Setup"
    """

    @staticmethod
    def slugify(title: str) -> str:
        """Convert a title into a lowercase, dash-separated slug.

        Args:
            title: The page title

        Returns:
            The slug, or "untitled" when nothing usable remains

        Examples:
            >>> FilesafeConverter.slugify("My Page Title!")
            'my-page-title'
            >>> FilesafeConverter.slugify("???")
            'untitled'
        """
        slug = title.lower().strip()
        slug = NON_SLUG_CHARS.sub('-', slug)
        slug = REPEATED_DASHES.sub('-', slug)
        slug = slug.strip('-')
        return slug or 'untitled'

    @staticmethod
    def safe_title(title: str) -> str:
        """Replace characters that are invalid in file names with underscores.

        Unlike slugify, case, spaces and punctuation are preserved.
        """
        return ''.join(
            '_' if char in UNSAFE_FILENAME_CHARS or not char.isprintable() else char
            for char in title
        )
