"""YAML frontmatter and inline comment metadata for markdown files.

Two sources of metadata are recognised in a markdown document:

- HTML comments anywhere in the text::

    <!-- confluence-page-id: 123456 -->
    <!-- confluence-space-key: TEAM -->
    <!-- generated-by: Do not edit, generated from %{filepath} -->

- A YAML frontmatter block at the very top of the file (between ``---`` lines)
  with the keys page_id / confluence_page_id, space_key / confluence_space_key,
  title, tags, synchronized, generated_by, properties and layout.

Comments take precedence over frontmatter and are removed from the body. After an
upload, the page ID and space key are written back as comments so the next run
updates the same page instead of creating a new one.
"""

import logging
import re
from typing import Any, Dict, List, Optional, Tuple

import yaml

from src.models.document import DocumentMetadata
from .errors import FrontmatterError

logger = logging.getLogger(__name__)


class FrontmatterHandler:
    """Reads and writes document metadata in markdown text.

    All methods are classmethods; the handler keeps no state.
    """

    PAGE_ID_COMMENT = re.compile(r'<!--\s+confluence[-_]page[-_]id:\s*(\d+)\s+-->')
    SPACE_KEY_COMMENT = re.compile(r'<!--\s+confluence[-_]space[-_]key:\s*(\S+)\s+-->')
    GENERATED_BY_COMMENT = re.compile(r'<!--\s+generated[-_]by:\s*(.*)\s+-->')

    # Looser forms matched when rewriting ids, so hand-edited comments are replaced
    WRITTEN_PAGE_ID = re.compile(r'<!--\s*confluence-page-id:\s*\S+\s*-->')
    WRITTEN_SPACE_KEY = re.compile(r'<!--\s*confluence-space-key:\s*\S+\s*-->')

    # Maximum allowed depth for YAML structures to prevent DoS attacks
    MAX_YAML_DEPTH = 10

    # Layout keys accepted in frontmatter, mapped to LayoutOptions fields
    LAYOUT_KEYS = {
        'image_alignment': 'image_alignment',
        'image_max_width': 'image_max_width',
        'table_width': 'table_width',
        'table_display_mode': 'table_display_mode',
        'alignment': 'content_alignment',
        'content_alignment': 'content_alignment',
    }
    LAYOUT_INT_KEYS = {'image_max_width', 'table_width'}

    @classmethod
    def _validate_yaml_depth(cls, obj, current_depth: int = 0, max_depth: int = MAX_YAML_DEPTH) -> None:
        """Validate that YAML structure depth doesn't exceed maximum.

        Prevents YAML bomb DoS attacks from deeply nested structures.

        Args:
            obj: YAML object (dict, list, or primitive)
            current_depth: Current nesting depth
            max_depth: Maximum allowed depth

        Raises:
            FrontmatterError: If depth exceeds maximum
        """
        if current_depth > max_depth:
            raise FrontmatterError(
                "<yaml>",
                f"YAML structure exceeds maximum depth of {max_depth}"
            )

        if isinstance(obj, dict):
            for value in obj.values():
                cls._validate_yaml_depth(value, current_depth + 1, max_depth)
        elif isinstance(obj, list):
            for item in obj:
                cls._validate_yaml_depth(item, current_depth + 1, max_depth)

    @classmethod
    def parse(cls, content: str, file_path: str = "<unknown>") -> Tuple[DocumentMetadata, str]:
        """Extract metadata from markdown content.

        Args:
            content: Full markdown content
            file_path: Path of the file, for log messages

        Returns:
            Tuple of (metadata, remaining markdown). Files without any metadata
            yield a default DocumentMetadata and the unchanged content.
        """
        text = content
        page_id, text = cls._extract_comment(cls.PAGE_ID_COMMENT, text)
        space_key, text = cls._extract_comment(cls.SPACE_KEY_COMMENT, text)
        generated_by, text = cls._extract_comment(cls.GENERATED_BY_COMMENT, text)

        frontmatter, text = cls._extract_frontmatter(text, file_path)

        metadata = DocumentMetadata(
            page_id=page_id or cls._get_string(frontmatter, 'page_id', 'confluence_page_id'),
            space_key=space_key or cls._get_string(frontmatter, 'space_key', 'confluence_space_key'),
            title=cls._get_string(frontmatter, 'title'),
            tags=cls._get_list(frontmatter, 'tags'),
            synchronized=cls._get_bool(frontmatter, 'synchronized', default=True),
            generated_by=generated_by or cls._get_string(frontmatter, 'generated_by'),
            properties=dict(frontmatter.get('properties') or {})
            if isinstance(frontmatter.get('properties'), dict) else {},
            layout=cls._get_layout(frontmatter),
        )
        return metadata, text

    @staticmethod
    def _extract_comment(pattern: re.Pattern, text: str) -> Tuple[Optional[str], str]:
        match = pattern.search(text)
        if not match:
            return None, text
        return match.group(1).strip(), text[:match.start()] + text[match.end():]

    @classmethod
    def _extract_frontmatter(cls, text: str, file_path: str) -> Tuple[Dict[str, Any], str]:
        """Split a leading YAML block from the text.

        Invalid YAML is not fatal: a warning is logged and the block stays part
        of the content.
        """
        if not text.startswith('---'):
            return {}, text

        end = text.find('\n---', 3)
        if end < 0:
            return {}, text

        block = text[3:end].strip()
        remaining = text[end + 4:].lstrip('\r\n')

        try:
            frontmatter = yaml.safe_load(block)
            cls._validate_yaml_depth(frontmatter)
        except (yaml.YAMLError, FrontmatterError) as e:
            logger.warning(
                f"Failed to parse YAML frontmatter in {file_path}, treating it as content: {e}"
            )
            return {}, text

        if frontmatter is None:
            return {}, remaining
        if not isinstance(frontmatter, dict):
            logger.warning(
                f"Frontmatter in {file_path} is a {type(frontmatter).__name__}, "
                f"not a mapping; treating it as content"
            )
            return {}, text
        return frontmatter, remaining

    @staticmethod
    def _get_string(frontmatter: Dict[str, Any], *keys: str) -> Optional[str]:
        for key in keys:
            value = frontmatter.get(key)
            if value is not None:
                return str(value)
        return None

    @staticmethod
    def _get_list(frontmatter: Dict[str, Any], key: str) -> List[str]:
        value = frontmatter.get(key)
        if isinstance(value, list):
            return [str(item) for item in value if item is not None]
        return []

    @staticmethod
    def _get_bool(frontmatter: Dict[str, Any], key: str, default: bool) -> bool:
        value = frontmatter.get(key)
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in ('true', 'false'):
            return value.strip().lower() == 'true'
        return default

    @classmethod
    def _get_layout(cls, frontmatter: Dict[str, Any]) -> Dict[str, object]:
        """Flatten the ``layout`` mapping into LayoutOptions field names.

        Nested mappings are joined with an underscore, so both
        ``image: {alignment: center}`` and ``image_alignment: center`` work.
        """
        layout = frontmatter.get('layout')
        if not isinstance(layout, dict):
            return {}

        flat: Dict[str, object] = {}
        for key, value in layout.items():
            if isinstance(value, dict):
                for nested_key, nested_value in value.items():
                    flat[f"{key}_{nested_key}".lower()] = nested_value
            else:
                flat[str(key).lower()] = value

        result: Dict[str, object] = {}
        for key, value in flat.items():
            field_name = cls.LAYOUT_KEYS.get(key)
            if field_name is None or value is None:
                continue
            if key in cls.LAYOUT_INT_KEYS:
                try:
                    result[field_name] = int(value)
                except (TypeError, ValueError):
                    logger.warning(f"Ignoring non-numeric layout value {key}={value!r}")
                continue
            result[field_name] = str(value)
        return result

    @classmethod
    def write_back_ids(cls, content: str, page_id: str, space_key: str) -> str:
        """Record the page ID and space key in the document as comments.

        Existing id comments are updated in place. Otherwise the comments are
        inserted after the frontmatter block, or at the top of the file. The
        file's newline style is kept.

        Args:
            content: Full markdown content
            page_id: Page ID the document was uploaded to
            space_key: Space key the page lives in

        Returns:
            The updated content
        """
        page_id_comment = f"<!-- confluence-page-id: {page_id} -->"
        space_key_comment = f"<!-- confluence-space-key: {space_key} -->"
        newline = "\r\n" if "\r\n" in content else "\n"

        if cls.WRITTEN_PAGE_ID.search(content):
            content = cls.WRITTEN_PAGE_ID.sub(lambda _: page_id_comment, content)
            if cls.WRITTEN_SPACE_KEY.search(content):
                return cls.WRITTEN_SPACE_KEY.sub(lambda _: space_key_comment, content)
            match = cls.WRITTEN_PAGE_ID.search(content)
            return (
                content[:match.end()] + newline + space_key_comment + content[match.end():]
            )

        insert_at = 0
        if content.startswith(('---\n', '---\r\n')):
            end = content.find('\n---\n', 3)
            if end < 0:
                end = content.find('\r\n---\r\n', 3)
            if end >= 0:
                insert_at = content.index('\n', end + 1) + 1

        comments = page_id_comment + newline + space_key_comment + newline
        return content[:insert_at] + comments + content[insert_at:]

    @classmethod
    def generate(cls, fields: Dict[str, Any], body: str) -> str:
        """Prepend a YAML frontmatter block to a markdown body.

        Args:
            fields: Frontmatter fields in output order; None values are omitted
            body: Markdown body

        Returns:
            Full markdown content with frontmatter
        """
        frontmatter = {key: value for key, value in fields.items() if value is not None}
        if not frontmatter:
            return body

        yaml_str = yaml.safe_dump(
            frontmatter,
            default_flow_style=False,
            allow_unicode=True,
            sort_keys=False
        )
        return f"---\n{yaml_str}---\n\n{body}"
