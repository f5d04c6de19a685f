"""Builds the local document tree from a directory of markdown files.

An ``index.md`` or ``README.md`` (case-insensitive) becomes the parent page of
every other document and subdirectory in its directory. A directory without an
index file contributes its documents at the enclosing level.
"""

import logging
import os
from pathlib import Path
from typing import List, Optional, Set

from src.models.document import DocumentNode
from .errors import FilesystemError
from .frontmatter_handler import FrontmatterHandler

logger = logging.getLogger(__name__)

INDEX_FILE_NAMES = {'index.md', 'readme.md'}

# Resource directories that never contain pages
IGNORED_DIRECTORIES = {
    'img', 'images', 'assets', '.git', 'node_modules', '__pycache__', '.venv', 'venv',
}

MDIGNORE_FILE = '.mdignore'


class DocumentTreeBuilder:
    """Scans a directory tree into DocumentNodes.

    Example:
        >>> builder = DocumentTreeBuilder()
        >>> roots = builder.build("./docs")
        >>> for node in roots[0].walk():
        ...     print(node.relative_path)
    """

    def build(self, root_path: str) -> List[DocumentNode]:
        """Scan root_path and return the top-level document nodes.

        Args:
            root_path: Directory to scan

        Returns:
            Top-level nodes in scan order (sorted by name, files before
            subdirectories)

        Raises:
            FilesystemError: If root_path is not a directory
        """
        root = Path(root_path)
        if not root.is_dir():
            raise FilesystemError(str(root_path), 'scan', 'directory not found')

        logger.debug(f"Scanning markdown documents under {root}")
        return self._scan_directory(root, root)

    def _scan_directory(self, directory: Path, root: Path) -> List[DocumentNode]:
        ignored = self._read_mdignore(directory)

        entries = sorted(directory.iterdir(), key=lambda p: p.name.lower())
        md_files = [
            p for p in entries
            if p.is_file() and p.suffix.lower() == '.md'
        ]
        index_file = next(
            (p for p in md_files if p.name.lower() in INDEX_FILE_NAMES), None
        )

        children: List[DocumentNode] = []
        for file_path in md_files:
            if file_path == index_file or file_path.name.lower() in ignored:
                continue
            node = self._create_node(file_path, root)
            if node is not None:
                children.append(node)

        for sub_dir in entries:
            if not sub_dir.is_dir() or self._is_ignored_directory(sub_dir.name, ignored):
                continue
            children.extend(self._scan_directory(sub_dir, root))

        if index_file is None:
            return children

        parent = self._create_node(index_file, root, children)
        if parent is None:
            return []
        return [parent]

    @staticmethod
    def _is_ignored_directory(name: str, ignored: Set[str]) -> bool:
        lowered = name.lower()
        return lowered in IGNORED_DIRECTORIES or lowered in ignored or name.startswith('.')

    @staticmethod
    def _read_mdignore(directory: Path) -> Set[str]:
        """Names listed in the directory's .mdignore, lowercased."""
        mdignore = directory / MDIGNORE_FILE
        if not mdignore.is_file():
            return set()
        try:
            lines = mdignore.read_text(encoding='utf-8').splitlines()
        except OSError as e:
            logger.warning(f"Cannot read {mdignore}: {e}")
            return set()
        return {
            line.strip().lower() for line in lines
            if line.strip() and not line.strip().startswith('#')
        }

    @staticmethod
    def _create_node(
        file_path: Path,
        root: Path,
        children: Optional[List[DocumentNode]] = None,
    ) -> Optional[DocumentNode]:
        try:
            content = file_path.read_text(encoding='utf-8')
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Failed to read {file_path}: {e}")
            return None

        metadata, body = FrontmatterHandler.parse(content, str(file_path))
        if not metadata.synchronized:
            logger.debug(f"Skipping non-synchronized file: {file_path}")
            return None

        relative_path = os.path.relpath(file_path, root).replace(os.sep, '/')
        return DocumentNode(
            source_path=str(file_path),
            relative_path=relative_path,
            metadata=metadata,
            content=body,
            children=children or [],
        )
