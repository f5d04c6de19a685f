"""Option models for conversion, layout, Confluence access and sync runs."""

from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Dict, Optional


class SyncMode(str, Enum):
    """Direction of a sync run."""
    UPLOAD = "Upload"
    DOWNLOAD = "Download"
    LOCAL_EXPORT = "LocalExport"

    @classmethod
    def parse(cls, value: str) -> 'SyncMode':
        """Parse a mode name case-insensitively.

        Raises:
            ValueError: If the name is not a known mode
        """
        normalized = value.strip().lower().replace("-", "").replace("_", "")
        for mode in cls:
            if mode.value.lower() == normalized:
                return mode
        raise ValueError(
            f"Unknown mode '{value}'. Must be one of: "
            f"{', '.join(mode.value for mode in cls)}"
        )


@dataclass
class ConverterOptions:
    """Flags controlling the markdown to storage format conversion."""
    heading_anchors: bool = False
    force_valid_url: bool = False
    skip_title_heading: bool = False
    prefer_raster: bool = False
    render_drawio: bool = False
    render_mermaid: bool = True
    render_plantuml: bool = False
    render_latex: bool = False
    diagram_output_format: str = "png"
    webui_links: bool = False
    webui_link_strategy: str = "space-title"
    use_panel: bool = False
    force_valid_language: bool = False
    code_line_numbers: bool = False
    debug_line_markers: bool = False
    title_prefix: Optional[str] = None
    generated_by: Optional[str] = "MARKDOWN"


@dataclass
class LayoutOptions:
    """Layout applied to images and tables in rendered pages."""
    image_alignment: Optional[str] = None
    image_max_width: Optional[int] = None
    table_width: Optional[int] = None
    table_display_mode: str = "responsive"
    content_alignment: Optional[str] = None

    def merged_with(self, override: Dict[str, object]) -> 'LayoutOptions':
        """Return a copy with every non-empty override value applied.

        Args:
            override: Mapping of LayoutOptions field names to values, as parsed
                from a document's ``layout`` frontmatter

        Returns:
            A new LayoutOptions; this instance is left untouched
        """
        if not override:
            return self
        known = {f.name for f in fields(self)}
        changes = {
            key: value for key, value in override.items()
            if key in known and value not in (None, "")
        }
        return replace(self, **changes)


@dataclass
class ConfluenceSettings:
    """Connection settings for the Confluence instance.

    Attributes:
        base_url: Instance URL (e.g., https://company.atlassian.net)
        auth_mode: "Basic" (email + API token) or "Bearer" (personal access token)
        user_email: Account email for Basic auth
        api_token: API token for Basic auth
        bearer_token: Token for Bearer auth
        api_path: Path prefix of the REST API
        custom_headers: Extra HTTP headers sent with every request
        timeout: Request timeout in seconds
    """
    base_url: str = ""
    auth_mode: str = "Basic"
    user_email: Optional[str] = None
    api_token: Optional[str] = None
    bearer_token: Optional[str] = None
    api_path: str = "/wiki"
    custom_headers: Dict[str, str] = field(default_factory=dict)
    timeout: int = 30


@dataclass
class SyncOptions:
    """Options of a single sync run."""
    mode: SyncMode
    path: str
    space_key: str = ""
    parent_id: Optional[str] = None
    root_page: Optional[str] = None
    keep_hierarchy: bool = True
    skip_update: bool = False
    no_write_back: bool = False
    log_level: str = "info"
