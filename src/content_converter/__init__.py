"""Content conversion between markdown and Confluence storage format (XHTML).

XhtmlRenderer renders markdown to storage format (upload), MarkdownConverter
converts storage format back to markdown (download). LinkResolver is shared by
both directions to keep cross-document references consistent.
"""

from .admonitions import AdmonitionPreProcessor
from .diagram_renderers import (
    DiagramRenderService,
    DrawioRenderer,
    LatexRenderer,
    MermaidRenderer,
    PlantUmlRenderer,
)
from .link_resolver import ConfluenceUrlBuilder, LinkResolution, LinkResolver, LinkType
from .markdown_converter import MarkdownConverter
from .xhtml_renderer import DiagramSource, RenderResult, XhtmlRenderer

__all__ = [
    'AdmonitionPreProcessor',
    'ConfluenceUrlBuilder',
    'DiagramRenderService',
    'DiagramSource',
    'DrawioRenderer',
    'LatexRenderer',
    'LinkResolution',
    'LinkResolver',
    'LinkType',
    'MarkdownConverter',
    'MermaidRenderer',
    'PlantUmlRenderer',
    'RenderResult',
    'XhtmlRenderer',
]
