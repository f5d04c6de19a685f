"""Unit tests for diagram renderers and the render service."""

import subprocess
from unittest.mock import Mock, patch

import pytest

from src.confluence_client.errors import ConversionError
from src.content_converter.diagram_renderers import (
    DiagramRenderService,
    PlantUmlRenderer,
    _run,
)
from src.content_converter.xhtml_renderer import DiagramSource


def diagram(kind="mermaid", name="mermaid-aaaa1111.png", source="graph TD"):
    return DiagramSource(kind, name, source)


class TestRun:
    """Test cases for external tool invocation."""

    @patch('src.content_converter.diagram_renderers.subprocess.run')
    def test_missing_tool(self, mock_run):
        mock_run.side_effect = FileNotFoundError()

        with pytest.raises(ConversionError, match="mmdc not found"):
            _run(["mmdc"], "mmdc")

    @patch('src.content_converter.diagram_renderers.subprocess.run')
    def test_failed_tool_includes_stderr(self, mock_run):
        mock_run.side_effect = subprocess.CalledProcessError(1, ["mmdc"], stderr=b"syntax error")

        with pytest.raises(ConversionError, match="syntax error"):
            _run(["mmdc"], "mmdc")

    @patch('src.content_converter.diagram_renderers.subprocess.run')
    def test_timeout(self, mock_run):
        mock_run.side_effect = subprocess.TimeoutExpired(["mmdc"], 120)

        with pytest.raises(ConversionError, match="timed out"):
            _run(["mmdc"], "mmdc")


class TestPlantUmlCommand:
    """Test cases for PlantUML command discovery."""

    def test_command_from_environment(self, monkeypatch):
        monkeypatch.setenv("PLANTUML_CMD", "java -jar /opt/plantuml.jar")

        assert PlantUmlRenderer._command() == ["java", "-jar", "/opt/plantuml.jar"]

    def test_default_command(self, monkeypatch):
        monkeypatch.delenv("PLANTUML_CMD", raising=False)
        monkeypatch.delenv("PLANTUML_JAR", raising=False)

        assert PlantUmlRenderer._command() == ["plantuml"]


class TestDiagramRenderService:
    """Test cases for DiagramRenderService."""

    def test_no_diagrams(self):
        service = DiagramRenderService(renderers={})

        assert service.render_all([]) == []

    def test_renders_attachments_in_order(self):
        """Rendered diagrams become attachments with their bytes."""
        renderer = Mock()
        renderer.render.side_effect = lambda source, fmt: (source.encode(), fmt)
        service = DiagramRenderService(renderers={"mermaid": renderer}, max_workers=2)

        attachments = service.render_all([
            diagram(name="mermaid-1.png", source="one"),
            diagram(name="mermaid-2.png", source="two"),
        ], title="Page")

        assert [a.file_name for a in attachments] == ["mermaid-1.png", "mermaid-2.png"]
        assert attachments[0].content == b"one"
        assert attachments[0].media_type == "image/png"

    def test_failed_diagram_skipped(self, caplog):
        """A renderer failure drops only that diagram."""
        renderer = Mock()
        renderer.render.side_effect = [ConversionError("boom"), (b"ok", "png")]
        service = DiagramRenderService(renderers={"mermaid": renderer}, max_workers=1)

        attachments = service.render_all([
            diagram(name="mermaid-1.png"),
            diagram(name="mermaid-2.png"),
        ])

        assert [a.file_name for a in attachments] == ["mermaid-2.png"]
        assert "Failed to render mermaid diagram 'mermaid-1.png'" in caplog.text

    def test_svg_media_type(self):
        renderer = Mock()
        renderer.render.return_value = (b"<svg/>", "svg")
        service = DiagramRenderService(renderers={"drawio": renderer})

        attachments = service.render_all([diagram("drawio", "drawio-1.svg", "<mxfile/>")])

        assert attachments[0].media_type == "image/svg+xml"
        renderer.render.assert_called_once_with("<mxfile/>", "svg")

    def test_missing_renderer(self):
        service = DiagramRenderService(renderers={})

        assert service.render_all([diagram("plantuml", "plantuml-1.png")]) == []

    def test_max_workers_at_least_one(self):
        assert DiagramRenderService(renderers={}, max_workers=0).max_workers == 1
