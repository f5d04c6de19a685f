"""Out-of-process rendering of diagrams and formulas to images.

Each renderer writes the source to a temporary directory, runs the external
tool with subprocess and returns ``(image bytes, format)``. Any failure is
raised as ConversionError; the DiagramRenderService catches it per diagram so
a broken diagram never aborts the document it belongs to.
"""

import json
import logging
import os
import shutil
import subprocess
import tempfile
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

from src.models.converted_document import AttachmentInfo
from ..confluence_client.errors import ConversionError
from .xhtml_renderer import DiagramSource

logger = logging.getLogger(__name__)

RENDER_TIMEOUT = 120
MAX_RENDER_WORKERS = 4

PUPPETEER_CONFIG = {"args": ["--no-sandbox", "--disable-setuid-sandbox"]}

LATEX_DOCUMENT = (
    "\\documentclass[border=2pt]{standalone}\n"
    "\\usepackage{amsmath,amssymb,amsfonts}\n"
    "\\begin{document}\n"
    "$%s$\n"
    "\\end{document}\n"
)

MEDIA_TYPES = {
    "png": "image/png",
    "svg": "image/svg+xml",
    "pdf": "application/pdf",
}


def _run(command: List[str], tool: str, cwd: Optional[str] = None) -> None:
    """Run an external tool, translating failures to ConversionError."""
    logger.debug(f"Running {tool}: {' '.join(command)}")
    try:
        subprocess.run(
            command,
            cwd=cwd,
            capture_output=True,
            check=True,
            timeout=RENDER_TIMEOUT,
        )
    except FileNotFoundError as e:
        raise ConversionError(f"{tool} not found", source=command[0]) from e
    except subprocess.CalledProcessError as e:
        stderr = e.stderr.decode(errors="replace") if isinstance(e.stderr, bytes) else e.stderr
        raise ConversionError(f"{tool} failed (exit {e.returncode}): {(stderr or '').strip()}") from e
    except subprocess.TimeoutExpired as e:
        raise ConversionError(f"{tool} timed out (>{RENDER_TIMEOUT}s)") from e


def _read_output(path: Path, tool: str) -> bytes:
    if not path.exists():
        raise ConversionError(f"{tool} did not produce an output file", source=str(path))
    return path.read_bytes()


class MermaidRenderer:
    """Renders Mermaid sources with the mermaid CLI (``mmdc``).

    ``mmdc`` is used from PATH when installed, otherwise through ``npx``.
    """

    def render(self, source: str, output_format: str = "png") -> Tuple[bytes, str]:
        with tempfile.TemporaryDirectory(prefix="synkmd-mermaid-") as tmp:
            tmp_dir = Path(tmp)
            input_file = tmp_dir / "diagram.mmd"
            output_file = tmp_dir / f"diagram.{output_format}"
            config_file = tmp_dir / "puppeteer-config.json"
            input_file.write_text(source, encoding="utf-8")
            config_file.write_text(json.dumps(PUPPETEER_CONFIG), encoding="utf-8")

            command = self._command() + [
                "-i", str(input_file), "-o", str(output_file),
                "-p", str(config_file), "-b", "transparent",
            ]
            _run(command, "mmdc")
            return _read_output(output_file, "mmdc"), output_format

    @staticmethod
    def _command() -> List[str]:
        if shutil.which("mmdc"):
            return ["mmdc"]
        return ["npx", "-y", "-p", "@mermaid-js/mermaid-cli", "mmdc"]


class PlantUmlRenderer:
    """Renders PlantUML sources.

    The command is taken from ``PLANTUML_CMD``, else ``java -jar $PLANTUML_JAR``,
    else ``plantuml`` from PATH.
    """

    def render(self, source: str, output_format: str = "png") -> Tuple[bytes, str]:
        output_format = "svg" if output_format.lower() == "svg" else "png"
        with tempfile.TemporaryDirectory(prefix="synkmd-plantuml-") as tmp:
            tmp_dir = Path(tmp)
            input_file = tmp_dir / "diagram.puml"
            input_file.write_text(source, encoding="utf-8")

            _run(self._command() + [f"-t{output_format}", str(input_file)], "plantuml", cwd=tmp)
            return _read_output(tmp_dir / f"diagram.{output_format}", "plantuml"), output_format

    @staticmethod
    def _command() -> List[str]:
        command = os.getenv("PLANTUML_CMD")
        if command:
            return command.split()
        jar = os.getenv("PLANTUML_JAR")
        if jar and os.path.isfile(jar):
            return ["java", "-jar", jar]
        return ["plantuml"]


class DrawioRenderer:
    """Renders draw.io diagrams with the draw.io desktop CLI export."""

    def render(self, source: str, output_format: str = "png") -> Tuple[bytes, str]:
        with tempfile.TemporaryDirectory(prefix="synkmd-drawio-") as tmp:
            tmp_dir = Path(tmp)
            input_file = tmp_dir / "diagram.drawio"
            output_file = tmp_dir / f"diagram.{output_format}"
            input_file.write_text(source, encoding="utf-8")

            _run([
                self._command(), "--export", "--format", output_format,
                "--output", str(output_file), str(input_file),
            ], "drawio")
            return _read_output(output_file, "drawio"), output_format

    @staticmethod
    def _command() -> str:
        command = os.getenv("DRAWIO_CMD")
        if command and os.path.isfile(command):
            return command
        return "drawio"


class LatexRenderer:
    """Renders a LaTeX formula to PNG with pdflatex and ImageMagick."""

    def render(self, source: str, output_format: str = "png") -> Tuple[bytes, str]:
        with tempfile.TemporaryDirectory(prefix="synkmd-latex-") as tmp:
            tmp_dir = Path(tmp)
            tex_file = tmp_dir / "formula.tex"
            pdf_file = tmp_dir / "formula.pdf"
            png_file = tmp_dir / "formula.png"
            tex_file.write_text(LATEX_DOCUMENT % source.strip(), encoding="utf-8")

            _run([
                "pdflatex", "-interaction=nonstopmode",
                f"-output-directory={tmp_dir}", str(tex_file),
            ], "pdflatex", cwd=tmp)
            if not pdf_file.exists():
                raise ConversionError("pdflatex did not produce a PDF", source=str(tex_file))
            _run([
                "convert", "-density", "300", str(pdf_file),
                "-trim", "-quality", "100", str(png_file),
            ], "convert")
            return _read_output(png_file, "convert"), "png"


class DiagramRenderService:
    """Renders the diagrams of one document with bounded concurrency.

    Args:
        renderers: Renderer per diagram kind; defaults to all four
        output_format: Image format for drawio and PlantUML diagrams
        max_workers: Upper bound of concurrently running external tools
    """

    def __init__(
        self,
        renderers: Optional[Dict[str, object]] = None,
        output_format: str = "png",
        max_workers: int = MAX_RENDER_WORKERS,
    ):
        self.renderers = renderers if renderers is not None else {
            "mermaid": MermaidRenderer(),
            "plantuml": PlantUmlRenderer(),
            "drawio": DrawioRenderer(),
            "latex": LatexRenderer(),
        }
        self.output_format = output_format
        self.max_workers = max(1, max_workers)

    def render_all(self, diagrams: Sequence[DiagramSource], title: str = "") -> List[AttachmentInfo]:
        """Render diagrams to attachments, skipping the ones that fail.

        Args:
            diagrams: Diagrams collected while rendering the document
            title: Page title, for log messages

        Returns:
            One AttachmentInfo per successfully rendered diagram, in input order
        """
        if not diagrams:
            return []

        logger.info(f"Rendering {len(diagrams)} diagram(s) for '{title}'")
        workers = min(self.max_workers, len(diagrams))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            results = list(executor.map(self._render_one, diagrams))
        return [attachment for attachment in results if attachment is not None]

    def _render_one(self, diagram: DiagramSource) -> Optional[AttachmentInfo]:
        renderer = self.renderers.get(diagram.kind)
        if renderer is None:
            logger.warning(f"No renderer for {diagram.kind} diagram '{diagram.file_name}'")
            return None

        extension = diagram.file_name.rsplit(".", 1)[-1]
        try:
            content, image_format = renderer.render(diagram.source, extension)
        except ConversionError as e:
            logger.warning(
                f"Failed to render {diagram.kind} diagram '{diagram.file_name}', "
                f"it will appear as a broken image: {e}"
            )
            return None

        logger.debug(f"Rendered {diagram.kind} diagram '{diagram.file_name}' ({len(content)} bytes)")
        return AttachmentInfo(
            file_name=diagram.file_name,
            source_path=diagram.file_name,
            media_type=MEDIA_TYPES.get(image_format, f"image/{image_format}"),
            content=content,
        )
