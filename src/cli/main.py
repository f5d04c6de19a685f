"""Main CLI entry point for the confluence-synkmd command.

This module provides the Typer application that serves as the entry point
for the confluence-synkmd command-line tool. A single command runs one of
three pipelines, selected with --mode (or --local):

    Upload       markdown files → Confluence pages (IDs written back to sources)
    Download     Confluence pages → markdown files
    LocalExport  markdown files → storage format files on disk, no API access
"""

import logging
import signal
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import typer

from src.cli.config import SettingsLoader, ensure_settings_complete
from src.cli.errors import CLIError
from src.cli.models import ExitCode, Settings
from src.cli.output import OutputHandler
from src.confluence_client.api_wrapper import APIWrapper
from src.confluence_client.auth import Authenticator
from src.confluence_client.errors import APIUnreachableError, InvalidCredentialsError
from src.content_converter.diagram_renderers import DiagramRenderService
from src.file_mapper.errors import FileMapperError
from src.models.options import SyncMode, SyncOptions
from src.pipeline import (
    BatchContext,
    CancellationToken,
    PipelineBuilder,
    PipelineCancelledError,
    PipelineResult,
    PipelineRunner,
)
from src.pipeline.steps import (
    ConfluenceIngestionStep,
    ConfluenceLoadStep,
    ConfluenceXhtmlTransformStep,
    FileSystemLoadStep,
    LocalExportStep,
    MarkdownIngestionStep,
    MarkdownTransformStep,
    WriteBackStep,
)

VERSION = "0.1.0"

app = typer.Typer(
    name="confluence-synkmd",
    help="Publish markdown documentation to Confluence and download it back.",
    add_completion=False,
    rich_markup_mode=None,
    no_args_is_help=False,
)

logger = logging.getLogger(__name__)

LOG_LEVELS = {
    'debug': logging.DEBUG,
    'verbose': logging.DEBUG,
    'info': logging.INFO,
    'information': logging.INFO,
    'warning': logging.WARNING,
    'warn': logging.WARNING,
    'error': logging.ERROR,
    'critical': logging.CRITICAL,
    'fatal': logging.CRITICAL,
}


def parse_log_level(name: Optional[str]) -> int:
    """Map a --loglevel value to a logging level, defaulting to INFO."""
    return LOG_LEVELS.get((name or "").strip().lower(), logging.INFO)


def _configure_logging(loglevel: str, logdir: Optional[str] = None) -> None:
    """Configure logging for the run.

    Configures only the 'src' namespace logger to avoid affecting third-party
    libraries. The root logger is left unchanged.

    Args:
        loglevel: Level name (see LOG_LEVELS); unknown names mean info
        logdir: Optional directory for log files (creates timestamped log file)
    """
    level = parse_log_level(loglevel)

    app_logger = logging.getLogger("src")
    app_logger.setLevel(level)
    for handler in list(app_logger.handlers):
        app_logger.removeHandler(handler)
        handler.close()

    log_format = "%(asctime)s [%(levelname)8s] %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S"
    formatter = logging.Formatter(log_format, datefmt=date_format)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    app_logger.addHandler(console_handler)

    if logdir:
        log_path = Path(logdir)
        log_path.mkdir(parents=True, exist_ok=True)

        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file = log_path / f"confluence-synkmd_{timestamp}.log"

        file_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        file_formatter = logging.Formatter(file_format, datefmt=date_format)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(file_formatter)
        app_logger.addHandler(file_handler)

        logger.info(f"Logging to file: {log_file}")


def build_pipeline(mode: SyncMode, settings: Settings, api: Optional[APIWrapper]) -> PipelineBuilder:
    """Assemble the steps of a run.

    Args:
        mode: Direction of the run
        settings: Loaded settings (diagram output format is taken from them)
        api: API wrapper; may be None for LocalExport only

    Returns:
        A builder holding the extract, transform and load steps
    """
    builder = PipelineBuilder()

    if mode == SyncMode.DOWNLOAD:
        return (
            builder
            .add_extractor(ConfluenceIngestionStep(api))
            .add_transformer(MarkdownTransformStep())
            .add_loader(FileSystemLoadStep(api))
        )

    diagrams = DiagramRenderService(output_format=settings.converter.diagram_output_format)
    builder.add_extractor(MarkdownIngestionStep())
    builder.add_transformer(ConfluenceXhtmlTransformStep(diagrams))

    if mode == SyncMode.LOCAL_EXPORT:
        return builder.add_loader(LocalExportStep())

    return builder.add_loader(ConfluenceLoadStep(api)).add_loader(WriteBackStep())


def exit_code_for(result: PipelineResult) -> ExitCode:
    """Map a run's final result to the process exit code."""
    if result.can_continue:
        return ExitCode.SUCCESS
    if isinstance(result.exception, InvalidCredentialsError):
        return ExitCode.AUTH_ERROR
    if isinstance(result.exception, APIUnreachableError):
        return ExitCode.NETWORK_ERROR
    return ExitCode.GENERAL_ERROR


def _flag(value: bool) -> Optional[bool]:
    """Flags that were not given must not override config file values."""
    return True if value else None


def _run(
    sync_options: SyncOptions,
    settings: Settings,
    output: OutputHandler,
) -> ExitCode:
    """Run the pipeline for a mode and report the outcome."""
    api = None
    if sync_options.mode != SyncMode.LOCAL_EXPORT:
        api = APIWrapper(Authenticator(settings.confluence))

    context = BatchContext(
        options=sync_options,
        converter_options=settings.converter,
        layout_options=settings.layout,
    )
    builder = build_pipeline(sync_options.mode, settings, api)

    cancel_token = CancellationToken()

    def _on_interrupt(signum, frame):
        logger.warning("Cancellation requested, stopping after the current document")
        cancel_token.cancel()

    previous_handler = signal.signal(signal.SIGINT, _on_interrupt)
    try:
        with output.spinner(f"Running {sync_options.mode.value}..."):
            result = builder.execute(context, PipelineRunner(), cancel_token)
    except PipelineCancelledError:
        output.warning("Run cancelled")
        return ExitCode.GENERAL_ERROR
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    output.print_summary(context.step_results, result)
    return exit_code_for(result)


@app.command()
def main_command(
    mode: str = typer.Option(
        "Upload",
        "--mode",
        "-m",
        help="Run direction: Upload, Download or LocalExport",
    ),
    path: str = typer.Option(
        ".",
        "--path",
        "-p",
        help="Local documentation directory (source for upload, target for download)",
    ),
    space_key: Optional[str] = typer.Option(
        None,
        "--conf-space",
        help="Confluence space key",
        metavar="KEY",
    ),
    parent_id: Optional[str] = typer.Option(
        None,
        "--conf-parent-id",
        help="Page ID under which pages are created (upload) or read (download)",
        metavar="ID",
    ),
    root_page: Optional[str] = typer.Option(
        None,
        "--root-page",
        help="Title of the root page, used when --conf-parent-id is not given",
        metavar="TITLE",
    ),
    keep_hierarchy: bool = typer.Option(
        True,
        "--keep-hierarchy/--skip-hierarchy",
        help="Mirror the directory hierarchy as a page hierarchy",
    ),
    skip_update: bool = typer.Option(
        False,
        "--skip-update",
        help="Do not update pages whose content is unchanged",
    ),
    local: bool = typer.Option(
        False,
        "--local",
        help="Export storage format files locally instead of uploading (same as --mode LocalExport)",
    ),
    no_write_back: bool = typer.Option(
        False,
        "--no-write-back",
        help="Do not write page IDs back into uploaded markdown files",
    ),
    loglevel: str = typer.Option(
        "info",
        "--loglevel",
        help="debug, info, warning, error or critical",
    ),
    logdir: Optional[str] = typer.Option(
        None,
        "--logdir",
        help="Directory for log files (creates timestamped log file)",
    ),
    config: Optional[str] = typer.Option(
        None,
        "--config",
        help="YAML config file with confluence/converter/layout sections",
        metavar="FILE",
    ),
    base_url: Optional[str] = typer.Option(None, "--conf-base-url", help="Confluence base URL", metavar="URL"),
    auth_mode: Optional[str] = typer.Option(None, "--conf-auth-mode", help="Basic or Bearer"),
    user_email: Optional[str] = typer.Option(None, "--conf-user-email", help="Account email for Basic auth"),
    api_token: Optional[str] = typer.Option(None, "--conf-api-token", help="API token for Basic auth"),
    bearer_token: Optional[str] = typer.Option(None, "--conf-bearer-token", help="Token for Bearer auth"),
    headers: Optional[List[str]] = typer.Option(
        None,
        "--headers",
        help="Extra HTTP header as KEY=VALUE (can be used multiple times)",
        metavar="KEY=VALUE",
    ),
    heading_anchors: bool = typer.Option(False, "--heading-anchors", help="Add anchor macros to headings"),
    force_valid_url: bool = typer.Option(False, "--force-valid-url", help="Percent-encode invalid URL characters"),
    skip_title_heading: bool = typer.Option(
        False, "--skip-title-heading", help="Drop the first heading when it is used as page title"
    ),
    prefer_raster: bool = typer.Option(False, "--prefer-raster", help="Prefer PNG over SVG images"),
    render_drawio: bool = typer.Option(False, "--render-drawio", help="Render drawio diagrams to images"),
    no_render_mermaid: bool = typer.Option(
        False, "--no-render-mermaid", help="Keep mermaid diagrams as code blocks"
    ),
    render_plantuml: bool = typer.Option(False, "--render-plantuml", help="Render PlantUML diagrams to images"),
    render_latex: bool = typer.Option(False, "--render-latex", help="Render LaTeX formulas to images"),
    diagram_output_format: Optional[str] = typer.Option(
        None, "--diagram-output-format", help="png or svg"
    ),
    webui_links: bool = typer.Option(False, "--webui-links", help="Link pages with web UI URLs"),
    webui_link_strategy: Optional[str] = typer.Option(
        None, "--webui-link-strategy", help="space-title or page-id"
    ),
    use_panel: bool = typer.Option(False, "--use-panel", help="Render alerts and quotes as panel macros"),
    force_valid_language: bool = typer.Option(
        False, "--force-valid-language", help="Map unknown code languages to 'none'"
    ),
    code_line_numbers: bool = typer.Option(
        False, "--code-line-numbers", "--line-numbers", help="Show line numbers in code blocks"
    ),
    debug_line_markers: bool = typer.Option(
        False, "--debug-line-markers", help="Report source line numbers in conversion errors"
    ),
    title_prefix: Optional[str] = typer.Option(None, "--title-prefix", help="Prefix for every page title"),
    generated_by: Optional[str] = typer.Option(
        None, "--generated-by", help="Generated-by note template; empty string disables it"
    ),
    image_alignment: Optional[str] = typer.Option(None, "--image-alignment", help="left, center or right"),
    image_max_width: Optional[int] = typer.Option(None, "--image-max-width", help="Maximum image width"),
    table_width: Optional[int] = typer.Option(None, "--table-width", help="Table width"),
    table_display_mode: Optional[str] = typer.Option(
        None, "--table-display-mode", help="responsive or fixed"
    ),
    content_alignment: Optional[str] = typer.Option(None, "--content-alignment", help="left, center or right"),
    no_color: bool = typer.Option(
        False,
        "--no-color",
        help="Disable colored output",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit",
    ),
) -> None:
    """Publish markdown documentation to Confluence and download it back.

    \b
    EXAMPLES:
      confluence-synkmd --mode Upload --path ./docs --conf-space TEAM --root-page "Docs"
      confluence-synkmd --mode Download --path ./docs --conf-space TEAM --conf-parent-id 123456
      confluence-synkmd --local --path ./docs
    """
    if version:
        typer.echo(f"confluence-synkmd version {VERSION}")
        raise typer.Exit()

    _configure_logging(loglevel, logdir)
    output = OutputHandler(no_color=no_color)

    try:
        sync_mode = SyncMode.LOCAL_EXPORT if local else SyncMode.parse(mode)
    except ValueError as e:
        output.error(str(e))
        raise typer.Exit(ExitCode.GENERAL_ERROR)

    overrides: Dict[str, Dict[str, Any]] = {
        'confluence': {
            'base_url': base_url,
            'auth_mode': auth_mode,
            'user_email': user_email,
            'api_token': api_token,
            'bearer_token': bearer_token,
        },
        'converter': {
            'heading_anchors': _flag(heading_anchors),
            'force_valid_url': _flag(force_valid_url),
            'skip_title_heading': _flag(skip_title_heading),
            'prefer_raster': _flag(prefer_raster),
            'render_drawio': _flag(render_drawio),
            'render_mermaid': False if no_render_mermaid else None,
            'render_plantuml': _flag(render_plantuml),
            'render_latex': _flag(render_latex),
            'diagram_output_format': diagram_output_format,
            'webui_links': _flag(webui_links),
            'webui_link_strategy': webui_link_strategy,
            'use_panel': _flag(use_panel),
            'force_valid_language': _flag(force_valid_language),
            'code_line_numbers': _flag(code_line_numbers),
            'debug_line_markers': _flag(debug_line_markers),
            'title_prefix': title_prefix,
            'generated_by': generated_by,
        },
        'layout': {
            'image_alignment': image_alignment,
            'image_max_width': image_max_width,
            'table_width': table_width,
            'table_display_mode': table_display_mode,
            'content_alignment': content_alignment,
        },
    }

    try:
        overrides['confluence']['custom_headers'] = SettingsLoader.parse_headers(headers) or None
        settings = SettingsLoader.load(config, overrides)
        ensure_settings_complete(settings.confluence, sync_mode)
    except (CLIError, FileMapperError) as e:
        logger.error(f"Configuration failed: {e}")
        output.error(str(e))
        raise typer.Exit(ExitCode.GENERAL_ERROR)

    if sync_mode != SyncMode.LOCAL_EXPORT and not space_key:
        output.error(f"--conf-space is required for {sync_mode.value} mode")
        raise typer.Exit(ExitCode.GENERAL_ERROR)

    sync_options = SyncOptions(
        mode=sync_mode,
        path=path,
        space_key=space_key or "",
        parent_id=parent_id,
        root_page=root_page,
        keep_hierarchy=keep_hierarchy,
        skip_update=skip_update,
        no_write_back=no_write_back,
        log_level=loglevel,
    )
    logger.info(f"Starting {sync_mode.value} run for '{path}'")

    try:
        exit_code = _run(sync_options, settings, output)
    except Exception as e:
        logger.exception("Unexpected error during run")
        output.error(f"Unexpected error: {e}")
        raise typer.Exit(ExitCode.GENERAL_ERROR)

    raise typer.Exit(exit_code)


def main() -> None:
    """Main entry point for the CLI application.

    This function is called when the module is executed directly or
    when the console script is invoked.
    """
    app()


# Allow running as: python -m src.cli.main
if __name__ == "__main__":
    main()
