"""Data models for CLI operations."""

from dataclasses import dataclass, field
from enum import IntEnum

from src.models.options import ConfluenceSettings, ConverterOptions, LayoutOptions


class ExitCode(IntEnum):
    """Exit codes of the confluence-synkmd command.

    - SUCCESS (0): Run finished with Success or Warning
    - GENERAL_ERROR (1): CriticalError/Abort, configuration or validation problems
    - AUTH_ERROR (3): Authentication or authorization failure
    - NETWORK_ERROR (4): Network connectivity or API availability issues

    Example:
        >>> exit_code = ExitCode.SUCCESS
        >>> sys.exit(exit_code)
    """
    SUCCESS = 0
    GENERAL_ERROR = 1
    AUTH_ERROR = 3
    NETWORK_ERROR = 4


@dataclass
class Settings:
    """Every setting a run needs besides its SyncOptions.

    Attributes:
        confluence: Connection settings for the Confluence instance
        converter: Conversion flags
        layout: Global layout options (documents may override them)
    """
    confluence: ConfluenceSettings = field(default_factory=ConfluenceSettings)
    converter: ConverterOptions = field(default_factory=ConverterOptions)
    layout: LayoutOptions = field(default_factory=LayoutOptions)
