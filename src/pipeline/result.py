"""Result values returned by pipeline steps and by a whole run."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class PipelineStatus(str, Enum):
    """Outcome of a step or of a run.

    - SUCCESS: Completed without errors
    - WARNING: Completed, some items failed or were skipped
    - CRITICAL_ERROR: Failed; the run stops
    - ABORT: Stopped on purpose, e.g. a failed precondition; the run stops
    """
    SUCCESS = "Success"
    WARNING = "Warning"
    CRITICAL_ERROR = "CriticalError"
    ABORT = "Abort"


@dataclass(frozen=True)
class PipelineResult:
    """Immutable outcome of one pipeline step or of the pipeline.

    Use the factory classmethods instead of the constructor.

    Attributes:
        status: Outcome status
        step_name: Name of the step that produced the result
        message: Human readable description
        items_processed: Number of items handled successfully
        items_failed: Number of items that failed
        duration: Wall clock duration in seconds
        exception: Exception behind a CRITICAL_ERROR, if any
    """
    status: PipelineStatus
    step_name: str
    message: str = ""
    items_processed: int = 0
    items_failed: int = 0
    duration: float = 0.0
    exception: Optional[BaseException] = None

    @property
    def can_continue(self) -> bool:
        """Whether the pipeline may run the next step after this result."""
        return self.status in (PipelineStatus.SUCCESS, PipelineStatus.WARNING)

    @classmethod
    def success(
        cls,
        step_name: str,
        items_processed: int,
        duration: float = 0.0,
        message: Optional[str] = None,
    ) -> 'PipelineResult':
        return cls(
            status=PipelineStatus.SUCCESS,
            step_name=step_name,
            items_processed=items_processed,
            duration=duration,
            message=message or f"Step '{step_name}' completed successfully ({items_processed} items).",
        )

    @classmethod
    def warning(
        cls,
        step_name: str,
        items_processed: int,
        items_failed: int,
        duration: float,
        message: str,
    ) -> 'PipelineResult':
        return cls(
            status=PipelineStatus.WARNING,
            step_name=step_name,
            items_processed=items_processed,
            items_failed=items_failed,
            duration=duration,
            message=message,
        )

    @classmethod
    def critical_error(
        cls,
        step_name: str,
        message: str,
        exception: Optional[BaseException] = None,
    ) -> 'PipelineResult':
        return cls(
            status=PipelineStatus.CRITICAL_ERROR,
            step_name=step_name,
            message=message,
            exception=exception,
        )

    @classmethod
    def abort(cls, step_name: str, message: str) -> 'PipelineResult':
        return cls(status=PipelineStatus.ABORT, step_name=step_name, message=message)

    def __str__(self) -> str:
        return (
            f"[{self.status.value}] {self.step_name}: {self.message} "
            f"(Processed: {self.items_processed}, Failed: {self.items_failed}, "
            f"Duration: {self.duration * 1000:.0f}ms)"
        )
