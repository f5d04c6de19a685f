"""Sequential execution of pipeline steps over a shared BatchContext."""

import logging
import time
from abc import ABC, abstractmethod
from typing import Optional, Sequence

from .context import BatchContext, CancellationToken
from .errors import PipelineCancelledError
from .result import PipelineResult, PipelineStatus

logger = logging.getLogger(__name__)

SEPARATOR = "=" * 49


class PipelineStep(ABC):
    """One Extract, Transform or Load stage of a run."""

    name: str = "Step"

    @abstractmethod
    def execute(
        self,
        context: BatchContext,
        cancel_token: Optional[CancellationToken] = None,
    ) -> PipelineResult:
        """Run the step against the shared context and report its outcome."""


def check_cancelled(cancel_token: Optional[CancellationToken]) -> None:
    """Raise PipelineCancelledError if the run has been cancelled."""
    if cancel_token is not None:
        cancel_token.raise_if_cancelled()


class PipelineRunner:
    """Runs steps strictly in sequence, stopping at the first failure.

    Warning results are logged and the run continues. CriticalError and Abort
    results stop the run and become its result. An exception escaping a step
    is converted to a CriticalError; cancellation is never caught.
    """

    def run(
        self,
        steps: Sequence[PipelineStep],
        context: BatchContext,
        cancel_token: Optional[CancellationToken] = None,
    ) -> PipelineResult:
        """Execute all steps and return the final result.

        Args:
            steps: Steps in execution order
            context: Shared batch context
            cancel_token: Optional token checked before every step

        Returns:
            The failing step's result, or a summary success result

        Raises:
            PipelineCancelledError: If the run is cancelled
        """
        if not steps:
            return PipelineResult.abort("Pipeline", "No pipeline steps configured.")

        started = time.monotonic()
        total_processed = 0
        total_failed = 0

        logger.info(SEPARATOR)
        logger.info(f"Starting pipeline execution ({len(steps)} steps)")
        logger.info(SEPARATOR)

        for step in steps:
            check_cancelled(cancel_token)
            logger.info(f">>> Executing step: {step.name}")

            try:
                result = step.execute(context, cancel_token)
            except (PipelineCancelledError, KeyboardInterrupt):
                raise
            except Exception as e:
                result = PipelineResult.critical_error(
                    step.name,
                    f"Unhandled exception in step '{step.name}': {e}",
                    e,
                )

            context.step_results.append(result)
            total_processed += result.items_processed
            total_failed += result.items_failed

            logger.info(
                f"    Step '{result.step_name}' → {result.status.value} "
                f"({result.items_processed} processed, {result.items_failed} failed, "
                f"{result.duration * 1000:.0f}ms)"
            )

            if not result.can_continue:
                logger.error(SEPARATOR)
                logger.error(f"Pipeline ABORTED at step '{result.step_name}': {result.message}")
                logger.error(SEPARATOR)
                if result.exception is not None:
                    logger.error("Exception details:", exc_info=result.exception)
                return result

            if result.status == PipelineStatus.WARNING:
                logger.warning(f"    Warning in step '{result.step_name}': {result.message}")

        duration = time.monotonic() - started
        self._log_summary(context, total_processed, total_failed, duration)

        return PipelineResult.success(
            "Pipeline",
            total_processed,
            duration,
            f"Pipeline completed: {total_processed} items processed, {total_failed} failed, "
            f"{context.unresolved_link_fallback_count} unresolved link fallback(s), "
            f"{context.webui_page_id_fallback_count} WebUI page-id fallback(s).",
        )

    @staticmethod
    def _log_summary(
        context: BatchContext, processed: int, failed: int, duration: float
    ) -> None:
        logger.info(SEPARATOR)
        logger.info("Pipeline completed successfully")
        logger.info(f"  Total items processed: {processed}")
        logger.info(f"  Total items failed:    {failed}")
        logger.info(f"  Total duration:        {duration * 1000:.0f}ms")
        logger.info(
            f"  Link diagnostics: unresolved_link_fallbacks={context.unresolved_link_fallback_count} "
            f"webui_page_id_fallbacks={context.webui_page_id_fallback_count}"
        )

        if context.unresolved_link_samples:
            logger.warning("  Unresolved link samples (max 10):")
            for sample in context.unresolved_link_samples:
                logger.warning(f"    {sample}")

        if context.webui_page_id_fallback_samples:
            logger.info("  WebUI page-id fallback samples (max 10):")
            for sample in context.webui_page_id_fallback_samples:
                logger.info(f"    {sample}")

        logger.info(SEPARATOR)
