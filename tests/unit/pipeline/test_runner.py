"""Unit tests for PipelineRunner, PipelineBuilder and BatchContext."""

from unittest.mock import Mock

import pytest

from src.models.options import SyncMode, SyncOptions
from src.pipeline.builder import PipelineBuilder
from src.pipeline.context import MAX_DIAGNOSTIC_SAMPLES, BatchContext, CancellationToken
from src.pipeline.errors import DuplicateTitleError, PipelineCancelledError
from src.pipeline.result import PipelineResult, PipelineStatus
from src.pipeline.runner import PipelineRunner, PipelineStep


class RecordingStep(PipelineStep):
    """Step returning a fixed result and recording that it ran."""

    def __init__(self, name, result=None, error=None, calls=None):
        self.name = name
        self._result = result
        self._error = error
        self.calls = calls if calls is not None else []

    def execute(self, context, cancel_token=None):
        self.calls.append(self.name)
        if self._error is not None:
            raise self._error
        return self._result or PipelineResult.success(self.name, 1)


@pytest.fixture
def context():
    return BatchContext(options=SyncOptions(mode=SyncMode.UPLOAD, path="docs", space_key="TEAM"))


class TestPipelineRunner:
    """Test cases for sequential step execution."""

    def test_no_steps_aborts(self, context):
        result = PipelineRunner().run([], context)

        assert result.status == PipelineStatus.ABORT
        assert result.message == "No pipeline steps configured."

    def test_all_steps_succeed(self, context):
        calls = []
        steps = [RecordingStep("A", calls=calls), RecordingStep("B", calls=calls)]

        result = PipelineRunner().run(steps, context)

        assert calls == ["A", "B"]
        assert result.status == PipelineStatus.SUCCESS
        assert result.items_processed == 2
        assert [r.step_name for r in context.step_results] == ["A", "B"]
        assert "2 items processed, 0 failed" in result.message

    def test_warning_continues(self, context):
        calls = []
        steps = [
            RecordingStep("A", PipelineResult.warning("A", 1, 1, 0.0, "partial"), calls=calls),
            RecordingStep("B", calls=calls),
        ]

        result = PipelineRunner().run(steps, context)

        assert calls == ["A", "B"]
        assert result.status == PipelineStatus.SUCCESS

    @pytest.mark.parametrize("failure", [
        PipelineResult.critical_error("A", "broken"),
        PipelineResult.abort("A", "stopped"),
    ])
    def test_failure_stops_the_run(self, context, failure):
        """CriticalError and Abort end the run with the step's result."""
        calls = []
        steps = [RecordingStep("A", failure, calls=calls), RecordingStep("B", calls=calls)]

        result = PipelineRunner().run(steps, context)

        assert calls == ["A"]
        assert result is failure

    def test_exception_becomes_critical_error(self, context):
        error = RuntimeError("kaboom")
        steps = [RecordingStep("A", error=error)]

        result = PipelineRunner().run(steps, context)

        assert result.status == PipelineStatus.CRITICAL_ERROR
        assert result.message == "Unhandled exception in step 'A': kaboom"
        assert result.exception is error

    def test_cancellation_raised_from_step_propagates(self, context):
        steps = [RecordingStep("A", error=PipelineCancelledError())]

        with pytest.raises(PipelineCancelledError):
            PipelineRunner().run(steps, context)

    def test_cancelled_before_step(self, context):
        """A cancelled token stops the run before the next step starts."""
        token = CancellationToken()
        token.cancel()
        step = RecordingStep("A")

        with pytest.raises(PipelineCancelledError):
            PipelineRunner().run([step], context, token)

        assert step.calls == []

    def test_summary_includes_link_diagnostics(self, context):
        context.record_unresolved_link("missing.md", "index.md", "missing")

        result = PipelineRunner().run([RecordingStep("A")], context)

        assert "1 unresolved link fallback(s)" in result.message


class TestPipelineBuilder:
    """Test cases for PipelineBuilder."""

    def test_phase_order(self):
        extract, transform, load = Mock(), Mock(), Mock()

        steps = (
            PipelineBuilder()
            .add_loader(load)
            .add_transformer(transform)
            .add_extractor(extract)
            .build()
        )

        assert steps == [extract, transform, load]

    def test_none_step_rejected(self):
        with pytest.raises(ValueError, match="must not be None"):
            PipelineBuilder().add_loader(None)

    def test_execute_uses_runner(self, context):
        runner = Mock()
        step = Mock()
        token = CancellationToken()

        PipelineBuilder().add_extractor(step).execute(context, runner, token)

        runner.run.assert_called_once_with([step], context, token)


class TestBatchContext:
    """Test cases for BatchContext diagnostics and cancellation."""

    def test_unresolved_link_samples_capped(self, context):
        for i in range(MAX_DIAGNOSTIC_SAMPLES + 5):
            context.record_unresolved_link(f"l{i}.md", None, f"l{i}")

        assert context.unresolved_link_fallback_count == MAX_DIAGNOSTIC_SAMPLES + 5
        assert len(context.unresolved_link_samples) == MAX_DIAGNOSTIC_SAMPLES
        assert context.unresolved_link_samples[0] == "source='<unknown>', link='l0.md', fallback='l0'"

    def test_webui_fallback_recorded(self, context):
        context.record_webui_fallback("a.md", "index.md")

        assert context.webui_page_id_fallback_count == 1
        assert context.webui_page_id_fallback_samples == ["source='index.md', link='a.md'"]

    def test_cancellation_token(self):
        token = CancellationToken()
        assert not token.is_cancelled
        token.raise_if_cancelled()

        token.cancel()

        assert token.is_cancelled
        with pytest.raises(PipelineCancelledError):
            token.raise_if_cancelled()

    def test_duplicate_title_error_message(self):
        error = DuplicateTitleError({"Guide": ["a.md", "b.md"]})

        assert "'Guide' ← a.md, b.md" in str(error)
        assert error.duplicates == {"Guide": ["a.md", "b.md"]}
