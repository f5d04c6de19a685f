"""Unit tests for PipelineResult."""

import pytest

from src.pipeline.result import PipelineResult, PipelineStatus


class TestPipelineResult:
    """Test cases for result factories and properties."""

    def test_success_default_message(self):
        result = PipelineResult.success("Ingest", 3)

        assert result.status == PipelineStatus.SUCCESS
        assert result.message == "Step 'Ingest' completed successfully (3 items)."
        assert result.can_continue

    def test_warning_can_continue(self):
        result = PipelineResult.warning("Load", 2, 1, 0.5, "2 saved, 1 failed.")

        assert result.status == PipelineStatus.WARNING
        assert result.items_failed == 1
        assert result.can_continue

    @pytest.mark.parametrize("result", [
        PipelineResult.critical_error("Load", "boom"),
        PipelineResult.abort("Load", "stop"),
    ])
    def test_failures_stop_the_run(self, result):
        assert not result.can_continue

    def test_critical_error_keeps_exception(self):
        error = RuntimeError("x")

        result = PipelineResult.critical_error("Load", "boom", error)

        assert result.exception is error

    def test_immutable(self):
        result = PipelineResult.success("Ingest", 1)

        with pytest.raises(AttributeError):
            result.items_processed = 5

    def test_str(self):
        result = PipelineResult.warning("Load", 2, 1, 0.25, "partial")

        assert str(result) == "[Warning] Load: partial (Processed: 2, Failed: 1, Duration: 250ms)"
