"""
Unit tests for Prometheus metrics.
"""

import pytest

from json2csv.common.metrics import (
    REGISTRY,
    get_metrics,
    track_run,
    write_metrics_textfile,
)


def sample(name, labels=None):
    return REGISTRY.get_sample_value(name, labels or {})


class TestTrackRun:
    """Tests for the run duration decorator."""

    def test_success_is_recorded(self):
        before = sample("run_duration_seconds_count", {"status": "success"}) or 0

        @track_run
        def run():
            return "done"

        assert run() == "done"
        assert sample("run_duration_seconds_count", {"status": "success"}) == before + 1

    def test_failure_is_recorded(self):
        before = sample("run_duration_seconds_count", {"status": "failure"}) or 0

        @track_run
        def run():
            raise RuntimeError("bad")

        with pytest.raises(RuntimeError):
            run()
        assert sample("run_duration_seconds_count", {"status": "failure"}) == before + 1


class TestExport:
    """Tests for metric export."""

    def test_get_metrics(self):
        output = get_metrics()

        assert b"documents_processed_total" in output
        assert b"tables_written_total" in output

    def test_write_textfile(self, tmp_path):
        path = tmp_path / "json2csv.prom"

        write_metrics_textfile(str(path))

        assert "rows_flattened_total" in path.read_text()
