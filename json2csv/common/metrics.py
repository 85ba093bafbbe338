"""
Prometheus metrics for batch runs.

Provides counters and histograms for tracking:
- Documents parsed
- Rows flattened
- Tables written
- Run and phase duration
"""

import time
from typing import Callable
from functools import wraps
from prometheus_client import (
    Counter,
    Histogram,
    generate_latest,
    write_to_textfile,
    CollectorRegistry,
)

# Create a global registry
REGISTRY = CollectorRegistry()

# ========== Counters ==========

documents_processed_total = Counter(
    "documents_processed_total",
    "Total number of input documents processed",
    ["status"],  # success/failure
    registry=REGISTRY,
)

rows_flattened_total = Counter(
    "rows_flattened_total",
    "Total number of rows produced from input documents",
    ["mode"],  # inference/mapping
    registry=REGISTRY,
)

tables_written_total = Counter(
    "tables_written_total",
    "Total number of output tables written",
    registry=REGISTRY,
)

# ========== Histograms ==========

document_size_bytes = Histogram(
    "document_size_bytes",
    "Size of input documents",
    buckets=(1e3, 1e4, 1e5, 1e6, 1e7, 1e8),
    registry=REGISTRY,
)

run_duration_seconds = Histogram(
    "run_duration_seconds",
    "Time to convert an input directory",
    ["status"],
    buckets=(0.1, 0.5, 1.0, 5.0, 10.0, 30.0, 60.0, 300.0),
    registry=REGISTRY,
)

phase_duration_seconds = Histogram(
    "phase_duration_seconds",
    "Time spent in one phase of a run",
    ["phase"],  # flatten_documents/write_results
    buckets=(0.01, 0.1, 0.5, 1.0, 5.0, 30.0, 120.0),
    registry=REGISTRY,
)


# ========== Metric Decorators ==========

def track_run(func: Callable):
    """Decorator to track run duration and outcome."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        start_time = time.time()
        status = "success"
        try:
            return func(*args, **kwargs)
        except Exception:
            status = "failure"
            raise
        finally:
            run_duration_seconds.labels(status=status).observe(
                time.time() - start_time)

    return wrapper


def get_metrics() -> bytes:
    """
    Get current metrics in Prometheus format.

    Returns:
        Metrics as bytes
    """
    return generate_latest(REGISTRY)


def write_metrics_textfile(path: str) -> None:
    """Export metrics for the node exporter textfile collector."""
    write_to_textfile(path, REGISTRY)
