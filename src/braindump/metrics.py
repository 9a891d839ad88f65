"""Prometheus metrics for the braindump service."""

from prometheus_client import Counter, Histogram, start_http_server

from braindump.utils.logging import get_logger

logger = get_logger(__name__)

ERRORS = Counter(
    "braindump_errors_total",
    "Total number of request errors",
    ["error_type"],
)

ANALYSES_TOTAL = Counter(
    "braindump_analyses_total",
    "Total number of braindump analyses",
    ["source"],
)

ANALYSIS_DURATION = Histogram(
    "braindump_analysis_duration_seconds",
    "Time spent analyzing a braindump",
)

LLM_FAILURES = Counter(
    "braindump_llm_failures_total",
    "Model calls that fell back to heuristics",
    ["reason"],
)

RECONCILIATION_REPAIRS = Counter(
    "braindump_reconciliation_repairs_total",
    "Task lines rebuilt from heuristics after misaligned model output",
)

TASKS_SAVED = Counter(
    "braindump_tasks_saved_total",
    "Tasks committed at finalize",
)

SCORING_DURATION = Histogram(
    "braindump_scoring_duration_seconds",
    "Time spent scoring a braindump",
)

SCORING_FAILURES = Counter(
    "braindump_scoring_failures_total",
    "Scoring runs that failed after a successful finalize",
)


def start_metrics_server(port: int) -> None:
    """Expose /metrics on the given port."""
    start_http_server(port)
    logger.info(f"Metrics server started on port {port}")
