"""Monitoring configuration for the practice engine."""
from prometheus_client import Counter, Histogram, start_http_server

# Answer metrics
answers_submitted = Counter(
    "vocabdrill_answers_submitted_total",
    "Total number of answers submitted",
    ["exercise_type", "result"],
)

level_changes = Counter(
    "vocabdrill_level_changes_total",
    "Total number of progression level changes",
    ["direction"],
)

submit_duration = Histogram(
    "vocabdrill_submit_duration_seconds",
    "Duration of answer submissions in seconds",
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.0],
)

# Session metrics
sessions_composed = Counter(
    "vocabdrill_sessions_composed_total",
    "Total number of practice sessions composed",
)

session_size = Histogram(
    "vocabdrill_session_size_words",
    "Number of words in composed practice sessions",
    buckets=[0, 5, 10, 20, 30, 50],
)

# Batch metrics
batch_adjustments = Counter(
    "vocabdrill_batch_adjustments_total",
    "Total number of difficulty-driven schedule adjustments",
    ["reason"],
)

# Store metrics
store_conflicts = Counter(
    "vocabdrill_store_conflicts_total",
    "Total number of optimistic concurrency conflicts",
    ["operation"],
)

# Error metrics
error_count = Counter(
    "vocabdrill_errors_total",
    "Total number of errors encountered",
    ["error_type"],
)


def start_monitoring(port: int = 9090) -> None:
    """Start the Prometheus metrics server."""
    start_http_server(port)
