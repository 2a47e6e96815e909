"""Prometheus metrics for text generation and the note engine."""

from prometheus_client import Counter, Histogram

# Text generation metrics
llm_latency_ms = Histogram(
    "llm_latency_ms",
    "Text generation latency in milliseconds",
    ["operation", "outcome"],
    buckets=[100, 250, 500, 1000, 2000, 4000, 8000, 16000, 32000],
)

llm_errors_total = Counter(
    "llm_errors_total",
    "Total text generation errors",
    ["operation", "reason"],
)

# Engine outcome metrics
consolidation_outcomes_total = Counter(
    "consolidation_outcomes_total",
    "Transcript chunk consolidation outcomes",
    ["outcome"],
)

cleanup_outcomes_total = Counter(
    "cleanup_outcomes_total",
    "Section cleanup outcomes",
    ["outcome"],
)

compile_outcomes_total = Counter(
    "compile_outcomes_total",
    "Note compilation outcomes",
    ["outcome"],
)
