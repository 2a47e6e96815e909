"""Structured logging for text generation calls."""

import logging
from typing import Any

from backend.notekit.utils.metrics import llm_errors_total, llm_latency_ms

logger = logging.getLogger(__name__)


class StructuredGenerationLogger:
    """Structured logger for text generation calls.

    Records latency and error metrics alongside the log line.
    """

    def log_call(
        self,
        *,
        operation: str,
        model: str,
        outcome: str,
        latency_ms: float,
        error_reason: str | None = None,
    ) -> None:
        """Log a text generation call with structured data."""
        log_data: dict[str, Any] = {
            "operation": operation,
            "model": model,
            "outcome": outcome,
            "latency_ms": round(latency_ms, 2),
        }

        if error_reason:
            log_data["error_reason"] = error_reason

        llm_latency_ms.labels(operation=operation, outcome=outcome).observe(latency_ms)

        log_msg = f"Text generation: {operation} - {outcome}"

        if outcome == "success":
            logger.info(log_msg, extra={"structured": log_data})
        else:
            llm_errors_total.labels(operation=operation, reason=outcome).inc()
            logger.warning(log_msg, extra={"structured": log_data})
