# src/recipecore/observability/metrics.py
"""
Custom Prometheus metrics for RecipeCore.

This module defines and registers application-specific metrics for the
generation pipeline: inference calls, continuation rounds, fallbacks and
persistence health. They complement the standard HTTP metrics provided by
prometheus-fastapi-instrumentator.
"""

import logging
from typing import Optional

from prometheus_client import Counter, Histogram

logger = logging.getLogger(__name__)

# ============================================================================
# Inference Metrics
# ============================================================================

inference_requests_total = Counter(
    'recipecore_inference_requests_total',
    'Total number of inference calls issued to the provider',
    ['model', 'outcome']  # outcome: success|error
)

inference_latency_seconds = Histogram(
    'recipecore_inference_latency_seconds',
    'Latency of non-streaming inference calls in seconds',
    ['model'],
    buckets=[0.5, 1.0, 2.0, 5.0, 10.0, 20.0, 30.0, 60.0, 120.0, float('inf')]
)

continuation_rounds = Histogram(
    'recipecore_continuation_rounds',
    'Number of inference calls spent by one continuation protocol',
    ['mode'],  # mode: full|stream
    buckets=[1, 2, 3, 4, 6, 8, 16]
)

# ============================================================================
# Fallback Metrics
# ============================================================================

fallback_activations_total = Counter(
    'recipecore_fallback_activations_total',
    'Number of times the secondary model was tried after a primary failure',
    ['primary_model', 'fallback_model']
)

stream_fallbacks_total = Counter(
    'recipecore_stream_fallbacks_total',
    'Streaming requests that failed before the first chunk and were served materialized'
)

stream_failures_total = Counter(
    'recipecore_stream_failures_total',
    'Streams that failed after content had already been forwarded'
)

# ============================================================================
# Persistence Metrics
# ============================================================================

persistence_failures_total = Counter(
    'recipecore_persistence_failures_total',
    'History commits that failed and were dropped',
    ['storage_type']
)


def record_inference(model: str, duration: Optional[float] = None, error: Optional[str] = None) -> None:
    """
    Record metrics for one inference call.

    Args:
        model: Model identifier the call was issued against
        duration: Call duration in seconds (non-streaming calls only)
        error: Error type if the call failed
    """
    try:
        inference_requests_total.labels(model=model, outcome="error" if error else "success").inc()
        if duration is not None and not error:
            inference_latency_seconds.labels(model=model).observe(duration)
    except Exception as e:
        logger.warning(f"Failed to record inference metrics: {e}")


def record_rounds(rounds: int, stream: bool = False) -> None:
    continuation_rounds.labels(mode="stream" if stream else "full").observe(rounds)


def record_fallback(primary_model: str, fallback_model: str) -> None:
    fallback_activations_total.labels(primary_model=primary_model, fallback_model=fallback_model).inc()


def record_persistence_failure(storage_type: str = "unknown") -> None:
    persistence_failures_total.labels(storage_type=storage_type).inc()
