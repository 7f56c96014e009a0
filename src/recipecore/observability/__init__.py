"""Prometheus metrics for the generation pipeline."""

from .metrics import (record_fallback, record_inference,
                      record_persistence_failure, record_rounds,
                      stream_failures_total, stream_fallbacks_total)

__all__ = [
    "record_fallback",
    "record_inference",
    "record_persistence_failure",
    "record_rounds",
    "stream_failures_total",
    "stream_fallbacks_total",
]
