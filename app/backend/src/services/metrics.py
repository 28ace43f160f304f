"""Prometheus metric definitions for storage gateway operations."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

gateway_operations_total = Counter(
    "storage_gateway_operations_total",
    "Total storage gateway operations by outcome.",
    labelnames=["operation", "outcome"],
)

upload_bytes = Histogram(
    "storage_upload_bytes",
    "Size of objects written through the gateway.",
    buckets=(1024, 16 * 1024, 128 * 1024, 512 * 1024, 1024 * 1024, 5 * 1024 * 1024),
)

__all__ = [
    "gateway_operations_total",
    "upload_bytes",
]
