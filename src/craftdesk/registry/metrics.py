"""
Prometheus metrics for registry traffic.

Labels are low-cardinality only: operation and outcome. Craft names,
authors and URLs never become label values.
"""

from __future__ import annotations

from prometheus_client import Counter
from prometheus_client.registry import CollectorRegistry

# Labels that would cause cardinality explosion
FORBIDDEN_LABELS = frozenset(
    {
        "craft",
        "author",
        "url",
        "registry",
        "path",
        "query",
        "token",
    }
)


def check_label_names(labelnames: list[str]) -> list[str]:
    """Reject label names that would carry per-craft or per-URL values."""
    forbidden = FORBIDDEN_LABELS.intersection(labelnames)
    if forbidden:
        raise ValueError(f"High-cardinality metric labels not allowed: {sorted(forbidden)}")
    return labelnames


class RegistryMetrics:
    """
    Counters for registry requests and archive downloads.

    Usage:
        registry = CollectorRegistry()
        metrics = RegistryMetrics(registry=registry)
        client = RegistryClient(metrics=metrics)
        # generate_latest(registry) -> bytes for a /metrics endpoint
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        """
        Args:
            registry: Prometheus CollectorRegistry. A private one is created if None.
        """
        self._registry = registry or CollectorRegistry()

        self._requests = Counter(
            "craftdesk_registry_requests",
            "Registry API calls by operation and outcome",
            check_label_names(["operation", "outcome"]),
            registry=self._registry,
        )
        self._downloads = Counter(
            "craftdesk_downloads",
            "Craft archive downloads by outcome",
            check_label_names(["outcome"]),
            registry=self._registry,
        )
        self._download_bytes = Counter(
            "craftdesk_download_bytes",
            "Bytes written to disk by craft archive downloads",
            registry=self._registry,
        )

    @property
    def registry(self) -> CollectorRegistry:
        """Get the Prometheus CollectorRegistry."""
        return self._registry

    def record_request(self, operation: str, outcome: str) -> None:
        self._requests.labels(operation=operation, outcome=outcome).inc()

    def record_download(self, outcome: str, size_bytes: int = 0) -> None:
        self._downloads.labels(outcome=outcome).inc()
        if size_bytes > 0:
            self._download_bytes.inc(size_bytes)
