"""Prometheus counters for proxy initialization runs."""
from __future__ import annotations

from typing import Optional

from prometheus_client import CollectorRegistry, Counter, REGISTRY


class MetricsRegistry:
    def __init__(self, registry: CollectorRegistry = REGISTRY):
        self.registry = registry
        self.proxies_created = Counter(
            "vomsinit_proxies_created_total", "Proxy certificates created", ["proxy_type"], registry=registry
        )
        self.init_failures = Counter(
            "vomsinit_init_failures_total", "Failed proxy initialization runs", ["error"], registry=registry
        )
        self.ac_requests = Counter(
            "vomsinit_ac_requests_total", "Attribute certificate requests", ["outcome"], registry=registry
        )

    def observe_created(self, proxy_type: str) -> None:
        self.proxies_created.labels(proxy_type=proxy_type).inc()

    def observe_failure(self, error: str) -> None:
        self.init_failures.labels(error=error).inc()

    def observe_ac_request(self, outcome: str) -> None:
        self.ac_requests.labels(outcome=outcome).inc()


_registry: Optional[MetricsRegistry] = None


def get_registry() -> MetricsRegistry:
    global _registry
    if _registry is None:
        _registry = MetricsRegistry()
    return _registry


__all__ = ["get_registry", "MetricsRegistry"]
