"""
Shared metrics configuration for the Graph access layer.
"""

from typing import Dict, Any, Optional
import threading

from prometheus_client import REGISTRY, Counter, Histogram, Info, CollectorRegistry


class MetricsCollector:
    """Centralized metrics collector for services."""

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry if registry is not None else REGISTRY
        self._metrics: Dict[str, Any] = {}
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up common metrics for the service."""

        # Service info
        self._metrics["service_info"] = Info(
            "service_info",
            "Service information",
            registry=self.registry
        )
        self._metrics["service_info"].info({
            "service": self.service_name,
            "version": "1.0.0"
        })

        # HTTP metrics
        self._metrics["http_requests_total"] = Counter(
            "http_requests_total",
            "Total HTTP requests",
            ["method", "endpoint", "status_code"],
            registry=self.registry
        )

        self._metrics["http_request_duration_seconds"] = Histogram(
            "http_request_duration_seconds",
            "HTTP request duration in seconds",
            ["method", "endpoint"],
            registry=self.registry
        )

        # Health check metrics
        self._metrics["health_check_total"] = Counter(
            "health_check_total",
            "Total health check requests",
            ["status"],
            registry=self.registry
        )

        # Error metrics
        self._metrics["errors_total"] = Counter(
            "errors_total",
            "Total errors",
            ["error_type", "service"],
            registry=self.registry
        )

        self._setup_connector_metrics()

    def _setup_connector_metrics(self):
        """Set up provider resilience metrics."""
        self._metrics["provider_retries_total"] = Counter(
            "provider_retries_total",
            "Total retried provider calls",
            ["kind"],
            registry=self.registry
        )

        self._metrics["token_refresh_total"] = Counter(
            "token_refresh_total",
            "Total access token refreshes",
            ["outcome"],
            registry=self.registry
        )

        self._metrics["token_refresh_coalesced_total"] = Counter(
            "token_refresh_coalesced_total",
            "Callers that joined a refresh already in flight",
            registry=self.registry
        )

        self._metrics["token_refresh_duration_seconds"] = Histogram(
            "token_refresh_duration_seconds",
            "Token refresh duration in seconds",
            registry=self.registry
        )

        self._metrics["cache_requests_total"] = Counter(
            "cache_requests_total",
            "Total directory cache lookups",
            ["cache", "result"],
            registry=self.registry
        )

    def get_metric(self, name: str):
        """Get a metric by name."""
        return self._metrics.get(name)

    def record_http_request(self, method: str, endpoint: str, status_code: int, duration: float):
        """Record HTTP request metrics."""
        self._metrics["http_requests_total"].labels(
            method=method,
            endpoint=endpoint,
            status_code=str(status_code)
        ).inc()

        self._metrics["http_request_duration_seconds"].labels(
            method=method,
            endpoint=endpoint
        ).observe(duration)

    def record_health_check(self, status: str):
        """Record health check metrics."""
        self._metrics["health_check_total"].labels(status=status).inc()

    def record_error(self, error_type: str, service: Optional[str] = None):
        """Record error metrics."""
        service_name = service or self.service_name
        self._metrics["errors_total"].labels(error_type=error_type, service=service_name).inc()

    def record_retry(self, kind: str):
        """Record a provider call that is about to be retried."""
        self._metrics["provider_retries_total"].labels(kind=kind).inc()

    def record_token_refresh(self, outcome: str, duration: Optional[float] = None):
        """Record a finished token refresh."""
        self._metrics["token_refresh_total"].labels(outcome=outcome).inc()
        if duration is not None:
            self._metrics["token_refresh_duration_seconds"].observe(duration)

    def record_refresh_coalesced(self):
        """Record a caller that waited on an in-flight refresh."""
        self._metrics["token_refresh_coalesced_total"].inc()

    def record_cache_access(self, cache: str, hit: bool):
        """Record a cache lookup."""
        self._metrics["cache_requests_total"].labels(
            cache=cache,
            result="hit" if hit else "miss"
        ).inc()


_collectors: Dict[str, MetricsCollector] = {}
_collectors_lock = threading.Lock()


def get_metrics_collector(service_name: str, registry: Optional[CollectorRegistry] = None) -> MetricsCollector:
    """Get a metrics collector for a service.

    Collectors bound to the default registry are reused per service name, since
    prometheus refuses to register the same series twice.
    """
    if registry is not None:
        return MetricsCollector(service_name, registry)

    with _collectors_lock:
        collector = _collectors.get(service_name)
        if collector is None:
            collector = MetricsCollector(service_name)
            _collectors[service_name] = collector
        return collector
