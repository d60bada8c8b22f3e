import logging
from prometheus_client import Counter, Histogram, Info, generate_latest
from prometheus_client.core import CollectorRegistry

logger = logging.getLogger(__name__)

# Prometheus Registry
REGISTRY = CollectorRegistry()

# Service operations
operation_requests_total = Counter(
    'fleet_operation_requests_total',
    'Total fleet service operations',
    ['status', 'service', 'method'],
    registry=REGISTRY
)

operation_duration_seconds = Histogram(
    'fleet_operation_duration_seconds',
    'Fleet service operation duration in seconds',
    ['service', 'method'],
    buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 2.0, 5.0],
    registry=REGISTRY
)

# Batch passes
records_generated_total = Counter(
    'fleet_records_generated_total',
    'Alerts and planning records created by batch passes',
    ['kind', 'category'],
    registry=REGISTRY
)

pass_unit_failures_total = Counter(
    'fleet_pass_unit_failures_total',
    'Units whose evaluation failed inside a batch pass',
    ['pass_name'],
    registry=REGISTRY
)

system_info = Info(
    'fleet_service_info',
    'System information',
    registry=REGISTRY
)


class PrometheusMetricsCollector:
    """Thin facade over the fleet Prometheus registry"""

    def __init__(self):
        system_info.info({
            'version': '1.0.0',
            'service': 'paddock-fleet'
        })

    def record_operation(
        self,
        service_name: str,
        method_name: str,
        duration_seconds: float,
        success: bool,
    ):
        status = 'success' if success else 'error'
        operation_requests_total.labels(
            status=status,
            service=service_name,
            method=method_name
        ).inc()
        operation_duration_seconds.labels(
            service=service_name,
            method=method_name
        ).observe(duration_seconds)

    def record_generated(self, kind: str, category: str, count: int = 1):
        if count:
            records_generated_total.labels(kind=kind, category=category).inc(count)

    def record_unit_failures(self, pass_name: str, count: int = 1):
        if count:
            pass_unit_failures_total.labels(pass_name=pass_name).inc(count)

    def get_prometheus_metrics(self) -> bytes:
        """Get Prometheus metrics in text format"""
        return generate_latest(REGISTRY)


# Global instance
prometheus_collector = PrometheusMetricsCollector()
