"""
Prometheus metrics for quote, settlement and confirmation activity.
"""

from prometheus_client import REGISTRY, Counter, Histogram


class DealerMetrics:
    """Metrics for one dealer client process."""

    def __init__(self, registry=None):
        self.registry = registry or REGISTRY

        self.quotes_total = Counter(
            'zaidan_quotes_total',
            'Quote requests by routed pair and result',
            ['symbol', 'kind', 'status'],
            registry=self.registry
        )

        self.quote_latency = Histogram(
            'zaidan_quote_latency_seconds',
            'Dealer quote round trip latency',
            buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0],
            registry=self.registry
        )

        self.signatures_total = Counter(
            'zaidan_fill_signatures_total',
            'Fill transaction signing attempts',
            ['status'],
            registry=self.registry
        )

        self.submissions_total = Counter(
            'zaidan_submissions_total',
            'Settlement submissions by result',
            ['status'],
            registry=self.registry
        )

        self.confirmations_total = Counter(
            'zaidan_confirmations_total',
            'Transactions reaching a terminal state',
            ['outcome'],
            registry=self.registry
        )

        self.confirmation_wait = Histogram(
            'zaidan_confirmation_wait_seconds',
            'Time from first poll to terminal receipt',
            buckets=[1, 5, 15, 30, 60, 120, 300, 600],
            registry=self.registry
        )


_default_metrics = None


def get_metrics() -> DealerMetrics:
    """Process-wide metrics on the default registry, created on first use."""
    global _default_metrics
    if _default_metrics is None:
        _default_metrics = DealerMetrics()
    return _default_metrics
