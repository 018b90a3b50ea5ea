"""Export k8s-dnsperf summaries as Prometheus metrics."""

from typing import Optional

from prometheus_client import CollectorRegistry, Gauge

from .models import SummaryResult

LABELS = ['uuid', 'target_server']


class PrometheusMetricsExporter:
    """Export a benchmark summary as Prometheus gauges."""

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        self.registry = registry or CollectorRegistry()
        self._setup_metrics()

    def _setup_metrics(self):
        """Set up Prometheus metric definitions."""
        # Query metrics, summed across pods
        self.queries_sent = Gauge(
            'k8s_dnsperf_queries_sent_total',
            'Total number of DNS queries sent by all pods',
            LABELS,
            registry=self.registry
        )
        self.queries_completed = Gauge(
            'k8s_dnsperf_queries_completed_total',
            'Total number of DNS queries completed by all pods',
            LABELS,
            registry=self.registry
        )
        self.queries_lost = Gauge(
            'k8s_dnsperf_queries_lost_total',
            'Total number of DNS queries lost by all pods',
            LABELS,
            registry=self.registry
        )
        self.queries_interrupted = Gauge(
            'k8s_dnsperf_queries_interrupted_total',
            'Total number of DNS queries interrupted in all pods',
            LABELS,
            registry=self.registry
        )

        # Performance metrics, averaged across pods
        self.queries_per_second = Gauge(
            'k8s_dnsperf_queries_per_second',
            'Mean queries per second of a single pod',
            LABELS,
            registry=self.registry
        )
        self.avg_latency = Gauge(
            'k8s_dnsperf_latency_milliseconds_avg',
            'Mean of the per-pod average latency in milliseconds',
            LABELS,
            registry=self.registry
        )
        self.min_latency = Gauge(
            'k8s_dnsperf_latency_milliseconds_min',
            'Mean of the per-pod minimum latency in milliseconds',
            LABELS,
            registry=self.registry
        )
        self.max_latency = Gauge(
            'k8s_dnsperf_latency_milliseconds_max',
            'Mean of the per-pod maximum latency in milliseconds',
            LABELS,
            registry=self.registry
        )
        self.latency_stddev = Gauge(
            'k8s_dnsperf_latency_milliseconds_stddev',
            'Mean of the per-pod latency standard deviation in milliseconds',
            LABELS,
            registry=self.registry
        )

        # Run parameters
        self.nodes = Gauge(
            'k8s_dnsperf_nodes',
            'Number of pods that contributed results',
            LABELS,
            registry=self.registry
        )
        self.clients = Gauge(
            'k8s_dnsperf_clients',
            'dnsperf clients per pod',
            LABELS,
            registry=self.registry
        )
        self.records = Gauge(
            'k8s_dnsperf_records',
            'Number of DNS records queried',
            LABELS,
            registry=self.registry
        )
        self.duration = Gauge(
            'k8s_dnsperf_duration_seconds',
            'dnsperf run duration',
            LABELS,
            registry=self.registry
        )

    def export_summary(self, summary: SummaryResult):
        """Set every gauge from summary."""
        labels = {'uuid': summary.uuid, 'target_server': summary.target_server}
        self.queries_sent.labels(**labels).set(summary.queries_sent)
        self.queries_completed.labels(**labels).set(summary.queries_completed)
        self.queries_lost.labels(**labels).set(summary.queries_lost)
        self.queries_interrupted.labels(**labels).set(summary.queries_interrupted)

        self.queries_per_second.labels(**labels).set(summary.qps)
        self.avg_latency.labels(**labels).set(summary.avg_latency)
        self.min_latency.labels(**labels).set(summary.min_latency)
        self.max_latency.labels(**labels).set(summary.max_latency)
        self.latency_stddev.labels(**labels).set(summary.latency_stdev)

        self.nodes.labels(**labels).set(summary.nodes)
        self.clients.labels(**labels).set(summary.clients)
        self.records.labels(**labels).set(summary.records)
        self.duration.labels(**labels).set(summary.duration)
