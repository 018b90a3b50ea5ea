"""Client for sending k8s-dnsperf summaries via Prometheus remote write."""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import requests
import snappy
from google.protobuf.json_format import MessageToJson

from prometheus_remote_writer.proto import remote_pb2 as prompb_pb2
from prometheus_remote_writer.proto import types_pb2

from .errors import SinkError
from .models import SummaryResult

logger = logging.getLogger(__name__)


def summary_samples(summary: SummaryResult) -> List[Tuple[str, float]]:
    """Metric name and value pairs sent for a summary."""
    return [
        ('k8s_dnsperf_queries_sent_total', summary.queries_sent),
        ('k8s_dnsperf_queries_completed_total', summary.queries_completed),
        ('k8s_dnsperf_queries_lost_total', summary.queries_lost),
        ('k8s_dnsperf_queries_interrupted_total', summary.queries_interrupted),
        ('k8s_dnsperf_queries_per_second', summary.qps),
        ('k8s_dnsperf_latency_milliseconds_avg', summary.avg_latency),
        ('k8s_dnsperf_latency_milliseconds_min', summary.min_latency),
        ('k8s_dnsperf_latency_milliseconds_max', summary.max_latency),
        ('k8s_dnsperf_latency_milliseconds_stddev', summary.latency_stdev),
        ('k8s_dnsperf_nodes', summary.nodes),
    ]


class RemoteWriteClient:
    """Client for sending Prometheus metrics via remote write."""

    def __init__(self, remote_write_url: str, headers: Optional[Dict[str, str]] = None,
                 instance_label: str = 'k8s-dnsperf', timeout: float = 30):
        self.remote_write_url = remote_write_url
        self.headers = dict(headers or {})
        self.headers.setdefault('Content-Type', 'application/x-protobuf')
        self.headers.setdefault('Content-Encoding', 'snappy')
        self.headers.setdefault('X-Prometheus-Remote-Write-Version', '0.1.0')
        self.instance_label = instance_label
        self.timeout = timeout

    def send_summary(self, summary: SummaryResult, dry_run: bool = False, debug_file: Optional[str] = None) -> str:
        """Send the summary to the remote write endpoint.

        Args:
            summary: Aggregated benchmark result
            dry_run: If True, build the payload but skip sending it
            debug_file: Optional path to save the uncompressed payload as JSON

        Returns:
            Human readable status message

        Raises:
            SinkError: the endpoint could not be reached or rejected the payload
        """
        write_request = self.build_write_request(summary)
        num_timeseries = len(write_request.timeseries)
        logger.debug("Prepared %d time series", num_timeseries)

        data = write_request.SerializeToString()

        if debug_file:
            json_data = MessageToJson(write_request)
            try:
                with open(debug_file, 'w', encoding='utf-8') as f:
                    f.write(json_data)
            except OSError as e:
                raise SinkError(f"Failed to write debug file {debug_file}: {e}") from e
            logger.info("Saved uncompressed payload as JSON (%d bytes) to %s", len(json_data), debug_file)

        if dry_run:
            return f"Dry-run: built {num_timeseries} time series, not sent to {self.remote_write_url}"

        compressed_data = snappy.compress(data)
        logger.debug("Sending %d bytes (uncompressed: %d bytes)", len(compressed_data), len(data))
        try:
            response = requests.post(
                self.remote_write_url,
                data=compressed_data,
                headers=self.headers,
                timeout=self.timeout
            )
        except requests.exceptions.ConnectionError as e:
            raise SinkError(f"Could not connect to {self.remote_write_url}; make sure the remote write "
                            "receiver is enabled (--web.enable-remote-write-receiver)") from e
        except requests.exceptions.RequestException as e:
            raise SinkError(f"Error in remote write: {e}") from e

        if response.status_code not in (200, 204):
            raise SinkError(f"Error sending metrics: {response.status_code} - {response.text}")
        return f"Sent {num_timeseries} time series to {self.remote_write_url} (status {response.status_code})"

    def build_write_request(self, summary: SummaryResult):
        """Convert a summary to a remote write request, one sample per series."""
        write_request = prompb_pb2.WriteRequest()  # type: ignore
        time_series_map: Dict[tuple, Any] = {}
        timestamp_ms = int(summary.timestamp.timestamp() * 1000)
        labels = {'uuid': summary.uuid, 'target_server': summary.target_server}

        info_labels = dict(labels, clients=str(summary.clients), records=str(summary.records),
                           duration=str(summary.duration))
        self._add_sample_to_map(time_series_map, 'k8s_dnsperf_info', info_labels, 1.0, timestamp_ms)
        for metric_name, value in summary_samples(summary):
            self._add_sample_to_map(time_series_map, metric_name, labels, value, timestamp_ms)

        self._finalize_time_series(time_series_map, write_request)
        return write_request

    def _finalize_time_series(self, time_series_map: Dict[tuple, Any], write_request) -> None:
        """Add all time series to the write request."""
        for time_series in time_series_map.values():
            if len(time_series.samples) > 0:
                new_ts = write_request.timeseries.add()
                new_ts.CopyFrom(time_series)

    def _log_metric_sample(self, time_series, timestamp_ms: int, value: float) -> None:
        metric_name = None
        labels = {}
        for label in time_series.labels:
            if label.name == '__name__':
                metric_name = label.value
            else:
                labels[label.name] = label.value

        label_str = ','.join(f'{k}="{v}"' for k, v in sorted(labels.items()))
        timestamp_dt = datetime.fromtimestamp(timestamp_ms / 1000.0)
        logger.debug("%s %s{%s} %s", timestamp_dt.isoformat(), metric_name, label_str, value)

    def _add_sample_to_map(self, time_series_map: Dict[tuple, Any], metric_name: str, labels: Dict[str, str],
                           value: float, timestamp_ms: int):
        """Add a sample to the time series map, grouping by metric name and labels."""
        labels_with_instance = labels.copy()
        labels_with_instance['instance'] = self.instance_label

        sorted_labels = tuple(sorted(labels_with_instance.items()))
        key = (metric_name, sorted_labels)

        if key not in time_series_map:
            time_series = types_pb2.TimeSeries()  # type: ignore

            label = time_series.labels.add()
            label.name = '__name__'
            label.value = metric_name

            # Remote write requires labels sorted by name
            for key_name, val in sorted_labels:
                label = time_series.labels.add()
                label.name = key_name
                label.value = str(val)

            time_series_map[key] = time_series

        sample = time_series_map[key].samples.add()
        sample.value = value
        sample.timestamp = timestamp_ms

        self._log_metric_sample(time_series_map[key], timestamp_ms, value)
