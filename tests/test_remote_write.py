import json
from unittest.mock import MagicMock, patch

import pytest
import requests

pytest.importorskip("prometheus_remote_writer.proto.remote_pb2")

from k8s_dnsperf.errors import SinkError  # noqa: E402
from k8s_dnsperf.indexers import RemoteWriteIndexer  # noqa: E402
from k8s_dnsperf.remote_write import RemoteWriteClient  # noqa: E402


def _series(write_request):
    series = {}
    for ts in write_request.timeseries:
        labels = {label.name: label.value for label in ts.labels}
        series[labels.pop("__name__")] = (labels, [(s.value, s.timestamp) for s in ts.samples])
    return series


def test_build_write_request(summary) -> None:
    client = RemoteWriteClient("http://prometheus:9090/api/v1/write", instance_label="lab")

    series = _series(client.build_write_request(summary))

    labels, samples = series["k8s_dnsperf_queries_per_second"]
    assert labels == {"instance": "lab", "target_server": "172.30.0.10", "uuid": summary.uuid}
    assert samples == [(10397.61, int(summary.timestamp.timestamp() * 1000))]
    assert series["k8s_dnsperf_queries_sent_total"][1][0][0] == 104166
    info_labels, _ = series["k8s_dnsperf_info"]
    assert info_labels["clients"] == "2"
    assert info_labels["records"] == "10"


def test_dry_run_does_not_send(tmp_path, summary) -> None:
    debug_file = tmp_path / "payload.json"
    client = RemoteWriteClient("http://prometheus:9090/api/v1/write")

    with patch("k8s_dnsperf.remote_write.requests.post") as mock_post:
        message = client.send_summary(summary, dry_run=True, debug_file=str(debug_file))

    mock_post.assert_not_called()
    assert "Dry-run" in message
    assert "timeseries" in json.loads(debug_file.read_text())


def test_send_compresses_payload(summary) -> None:
    client = RemoteWriteClient("http://prometheus:9090/api/v1/write", headers={"X-Scope-OrgID": "tenant"})

    with patch("k8s_dnsperf.remote_write.requests.post", return_value=MagicMock(status_code=204)) as mock_post:
        message = client.send_summary(summary)

    assert "status 204" in message
    headers = mock_post.call_args.kwargs["headers"]
    assert headers["Content-Encoding"] == "snappy"
    assert headers["X-Scope-OrgID"] == "tenant"


def test_send_rejected(summary) -> None:
    client = RemoteWriteClient("http://prometheus:9090/api/v1/write")

    with patch("k8s_dnsperf.remote_write.requests.post", return_value=MagicMock(status_code=400, text="bad")):
        with pytest.raises(SinkError, match="400"):
            client.send_summary(summary)


def test_send_connection_error(summary) -> None:
    client = RemoteWriteClient("http://prometheus:9090/api/v1/write")

    with patch("k8s_dnsperf.remote_write.requests.post", side_effect=requests.exceptions.ConnectionError()):
        with pytest.raises(SinkError, match="remote-write-receiver"):
            client.send_summary(summary)


def test_remote_write_indexer(summary) -> None:
    indexer = RemoteWriteIndexer("http://prometheus:9090/api/v1/write", dry_run=True)

    assert "Dry-run" in indexer.index(summary)
