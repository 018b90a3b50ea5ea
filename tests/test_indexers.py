import json
from argparse import Namespace
from unittest.mock import MagicMock, patch

import pytest
import requests

from k8s_dnsperf.errors import SinkError
from k8s_dnsperf.exporter import PrometheusMetricsExporter
from k8s_dnsperf.indexers import (
    LocalIndexer,
    OpenSearchIndexer,
    TextfileIndexer,
    index_results,
    new_indexers,
)


def test_local_indexer_writes_document(tmp_path, summary) -> None:
    message = LocalIndexer(str(tmp_path / "results")).index(summary)

    path = tmp_path / "results" / f"{summary.uuid}.json"
    assert str(path) in message
    document = json.loads(path.read_text())
    assert document == summary.to_document()


def test_local_indexer_failure(tmp_path, summary) -> None:
    blocker = tmp_path / "file"
    blocker.write_text("")

    with pytest.raises(SinkError):
        LocalIndexer(str(blocker / "results")).index(summary)


def test_opensearch_indexer_posts_document(summary) -> None:
    response = MagicMock(status_code=201, text='{"result": "created"}')

    with patch("k8s_dnsperf.indexers.requests.post", return_value=response) as mock_post:
        message = OpenSearchIndexer("https://es.example.com:9200/", "k8s-dnsperf").index(summary)

    assert "k8s-dnsperf" in message
    args = mock_post.call_args
    assert args.args[0] == "https://es.example.com:9200/k8s-dnsperf/_doc"
    assert args.kwargs["json"] == summary.to_document()
    assert args.kwargs["verify"] is False


def test_opensearch_indexer_rejects_error_status(summary) -> None:
    response = MagicMock(status_code=400, text="mapper_parsing_exception")

    with patch("k8s_dnsperf.indexers.requests.post", return_value=response):
        with pytest.raises(SinkError, match="400"):
            OpenSearchIndexer("http://es:9200", "k8s-dnsperf").index(summary)


def test_opensearch_indexer_connection_error(summary) -> None:
    with patch("k8s_dnsperf.indexers.requests.post", side_effect=requests.exceptions.ConnectionError("refused")):
        with pytest.raises(SinkError, match="refused"):
            OpenSearchIndexer("http://es:9200", "k8s-dnsperf").index(summary)


def test_exporter_sets_gauges(summary) -> None:
    exporter = PrometheusMetricsExporter()
    exporter.export_summary(summary)

    labels = {"uuid": summary.uuid, "target_server": "172.30.0.10"}
    registry = exporter.registry
    assert registry.get_sample_value("k8s_dnsperf_queries_sent_total", labels) == 104166
    assert registry.get_sample_value("k8s_dnsperf_queries_per_second", labels) == 10397.61
    assert registry.get_sample_value("k8s_dnsperf_latency_milliseconds_avg", labels) == 9.54
    assert registry.get_sample_value("k8s_dnsperf_nodes", labels) == 2


def test_textfile_indexer(tmp_path, summary) -> None:
    path = tmp_path / "k8s_dnsperf.prom"

    TextfileIndexer(str(path)).index(summary)

    content = path.read_text()
    assert "k8s_dnsperf_queries_per_second" in content
    assert f'uuid="{summary.uuid}"' in content


def test_new_indexers_from_arguments(tmp_path) -> None:
    args = Namespace(local_dir=str(tmp_path), es_server="http://es:9200", es_index="k8s-dnsperf",
                     textfile=None, remote_write_url=None)

    indexers = new_indexers(args)

    assert [type(i) for i in indexers] == [LocalIndexer, OpenSearchIndexer]


def test_no_indexers_requested() -> None:
    assert new_indexers(Namespace(local_dir=None, es_server=None, textfile=None, remote_write_url=None)) == []


def test_index_results_stops_at_first_failure(summary) -> None:
    failing = MagicMock()
    failing.index.side_effect = SinkError("down")
    never_called = MagicMock()

    with pytest.raises(SinkError):
        index_results([failing, never_called], summary)

    never_called.index.assert_not_called()
