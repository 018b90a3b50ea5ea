"""Result sinks accepting one summary document each."""

import json
import logging
import os
from typing import Any, Dict, List, Optional

import requests
from prometheus_client import write_to_textfile

from .errors import SinkError
from .exporter import PrometheusMetricsExporter
from .models import SummaryResult
from .utils import prepare_headers

logger = logging.getLogger(__name__)


class Indexer:
    """Base class for result sinks."""

    name = 'indexer'

    def index(self, summary: SummaryResult) -> str:
        """Store summary and return a status message.

        Raises:
            SinkError: the document could not be stored.
        """
        raise NotImplementedError


class LocalIndexer(Indexer):
    """Write the summary document as `<uuid>.json` in a directory."""

    name = 'local'

    def __init__(self, directory: str):
        self.directory = directory

    def index(self, summary: SummaryResult) -> str:
        path = os.path.join(self.directory, f"{summary.uuid}.json")
        try:
            os.makedirs(self.directory, exist_ok=True)
            with open(path, 'w', encoding='utf-8') as f:
                json.dump(summary.to_document(), f, indent=2)
        except OSError as e:
            raise SinkError(f"Could not write {path}: {e}") from e
        return f"Summary written to {path}"


class OpenSearchIndexer(Indexer):
    """Index the summary document in an Elasticsearch/OpenSearch index."""

    name = 'opensearch'

    def __init__(self, server: str, index: str, verify: bool = False, timeout: float = 30):
        self.server = server.rstrip('/')
        self.index_name = index
        self.verify = verify
        self.timeout = timeout

    def index(self, summary: SummaryResult) -> str:
        url = f"{self.server}/{self.index_name}/_doc"
        try:
            response = requests.post(url, json=summary.to_document(), verify=self.verify, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise SinkError(f"Could not index document in {url}: {e}") from e
        if not 200 <= response.status_code < 300:
            raise SinkError(f"Error indexing document: {response.status_code} - {response.text}")
        return f"Indexed 1 document in {self.index_name} (status {response.status_code})"


class TextfileIndexer(Indexer):
    """Write the summary as Prometheus text exposition for the node-exporter textfile collector."""

    name = 'textfile'

    def __init__(self, path: str):
        self.path = path

    def index(self, summary: SummaryResult) -> str:
        exporter = PrometheusMetricsExporter()
        exporter.export_summary(summary)
        try:
            write_to_textfile(self.path, exporter.registry)
        except OSError as e:
            raise SinkError(f"Could not write {self.path}: {e}") from e
        return f"Metrics written to {self.path}"


class RemoteWriteIndexer(Indexer):
    """Push the summary to a Prometheus remote write endpoint."""

    name = 'remote-write'

    def __init__(self, url: str, headers: Optional[Dict[str, str]] = None, instance_label: str = 'k8s-dnsperf',
                 dry_run: bool = False, debug_file: Optional[str] = None):
        # Import here so the protobuf stack only loads when remote write is used
        from .remote_write import RemoteWriteClient

        self.client = RemoteWriteClient(url, headers, instance_label)
        self.dry_run = dry_run
        self.debug_file = debug_file

    def index(self, summary: SummaryResult) -> str:
        return self.client.send_summary(summary, dry_run=self.dry_run, debug_file=self.debug_file)


def new_indexers(args: Any) -> List[Indexer]:
    """Build every sink requested by the command line arguments."""
    indexers: List[Indexer] = []
    if getattr(args, 'local_dir', None):
        indexers.append(LocalIndexer(args.local_dir))
    if getattr(args, 'es_server', None):
        indexers.append(OpenSearchIndexer(args.es_server, args.es_index))
    if getattr(args, 'textfile', None):
        indexers.append(TextfileIndexer(args.textfile))
    if getattr(args, 'remote_write_url', None):
        indexers.append(RemoteWriteIndexer(
            args.remote_write_url,
            headers=prepare_headers(getattr(args, 'remote_write_header', None)),
            instance_label=getattr(args, 'instance_label', 'k8s-dnsperf'),
            dry_run=getattr(args, 'dry_run', False),
            debug_file=getattr(args, 'debug_file', None),
        ))
    return indexers


def index_results(indexers: List[Indexer], summary: SummaryResult) -> None:
    """Send summary to every sink. The first failing sink raises SinkError."""
    for indexer in indexers:
        logger.info("Indexing results with %s indexer", indexer.name)
        logger.info(indexer.index(summary))
