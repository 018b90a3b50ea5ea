#!/usr/bin/env python3
"""
Deploy a dnsperf client on every selected node, run dnsperf against the
cluster DNS from all of them at once and report the aggregated statistics.
"""

import argparse
import json
import logging
import math
import sys
import uuid

from . import __version__
from .benchmark import BenchmarkConfig, BenchmarkDriver
from .errors import DnsperfError
from .executor import RemoteExecutor
from .indexers import index_results, new_indexers
from .infra import BURST, QPS, FleetOrchestrator, new_api_clients
from .manifests import DEFAULT_IMAGE
from .models import FleetSpec, RecordType
from .utils import configure_logging, parse_duration

APP_NAME = 'k8s-dnsperf'

logger = logging.getLogger(__name__)


def duration_arg(value: str) -> float:
    try:
        return parse_duration(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e))


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description='Run dnsperf from every selected node of a Kubernetes cluster and aggregate the results'
    )
    parser.add_argument(
        '--uuid',
        default=str(uuid.uuid4()),
        help='Benchmark uuid (default: random)'
    )
    parser.add_argument(
        '--selector',
        default='node-role.kubernetes.io/worker=',
        help='DaemonSet node selector (default: node-role.kubernetes.io/worker=)'
    )
    parser.add_argument(
        '--records',
        type=int,
        default=1,
        help='Number of records, each record represents a k8s service (default: 1)'
    )
    parser.add_argument(
        '--record-type',
        choices=[t.value for t in RecordType],
        default=RecordType.A.value,
        help='Type of record (default: A)'
    )
    parser.add_argument(
        '--duration',
        type=duration_arg,
        default=60.0,
        help='Workload duration, e.g. 30s or 1m (default: 1m)'
    )
    parser.add_argument(
        '--timeout',
        type=duration_arg,
        default=1.0,
        help='dnsperf per-query timeout (default: 1s)'
    )
    parser.add_argument(
        '--dns-server',
        default='172.30.0.10',
        help='DNS server to load (default: 172.30.0.10)'
    )
    parser.add_argument(
        '--port',
        type=int,
        default=53,
        help='DNS server port (default: 53)'
    )
    parser.add_argument(
        '--clients',
        type=int,
        default=1,
        help='dnsperf clients per pod (default: 1)'
    )
    parser.add_argument(
        '--concurrency',
        type=int,
        help='Maximum number of pods running dnsperf at once (default: all)'
    )
    parser.add_argument(
        '--ready-timeout',
        type=duration_arg,
        default=300.0,
        help='How long to wait for the DaemonSet pods to be ready (default: 5m)'
    )
    parser.add_argument(
        '--qps',
        type=float,
        default=QPS,
        help=f'Object creation requests per second (default: {QPS})'
    )
    parser.add_argument(
        '--burst',
        type=int,
        default=BURST,
        help=f'Object creation burst (default: {BURST})'
    )
    parser.add_argument(
        '--image',
        default=DEFAULT_IMAGE,
        help=f'dnsperf client image (default: {DEFAULT_IMAGE})'
    )
    parser.add_argument(
        '--kubeconfig',
        help='Path to kubeconfig (default: $KUBECONFIG or ~/.kube/config)'
    )
    parser.add_argument(
        '--loglevel',
        default='info',
        choices=['debug', 'info', 'warning', 'error'],
        help='Log level (default: info)'
    )
    parser.add_argument(
        '--es-server',
        help='Elasticsearch/OpenSearch endpoint'
    )
    parser.add_argument(
        '--es-index',
        default=APP_NAME,
        help=f'Elasticsearch/OpenSearch index (default: {APP_NAME})'
    )
    parser.add_argument(
        '--local-dir',
        help='Write the summary as <uuid>.json in this directory'
    )
    parser.add_argument(
        '--textfile',
        help='Write the summary as Prometheus metrics to this file'
    )
    parser.add_argument(
        '--remote-write-url',
        help='Prometheus remote write endpoint URL'
    )
    parser.add_argument(
        '--remote-write-header',
        action='append',
        help='Additional header for remote write (format: Key=Value)'
    )
    parser.add_argument(
        '--instance-label',
        default=APP_NAME,
        help=f'Value for the instance label added to remote write metrics (default: {APP_NAME})'
    )
    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Build the remote write payload without sending it'
    )
    parser.add_argument(
        '--debug-file',
        help='Save the uncompressed remote write payload as JSON to the specified file'
    )
    return parser


def main(argv=None) -> int:
    args = build_arg_parser().parse_args(argv)
    configure_logging(args.loglevel)
    logger.info("Starting %s %s", APP_NAME, __version__)

    try:
        if args.duration < 1:
            raise ValueError(f"duration must be at least 1s, got {args.duration}s")
        spec = FleetSpec(uuid=args.uuid, selector=args.selector, records=args.records,
                         record_type=RecordType(args.record_type))
        config = BenchmarkConfig(
            server=args.dns_server,
            port=args.port,
            duration=math.ceil(args.duration),
            timeout=max(1, int(args.timeout)),
            clients=args.clients,
            concurrency=args.concurrency,
            ready_timeout=args.ready_timeout,
        )
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    try:
        indexers = new_indexers(args)
        core_v1, apps_v1 = new_api_clients(args.kubeconfig)
        orchestrator = FleetOrchestrator(core_v1, apps_v1, qps=args.qps, burst=args.burst, image=args.image)
        driver = BenchmarkDriver(orchestrator, RemoteExecutor(core_v1))
        summary = driver.run(spec, config)
        index_results(indexers, summary)
    except DnsperfError as e:
        logger.error("%s: %s", type(e).__name__, e)
        return 1
    except Exception as e:
        logger.exception("Benchmark failed: %s", e)
        return 1

    print(json.dumps(summary.to_document(), indent=2))
    return 0


if __name__ == '__main__':
    sys.exit(main())
