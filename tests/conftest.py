from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

from k8s_dnsperf.models import PerNodeResult, RunMetadata, SummaryResult

SAMPLE_OUTPUT = """DNS Performance Testing Tool
Version 2.12.0

[Status] Command line: dnsperf -l 5 -c 10 -d input -c 1 -s 127.0.0.53
[Status] Sending queries (to 127.0.0.53:53)
[Status] Started at: Mon Sep 30 12:15:58 2024
[Status] Stopping after 5.000000 seconds
[Status] Testing complete (time limit)

Statistics:

  Queries sent:         52083
  Queries completed:    52083 (100.00%)
  Queries lost:         0 (0.00%)

  Response codes:       NOERROR 26042 (50.00%), NXDOMAIN 26041 (50.00%)
  Average packet size:  request 37, response 82
  Run time (s):         5.009131
  Queries per second:   10397.611881

  Average Latency (s):  0.009546 (min 0.004271, max 0.167582)
  Latency StdDev (s):   0.005814

"""


@pytest.fixture
def sample_output() -> str:
    return SAMPLE_OUTPUT


@pytest.fixture
def run_metadata() -> RunMetadata:
    return RunMetadata(
        uuid='0b5c5e9e-3f6c-4a59-9d0a-6b1c4b1e2f3a',
        clients=2,
        records=10,
        duration=60,
        target_server='172.30.0.10',
        timestamp=datetime(2024, 9, 30, 12, 15, 58, tzinfo=timezone.utc),
    )


@pytest.fixture
def summary(run_metadata: RunMetadata) -> SummaryResult:
    return SummaryResult(
        uuid=run_metadata.uuid,
        clients=run_metadata.clients,
        records=run_metadata.records,
        timestamp=run_metadata.timestamp,
        duration=run_metadata.duration,
        target_server=run_metadata.target_server,
        queries_sent=104166,
        queries_completed=104160,
        queries_lost=6,
        queries_interrupted=0,
        qps=10397.61,
        avg_latency=9.54,
        min_latency=4.27,
        max_latency=167.58,
        latency_stdev=5.81,
        nodes=2,
    )


def node_result(qps: float = 100.0, avg_latency: float = 10.0, sent: int = 1000) -> PerNodeResult:
    return PerNodeResult(
        queries_sent=sent,
        queries_completed=sent,
        queries_lost=0,
        queries_interrupted=0,
        qps=qps,
        avg_latency=avg_latency,
        min_latency=avg_latency / 2,
        max_latency=avg_latency * 2,
        latency_stdev=1.0,
    )


def daemonset(ready: int, desired: int, resource_version: str = '1') -> SimpleNamespace:
    return SimpleNamespace(
        metadata=SimpleNamespace(name='k8s-dnsperf', resource_version=resource_version),
        status=SimpleNamespace(number_ready=ready, desired_number_scheduled=desired),
    )


def pod(name: str, node: str, phase: str = 'Running') -> SimpleNamespace:
    return SimpleNamespace(
        metadata=SimpleNamespace(name=name, namespace='k8s-dnsperf'),
        spec=SimpleNamespace(node_name=node),
        status=SimpleNamespace(phase=phase),
    )
