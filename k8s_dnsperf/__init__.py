"""Distributed dnsperf benchmark for Kubernetes clusters."""

__version__ = '0.1.0'

from .models import FleetSpec, PerNodeResult, RecordType, RunMetadata, SummaryResult
from .parser import DnsperfParser
from .aggregator import aggregate
from .infra import FleetOrchestrator
from .executor import RemoteExecutor
from .benchmark import BenchmarkConfig, BenchmarkDriver

__all__ = [
    'FleetSpec',
    'PerNodeResult',
    'RecordType',
    'RunMetadata',
    'SummaryResult',
    'DnsperfParser',
    'aggregate',
    'FleetOrchestrator',
    'RemoteExecutor',
    'BenchmarkConfig',
    'BenchmarkDriver',
]
