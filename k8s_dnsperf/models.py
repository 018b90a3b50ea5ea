"""Data models for k8s-dnsperf runs and results."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class RecordType(str, Enum):
    """DNS record type queried by every dnsperf client."""
    A = 'A'
    AAAA = 'AAAA'


@dataclass(frozen=True)
class FleetSpec:
    """Provisioning intent for one benchmark run."""
    uuid: str
    selector: str
    records: int
    record_type: RecordType = RecordType.A

    def __post_init__(self):
        if self.records < 1:
            raise ValueError(f"records must be >= 1, got {self.records}")
        # Accept plain strings such as "AAAA"
        object.__setattr__(self, 'record_type', RecordType(self.record_type))


@dataclass(frozen=True)
class InstanceRef:
    """A running dnsperf client pod."""
    name: str
    namespace: str
    node: Optional[str] = None


@dataclass
class FleetHandle:
    """Live view of the objects created for a run."""
    spec: FleetSpec
    namespace: str
    services: List[str] = field(default_factory=list)
    configmap: Optional[str] = None
    daemonset: Optional[str] = None
    instances: List[InstanceRef] = field(default_factory=list)


@dataclass(frozen=True)
class RawOutput:
    """Captured output of one remote dnsperf invocation."""
    stdout: str
    stderr: str = ''


@dataclass(frozen=True)
class PerNodeResult:
    """Parsed dnsperf statistics from one pod. Latencies are in milliseconds."""
    queries_sent: int
    queries_completed: int
    queries_lost: int
    queries_interrupted: int
    qps: float
    avg_latency: float
    min_latency: float
    max_latency: float
    latency_stdev: float


@dataclass(frozen=True)
class RunMetadata:
    """Run-wide values copied into the summary."""
    uuid: str
    clients: int
    records: int
    duration: int  # seconds
    target_server: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class SummaryResult:
    """Cluster-wide aggregate of all PerNodeResult records."""
    uuid: str
    clients: int
    records: int
    timestamp: datetime
    duration: int
    target_server: str
    queries_sent: int
    queries_completed: int
    queries_lost: int
    queries_interrupted: int
    qps: float
    avg_latency: float
    min_latency: float
    max_latency: float
    latency_stdev: float
    nodes: int

    def to_document(self) -> Dict[str, Any]:
        """Return the indexable representation of this summary."""
        return {
            'uuid': self.uuid,
            'clients': self.clients,
            'records': self.records,
            'timestamp': self.timestamp.isoformat(),
            'duration': self.duration,
            'target_server': self.target_server,
            'queries_sent': self.queries_sent,
            'queries_completed': self.queries_completed,
            'queries_lost': self.queries_lost,
            'queries_interrupted': self.queries_interrupted,
            'qps': self.qps,
            'avg_latency_ms': self.avg_latency,
            'max_latency_ms': self.max_latency,
            'min_latency_ms': self.min_latency,
            'latency_stdev_ms': self.latency_stdev,
            'nodes': self.nodes,
        }
