"""Run dnsperf on every fleet pod and aggregate the results."""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import List, Optional

from .aggregator import aggregate
from .errors import EmptyResultSetError
from .executor import RemoteExecutor, build_command
from .infra import FleetOrchestrator
from .models import FleetHandle, FleetSpec, InstanceRef, PerNodeResult, RunMetadata, SummaryResult
from .parser import DnsperfParser

logger = logging.getLogger(__name__)

# Extra time granted to an exec on top of the dnsperf run itself
EXEC_GRACE_PERIOD = 60


@dataclass(frozen=True)
class BenchmarkConfig:
    """dnsperf invocation parameters, durations in seconds."""
    server: str = '172.30.0.10'
    port: int = 53
    duration: int = 60
    timeout: int = 1
    clients: int = 1
    concurrency: Optional[int] = None
    ready_timeout: float = 300

    @property
    def command(self) -> str:
        return build_command(self.server, self.port, self.duration, self.clients, self.timeout)

    @property
    def exec_timeout(self) -> float:
        return self.duration + self.timeout + EXEC_GRACE_PERIOD


class BenchmarkDriver:
    """Deploys the fleet, fans dnsperf out to every pod and reduces the results."""

    def __init__(self, orchestrator: FleetOrchestrator, executor: RemoteExecutor,
                 parser: Optional[DnsperfParser] = None):
        self.orchestrator = orchestrator
        self.executor = executor
        self.parser = parser or DnsperfParser()

    def run(self, spec: FleetSpec, config: BenchmarkConfig) -> SummaryResult:
        """Run one benchmark end to end. The fleet is always torn down.

        A teardown failure after a successful run is raised as TeardownError;
        after a failed run it is logged and the original error propagates.
        """
        handle: Optional[FleetHandle] = None
        try:
            handle = self.orchestrator.provision(spec)
            instances = self.orchestrator.await_ready(handle, config.ready_timeout)
            meta = RunMetadata(
                uuid=spec.uuid,
                clients=config.clients,
                records=spec.records,
                duration=config.duration,
                target_server=config.server,
            )
            summary = self.execute(instances, config, meta)
        except BaseException:
            try:
                self.orchestrator.teardown(handle)
            except Exception as teardown_error:
                logger.error("Teardown failed after benchmark error: %s", teardown_error)
            raise
        self.orchestrator.teardown(handle)
        return summary

    def execute(self, instances: List[InstanceRef], config: BenchmarkConfig, meta: RunMetadata) -> SummaryResult:
        """Run dnsperf on all instances concurrently and aggregate.

        The first failure cancels the remaining executions and is raised.
        """
        if not instances:
            raise EmptyResultSetError("No running dnsperf pods to benchmark")
        logger.info("Running benchmark on %d pods", len(instances))
        results = self.collect(instances, config)
        return aggregate(results, meta)

    def collect(self, instances: List[InstanceRef], config: BenchmarkConfig) -> List[PerNodeResult]:
        """Fan out one task per instance and gather the parsed results.

        Results are appended by the calling thread only, as futures complete.
        """
        cancel = threading.Event()
        command = config.command
        results: List[PerNodeResult] = []

        def bench(instance: InstanceRef) -> PerNodeResult:
            output = self.executor.run(instance, command, cancel=cancel, timeout=config.exec_timeout)
            return self.parser.parse(output.stdout)

        executor = ThreadPoolExecutor(max_workers=config.concurrency or len(instances))
        try:
            futures = {executor.submit(bench, instance): instance for instance in instances}
            for future in as_completed(futures):
                try:
                    results.append(future.result())
                except Exception:
                    logger.error("Benchmark failed in pod %s, cancelling remaining pods", futures[future].name)
                    cancel.set()
                    raise
        finally:
            # Also stops in-flight pods when interrupted
            cancel.set()
            executor.shutdown(wait=True, cancel_futures=True)
        return results
