"""Exceptions raised by k8s-dnsperf."""

from typing import Optional


class DnsperfError(Exception):
    """Base class for every k8s-dnsperf failure."""


class ProvisioningError(DnsperfError):
    """Benchmark assets could not be created."""


class ReadinessTimeoutError(DnsperfError):
    """The DaemonSet did not become ready before the deadline."""

    def __init__(self, message: str, ready: int = 0, desired: int = 0):
        super().__init__(message)
        self.ready = ready
        self.desired = desired


class RemoteExecutionError(DnsperfError):
    """dnsperf failed inside a pod, or its exec stream broke."""

    def __init__(self, message: str, pod: Optional[str] = None, stderr: str = ''):
        if stderr:
            message = f"{message}, stderr: {stderr.strip()}"
        super().__init__(message)
        self.pod = pod
        self.stderr = stderr


class ParseError(DnsperfError):
    """dnsperf output is missing a required field or holds a bad value."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class EmptyResultSetError(DnsperfError):
    """Aggregation was attempted without any per-node result."""


class TeardownError(DnsperfError):
    """Benchmark assets could not be deleted."""


class SinkError(DnsperfError):
    """A result sink rejected the summary document."""
