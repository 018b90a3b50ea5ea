"""Run dnsperf inside a client pod over the exec subresource."""

import logging
import shlex
import threading
import time
from typing import Optional

import yaml
from kubernetes import client
from kubernetes.client.rest import ApiException
from kubernetes.stream import stream

from .errors import RemoteExecutionError
from .manifests import K8S_DNSPERF, RECORDS_PATH
from .models import InstanceRef, RawOutput

logger = logging.getLogger(__name__)

ERROR_CHANNEL = 3


def build_command(server: str, port: int, duration: int, clients: int, timeout: int,
                  records_path: str = RECORDS_PATH) -> str:
    """Build the dnsperf command line run in every pod."""
    return (f"dnsperf -s {server} -p {port} -l {duration} -c {clients} "
            f"-t {timeout} -d {records_path}")


def _exit_code(status_text: str) -> int:
    """Read the exit code from the exec status sent on the error channel.

    WSClient.returncode is not used: it assumes every failure carries an
    ExitCode cause and drops the status message.
    """
    if not status_text:
        raise ValueError("stream closed without an exit status")
    status = yaml.safe_load(status_text)
    if status.get('status') == 'Success':
        return 0
    for cause in (status.get('details') or {}).get('causes') or []:
        if cause.get('reason') == 'ExitCode':
            return int(cause['message'])
    raise ValueError(status.get('message') or status_text)


class RemoteExecutor:
    """Streams a command into a pod's container and captures its output."""

    def __init__(self, core_v1: client.CoreV1Api, container: str = K8S_DNSPERF, poll_interval: float = 1.0):
        self.core_v1 = core_v1
        self.container = container
        self.poll_interval = poll_interval

    def run(self, instance: InstanceRef, command: str,
            cancel: Optional[threading.Event] = None, timeout: Optional[float] = None) -> RawOutput:
        """Run command in instance and wait for it to exit.

        Raises:
            RemoteExecutionError: the stream failed, the command exited non-zero,
                cancel was set or timeout elapsed. Captured stderr is attached.
        """
        logger.debug("Running command in %s: %s", instance.name, command)
        try:
            resp = stream(
                self.core_v1.connect_get_namespaced_pod_exec,
                instance.name,
                instance.namespace,
                container=self.container,
                command=shlex.split(command),
                stdin=False,
                stdout=True,
                stderr=True,
                tty=False,
                _preload_content=False,
            )
        except ApiException as e:
            raise RemoteExecutionError(f"exec failed in pod {instance.name}: {e.reason}", pod=instance.name) from e

        stdout = []
        stderr = []
        status = []
        deadline = time.monotonic() + timeout if timeout is not None else None
        try:
            while resp.is_open():
                resp.update(timeout=self.poll_interval)
                if resp.peek_stdout():
                    stdout.append(resp.read_stdout())
                if resp.peek_stderr():
                    stderr.append(resp.read_stderr())
                if cancel is not None and cancel.is_set():
                    raise RemoteExecutionError(f"exec in pod {instance.name} cancelled",
                                               pod=instance.name, stderr=''.join(stderr))
                if deadline is not None and time.monotonic() > deadline:
                    raise RemoteExecutionError(f"exec in pod {instance.name} timed out after {timeout}s",
                                               pod=instance.name, stderr=''.join(stderr))
            # Drain whatever arrived with the close frame
            stdout.append(resp.read_stdout())
            stderr.append(resp.read_stderr())
            status.append(resp.read_channel(ERROR_CHANNEL))
        except RemoteExecutionError:
            raise
        except Exception as e:
            raise RemoteExecutionError(f"exec stream to pod {instance.name} failed: {e}",
                                       pod=instance.name, stderr=''.join(stderr)) from e
        finally:
            resp.close()

        out = ''.join(stdout)
        err = ''.join(stderr)
        try:
            code = _exit_code(''.join(status))
        except (ValueError, AttributeError, yaml.YAMLError) as e:
            raise RemoteExecutionError(f"exec in pod {instance.name} failed: {e}", pod=instance.name, stderr=err) from e
        if code != 0:
            logger.error("Exec failed in pod %s with exit code %d, stdout: %s", instance.name, code, out)
            raise RemoteExecutionError(f"command exited with code {code} in pod {instance.name}",
                                       pod=instance.name, stderr=err)
        logger.debug("Output from %s: %s", instance.name, out)
        return RawOutput(stdout=out, stderr=err)
