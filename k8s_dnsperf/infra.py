"""Deploy, wait for and destroy the k8s-dnsperf assets."""

import logging
import os
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import List, Optional, Tuple

from kubernetes import client, config, watch
from kubernetes.client.rest import ApiException
from urllib3.exceptions import HTTPError

from .errors import ProvisioningError, ReadinessTimeoutError, TeardownError
from .manifests import (
    APP_LABEL_SELECTOR,
    DEFAULT_IMAGE,
    K8S_DNSPERF,
    build_daemonset,
    build_namespace,
    build_records_configmap,
    build_service,
    generate_records,
    parse_selector,
)
from .models import FleetHandle, FleetSpec, InstanceRef
from .ratelimit import RateLimitTimeout, TokenBucket

logger = logging.getLogger(__name__)

QPS = 100
BURST = 100
PROVISION_TIMEOUT = 300


def new_api_clients(kubeconfig: Optional[str] = None) -> Tuple[client.CoreV1Api, client.AppsV1Api]:
    """Load cluster credentials and return the core and apps API clients.

    kubeconfig falls back to $KUBECONFIG, then ~/.kube/config, then the
    in-cluster service account.
    """
    kubeconfig = kubeconfig or os.environ.get('KUBECONFIG')
    if not kubeconfig:
        default_path = os.path.join(os.path.expanduser('~'), '.kube', 'config')
        if os.path.exists(default_path):
            kubeconfig = default_path
    if kubeconfig:
        logger.debug("Using kubeconfig %s", kubeconfig)
        config.load_kube_config(config_file=kubeconfig)
    else:
        logger.debug("Using in-cluster configuration")
        config.load_incluster_config()
    return client.CoreV1Api(), client.AppsV1Api()


def _is_ready(daemonset: client.V1DaemonSet) -> bool:
    status = daemonset.status
    if status is None or not status.desired_number_scheduled:
        return False
    return (status.number_ready or 0) == status.desired_number_scheduled


def _counts(daemonset: client.V1DaemonSet) -> Tuple[int, int]:
    status = daemonset.status
    if status is None:
        return 0, 0
    return status.number_ready or 0, status.desired_number_scheduled or 0


class FleetOrchestrator:
    """Creates the namespaced dnsperf fleet and tears it down."""

    def __init__(self, core_v1: client.CoreV1Api, apps_v1: client.AppsV1Api,
                 qps: float = QPS, burst: int = BURST, image: str = DEFAULT_IMAGE,
                 provision_timeout: float = PROVISION_TIMEOUT, namespace: str = K8S_DNSPERF):
        self.core_v1 = core_v1
        self.apps_v1 = apps_v1
        self.qps = qps
        self.burst = burst
        self.image = image
        self.provision_timeout = provision_timeout
        self.namespace = namespace

    def provision(self, spec: FleetSpec) -> FleetHandle:
        """Create the namespace, services, records ConfigMap and DaemonSet.

        Raises:
            ProvisioningError: any object could not be created.
        """
        deadline = time.monotonic() + self.provision_timeout
        handle = FleetHandle(spec=spec, namespace=self.namespace)
        logger.info("Creating benchmark assets")
        try:
            node_selector = parse_selector(spec.selector)
        except ValueError as e:
            raise ProvisioningError(str(e)) from e

        self._create_namespace()
        self._create_services(spec.records - 1, deadline)

        try:
            services = self.core_v1.list_namespaced_service(self.namespace, label_selector=APP_LABEL_SELECTOR)
        except ApiException as e:
            raise ProvisioningError(f"failed to list Services: {e.reason}") from e
        handle.services = sorted(svc.metadata.name for svc in services.items)

        records = generate_records(handle.services, self.namespace, spec.record_type)
        configmap = build_records_configmap(records, namespace=self.namespace)
        logger.debug("Creating ConfigMap: %s", configmap.metadata.name)
        try:
            self.core_v1.create_namespaced_config_map(self.namespace, configmap)
        except ApiException as e:
            raise ProvisioningError(f"failed to create ConfigMap: {e.reason}") from e
        handle.configmap = configmap.metadata.name

        daemonset = build_daemonset(node_selector, image=self.image, namespace=self.namespace)
        logger.debug("Creating DaemonSet: %s", daemonset.metadata.name)
        try:
            self.apps_v1.create_namespaced_daemon_set(self.namespace, daemonset)
        except ApiException as e:
            raise ProvisioningError(f"failed to create DaemonSet: {e.reason}") from e
        handle.daemonset = daemonset.metadata.name
        return handle

    def _create_namespace(self) -> None:
        logger.debug("Creating namespace: %s", self.namespace)
        try:
            self.core_v1.create_namespace(build_namespace(self.namespace))
        except ApiException as e:
            if e.status != 409:
                raise ProvisioningError(f"failed to create Namespace: {e.reason}") from e
            logger.debug("Namespace %s already exists", self.namespace)

    def _create_services(self, count: int, deadline: float) -> None:
        """Create count services concurrently, paced by a token bucket."""
        if count <= 0:
            return
        logger.debug("Creating %d services", count)
        limiter = TokenBucket(self.qps, self.burst)

        def create(index: int) -> None:
            try:
                limiter.wait(deadline=deadline)
            except RateLimitTimeout as e:
                raise ProvisioningError(f"timed out waiting to create Service {index}: {e}") from e
            try:
                self.core_v1.create_namespaced_service(self.namespace, build_service(index, self.namespace))
            except ApiException as e:
                raise ProvisioningError(f"failed to create Service {index}: {e.reason}") from e

        errors = []
        with ThreadPoolExecutor(max_workers=min(self.burst, count)) as executor:
            futures = [executor.submit(create, j) for j in range(1, count + 1)]
            for future in as_completed(futures):
                if future.cancelled():
                    continue
                error = future.exception()
                if error is not None:
                    errors.append(error)
                    # Skip whatever has not started yet
                    for pending in futures:
                        pending.cancel()
        if errors:
            if len(errors) > 1:
                logger.debug("%d service creations failed", len(errors))
            raise errors[0]

    def await_ready(self, handle: FleetHandle, timeout: float) -> List[InstanceRef]:
        """Block until every DaemonSet pod is ready and return the running pods.

        Raises:
            ReadinessTimeoutError: the DaemonSet was not ready within timeout seconds.
        """
        name = handle.daemonset or K8S_DNSPERF
        deadline = time.monotonic() + timeout
        logger.info("Waiting for DaemonSet %s/%s pods to be running", handle.namespace, name)
        daemonset = self.apps_v1.read_namespaced_daemon_set(name, handle.namespace)
        ready, desired = _counts(daemonset)
        resource_version = daemonset.metadata.resource_version if daemonset.metadata else None

        while not _is_ready(daemonset):
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise ReadinessTimeoutError(
                    f"DaemonSet {handle.namespace}/{name} not ready after {timeout}s ({ready}/{desired} pods ready)",
                    ready=ready, desired=desired)
            w = watch.Watch()
            try:
                for event in w.stream(self.apps_v1.list_namespaced_daemon_set, handle.namespace,
                                      field_selector=f"metadata.name={name}",
                                      resource_version=resource_version,
                                      timeout_seconds=max(1, int(remaining))):
                    if event['type'] not in ('ADDED', 'MODIFIED'):
                        continue
                    daemonset = event['object']
                    resource_version = daemonset.metadata.resource_version
                    ready, desired = _counts(daemonset)
                    logger.debug("DaemonSet %s: %d/%d pods ready", name, ready, desired)
                    if _is_ready(daemonset) or time.monotonic() >= deadline:
                        break
            finally:
                w.stop()

        pods = self.core_v1.list_namespaced_pod(handle.namespace, label_selector=APP_LABEL_SELECTOR)
        handle.instances = [
            InstanceRef(name=pod.metadata.name, namespace=pod.metadata.namespace, node=pod.spec.node_name)
            for pod in pods.items
            if pod.status is not None and pod.status.phase == 'Running'
        ]
        logger.info("%d dnsperf pods running", len(handle.instances))
        return handle.instances

    def teardown(self, handle: Optional[FleetHandle] = None) -> None:
        """Delete the benchmark namespace and everything in it.

        Raises:
            TeardownError: the namespace could not be deleted.
        """
        namespace = handle.namespace if handle is not None else self.namespace
        logger.info("Destroying benchmark assets")
        try:
            self.core_v1.delete_namespace(namespace)
        except ApiException as e:
            if e.status == 404:
                logger.debug("Namespace %s already gone", namespace)
                return
            raise TeardownError(f"failed to delete Namespace {namespace}: {e.reason}") from e
        except (HTTPError, OSError) as e:
            raise TeardownError(f"failed to delete Namespace {namespace}: {e}") from e
