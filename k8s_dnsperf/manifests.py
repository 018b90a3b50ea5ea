"""Builders for the Kubernetes objects deployed by k8s-dnsperf.

Every builder returns a new object so nothing leaks between runs.
"""

from typing import Dict, Iterable

from kubernetes import client

from .models import RecordType

K8S_DNSPERF = 'k8s-dnsperf'
APP_LABELS = {'app': K8S_DNSPERF}
APP_LABEL_SELECTOR = 'app=' + K8S_DNSPERF

RECORDS_CONFIGMAP = 'dnsperf-records'
RECORDS_KEY = 'records'
RECORDS_PATH = '/records'
RECORDS_VOLUME = 'dnsperf-records'

DEFAULT_IMAGE = 'quay.io/cloud-bulldozer/k8s-dnsperf:latest'

# Always resolvable, used as the first record of every run
KUBERNETES_SERVICE_FQDN = 'kubernetes.default.svc.cluster.local'


def parse_selector(selector: str) -> Dict[str, str]:
    """Convert a `key=value,key2=value2` node selector into a label map.

    A key without `=` maps to an empty value, as does `key=`.

    Raises:
        ValueError: the selector holds an empty key or a duplicated key.
    """
    labels: Dict[str, str] = {}
    if not selector or not selector.strip():
        return labels
    for term in selector.split(','):
        key, _, value = term.partition('=')
        key = key.strip()
        value = value.strip()
        if not key:
            raise ValueError(f"invalid selector {selector!r}: empty key in {term!r}")
        if key in labels:
            raise ValueError(f"invalid selector {selector!r}: duplicated key {key!r}")
        labels[key] = value
    return labels


def service_fqdn(name: str, namespace: str) -> str:
    return f"{name}.{namespace}.svc.cluster.local"


def generate_records(services: Iterable[str], namespace: str, record_type: RecordType) -> str:
    """Build the dnsperf data file: one `<fqdn> <type>` line per record."""
    record_type = RecordType(record_type).value
    lines = [f"{KUBERNETES_SERVICE_FQDN} {record_type}"]
    for name in services:
        lines.append(f"{service_fqdn(name, namespace)} {record_type}")
    return '\n'.join(lines) + '\n'


def build_namespace(name: str = K8S_DNSPERF) -> client.V1Namespace:
    return client.V1Namespace(metadata=client.V1ObjectMeta(name=name))


def service_name(index: int) -> str:
    return f"{K8S_DNSPERF}-{index}"


def build_service(index: int, namespace: str = K8S_DNSPERF) -> client.V1Service:
    return client.V1Service(
        metadata=client.V1ObjectMeta(
            name=service_name(index),
            namespace=namespace,
            labels=dict(APP_LABELS),
        ),
        spec=client.V1ServiceSpec(
            type='ClusterIP',
            ports=[client.V1ServicePort(port=80, target_port=80)],
        ),
    )


def build_records_configmap(records: str, namespace: str = K8S_DNSPERF) -> client.V1ConfigMap:
    return client.V1ConfigMap(
        metadata=client.V1ObjectMeta(name=RECORDS_CONFIGMAP, namespace=namespace),
        data={RECORDS_KEY: records},
    )


def build_daemonset(node_selector: Dict[str, str], image: str = DEFAULT_IMAGE,
                    namespace: str = K8S_DNSPERF) -> client.V1DaemonSet:
    """One dnsperf client pod per node matching node_selector."""
    container = client.V1Container(
        name=K8S_DNSPERF,
        image=image,
        volume_mounts=[
            client.V1VolumeMount(
                name=RECORDS_VOLUME,
                mount_path=RECORDS_PATH,
                sub_path=RECORDS_KEY,
            ),
        ],
    )
    volume = client.V1Volume(
        name=RECORDS_VOLUME,
        config_map=client.V1ConfigMapVolumeSource(name=RECORDS_CONFIGMAP),
    )
    return client.V1DaemonSet(
        metadata=client.V1ObjectMeta(name=K8S_DNSPERF, namespace=namespace),
        spec=client.V1DaemonSetSpec(
            selector=client.V1LabelSelector(match_labels=dict(APP_LABELS)),
            template=client.V1PodTemplateSpec(
                metadata=client.V1ObjectMeta(labels=dict(APP_LABELS)),
                spec=client.V1PodSpec(
                    termination_grace_period_seconds=0,
                    node_selector=dict(node_selector),
                    containers=[container],
                    volumes=[volume],
                ),
            ),
        ),
    )
