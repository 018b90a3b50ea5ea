import pytest

from k8s_dnsperf.manifests import (
    build_daemonset,
    build_records_configmap,
    build_service,
    generate_records,
    parse_selector,
)
from k8s_dnsperf.models import RecordType


@pytest.mark.parametrize("selector, expected", [
    ("node-role.kubernetes.io/worker=", {"node-role.kubernetes.io/worker": ""}),
    ("node-role.kubernetes.io/worker", {"node-role.kubernetes.io/worker": ""}),
    ("zone=a, disk=ssd", {"zone": "a", "disk": "ssd"}),
    ("", {}),
])
def test_parse_selector(selector: str, expected: dict) -> None:
    assert parse_selector(selector) == expected


@pytest.mark.parametrize("selector", ["=value", "a=1,,b=2", "a=1,a=2"])
def test_parse_selector_rejects_malformed_input(selector: str) -> None:
    with pytest.raises(ValueError):
        parse_selector(selector)


def test_generate_records() -> None:
    records = generate_records(["k8s-dnsperf-1", "k8s-dnsperf-2"], "k8s-dnsperf", RecordType.AAAA)

    assert records.splitlines() == [
        "kubernetes.default.svc.cluster.local AAAA",
        "k8s-dnsperf-1.k8s-dnsperf.svc.cluster.local AAAA",
        "k8s-dnsperf-2.k8s-dnsperf.svc.cluster.local AAAA",
    ]


def test_generate_records_without_services() -> None:
    assert generate_records([], "k8s-dnsperf", "A") == "kubernetes.default.svc.cluster.local A\n"


def test_build_service() -> None:
    service = build_service(3)

    assert service.metadata.name == "k8s-dnsperf-3"
    assert service.metadata.labels == {"app": "k8s-dnsperf"}
    assert service.spec.type == "ClusterIP"
    assert service.spec.ports[0].port == 80


def test_builders_return_independent_objects() -> None:
    first = build_daemonset({"zone": "a"})
    second = build_daemonset({"zone": "b"})
    first.spec.template.metadata.labels["extra"] = "x"

    assert second.spec.template.spec.node_selector == {"zone": "b"}
    assert "extra" not in second.spec.template.metadata.labels
    assert build_service(1).metadata.labels == {"app": "k8s-dnsperf"}


def test_build_daemonset_mounts_records() -> None:
    daemonset = build_daemonset({"node-role.kubernetes.io/worker": ""}, image="example/dnsperf:1")
    pod_spec = daemonset.spec.template.spec

    assert pod_spec.termination_grace_period_seconds == 0
    assert pod_spec.node_selector == {"node-role.kubernetes.io/worker": ""}
    container = pod_spec.containers[0]
    assert container.name == "k8s-dnsperf"
    assert container.image == "example/dnsperf:1"
    assert container.volume_mounts[0].mount_path == "/records"
    assert container.volume_mounts[0].sub_path == "records"
    assert pod_spec.volumes[0].config_map.name == "dnsperf-records"
    assert daemonset.spec.selector.match_labels == daemonset.spec.template.metadata.labels


def test_build_records_configmap() -> None:
    configmap = build_records_configmap("kubernetes.default.svc.cluster.local A\n")

    assert configmap.metadata.name == "dnsperf-records"
    assert configmap.data == {"records": "kubernetes.default.svc.cluster.local A\n"}
