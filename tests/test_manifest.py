import json

import pytest

from sliceworker.kube import InMemoryClient, KubeError, NotFoundError, ObjectKey
from sliceworker.manifest import (
    Manifest,
    get_manifest_path,
    install_egress,
    install_ingress,
    uninstall_egress,
    uninstall_ingress,
)

NS = "kubeslice-system"

_PARTS = [
    ("deploy", "Deployment", ""),
    ("svc", "Service", ""),
    ("role", "Role", "-sds"),
    ("sa", "ServiceAccount", "-service-account"),
    ("rolebinding", "RoleBinding", "-sds"),
    ("gw", "Gateway", ""),
]


def _write_manifests(directory, prefix):
    for suffix, kind, name_suffix in _PARTS:
        doc = {
            "apiVersion": "v1",
            "kind": kind,
            "metadata": {
                "name": f"SLICE-istio-{prefix}gateway{name_suffix}",
                "namespace": NS,
                "labels": {"slice": "SLICE"},
            },
        }
        (directory / f"{prefix}-{suffix}.json").write_text(json.dumps(doc))


@pytest.fixture
def manifest_dir(tmp_path, monkeypatch):
    _write_manifests(tmp_path, "egress")
    _write_manifests(tmp_path, "ingress")
    monkeypatch.setenv("MANIFEST_PATH", str(tmp_path))
    return tmp_path


def _slice(name="green"):
    return {
        "apiVersion": "networking.kubeslice.io/v1beta1",
        "kind": "Slice",
        "metadata": {"name": name, "namespace": NS, "uid": "slice-uid"},
    }


def test_default_manifest_path(monkeypatch):
    monkeypatch.delenv("MANIFEST_PATH", raising=False)
    assert get_manifest_path("egress-deploy") == "../../files/manifests/egress-deploy.json"


def test_manifest_path_from_env(monkeypatch):
    monkeypatch.setenv("MANIFEST_PATH", "/data/manifests")
    assert get_manifest_path("egress-svc") == "/data/manifests/egress-svc.json"


def test_parse_deployment_into_slice(manifest_dir):
    m = Manifest("egress-deploy", "green")
    deploy = m.parse()
    assert deploy["metadata"]["name"] == "green-istio-egressgateway"
    assert deploy["metadata"]["labels"] == {"slice": "green"}
    assert deploy["kind"] == "Deployment"


def test_parse_missing_file(manifest_dir):
    with pytest.raises(FileNotFoundError):
        Manifest("does-not-exist", "green").parse()


def test_parse_invalid_json(manifest_dir):
    (manifest_dir / "broken.json").write_text("{not json")
    with pytest.raises(ValueError):
        Manifest("broken", "green").parse()


def test_install_egress_creates_owned_objects(manifest_dir):
    client = InMemoryClient([_slice()])
    install_egress(client, _slice())
    deploy = client.get("Deployment", ObjectKey("green-istio-egressgateway", NS))
    refs = deploy["metadata"]["ownerReferences"]
    assert [r["name"] for r in refs] == ["green"]
    assert refs[0]["controller"] is True
    sa = client.get(
        "ServiceAccount", ObjectKey("green-istio-egressgateway-service-account", NS)
    )
    assert sa["metadata"]["name"] == "green-istio-egressgateway-service-account"
    created = [c for c in client.calls if c[0] == "create"]
    assert len(created) == 6


def test_install_twice_ignores_existing(manifest_dir):
    client = InMemoryClient()
    install_ingress(client, _slice())
    install_ingress(client, _slice())
    gw = client.get("Gateway", ObjectKey("green-istio-ingressgateway", NS))
    assert gw["metadata"]["name"] == "green-istio-ingressgateway"


def test_install_propagates_other_errors(manifest_dir):
    client = InMemoryClient()
    client.failures[("create", "Service")] = KubeError("boom")
    with pytest.raises(KubeError, match="boom"):
        install_egress(client, _slice())


def test_uninstall_removes_installed(manifest_dir):
    client = InMemoryClient()
    install_egress(client, _slice())
    uninstall_egress(client, "green")
    with pytest.raises(NotFoundError):
        client.get("Deployment", ObjectKey("green-istio-egressgateway", NS))
    with pytest.raises(NotFoundError):
        client.get("RoleBinding", ObjectKey("green-istio-egressgateway-sds", NS))


def test_uninstall_when_nothing_installed():
    client = InMemoryClient()
    uninstall_ingress(client, "blue")
    deletes = [c for c in client.calls if c[0] == "delete"]
    assert len(deletes) == 6
    assert deletes[0][2] == ObjectKey("blue-istio-ingressgateway", NS)


def test_uninstall_propagates_other_errors():
    client = InMemoryClient()
    client.failures[("delete", "Role")] = KubeError("forbidden")
    with pytest.raises(KubeError, match="forbidden"):
        uninstall_egress(client, "green")