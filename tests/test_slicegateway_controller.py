import pytest

from sliceworker.events import EventRecorder, EventType
from sliceworker.hub.slicegateway_controller import SliceGwReconciler
from sliceworker.kube import (
    InMemoryClient,
    KubeError,
    NotFoundError,
    ObjectKey,
    Request,
    Result,
)

HUB_NS = "project-namespace"
WORKER_NS = "kubeslice-system"
GW_NAME = "test-slice-cluster-1-cluster-2"


def hub_gateway(cluster="cluster-1"):
    return {
        "kind": "WorkerSliceGateway",
        "metadata": {"name": GW_NAME, "namespace": HUB_NS},
        "spec": {
            "sliceName": "test-slice",
            "gatewayHostType": "Server",
            "gatewayNumber": 1,
            "localGatewayConfig": {
                "clusterName": cluster,
                "gatewayName": "local-gw",
                "gatewaySubnet": "10.1.1.0/24",
                "vpnIp": "10.10.1.1",
            },
            "remoteGatewayConfig": {
                "clusterName": "cluster-2",
                "gatewayName": "remote-gw",
                "gatewaySubnet": "10.1.2.0/24",
                "nodeIp": "192.168.1.1",
                "nodePort": 8080,
                "vpnIp": "10.10.1.2",
            },
        },
    }


def hub_secret():
    return {
        "kind": "Secret",
        "metadata": {"name": GW_NAME, "namespace": HUB_NS},
        "data": {"ca.crt": "Y2E="},
    }


def worker_slice():
    return {
        "apiVersion": "networking.kubeslice.io/v1beta1",
        "kind": "Slice",
        "metadata": {"name": "test-slice", "namespace": WORKER_NS},
        "spec": {},
    }


def make(hub_objs, mesh_objs):
    hub = InMemoryClient(hub_objs)
    mesh = InMemoryClient(mesh_objs)
    reconciler = SliceGwReconciler(
        client=hub, mesh_client=mesh, event_recorder=EventRecorder(), cluster_name="cluster-1"
    )
    return hub, mesh, reconciler


REQUEST = Request(GW_NAME, HUB_NS)


def test_missing_gateway_is_ignored():
    _, mesh, reconciler = make([], [worker_slice()])
    assert reconciler.reconcile(REQUEST) == Result()
    assert mesh.calls == []


def test_gateway_of_other_cluster_is_ignored():
    _, mesh, reconciler = make([hub_gateway("cluster-9"), hub_secret()], [worker_slice()])
    assert reconciler.reconcile(REQUEST) == Result()
    with pytest.raises(NotFoundError):
        mesh.get("SliceGateway", ObjectKey(GW_NAME, WORKER_NS))
    assert reconciler.event_recorder.events == []


def test_creates_secret_gateway_and_status():
    _, mesh, reconciler = make([hub_gateway(), hub_secret()], [worker_slice()])
    assert reconciler.reconcile(REQUEST) == Result()

    secret = mesh.get("Secret", ObjectKey(GW_NAME, WORKER_NS))
    assert secret["data"] == {"ca.crt": "Y2E="}

    gw = mesh.get("SliceGateway", ObjectKey(GW_NAME, WORKER_NS))
    assert gw["spec"] == {"sliceName": "test-slice"}
    assert gw["metadata"]["labels"] == {"kubeslice.io/slice": "test-slice"}
    owners = gw["metadata"]["ownerReferences"]
    assert [(o["kind"], o["name"], o["controller"]) for o in owners] == [
        ("Slice", "test-slice", True)
    ]

    config = gw["status"]["config"]
    assert config["sliceName"] == "test-slice"
    assert config["sliceGatewayId"] == "local-gw"
    assert config["sliceGatewaySubnet"] == "10.1.1.0/24"
    assert config["sliceGatewayRemoteSubnet"] == "10.1.2.0/24"
    assert config["sliceGatewayHostType"] == "Server"
    assert config["sliceGatewayRemoteNodeIp"] == "192.168.1.1"
    assert config["sliceGatewayRemoteNodePort"] == 8080
    assert config["sliceGatewayRemoteClusterId"] == "cluster-2"
    assert config["sliceGatewayRemoteGatewayId"] == "remote-gw"
    assert config["sliceGatewayLocalVpnIp"] == "10.10.1.1"
    assert config["sliceGatewayRemoteVpnIp"] == "10.10.1.2"
    assert config["sliceGatewayName"] == str(1)


def test_creation_records_two_normal_events():
    _, _, reconciler = make([hub_gateway(), hub_secret()], [worker_slice()])
    reconciler.reconcile(REQUEST)
    events = reconciler.event_recorder.events
    assert [e.event_type for e in events] == [EventType.NORMAL, EventType.NORMAL]
    assert [e.reason for e in events] == ["Created", "Created"]
    assert events[0].obj["kind"] == "WorkerSliceGateway"
    assert events[1].obj["kind"] == "Slice"


def test_existing_secret_is_kept():
    existing = {
        "kind": "Secret",
        "metadata": {"name": GW_NAME, "namespace": WORKER_NS},
        "data": {"old": "b2xk"},
    }
    _, mesh, reconciler = make([hub_gateway(), hub_secret()], [worker_slice(), existing])
    reconciler.reconcile(REQUEST)
    assert mesh.get("Secret", ObjectKey(GW_NAME, WORKER_NS))["data"] == {"old": "b2xk"}


def test_missing_hub_secret_raises():
    _, mesh, reconciler = make([hub_gateway()], [worker_slice()])
    with pytest.raises(NotFoundError):
        reconciler.reconcile(REQUEST)
    with pytest.raises(NotFoundError):
        mesh.get("SliceGateway", ObjectKey(GW_NAME, WORKER_NS))


def test_missing_worker_slice_raises():
    _, mesh, reconciler = make([hub_gateway(), hub_secret()], [])
    with pytest.raises(NotFoundError):
        reconciler.reconcile(REQUEST)
    with pytest.raises(NotFoundError):
        mesh.get("SliceGateway", ObjectKey(GW_NAME, WORKER_NS))


def test_create_failure_records_warning():
    _, mesh, reconciler = make([hub_gateway(), hub_secret()], [worker_slice()])
    mesh.failures[("create", "SliceGateway")] = KubeError("boom")
    with pytest.raises(KubeError, match="boom"):
        reconciler.reconcile(REQUEST)
    events = reconciler.event_recorder.events
    assert [(e.event_type, e.reason) for e in events] == [(EventType.WARNING, "Error")]


def test_existing_gateway_only_gets_status():
    existing = {
        "kind": "SliceGateway",
        "metadata": {"name": GW_NAME, "namespace": WORKER_NS},
        "spec": {"sliceName": "test-slice"},
    }
    _, mesh, reconciler = make([hub_gateway(), hub_secret()], [worker_slice(), existing])
    reconciler.reconcile(REQUEST)
    assert reconciler.event_recorder.events == []
    gw = mesh.get("SliceGateway", ObjectKey(GW_NAME, WORKER_NS))
    assert gw["status"]["config"]["sliceGatewayRemoteGatewayId"] == "remote-gw"
    assert "ownerReferences" not in gw["metadata"]