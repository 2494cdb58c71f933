"""Mirrors slice gateways from the hub into SliceGateway objects on the worker cluster."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..events import Event, EventRecorder, EventType
from ..kube import (
    InMemoryClient,
    KubeError,
    NotFoundError,
    ObjectKey,
    Request,
    Result,
    set_controller_reference,
)
from ..logs import new_logger
from ..settings import CONTROL_PLANE_NAMESPACE, Settings

log = new_logger(__name__)

WORKER_SLICE_GATEWAY_KIND = "WorkerSliceGateway"
SLICE_GATEWAY_KIND = "SliceGateway"
SLICE_KIND = "Slice"
SECRET_KIND = "Secret"
MESH_API_VERSION = "networking.kubeslice.io/v1beta1"
APPLICATION_NAMESPACE_SELECTOR_LABEL_KEY = "kubeslice.io/slice"

Obj = dict[str, Any]


def _section(source: Obj, key: str) -> Obj:
    return source.get(key) or {}


def _gateway_config(spec: Obj) -> Obj:
    local = _section(spec, "localGatewayConfig")
    remote = _section(spec, "remoteGatewayConfig")
    return {
        "sliceName": spec.get("sliceName", ""),
        "sliceGatewayId": local.get("gatewayName", ""),
        "sliceGatewaySubnet": local.get("gatewaySubnet", ""),
        "sliceGatewayRemoteSubnet": remote.get("gatewaySubnet", ""),
        "sliceGatewayHostType": spec.get("gatewayHostType", ""),
        "sliceGatewayRemoteNodeIp": remote.get("nodeIp", ""),
        "sliceGatewayRemoteNodePort": remote.get("nodePort", 0),
        "sliceGatewayRemoteClusterId": remote.get("clusterName", ""),
        "sliceGatewayRemoteGatewayId": remote.get("gatewayName", ""),
        "sliceGatewayLocalVpnIp": local.get("vpnIp", ""),
        "sliceGatewayRemoteVpnIp": remote.get("vpnIp", ""),
        "sliceGatewayName": str(spec.get("gatewayNumber", 0)),
    }


@dataclass
class SliceGwReconciler:
    """Keeps the worker's SliceGateway and its certificates in step with the hub."""

    client: InMemoryClient
    mesh_client: InMemoryClient
    event_recorder: EventRecorder = field(default_factory=EventRecorder)
    cluster_name: str = field(default_factory=lambda: Settings.from_env().cluster_name)
    namespace: str = CONTROL_PLANE_NAMESPACE

    def reconcile(self, request: Request) -> Result:
        try:
            slice_gw = self.client.get(WORKER_SLICE_GATEWAY_KIND, request.key)
        except NotFoundError:
            log.info(
                "SliceGw resource not found in hub. Ignoring since object must be deleted"
            )
            return Result()

        name = slice_gw.get("metadata", {}).get("name", "")
        log.info("got sliceGw from hub", extra={"sliceGw": name})

        spec = slice_gw.get("spec") or {}
        owner_cluster = _section(spec, "localGatewayConfig").get("clusterName", "")
        if owner_cluster != self.cluster_name:
            log.info(
                "sliceGw doesn't belong to this cluster",
                extra={
                    "sliceGw": name,
                    "cluster": self.cluster_name,
                    "slicegw cluster": owner_cluster,
                },
            )
            return Result()

        self._create_certs(slice_gw, request)
        mesh_gw = self._create_slice_gw_on_worker(slice_gw)

        mesh_gw["status"] = dict(mesh_gw.get("status") or {})
        mesh_gw["status"]["config"] = _gateway_config(spec)
        try:
            self.mesh_client.update_status(mesh_gw)
        except KubeError:
            log.exception(
                "unable to update sliceGw status in spoke cluster",
                extra={"sliceGw": name},
            )
            raise
        return Result()

    def _create_certs(self, slice_gw: Obj, request: Request) -> None:
        name = slice_gw.get("metadata", {}).get("name", "")
        try:
            self.mesh_client.get(SECRET_KIND, ObjectKey(name, self.namespace))
            return
        except NotFoundError:
            pass
        except KubeError:
            log.exception(
                "unable to fetch slicegw certs from the spoke", extra={"sliceGw": name}
            )
            raise

        try:
            hub_certs = self.client.get(SECRET_KIND, request.key)
        except KubeError:
            log.exception(
                "unable to fetch slicegw certs from the hub", extra={"sliceGw": name}
            )
            raise

        mesh_certs: Obj = {
            "apiVersion": "v1",
            "kind": SECRET_KIND,
            "metadata": {"name": name, "namespace": self.namespace},
            "data": dict(hub_certs.get("data") or {}),
        }
        try:
            self.mesh_client.create(mesh_certs)
        except KubeError:
            log.exception(
                "unable to create secret to store slicegw certs in spoke cluster",
                extra={"sliceGw": name},
            )
            self.event_recorder.record(
                Event(
                    slice_gw,
                    EventType.WARNING,
                    "Error",
                    "Error creating secret for storing gateway certs on spoke cluster , "
                    f"slicegateway {name} cluster {self.cluster_name}",
                )
            )
            raise
        log.info("sliceGw secret created in spoke cluster")

    def _create_slice_gw_on_worker(self, slice_gw: Obj) -> Obj:
        """Return the worker's SliceGateway, creating it when it does not exist."""
        name = slice_gw.get("metadata", {}).get("name", "")
        slice_name = (slice_gw.get("spec") or {}).get("sliceName", "")
        try:
            return self.mesh_client.get(SLICE_GATEWAY_KIND, ObjectKey(name, self.namespace))
        except NotFoundError:
            pass
        except KubeError:
            log.exception(
                "unable to fetch sliceGw in spoke cluster", extra={"sliceGw": name}
            )
            raise

        log.info("SliceGw resource not found in spoke cluster, creating")
        mesh_gw: Obj = {
            "apiVersion": MESH_API_VERSION,
            "kind": SLICE_GATEWAY_KIND,
            "metadata": {
                "name": name,
                "namespace": self.namespace,
                "labels": {APPLICATION_NAMESPACE_SELECTOR_LABEL_KEY: slice_name},
            },
            "spec": {"sliceName": slice_name},
        }
        try:
            slice_on_worker = self.mesh_client.get(
                SLICE_KIND, ObjectKey(slice_name, self.namespace)
            )
        except KubeError:
            log.exception("Failed to get Slice CR")
            raise
        try:
            set_controller_reference(slice_on_worker, mesh_gw)
        except KubeError:
            log.exception("Failed to set slice as owner of slicegw")
            raise

        try:
            self.mesh_client.create(mesh_gw)
        except KubeError:
            log.exception(
                "unable to create sliceGw in spoke cluster", extra={"sliceGw": name}
            )
            self.event_recorder.record(
                Event(
                    slice_gw,
                    EventType.WARNING,
                    "Error",
                    f"Error creating slicegw on spoke cluster , slicegateway {name} "
                    f"cluster {self.cluster_name}",
                )
            )
            raise
        log.info("sliceGw created in spoke cluster", extra={"sliceGw": name})
        self.event_recorder.record(
            Event(
                slice_gw,
                EventType.NORMAL,
                "Created",
                f"Created slicegw on spoke cluster , slicegateway {name} "
                f"cluster {self.cluster_name}",
            )
        )
        self.event_recorder.record(
            Event(
                slice_on_worker,
                EventType.NORMAL,
                "Created",
                f"Created slicegw on spoke cluster , slicegateway {name}",
            )
        )
        return mesh_gw