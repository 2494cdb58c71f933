"""Mirrors slice configurations from the hub into Slice objects on the worker cluster."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from ..events import Event, EventRecorder, EventType
from ..kube import (
    InMemoryClient,
    NotFoundError,
    ObjectKey,
    Request,
    Result,
    add_finalizer,
    contains_finalizer,
    remove_finalizer,
    retry_on_conflict,
)
from ..logs import new_logger
from ..settings import CONTROL_PLANE_NAMESPACE, Settings

log = new_logger(__name__)

SLICE_FINALIZER = "controller.kubeslice.io/hubSpokeSlice-finalizer"
WORKER_SLICE_KIND = "WorkerSliceConfig"
SLICE_KIND = "Slice"
SLICE_API_VERSION = "networking.kubeslice.io/v1beta1"

Obj = dict[str, Any]


def _section(source: Optional[Obj], key: str) -> Obj:
    return (source or {}).get(key) or {}


def _gateway_options(config: Obj, key: str) -> Obj:
    return {"enabled": bool(_section(config, key).get("enabled", False))}


@dataclass
class SliceReconciler:
    """Keeps the worker's Slice in step with its WorkerSliceConfig on the hub."""

    client: InMemoryClient
    mesh_client: InMemoryClient
    event_recorder: EventRecorder = field(default_factory=EventRecorder)
    cluster_name: str = field(default_factory=lambda: Settings.from_env().cluster_name)
    namespace: str = CONTROL_PLANE_NAMESPACE

    def reconcile(self, request: Request) -> Result:
        try:
            worker_slice = self.client.get(WORKER_SLICE_KIND, request.key)
        except NotFoundError:
            log.info(
                "Slice resource not found in hub. Ignoring since object must be deleted",
                extra={"sliceconfig": str(request.key)},
            )
            return Result()

        log.info("got slice from hub", extra={"slice": request.name})
        if self._handle_deletion(worker_slice, request):
            return Result()

        slice_name = worker_slice.get("spec", {}).get("sliceName", "")
        try:
            mesh_slice = self.mesh_client.get(
                SLICE_KIND, ObjectKey(slice_name, self.namespace)
            )
        except NotFoundError:
            self._create_mesh_slice(worker_slice, slice_name)
            return Result()

        try:
            self.update_slice_config(mesh_slice, worker_slice)
        except Exception:
            log.exception(
                "unable to update slice status in spoke cluster",
                extra={"slice": slice_name},
            )
            raise
        return Result()

    def _create_mesh_slice(self, worker_slice: Obj, slice_name: str) -> None:
        log.info("Slice resource not found in spoke cluster, creating")
        mesh_slice: Obj = {
            "apiVersion": SLICE_API_VERSION,
            "kind": SLICE_KIND,
            "metadata": {"name": slice_name, "namespace": self.namespace},
            "spec": {},
        }
        try:
            self.mesh_client.create(mesh_slice)
        except Exception:
            log.exception(
                "unable to create slice in spoke cluster", extra={"slice": slice_name}
            )
            self.event_recorder.record(
                Event(
                    worker_slice,
                    EventType.WARNING,
                    "Error",
                    f"Error creating slice on spoke cluster , slice {slice_name} "
                    f"cluster {self.cluster_name}",
                )
            )
            raise
        log.info("slice created in spoke cluster")
        self.event_recorder.record(
            Event(
                worker_slice,
                EventType.NORMAL,
                "Created",
                f"Created slice on spoke cluster , slice {slice_name} "
                f"cluster {self.cluster_name}",
            )
        )
        try:
            self.update_slice_config(mesh_slice, worker_slice)
        except Exception:
            log.exception(
                "unable to update slice status in spoke cluster",
                extra={"slice": slice_name},
            )
            raise
        log.info("slice status updated in spoke cluster")

    def update_slice_config(self, mesh_slice: Obj, worker_slice: Obj) -> None:
        """Copy the hub's slice settings into the worker Slice's status and save it."""
        spec = worker_slice.get("spec") or {}
        status = mesh_slice.setdefault("status", {}) or {}
        mesh_slice["status"] = status

        config = status.get("sliceConfig")
        if config is None:
            config = {
                "sliceDisplayName": spec.get("sliceName", ""),
                "sliceSubnet": spec.get("sliceSubnet", ""),
                "sliceIpam": {
                    "sliceIpamType": spec.get("sliceIpamType", ""),
                    "ipamClusterOctet": spec.get("ipamClusterOctet", 0),
                },
                "clusterSubnetCIDR": spec.get("clusterSubnetCIDR", ""),
                "sliceType": spec.get("sliceType", ""),
            }
            status["sliceConfig"] = config

        if not config.get("sliceSubnet"):
            config["sliceSubnet"] = spec.get("sliceSubnet", "")

        ipam = config.setdefault("sliceIpam", {})
        if not ipam.get("ipamClusterOctet"):
            ipam["ipamClusterOctet"] = spec.get("ipamClusterOctet", 0)

        spec_cidr = spec.get("clusterSubnetCIDR", "")
        if not config.get("clusterSubnetCIDR") or config["clusterSubnetCIDR"] != spec_cidr:
            config["clusterSubnetCIDR"] = spec_cidr

        qos = _section(spec, "qosProfileDetails")
        config["qosProfileDetails"] = {
            "queueType": qos.get("queueType", ""),
            "bandwidthCeilingKbps": qos.get("bandwidthCeilingKbps", 0),
            "bandwidthGuaranteedKbps": qos.get("bandwidthGuaranteedKbps", 0),
            "dscpClass": qos.get("dscpClass", ""),
            "tcType": qos.get("tcType", ""),
            "priority": qos.get("priority", 0),
        }

        isolation = _section(spec, "namespaceIsolationProfile")
        config["namespaceIsolationProfile"] = {
            "isolationEnabled": bool(isolation.get("isolationEnabled", False)),
            "allowedNamespaces": list(isolation.get("allowedNamespaces") or []),
            "applicationNamespaces": list(isolation.get("applicationNamespaces") or []),
        }

        gateway = _section(spec, "externalGatewayConfig")
        config["externalGatewayConfig"] = {
            "gatewayType": gateway.get("gatewayType", ""),
            "egress": _gateway_options(gateway, "egress"),
            "ingress": _gateway_options(gateway, "ingress"),
            "nsIngress": _gateway_options(gateway, "nsIngress"),
        }

        self.mesh_client.update_status(mesh_slice)

    def delete_slice_resource_on_worker(self, worker_slice: Obj) -> None:
        """Delete the worker's Slice for this config; a missing one is not an error."""
        slice_name = worker_slice.get("spec", {}).get("sliceName", "")
        target = {
            "apiVersion": SLICE_API_VERSION,
            "kind": SLICE_KIND,
            "metadata": {"name": slice_name, "namespace": self.namespace},
        }
        try:
            self.mesh_client.delete(target)
        except NotFoundError:
            return
        log.info("Deleted Slice CR on spoke cluster", extra={"slice": slice_name})

    def _handle_deletion(self, worker_slice: Obj, request: Request) -> bool:
        """Manage the finalizer; return True when reconciliation must stop."""
        meta = worker_slice.get("metadata") or {}
        if not meta.get("deletionTimestamp"):
            if not contains_finalizer(worker_slice, SLICE_FINALIZER):
                add_finalizer(worker_slice, SLICE_FINALIZER)
                self.client.update(worker_slice)
            return False

        if contains_finalizer(worker_slice, SLICE_FINALIZER):
            self.delete_slice_resource_on_worker(worker_slice)

            def drop_finalizer() -> None:
                latest = self.client.get(WORKER_SLICE_KIND, request.key)
                remove_finalizer(latest, SLICE_FINALIZER)
                self.client.update(latest)

            retry_on_conflict(drop_finalizer)
        return True