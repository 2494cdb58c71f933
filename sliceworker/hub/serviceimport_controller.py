"""Mirrors service imports from the hub into ServiceImport objects on the worker cluster."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from ..events import Event, EventRecorder, EventType
from ..kube import (
    InMemoryClient,
    KubeError,
    NotFoundError,
    ObjectKey,
    Request,
    Result,
    add_finalizer,
    contains_finalizer,
    remove_finalizer,
)
from ..logs import new_logger
from ..settings import CONTROL_PLANE_NAMESPACE, Settings

log = new_logger(__name__)

SERVICE_IMPORT_FINALIZER = "controller.kubeslice.io/hubWorkerServiceImport-finalizer"
APPLICATION_NAMESPACE_SELECTOR_LABEL_KEY = "kubeslice.io/slice"
WORKER_SERVICE_IMPORT_KIND = "WorkerServiceImport"
SERVICE_IMPORT_KIND = "ServiceImport"
SLICE_KIND = "Slice"
MESH_API_VERSION = "networking.kubeslice.io/v1beta1"
SLICE_DNS_SUFFIX = ".svc.slice.local"
SLICE_WAIT_SECONDS = 30.0

_PROTOCOLS = frozenset({"TCP", "UDP", "SCTP"})

Obj = dict[str, Any]


def get_protocol(protocol: str) -> str:
    """Return the protocol when it is TCP, UDP or SCTP, otherwise an empty string."""
    return protocol if protocol in _PROTOCOLS else ""


def _spec(svcim: Obj) -> Obj:
    return svcim.get("spec") or {}


def mesh_service_import_ports(svcim: Obj) -> list[Obj]:
    """Return the worker ServiceImport ports for a hub service import."""
    return [
        {
            "name": port.get("name", ""),
            "containerPort": port.get("port", 0),
            "protocol": get_protocol(port.get("protocol", "")),
        }
        for port in _spec(svcim).get("serviceDiscoveryPorts") or []
    ]


def mesh_service_import_endpoints(svcim: Obj) -> list[Obj]:
    """Return the worker ServiceImport endpoints for a hub service import."""
    return [
        {
            "name": endpoint.get("podName", ""),
            "ip": endpoint.get("nsmIp", ""),
            "clusterId": endpoint.get("cluster", ""),
            "dnsName": endpoint.get("dnsName", ""),
        }
        for endpoint in _spec(svcim).get("serviceDiscoveryEndpoints") or []
    ]


def mesh_service_import_object(svcim: Obj) -> Obj:
    """Build the worker ServiceImport object for a hub service import."""
    spec = _spec(svcim)
    name = spec.get("serviceName", "")
    namespace = spec.get("serviceNamespace", "")
    slice_name = spec.get("sliceName", "")
    return {
        "apiVersion": MESH_API_VERSION,
        "kind": SERVICE_IMPORT_KIND,
        "metadata": {
            "name": name,
            "namespace": namespace,
            "labels": {APPLICATION_NAMESPACE_SELECTOR_LABEL_KEY: slice_name},
        },
        "spec": {
            "slice": slice_name,
            "dnsName": f"{name}.{namespace}{SLICE_DNS_SUFFIX}",
            "ports": mesh_service_import_ports(svcim),
        },
    }


@dataclass
class ServiceImportReconciler:
    """Keeps the worker's ServiceImport in step with its WorkerServiceImport on the hub."""

    client: InMemoryClient
    mesh_client: InMemoryClient
    event_recorder: EventRecorder = field(default_factory=EventRecorder)
    cluster_name: str = field(default_factory=lambda: Settings.from_env().cluster_name)
    namespace: str = CONTROL_PLANE_NAMESPACE

    def reconcile(self, request: Request) -> Result:
        try:
            svcim = self.client.get(WORKER_SERVICE_IMPORT_KIND, request.key)
        except NotFoundError:
            log.info(
                "spoke service import resource not found in hub. "
                "Ignoring since object must be deleted"
            )
            return Result()

        log.info("got service import from hub", extra={"serviceimport": request.name})
        if self._handle_deletion(svcim):
            return Result()

        spec = _spec(svcim)
        svcim_name = svcim.get("metadata", {}).get("name", "")
        try:
            self.mesh_client.get(
                SLICE_KIND, ObjectKey(spec.get("sliceName", ""), self.namespace)
            )
        except KubeError:
            log.exception(
                "slice object not present for service import. Waiting...",
                extra={"serviceimport": svcim_name},
            )
            return Result(requeue_after=SLICE_WAIT_SECONDS)

        mesh_svcim = self._mesh_service_import(svcim)
        if mesh_svcim is None:
            return Result()

        mesh_svcim.setdefault("spec", {})["ports"] = mesh_service_import_ports(svcim)
        try:
            self.mesh_client.update(mesh_svcim)
        except KubeError:
            log.exception(
                "unable to update service import in spoke cluster",
                extra={"serviceimport": svcim_name},
            )
            self._warn(mesh_svcim, "unable to update ports on service import")
            raise

        mesh_svcim["status"] = dict(mesh_svcim.get("status") or {})
        mesh_svcim["status"]["endpoints"] = mesh_service_import_endpoints(svcim)
        try:
            self.mesh_client.update_status(mesh_svcim)
        except KubeError:
            log.exception(
                "unable to update service import in spoke cluster",
                extra={"serviceimport": svcim_name},
            )
            self._warn(mesh_svcim, "unable to update endpoints on service import")
            raise
        return Result()

    def _warn(self, obj: Obj, message: str) -> None:
        self.event_recorder.record(Event(obj, EventType.WARNING, "Error", message))

    def _mesh_service_import(self, svcim: Obj) -> Optional[Obj]:
        """Return the existing worker ServiceImport, or create it and return None."""
        spec = _spec(svcim)
        service_name = spec.get("serviceName", "")
        key = ObjectKey(service_name, spec.get("serviceNamespace", ""))
        try:
            return self.mesh_client.get(SERVICE_IMPORT_KIND, key)
        except NotFoundError:
            pass

        svcim_name = svcim.get("metadata", {}).get("name", "")
        mesh_svcim = mesh_service_import_object(svcim)
        try:
            self.mesh_client.create(mesh_svcim)
        except KubeError:
            log.exception(
                "unable to create service import in spoke cluster",
                extra={"serviceimport": svcim_name},
            )
            self._warn(
                svcim,
                "Error creating service import on spoke cluster , svc import "
                f"{service_name} cluster {self.cluster_name}",
            )
            raise
        self.event_recorder.record(
            Event(
                svcim,
                EventType.NORMAL,
                "Created",
                "Successfully created service import on spoke cluster , svc import "
                f"{service_name} cluster {self.cluster_name}",
            )
        )

        mesh_svcim["status"] = {"endpoints": mesh_service_import_endpoints(svcim)}
        try:
            self.mesh_client.update_status(mesh_svcim)
        except KubeError:
            log.exception(
                "unable to update service import in spoke cluster",
                extra={"serviceimport": svcim_name},
            )
            raise
        return None

    def _handle_deletion(self, svcim: Obj) -> bool:
        """Manage the finalizer; return True when reconciliation must stop."""
        meta = svcim.get("metadata") or {}
        if not meta.get("deletionTimestamp"):
            if not contains_finalizer(svcim, SERVICE_IMPORT_FINALIZER):
                log.info("adding finalizer")
                add_finalizer(svcim, SERVICE_IMPORT_FINALIZER)
                self.client.update(svcim)
            return False

        if contains_finalizer(svcim, SERVICE_IMPORT_FINALIZER):
            log.info("deleting serviceimport")
            try:
                self.delete_service_import_on_worker(svcim)
            except KubeError:
                log.exception("unable to delete service import on spoke")
                raise
            log.info("removing serviceimport finalizer")
            remove_finalizer(svcim, SERVICE_IMPORT_FINALIZER)
            self.client.update(svcim)
        return True

    def delete_service_import_on_worker(self, svcim: Obj) -> None:
        """Delete the worker's ServiceImport for this hub service import."""
        spec = _spec(svcim)
        target = {
            "apiVersion": MESH_API_VERSION,
            "kind": SERVICE_IMPORT_KIND,
            "metadata": {
                "name": spec.get("serviceName", ""),
                "namespace": spec.get("serviceNamespace", ""),
            },
        }
        self.mesh_client.delete(target)
        log.info(
            "Deleted serviceimport on spoke cluster",
            extra={"slice": target["metadata"]["name"]},
        )