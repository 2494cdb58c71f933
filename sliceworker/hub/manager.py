"""Dispatches hub objects meant for this worker cluster to their reconcilers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Protocol

from ..events import EventRecorder
from ..kube import InMemoryClient, Request, Result
from ..logs import new_logger
from ..settings import Settings
from .serviceimport_controller import WORKER_SERVICE_IMPORT_KIND, ServiceImportReconciler
from .slice_controller import WORKER_SLICE_KIND, SliceReconciler
from .slicegateway_controller import WORKER_SLICE_GATEWAY_KIND, SliceGwReconciler

log = new_logger(__name__)

WORKER_CLUSTER_LABEL = "worker-cluster"


class _Reconciler(Protocol):
    def reconcile(self, request: Request) -> Result: ...


def belongs_to_cluster(obj: dict[str, Any], cluster_name: str) -> bool:
    """Return True when the object's worker-cluster label names this cluster."""
    labels = (obj.get("metadata") or {}).get("labels") or {}
    return labels.get(WORKER_CLUSTER_LABEL, "") == cluster_name


@dataclass
class HubManager:
    """Routes hub objects labelled for this cluster to the matching reconciler."""

    hub_client: InMemoryClient
    mesh_client: InMemoryClient
    settings: Settings = field(default_factory=Settings.from_env)
    reconcilers: dict[str, _Reconciler] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        log.info(
            "Connecting to hub cluster",
            extra={
                "endpoint": self.settings.hub_endpoint,
                "ns": self.settings.project_namespace,
            },
        )
        cluster = self.settings.cluster_name
        namespace = self.settings.control_plane_namespace
        self.reconcilers = {
            WORKER_SLICE_KIND: SliceReconciler(
                client=self.hub_client,
                mesh_client=self.mesh_client,
                event_recorder=EventRecorder("spokeSlice-controller"),
                cluster_name=cluster,
                namespace=namespace,
            ),
            WORKER_SLICE_GATEWAY_KIND: SliceGwReconciler(
                client=self.hub_client,
                mesh_client=self.mesh_client,
                event_recorder=EventRecorder("spokeSliceGateway-controller"),
                cluster_name=cluster,
                namespace=namespace,
            ),
            WORKER_SERVICE_IMPORT_KIND: ServiceImportReconciler(
                client=self.hub_client,
                mesh_client=self.mesh_client,
                event_recorder=EventRecorder("spokeServiceImport-controller"),
                cluster_name=cluster,
                namespace=namespace,
            ),
        }

    def handle(self, kind: str, obj: dict[str, Any]) -> Optional[Result]:
        """Reconcile obj; return None when it is meant for another cluster."""
        reconciler = self.reconcilers.get(kind)
        if reconciler is None:
            raise ValueError(f"no controller for kind {kind!r}")
        if not belongs_to_cluster(obj, self.settings.cluster_name):
            return None
        meta = obj.get("metadata") or {}
        return reconciler.reconcile(Request(meta.get("name", ""), meta.get("namespace", "")))