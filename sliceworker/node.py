"""Discovery of the IP addresses of the cluster's gateway nodes."""

from __future__ import annotations

import os
import threading
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from .kube import InMemoryClient, KubeError, Request, Result
from .logs import new_logger

log = new_logger(__name__)

NODE_TYPE_SELECTOR_LABEL_KEY = "kubeslice.io/node-type"
GATEWAY_NODE_LABELS = {NODE_TYPE_SELECTOR_LABEL_KEY: "gateway"}
NODE_EXTERNAL_IP = "ExternalIP"
NODE_INTERNAL_IP = "InternalIP"


def gateway_node_ips(nodes: Iterable[dict[str, Any]]) -> list[str]:
    """Return the nodes' external IPs, or their internal IPs when none is external."""
    addresses = [
        address
        for node in nodes
        for address in ((node.get("status") or {}).get("addresses") or [])
    ]
    external = [a["address"] for a in addresses if a.get("type") == NODE_EXTERNAL_IP]
    if external:
        return external
    return [a["address"] for a in addresses if a.get("type") == NODE_INTERNAL_IP]


@dataclass
class NodeInfo:
    """The known gateway node IPs, guarded by a lock."""

    client: Optional[InMemoryClient] = None
    node_ips: list[str] = field(default_factory=list)
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def node_ip_list(self) -> list[str]:
        """Return the gateway node IPs, taking NODE_IP when it is set."""
        static_ip = os.environ.get("NODE_IP", "")
        with self.lock:
            if static_ip:
                self.node_ips.append(static_ip)
                return list(self.node_ips)
            if not self.node_ips:
                self._populate()
            return list(self.node_ips)

    def _populate(self) -> None:
        if self.client is None:
            raise KubeError("can't fetch node list: no client")
        try:
            nodes = self.client.list("Node", GATEWAY_NODE_LABELS)
        except KubeError as err:
            raise KubeError(f"can't fetch node list: {err} ") from err
        if not nodes:
            raise KubeError("can't fetch node list: no gateway nodes ")
        self.node_ips.extend(gateway_node_ips(nodes))


_node_info = NodeInfo()


def get_node_ip(client: InMemoryClient) -> str:
    """Return the first gateway node IP, or "" when none is known."""
    _node_info.client = client
    try:
        node_ips = _node_info.node_ip_list()
    except KubeError:
        log.exception("Getting NodeIP From kube-api-server")
        raise
    if not node_ips:
        log.error("Getting NodeIP From kube-api-server")
        return ""
    node_ip = node_ips[0]
    log.info("nodeIP selected", extra={"nodeIP": node_ip})
    return node_ip


def get_node_external_ip_list() -> list[str]:
    with _node_info.lock:
        return list(_node_info.node_ips)


def same_string_slice(x: Iterable[str], y: Iterable[str]) -> bool:
    """Return True when both hold the same strings, in any order."""
    return Counter(x) == Counter(y)


@dataclass
class NodeReconciler:
    """Keeps the known gateway node IPs in step with the cluster's nodes."""

    client: InMemoryClient
    node_info: NodeInfo = field(default_factory=lambda: _node_info)

    def reconcile(self, request: Request) -> Result:
        try:
            nodes = self.client.list("Node", GATEWAY_NODE_LABELS)
        except KubeError:
            log.exception("Error getting kubeslice nodeList")
            raise
        if not nodes:
            raise KubeError("no gateway nodes available")
        node_ips = gateway_node_ips(nodes)
        if not node_ips:
            raise KubeError("number of nodeIPs is zero, reconciling")

        with self.node_info.lock:
            if not same_string_slice(self.node_info.node_ips, node_ips):
                log.info(
                    "IPs changed,available gateway IPs",
                    extra={"externalIPs": node_ips, "node": str(request.key)},
                )
                self.node_info.node_ips = node_ips
            log.info("node IPs", extra={"nodeIPList": list(self.node_info.node_ips)})
        return Result()