"""Cluster properties derived from the worker cluster's nodes and config maps."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import yaml

from .kube import InMemoryClient, KubeError, ObjectKey
from .logs import new_logger

log = new_logger(__name__)

REGION_LABEL = "topology.kubernetes.io/region"
EXCLUDED_PREFIXES_KEY = "excluded_prefixes.yaml"


@dataclass
class GeoLocation:
    """Where the cluster runs: its cloud provider and region."""

    cloud_provider: str = ""
    cloud_region: str = ""

    def to_dict(self) -> dict[str, str]:
        out: dict[str, str] = {}
        if self.cloud_provider:
            out["cloudProvider"] = self.cloud_provider
        if self.cloud_region:
            out["cloudRegion"] = self.cloud_region
        return out


@dataclass
class ClusterProperty:
    geo_location: GeoLocation = field(default_factory=GeoLocation)

    def to_dict(self) -> dict[str, Any]:
        return {"geoLocation": self.geo_location.to_dict()}


@dataclass
class ClusterInfo:
    name: str = ""
    cluster_property: ClusterProperty = field(default_factory=ClusterProperty)

    def to_dict(self) -> dict[str, Any]:
        """Return the wire form, leaving out empty strings."""
        out: dict[str, Any] = {}
        if self.name:
            out["clusterName"] = self.name
        out["clusterProperty"] = self.cluster_property.to_dict()
        return out


def _strip_trailing_whitespace(text: str) -> str:
    return "\n".join(line.rstrip() for line in text.splitlines())


@dataclass
class Cluster:
    """Reads information about the cluster through a client."""

    client: InMemoryClient
    name: str = ""

    def get_cluster_info(self) -> ClusterInfo:
        try:
            location = self._cluster_location()
        except KubeError:
            log.exception("Error Getting Cluster Location")
            raise
        return ClusterInfo(
            name=self.name, cluster_property=ClusterProperty(geo_location=location)
        )

    def _cluster_location(self) -> GeoLocation:
        try:
            nodes = self.client.list("Node")
        except KubeError as err:
            log.error("Can't fetch node List: %s", err)
            raise KubeError(f"can't fetch node list: {err} ") from err
        if not nodes:
            raise KubeError("can't fetch node list , length of node items is zero")

        first = nodes[0]
        labels = first.get("metadata", {}).get("labels") or {}
        location = GeoLocation(cloud_region=labels.get(REGION_LABEL, ""))
        provider_id = (first.get("spec") or {}).get("providerID", "")
        if provider_id:
            provider = provider_id.split(":")[0]
            location.cloud_provider = "gcp" if provider == "gce" else provider
        return location

    def get_nsm_excluded_prefix(self, configmap: str, namespace: str) -> list[str]:
        """Return the prefixes listed in the NSM excluded-prefixes config map."""
        try:
            config = self.client.get("ConfigMap", ObjectKey(configmap, namespace))
        except KubeError as err:
            log.error(
                "can't get configmap %s from namespace %s: %s", configmap, namespace, err
            )
            config = {}
        data = config.get("data") or {}
        if not data:
            raise KubeError("CNI Subnet not present")

        raw = _strip_trailing_whitespace(data.get(EXCLUDED_PREFIXES_KEY, ""))
        try:
            parsed = yaml.safe_load(raw)
        except yaml.YAMLError as err:
            raise KubeError(f"yaml unmarshalling error: {err} ") from err

        if isinstance(parsed, dict) and "prefixes" in parsed:
            prefixes = parsed["prefixes"]
            if not isinstance(prefixes, list):
                raise KubeError("error occured while getting excluded prefixes")
            return [str(value) for value in prefixes]
        raise KubeError("error occured while getting excluded prefixes")