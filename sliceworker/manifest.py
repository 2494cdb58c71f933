"""Slice manifests loaded from JSON files, and the gateway resources built from them."""

from __future__ import annotations

import contextlib
import json
import os
import posixpath
from dataclasses import dataclass
from typing import Any

from .kube import AlreadyExistsError, InMemoryClient, KubeError, NotFoundError
from .kube import set_controller_reference
from .logs import new_logger

log = new_logger(__name__)

DEFAULT_MANIFEST_DIR = "../../files/manifests"
SLICE_PLACEHOLDER = "SLICE"
GATEWAY_NAMESPACE = "kubeslice-system"


def get_manifest_path(file: str) -> str:
    """Return the path of the named manifest, under MANIFEST_PATH when it is set."""
    directory = os.environ.get("MANIFEST_PATH", "")
    if directory:
        return posixpath.join(directory, file + ".json")
    return posixpath.join(DEFAULT_MANIFEST_DIR, file + ".json")


class Manifest:
    """A JSON manifest in which every SLICE is replaced by the slice's name."""

    def __init__(self, file: str, slice_name: str) -> None:
        self.slice = slice_name
        self.path = get_manifest_path(file)

    def __repr__(self) -> str:
        return f"Manifest(path={self.path!r}, slice={self.slice!r})"

    def parse(self) -> dict[str, Any]:
        """Read the file and return the object it describes."""
        try:
            with open(self.path, encoding="utf-8") as handle:
                text = handle.read()
        except OSError:
            log.exception("unable to read json file")
            raise
        try:
            obj = json.loads(text.replace(SLICE_PLACEHOLDER, self.slice))
        except json.JSONDecodeError:
            log.exception("unable to parse json file")
            raise
        if not isinstance(obj, dict):
            raise ValueError(f"manifest {self.path} does not hold an object")
        return obj


@dataclass(frozen=True)
class _Part:
    suffix: str
    kind: str
    name_suffix: str


_PARTS = (
    _Part("deploy", "Deployment", ""),
    _Part("svc", "Service", ""),
    _Part("role", "Role", "-sds"),
    _Part("sa", "ServiceAccount", "-service-account"),
    _Part("rolebinding", "RoleBinding", "-sds"),
    _Part("gw", "Gateway", ""),
)


def _install(client: InMemoryClient, slice_obj: dict[str, Any], prefix: str) -> None:
    slice_name = slice_obj.get("metadata", {}).get("name", "")
    objects = []
    for part in _PARTS:
        obj = Manifest(f"{prefix}-{part.suffix}", slice_name).parse()
        obj.setdefault("kind", part.kind)
        objects.append(obj)

    for obj in objects:
        # An owner that cannot be set is not fatal: the object is still created.
        with contextlib.suppress(KubeError):
            set_controller_reference(slice_obj, obj)
        try:
            client.create(obj)
        except AlreadyExistsError:
            continue


def _uninstall(client: InMemoryClient, slice_name: str, prefix: str) -> None:
    base = f"{slice_name}-istio-{prefix}gateway"
    for part in _PARTS:
        obj = {
            "kind": part.kind,
            "metadata": {"name": base + part.name_suffix, "namespace": GATEWAY_NAMESPACE},
        }
        try:
            client.delete(obj)
        except NotFoundError:
            continue


def install_egress(client: InMemoryClient, slice_obj: dict[str, Any]) -> None:
    """Create the slice's egress gateway resources, owned by the slice."""
    _install(client, slice_obj, "egress")


def uninstall_egress(client: InMemoryClient, slice_name: str) -> None:
    """Delete the slice's egress gateway resources; missing ones are skipped."""
    log.info("deleting EW egress gw for the slice", extra={"slice": slice_name})
    _uninstall(client, slice_name, "egress")


def install_ingress(client: InMemoryClient, slice_obj: dict[str, Any]) -> None:
    """Create the slice's ingress gateway resources, owned by the slice."""
    _install(client, slice_obj, "ingress")


def uninstall_ingress(client: InMemoryClient, slice_name: str) -> None:
    """Delete the slice's ingress gateway resources; missing ones are skipped."""
    log.info("deleting EW ingress gw for the slice", extra={"slice": slice_name})
    _uninstall(client, slice_name, "ingress")