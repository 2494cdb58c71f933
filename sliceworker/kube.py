"""In-memory object store with the semantics of a Kubernetes API client."""

from __future__ import annotations

import copy
import itertools
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Mapping, Optional, TypeVar

Obj = dict[str, Any]
T = TypeVar("T")

_RETRY_DELAY = 0.01


class KubeError(Exception):
    """Base error for object store operations."""


class NotFoundError(KubeError):
    pass


class AlreadyExistsError(KubeError):
    pass


class ConflictError(KubeError):
    pass


@dataclass(frozen=True)
class ObjectKey:
    name: str
    namespace: str = ""

    def __str__(self) -> str:
        return f"{self.namespace}/{self.name}" if self.namespace else self.name


@dataclass(frozen=True)
class Request:
    name: str
    namespace: str = ""

    @property
    def key(self) -> ObjectKey:
        return ObjectKey(self.name, self.namespace)


@dataclass(frozen=True)
class Result:
    requeue: bool = False
    requeue_after: float = 0.0


def _meta(obj: Obj) -> dict[str, Any]:
    return obj.setdefault("metadata", {})


def object_key(obj: Obj) -> ObjectKey:
    meta = obj.get("metadata", {})
    return ObjectKey(meta.get("name", ""), meta.get("namespace", ""))


def contains_finalizer(obj: Obj, finalizer: str) -> bool:
    return finalizer in obj.get("metadata", {}).get("finalizers", [])


def add_finalizer(obj: Obj, finalizer: str) -> bool:
    """Add the finalizer; return False if it was already present."""
    finalizers = _meta(obj).setdefault("finalizers", [])
    if finalizer in finalizers:
        return False
    finalizers.append(finalizer)
    return True


def remove_finalizer(obj: Obj, finalizer: str) -> bool:
    """Remove the finalizer; return True if it was present."""
    meta = _meta(obj)
    finalizers = meta.get("finalizers", [])
    kept = [name for name in finalizers if name != finalizer]
    meta["finalizers"] = kept
    return len(kept) != len(finalizers)


def set_controller_reference(owner: Obj, obj: Obj) -> None:
    """Make owner the controlling owner of obj."""
    owner_meta = owner.get("metadata", {})
    obj_meta = _meta(obj)
    owner_ns = owner_meta.get("namespace", "")
    obj_ns = obj_meta.get("namespace", "")
    if owner_ns and owner_ns != obj_ns:
        raise KubeError(
            "cross-namespace owner references are disallowed, "
            f"owner's namespace {owner_ns}, obj's namespace {obj_ns}"
        )
    ref = {
        "apiVersion": owner.get("apiVersion", ""),
        "kind": owner.get("kind", ""),
        "name": owner_meta.get("name", ""),
        "uid": owner_meta.get("uid", ""),
        "controller": True,
        "blockOwnerDeletion": True,
    }
    refs = obj_meta.setdefault("ownerReferences", [])

    def same_owner(other: Mapping[str, Any]) -> bool:
        return other.get("kind") == ref["kind"] and other.get("name") == ref["name"]

    current = next((r for r in refs if r.get("controller")), None)
    if current is not None and not same_owner(current):
        raise KubeError(
            f"Object {object_key(obj)} is already owned by another "
            f"{current.get('kind')} controller {current.get('name')}"
        )
    refs[:] = [r for r in refs if not same_owner(r)] + [ref]


def retry_on_conflict(fn: Callable[[], T], attempts: int = 5) -> T:
    """Call fn, retrying while it raises ConflictError, at most attempts times."""
    if attempts < 1:
        raise ValueError("attempts must be at least 1")
    for attempt in range(attempts):
        try:
            return fn()
        except ConflictError:
            if attempt == attempts - 1:
                raise
            time.sleep(_RETRY_DELAY)
    raise AssertionError("unreachable")


def _kind(obj: Obj) -> str:
    kind = obj.get("kind")
    if not kind:
        raise ValueError("object has no kind")
    return kind


def _labels_match(obj: Obj, labels: Optional[Mapping[str, str]]) -> bool:
    if not labels:
        return True
    have = obj.get("metadata", {}).get("labels") or {}
    return all(have.get(k) == v for k, v in labels.items())


class InMemoryClient:
    """A client keeping objects in memory, keyed by kind, namespace and name.

    ``failures`` maps (method, kind) to an exception raised by that call;
    ``calls`` lists every call as (method, kind, key).
    """

    def __init__(self, objects: Iterable[Obj] = ()) -> None:
        self._store: dict[tuple[str, str, str], Obj] = {}
        self._versions = itertools.count(1)
        self.failures: dict[tuple[str, str], Exception] = {}
        self.calls: list[tuple[str, str, Optional[ObjectKey]]] = []
        for obj in objects:
            self._insert(copy.deepcopy(obj))

    def _check(self, method: str, kind: str, key: Optional[ObjectKey]) -> None:
        self.calls.append((method, kind, key))
        error = self.failures.get((method, kind))
        if error is not None:
            raise error

    def _next_version(self) -> str:
        return str(next(self._versions))

    def _insert(self, obj: Obj) -> Obj:
        kind = _kind(obj)
        key = object_key(obj)
        if not key.name:
            raise KubeError(f"{kind}: resource name may not be empty")
        meta = _meta(obj)
        meta.setdefault("uid", str(uuid.uuid4()))
        meta["resourceVersion"] = self._next_version()
        self._store[(kind, key.namespace, key.name)] = obj
        return obj

    def _stored(self, kind: str, key: ObjectKey) -> Obj:
        try:
            return self._store[(kind, key.namespace, key.name)]
        except KeyError:
            raise NotFoundError(f'{kind} "{key.name}" not found') from None

    def _check_version(self, kind: str, obj: Obj, stored: Obj) -> None:
        incoming = obj.get("metadata", {}).get("resourceVersion")
        if incoming and incoming != stored["metadata"]["resourceVersion"]:
            raise ConflictError(
                f'Operation cannot be fulfilled on {kind} "{object_key(obj).name}": '
                "the object has been modified; please apply your changes to the "
                "latest version and try again"
            )

    def get(self, kind: str, key: ObjectKey) -> Obj:
        self._check("get", kind, key)
        return copy.deepcopy(self._stored(kind, key))

    def list(self, kind: str, labels: Optional[Mapping[str, str]] = None) -> list[Obj]:
        self._check("list", kind, None)
        return [
            copy.deepcopy(obj)
            for (stored_kind, _, _), obj in self._store.items()
            if stored_kind == kind and _labels_match(obj, labels)
        ]

    def create(self, obj: Obj) -> Obj:
        kind = _kind(obj)
        key = object_key(obj)
        self._check("create", kind, key)
        if (kind, key.namespace, key.name) in self._store:
            raise AlreadyExistsError(f'{kind} "{key.name}" already exists')
        if obj.get("metadata", {}).get("resourceVersion"):
            raise KubeError("resourceVersion can not be set for Create requests")
        stored = self._insert(copy.deepcopy(obj))
        meta = _meta(obj)
        meta["uid"] = stored["metadata"]["uid"]
        meta["resourceVersion"] = stored["metadata"]["resourceVersion"]
        return obj

    def update(self, obj: Obj) -> Obj:
        kind = _kind(obj)
        key = object_key(obj)
        self._check("update", kind, key)
        stored = self._stored(kind, key)
        self._check_version(kind, obj, stored)
        new = copy.deepcopy(obj)
        new.pop("status", None)
        if "status" in stored:
            new["status"] = stored["status"]
        new_meta = _meta(new)
        stored_meta = stored["metadata"]
        new_meta["uid"] = stored_meta["uid"]
        new_meta.pop("deletionTimestamp", None)
        if "deletionTimestamp" in stored_meta:
            new_meta["deletionTimestamp"] = stored_meta["deletionTimestamp"]
        new_meta["resourceVersion"] = self._next_version()
        if "deletionTimestamp" in new_meta and not new_meta.get("finalizers"):
            del self._store[(kind, key.namespace, key.name)]
        else:
            self._store[(kind, key.namespace, key.name)] = new
        _meta(obj)["resourceVersion"] = new_meta["resourceVersion"]
        return obj

    def update_status(self, obj: Obj) -> Obj:
        kind = _kind(obj)
        key = object_key(obj)
        self._check("update_status", kind, key)
        stored = self._stored(kind, key)
        self._check_version(kind, obj, stored)
        stored["status"] = copy.deepcopy(obj.get("status"))
        stored["metadata"]["resourceVersion"] = self._next_version()
        _meta(obj)["resourceVersion"] = stored["metadata"]["resourceVersion"]
        return obj

    def delete(self, obj: Obj) -> None:
        kind = _kind(obj)
        key = object_key(obj)
        self._check("delete", kind, key)
        stored = self._stored(kind, key)
        meta = stored["metadata"]
        if meta.get("finalizers"):
            meta.setdefault(
                "deletionTimestamp",
                datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
            )
            meta["resourceVersion"] = self._next_version()
        else:
            del self._store[(kind, key.namespace, key.name)]