# sliceworker

`sliceworker` holds the worker-side logic that keeps a cluster in line with
the application slices a hub assigns to it. Reconcilers read desired state
from a hub object store and create, update or delete the matching objects in
a worker object store. Objects are plain dictionaries in the usual
`kind` / `metadata` / `spec` / `status` shape.

## Installation

```
pip install sliceworker
```

Run the tests with the `test` extra:

```
pip install "sliceworker[test]"
pytest
```

## Modules

- `sliceworker.featureflag.is_enabled(feature)` returns `True` when the
  environment variable `FEATURE_<FEATURE>` (name upper-cased) is set to
  `true`, in any case.
- `sliceworker.logs` provides `JsonFormatter`, which renders each record as
  one JSON object with `severity`, `time`, `logger`, `message`, `namespace`,
  `sliceCluster` and any `extra` fields. `new_logger(name, level)` builds a
  logger sending records below ERROR to stdout (at `level` and above) and
  ERROR and above to stderr. `log_level_from_env(environ)` maps `LOG_LEVEL`
  (`DEBUG`, `INFO`, `WARNING`, `ERROR`) to a logging level, falling back to
  INFO.
- `sliceworker.events` defines `EventType` (`Warning`, `Normal`), `Event` and
  `EventRecorder`. The recorder keeps every event in its `events` list and,
  when given a `sink`, calls it with the object, type, reason and message.
- `sliceworker.kube` provides `InMemoryClient`, an object store keyed by kind,
  namespace and name, with `get`, `list` (optionally by labels), `create`,
  `update`, `update_status` and `delete`. It tracks resource versions and
  raises `ConflictError` on stale writes, `NotFoundError` and
  `AlreadyExistsError` where expected; objects with finalizers are marked with
  a deletion timestamp instead of being removed. Its `failures` mapping makes
  chosen calls raise, and `calls` records every call. The module also has
  `ObjectKey`, `Request`, `Result`, `object_key`, the finalizer helpers
  `contains_finalizer`, `add_finalizer` and `remove_finalizer`,
  `set_controller_reference` and `retry_on_conflict(fn, attempts)`.
- `sliceworker.settings` has `Settings.from_env(environ)`, which collects the
  cluster name, hub endpoint, project namespace and credential file paths, and
  `get_env_or_default(key, default)`.
- `sliceworker.cluster.Cluster` reports the cluster's cloud provider and region
  from its first node (`gce` is reported as `gcp`) through
  `get_cluster_info()`, and reads the prefixes listed in the
  `excluded_prefixes.yaml` key of a config map through
  `get_nsm_excluded_prefix(configmap, namespace)`. `ClusterInfo.to_dict()`
  gives the wire form.
- `sliceworker.node` picks gateway node IPs from nodes labelled
  `kubeslice.io/node-type=gateway`, preferring external addresses and falling
  back to internal ones (`gateway_node_ips`). `get_node_ip(client)` returns the
  first of them, or uses `NODE_IP` when it is set; `get_node_external_ip_list()`
  returns the known list; `NodeReconciler` keeps it current;
  `same_string_slice(x, y)` compares lists regardless of order.
- `sliceworker.manifest` loads JSON manifests (`Manifest.parse()`) from the
  directory named by `MANIFEST_PATH`, replacing every `SLICE` with the slice
  name. `install_egress` / `install_ingress` create a slice's gateway
  deployment, service, role, service account, role binding and gateway owned
  by the slice, skipping ones that exist; `uninstall_egress` /
  `uninstall_ingress` delete them, skipping ones that are gone.
- `sliceworker.metrics` provides `Gauge` and two gauges with helpers
  `record_app_pods_count` and
  `record_service_export_available_endpoints_count`, plus
  `since_in_milliseconds`, `since_in_seconds` (seconds divided by one
  million) and `float64_from_bytes` (little-endian double).
- `sliceworker.hub` holds `SliceReconciler`, `SliceGwReconciler` and
  `ServiceImportReconciler`, which mirror `WorkerSliceConfig`,
  `WorkerSliceGateway` (with its certificate secret) and `WorkerServiceImport`
  objects into `Slice`, `SliceGateway` and `ServiceImport` objects, managing
  finalizers and recording events. `HubManager.handle(kind, obj)` passes an
  object to the matching reconciler when its `worker-cluster` label names this
  cluster (`belongs_to_cluster`), and returns `None` otherwise.

## Example

```python
from sliceworker.hub.slice_controller import SliceReconciler
from sliceworker.kube import InMemoryClient, ObjectKey, Request

hub = InMemoryClient([{
    "kind": "WorkerSliceConfig",
    "metadata": {"name": "green", "namespace": "project-ns"},
    "spec": {"sliceName": "green", "sliceSubnet": "10.1.0.0/16"},
}])
worker = InMemoryClient()

reconciler = SliceReconciler(client=hub, mesh_client=worker, cluster_name="cluster-1")
reconciler.reconcile(Request("green", "project-ns"))

created = worker.get("Slice", ObjectKey("green", "kubeslice-system"))
print(created["status"]["sliceConfig"]["sliceSubnet"])  # 10.1.0.0/16
```

## Configuration

| Variable | Meaning |
| --- | --- |
| `CLUSTER_NAME` | name of this worker cluster |
| `HUB_PROJECT_NAMESPACE` | project namespace on the hub |
| `HUB_HOST_ENDPOINT` | hub API endpoint |
| `HUB_TOKEN_FILE` | path of the hub service-account token |
| `HUB_CA_FILE` | path of the hub CA certificate |
| `NODE_IP` | static gateway node IP; when set, node discovery is skipped |
| `MANIFEST_PATH` | directory that holds the gateway manifests |
| `LOG_LEVEL` | `DEBUG`, `INFO`, `WARNING` or `ERROR` |
| `FEATURE_<NAME>` | `true` switches a feature flag on |

## What the package does not do

- It does not talk to a real cluster API. All reading and writing goes
  through `InMemoryClient`; there is no watch, no controller loop and no
  leader election. Reconcilers run only when you call `reconcile` or
  `HubManager.handle`.
- It installs no command and starts no server: there are no metrics or health
  endpoints, and gauges are only held in memory.
- It ships no gateway manifest files; `MANIFEST_PATH` must point at a
  directory holding the `egress-*.json` and `ingress-*.json` files.