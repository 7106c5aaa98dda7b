# kconnect-operator

Reconciliation logic for running Kafka Connect on Kubernetes. Two custom
resources in the `kafka-connect.b1zzu.net/v1alpha1` API group drive it:

- **Cluster**: a Kafka Connect deployment. `ClusterReconciler` applies a
  Service, a NetworkPolicy (unless `spec.network_policy.enabled` is
  `False`), a ConfigMap holding `connect.properties` and a Deployment.
  It records a hash of the ConfigMap in `status.config_hash` and copies
  the Deployment's `Available` condition onto the Cluster.
- **Connector**: a connector hosted on a Cluster. `ConnectorReconciler`
  creates, updates and deletes the connector through the Kafka Connect
  REST API at `http://<cluster>-connect.<namespace>:8083`. It keeps a
  finalizer on the resource and reports the connector's state as a
  `Running` condition. A pass that ends with nothing to change returns a
  `Result` with `requeue_after` set to one minute.

Each reconcile pass stops after the first step that changes something and
returns `Result()`. The next pass picks up from there. A step that fails
raises `ApiError` or `KafkaConnectError`, after setting an error condition
on the resource where it can.

## Modules

| Module | Contents |
| --- | --- |
| `kconnect_operator.meta` | `GroupVersion`, `Condition`, `ConditionStatus`, `ObjectMeta`, `Request`, `Result`, `ApiError`, `NotFoundError`, `find_status_condition`, `set_status_condition`, and `KubeClient`, an in-memory object store |
| `kconnect_operator.v1alpha1` | `Cluster` and `Connector` with their specs and statuses, `to_dict` / `from_dict`, and the finalizer helpers on `Connector` |
| `kconnect_operator.utils` | `fnv64a`, `fnv_hash_string`, `properties_to_envs`, `find_status_deployment_condition` |
| `kconnect_operator.kafka_connect` | `Client` for the Kafka Connect REST API, `ConnectorConfig`, `ConnectorStatusReport`, `ConnectorStatusConnector`, `ConnectorStatusTask`, `KafkaConnectError` |
| `kconnect_operator.cluster_resources` | Manifest builders: `deployment_for_cluster`, `config_map_for_cluster`, `service_for_cluster`, `network_policy_for_cluster`, `owner_reference_for_cluster`, `kafka_connect_configs_for_cluster`, `config_map_name_for_cluster` |
| `kconnect_operator.cluster_controller` | `ClusterReconciler` and `config_map_hash` |
| `kconnect_operator.connector_controller` | `ConnectorReconciler`, `connector_configs_equal`, `count_failed_tasks`, `map_connector_status_to_condition` |
| `kconnect_operator.settings` | `Options`, `parse_options` for the manager's command-line flags, and `get_operator_namespace` |

## Examples

### Hashing and property helpers

```python
from kconnect_operator.utils import fnv_hash_string, properties_to_envs

fnv_hash_string("")   # 'cbf29ce484222325'
properties_to_envs({"bootstrap.servers": "kafka:9092"})
# [{'name': 'KAFKA_BOOTSTRAP_SERVERS', 'value': 'kafka:9092'}]
```

### Rendering the manifests for a Cluster

The builders return plain dict manifests.

```python
from kconnect_operator.v1alpha1 import Cluster
from kconnect_operator.cluster_resources import config_map_for_cluster, deployment_for_cluster

cluster = Cluster.from_dict({
    "apiVersion": "kafka-connect.b1zzu.net/v1alpha1",
    "kind": "Cluster",
    "metadata": {"name": "demo", "namespace": "default"},
    "spec": {"config": {"group.id": "demo"}},
})
deployment = deployment_for_cluster(cluster)   # "demo-connect", 1 replica, image docker.io/apache/kafka:latest
config_map = config_map_for_cluster(cluster)   # "demo-connect-config"
```

The generated `connect.properties` lists its keys in sorted order. It
always sets the REST listener on port 8083 and enables the
environment-variable config provider, so values of `CONNECT_*` variables
can be referenced as `${env:CONNECT_...}`.

### Reconciling against the in-memory store

`KubeClient` holds objects in memory. It supports `get`, `update`,
`update_status` and `apply`. `apply` is a server-side apply that merges
the given fields and reports a conflict with a different field manager
unless `force` is set. The reconcilers work with any object that offers
these four methods.

```python
from kconnect_operator.meta import KubeClient, ObjectMeta, Request
from kconnect_operator.v1alpha1 import Cluster
from kconnect_operator.cluster_controller import ClusterReconciler

client = KubeClient([Cluster(metadata=ObjectMeta(name="demo", namespace="default"))])
reconciler = ClusterReconciler(client, namespace="kafka-connect-operator")
request = Request(namespace="default", name="demo")

reconciler.reconcile(request)   # sets Available=Unknown
reconciler.reconcile(request)   # applies Service, NetworkPolicy, ConfigMap; records the config hash
reconciler.reconcile(request)   # applies the Deployment
client.get("Deployment", "default", "demo-connect")["spec"]["replicas"]   # 1
```

`ConnectorReconciler(client, connect_client_factory=Client)` builds its
Kafka Connect client from the endpoint URL through the factory. To point
it elsewhere, pass a different factory.

### Manager settings

`parse_options` takes the manager's flags and returns a frozen `Options`.
Invalid flags exit with status 2. The flags are:

- `--metrics-bind-address` and `--health-probe-bind-address`
- `--leader-elect` and `--metrics-secure=false`
- `--webhook-cert-path`, `--webhook-cert-name` and `--webhook-cert-key`
- `--metrics-cert-path`, `--metrics-cert-name` and `--metrics-cert-key`
- `--enable-http2`

`get_operator_namespace` reads the service-account namespace file. If that
file does not exist, it returns `kafka-connect-operator`.

## What this package does not do

- It has no command and no long-running manager process. It does not
  watch resources, run leader election, or serve metrics, health probes
  or webhooks. `Options` only describes those settings.
- It does not talk to a Kubernetes API server. `KubeClient` is an
  in-memory store. Connecting the reconcilers to a real cluster needs a
  client with the same methods.
- It does not ship CRD manifests or RBAC rules.
- It does not delete an existing NetworkPolicy when the NetworkPolicy is
  disabled on a Cluster.

## Testing

The test suite uses pytest and responses, available through the `test`
extra:

```
pip install -e ".[test]"
pytest
```