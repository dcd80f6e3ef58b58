import pytest
import yaml
from kubernetes import client
from kubernetes.client import ApiException

from kubectl_topology_skew.config import SkewOptions
from kubectl_topology_skew.errors import FetchError, InvalidInputError
from kubectl_topology_skew.kube import (
    ClusterClient,
    fetch_snapshot,
    load_kube_client,
    select_context,
)
from kubectl_topology_skew.resources import ResourceKind
from kubectl_topology_skew.selector import parse_selector
from kubectl_topology_skew.tests.builders import controller, node, pod

KUBECONFIG = {
    "apiVersion": "v1",
    "kind": "Config",
    "current-context": "dev",
    "clusters": [
        {"name": "dev-cluster", "cluster": {"server": "https://127.0.0.1:6443"}},
        {"name": "prod-cluster", "cluster": {"server": "https://10.0.0.1:6443"}},
    ],
    "users": [
        {"name": "dev-user", "user": {"token": "dev-token"}},
        {"name": "admin", "user": {"token": "admin-token"}},
    ],
    "contexts": [
        {"name": "dev", "context": {"cluster": "dev-cluster", "user": "dev-user", "namespace": "team-a"}},
        {"name": "prod", "context": {"cluster": "prod-cluster", "user": "admin"}},
    ],
}


# ----------------------------
# Kubeconfig selection
# ----------------------------


def test_current_context_is_default():
    cfg, name = select_context(KUBECONFIG)
    assert name == "dev"
    assert cfg["current-context"] == "dev"


def test_cluster_and_user_overrides_do_not_mutate_input():
    cfg, name = select_context(KUBECONFIG, context="dev", cluster="prod-cluster", user="admin")
    entry = next(c for c in cfg["contexts"] if c["name"] == name)
    assert entry["context"]["cluster"] == "prod-cluster"
    assert entry["context"]["user"] == "admin"
    assert KUBECONFIG["contexts"][0]["context"]["cluster"] == "dev-cluster"


@pytest.mark.parametrize(
    "kwargs",
    [{"context": "staging"}, {"cluster": "nope"}, {"user": "nobody"}],
)
def test_unknown_names_are_invalid_input(kwargs):
    with pytest.raises(InvalidInputError):
        select_context(KUBECONFIG, **kwargs)


def test_load_kube_client_from_file(tmp_path):
    path = tmp_path / "config"
    path.write_text(yaml.safe_dump(KUBECONFIG))

    api_client, namespace = load_kube_client(str(path))
    assert namespace == "team-a"
    assert api_client.configuration.host == "https://127.0.0.1:6443"

    api_client, namespace = load_kube_client(str(path), context="prod")
    assert namespace == "default"
    assert api_client.configuration.host == "https://10.0.0.1:6443"


def test_missing_explicit_kubeconfig(tmp_path):
    with pytest.raises(InvalidInputError):
        load_kube_client(str(tmp_path / "missing"))


def test_no_kubeconfig_outside_cluster(tmp_path, monkeypatch):
    monkeypatch.setenv("KUBECONFIG", str(tmp_path / "missing"))
    monkeypatch.delenv("KUBERNETES_SERVICE_HOST", raising=False)
    monkeypatch.delenv("KUBERNETES_SERVICE_PORT", raising=False)
    with pytest.raises(FetchError):
        load_kube_client()


# ----------------------------
# ClusterClient against fake APIs
# ----------------------------


class FakeCoreApi:
    def __init__(self):
        self.calls = []

    def list_namespaced_pod(self, namespace, **kwargs):
        self.calls.append(("list_namespaced_pod", namespace, kwargs))
        return {"items": [{"metadata": {"name": "web-1", "namespace": namespace}}]}

    def list_pod_for_all_namespaces(self, **kwargs):
        self.calls.append(("list_pod_for_all_namespaces", None, kwargs))
        return {"items": []}

    def list_node(self, **kwargs):
        self.calls.append(("list_node", None, kwargs))
        raise ApiException(status=403, reason="Forbidden")


class FakeAppsApi:
    def list_namespaced_replica_set(self, namespace, **kwargs):
        return {"items": [{"metadata": {"name": "web-rs", "namespace": namespace}}]}


@pytest.fixture
def fake_cluster():
    cluster = ClusterClient(client.ApiClient(), request_timeout=7)
    cluster.apis = {"core": FakeCoreApi(), "apps": FakeAppsApi(), "batch": None}
    return cluster


def test_items_are_stamped_with_kind(fake_cluster):
    (item,) = fake_cluster.list_pods("default", "app=web")
    assert item["kind"] == "Pod"
    assert item["apiVersion"] == "v1"
    assert fake_cluster.apis["core"].calls == [
        ("list_namespaced_pod", "default", {"_request_timeout": 7, "label_selector": "app=web"})
    ]

    (rs,) = fake_cluster.list_controllers("ReplicaSet", "default")
    assert rs["kind"] == "ReplicaSet"
    assert rs["apiVersion"] == "apps/v1"


def test_all_namespaces_call(fake_cluster):
    assert fake_cluster.list_pods() == []
    assert fake_cluster.apis["core"].calls[0][0] == "list_pod_for_all_namespaces"


def test_api_errors_become_fetch_errors(fake_cluster):
    with pytest.raises(FetchError, match="403"):
        fake_cluster.list_nodes()


def test_unknown_controller_kind(fake_cluster):
    with pytest.raises(ValueError):
        fake_cluster.list_controllers("Pod")


# ----------------------------
# Concurrent snapshot fetch
# ----------------------------


class RecordingCluster:
    def __init__(self, fail_kind=None):
        self.fail_kind = fail_kind
        self.calls = []

    def list_nodes(self, selector=None):
        self.calls.append(("Node", None, selector))
        return [node("n1", "a")]

    def list_pods(self, namespace=None, selector=None):
        self.calls.append(("Pod", namespace, selector))
        return [pod("p1", "n1", namespace=namespace or "default")]

    def list_controllers(self, kind, namespace=None, selector=None):
        self.calls.append((kind, namespace, selector))
        if kind == self.fail_kind:
            raise FetchError(f"Listing {kind} failed: 500 Internal Server Error")
        return [controller(kind, "web", namespace or "default")]


def test_fetch_deployment_mode():
    cluster = RecordingCluster()
    options = SkewOptions(mode=ResourceKind.DEPLOYMENT, namespace="web", selector=parse_selector("app=web"))
    snap = fetch_snapshot(cluster, options, max_workers=2)

    assert sorted(cluster.calls) == [
        ("Deployment", "web", None),
        ("Node", None, None),
        ("Pod", "web", None),
        ("ReplicaSet", "web", None),
    ]
    assert [c["kind"] for c in snap.controllers] == ["Deployment", "ReplicaSet"]
    assert len(snap.pods) == 1
    assert len(snap.nodes) == 1


def test_fetch_pod_mode_sends_selector():
    cluster = RecordingCluster()
    options = SkewOptions(mode=ResourceKind.POD, selector=parse_selector("app in (web,api)"))
    fetch_snapshot(cluster, options)
    assert ("Pod", None, "app in (api,web)") in cluster.calls
    assert snap_kinds(cluster) == {"Node", "Pod"}


def test_fetch_node_mode_skips_pods():
    cluster = RecordingCluster()
    snap = fetch_snapshot(cluster, SkewOptions(mode=ResourceKind.NODE))
    assert snap_kinds(cluster) == {"Node"}
    assert snap.pods == ()


def test_fetch_failure_aborts():
    cluster = RecordingCluster(fail_kind="ReplicaSet")
    with pytest.raises(FetchError):
        fetch_snapshot(cluster, SkewOptions(mode=ResourceKind.ALL))


def snap_kinds(cluster):
    return {kind for kind, _, _ in cluster.calls}
