"""Read-only Kubernetes API access: kubeconfig selection and LIST calls."""

import copy
import os
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from typing import Any

import urllib3
import yaml
from kubernetes import client, config
from kubernetes.client import ApiException

from kubectl_topology_skew.config import SkewOptions
from kubectl_topology_skew.errors import FetchError, InvalidInputError
from kubectl_topology_skew.log import get_logger
from kubectl_topology_skew.resources import ResourceKind
from kubectl_topology_skew.snapshot import ClusterSnapshot

log = get_logger("kube")

_SA_NAMESPACE_FILE = "/var/run/secrets/kubernetes.io/serviceaccount/namespace"

# kind -> (apiVersion, API group class, list method suffix)
LIST_CALLS = {
    "Pod": ("v1", "core", "pod"),
    "ReplicaSet": ("apps/v1", "apps", "replica_set"),
    "Deployment": ("apps/v1", "apps", "deployment"),
    "StatefulSet": ("apps/v1", "apps", "stateful_set"),
    "DaemonSet": ("apps/v1", "apps", "daemon_set"),
    "Job": ("batch/v1", "batch", "job"),
}


# ----------------------------
# Kubeconfig
# ----------------------------


def kubeconfig_path(path: str | None = None) -> str:
    if path:
        return os.path.expanduser(path)
    env = os.environ.get("KUBECONFIG")
    if env:
        return os.path.expanduser(env.split(os.pathsep)[0])
    return os.path.expanduser("~/.kube/config")


def _named(entries: list[dict[str, Any]] | None, name: str) -> dict[str, Any] | None:
    for entry in entries or []:
        if entry.get("name") == name:
            return entry
    return None


def select_context(
    kubeconfig: dict[str, Any],
    context: str | None = None,
    cluster: str | None = None,
    user: str | None = None,
) -> tuple[dict[str, Any], str]:
    """
    Return a copy of the kubeconfig whose selected context points at the
    requested cluster and user, together with the context name.
    """
    cfg = copy.deepcopy(kubeconfig)
    ctx_name = context or cfg.get("current-context")
    if not ctx_name:
        raise InvalidInputError("No context given and kubeconfig has no current-context")

    entry = _named(cfg.get("contexts"), ctx_name)
    if entry is None:
        raise InvalidInputError(f"Context {ctx_name!r} not found in kubeconfig")
    if not isinstance(entry.get("context"), dict):
        entry["context"] = {}

    if cluster:
        if _named(cfg.get("clusters"), cluster) is None:
            raise InvalidInputError(f"Cluster {cluster!r} not found in kubeconfig")
        entry["context"]["cluster"] = cluster
    if user:
        if _named(cfg.get("users"), user) is None:
            raise InvalidInputError(f"User {user!r} not found in kubeconfig")
        entry["context"]["user"] = user

    cfg["current-context"] = ctx_name
    return cfg, ctx_name


def context_namespace(kubeconfig: dict[str, Any], ctx_name: str) -> str:
    entry = _named(kubeconfig.get("contexts"), ctx_name) or {}
    return (entry.get("context") or {}).get("namespace") or "default"


def read_kubeconfig(path: str) -> dict[str, Any]:
    try:
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise InvalidInputError(f"Cannot read kubeconfig {path}: {e}") from e
    except yaml.YAMLError as e:
        raise InvalidInputError(f"Invalid kubeconfig {path}: {e}") from e
    if not isinstance(data, dict):
        raise InvalidInputError(f"Invalid kubeconfig {path}: expected a mapping")
    return data


def load_kube_client(
    kubeconfig: str | None = None,
    context: str | None = None,
    cluster: str | None = None,
    user: str | None = None,
) -> tuple[client.ApiClient, str]:
    """
    Build an API client and return it with the default namespace of the
    selected context. Falls back to in-cluster config when no kubeconfig
    file exists and none was requested explicitly.
    """
    path = kubeconfig_path(kubeconfig)

    if not kubeconfig and not os.path.exists(path):
        try:
            config.load_incluster_config()
        except config.ConfigException as e:
            raise FetchError(f"No kubeconfig at {path} and not running in a cluster: {e}") from e
        namespace = "default"
        if os.path.exists(_SA_NAMESPACE_FILE):
            with open(_SA_NAMESPACE_FILE, encoding="utf-8") as f:
                namespace = f.read().strip() or "default"
        log.debug("loaded in-cluster config", namespace=namespace)
        return client.ApiClient(), namespace

    cfg, ctx_name = select_context(read_kubeconfig(path), context, cluster, user)
    try:
        api_client = config.new_client_from_config_dict(cfg, context=ctx_name)
    except config.ConfigException as e:
        raise FetchError(f"Invalid credentials for context {ctx_name!r}: {e}") from e
    log.debug("loaded kubeconfig", path=path, context=ctx_name)
    return api_client, context_namespace(cfg, ctx_name)


# ----------------------------
# LIST calls
# ----------------------------


class ClusterClient:
    """
    Read-only API client. Every call returns plain Kubernetes-shaped dicts,
    never raw client objects.
    """

    def __init__(self, api_client: client.ApiClient, request_timeout: int = 30):
        self.api_client = api_client
        self.request_timeout = request_timeout
        self.apis = {
            "core": client.CoreV1Api(api_client),
            "apps": client.AppsV1Api(api_client),
            "batch": client.BatchV1Api(api_client),
        }

    def _items(self, kind: str, api_version: str, call: Callable[..., Any], *args, **kwargs) -> list[dict[str, Any]]:
        log.debug("list", kind=kind, args=args, **kwargs)
        try:
            result = call(*args, _request_timeout=self.request_timeout, **kwargs)
        except ApiException as e:
            raise FetchError(f"Listing {kind} failed: {e.status} {e.reason}") from e
        except urllib3.exceptions.HTTPError as e:
            raise FetchError(f"Listing {kind} failed: {e}") from e

        data = self.api_client.sanitize_for_serialization(result) or {}
        items = data.get("items") or []
        # List responses do not carry kind/apiVersion on their items.
        for item in items:
            item.setdefault("kind", kind)
            item.setdefault("apiVersion", api_version)
        return items

    def _list_kind(self, kind: str, namespace: str | None, selector: str | None) -> list[dict[str, Any]]:
        api_version, group, suffix = LIST_CALLS[kind]
        api = self.apis[group]
        kwargs = {"label_selector": selector} if selector else {}
        if namespace is None:
            return self._items(kind, api_version, getattr(api, f"list_{suffix}_for_all_namespaces"), **kwargs)
        return self._items(kind, api_version, getattr(api, f"list_namespaced_{suffix}"), namespace, **kwargs)

    def list_pods(self, namespace: str | None = None, selector: str | None = None) -> list[dict[str, Any]]:
        return self._list_kind("Pod", namespace, selector)

    def list_nodes(self, selector: str | None = None) -> list[dict[str, Any]]:
        kwargs = {"label_selector": selector} if selector else {}
        return self._items("Node", "v1", self.apis["core"].list_node, **kwargs)

    def list_controllers(
        self, kind: str, namespace: str | None = None, selector: str | None = None
    ) -> list[dict[str, Any]]:
        if kind not in LIST_CALLS or kind == "Pod":
            raise ValueError(f"Not a controller kind: {kind}")
        return self._list_kind(kind, namespace, selector)


def fetch_snapshot(cluster: ClusterClient, options: SkewOptions, max_workers: int = 4) -> ClusterSnapshot:
    """
    Issue the LIST calls one report needs concurrently.

    All nodes are always listed (they define the domain universe), and
    controllers without a selector (the owner index must be complete). The
    first failure aborts the run: nothing is aggregated from a partial
    snapshot.
    """
    calls: dict[str, Callable[[], list[dict[str, Any]]]] = {"Node": cluster.list_nodes}

    if options.mode is not ResourceKind.NODE:
        pod_selector = str(options.selector) if options.mode is ResourceKind.POD else None

        def list_pods() -> list[dict[str, Any]]:
            return cluster.list_pods(options.namespace, pod_selector or None)

        calls["Pod"] = list_pods

    for kind in options.mode.controller_kinds:
        calls[kind] = _controller_call(cluster, kind, options.namespace)

    results: dict[str, list[dict[str, Any]]] = {}
    executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="list")
    try:
        futures: dict[Future, str] = {executor.submit(call): kind for kind, call in calls.items()}
        for future in as_completed(futures):
            results[futures[future]] = future.result()
    finally:
        executor.shutdown(wait=False, cancel_futures=True)

    controllers: list[dict[str, Any]] = []
    for kind in options.mode.controller_kinds:
        controllers.extend(results[kind])

    log.debug(
        "snapshot complete",
        nodes=len(results["Node"]),
        pods=len(results.get("Pod", [])),
        controllers=len(controllers),
    )
    return ClusterSnapshot(
        pods=tuple(results.get("Pod", [])),
        nodes=tuple(results["Node"]),
        controllers=tuple(controllers),
    )


def _controller_call(
    cluster: ClusterClient, kind: str, namespace: str | None
) -> Callable[[], list[dict[str, Any]]]:
    def call() -> list[dict[str, Any]]:
        return cluster.list_controllers(kind, namespace)

    return call
