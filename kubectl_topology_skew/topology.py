from collections.abc import Iterable
from typing import Any

from kubectl_topology_skew.model import get_labels, get_name, get_node_name

ZONE_LABEL = "topology.kubernetes.io/zone"

# Reserved domain for nodes without the topology label and pods whose
# node is not part of the snapshot.
UNKNOWN_DOMAIN = "<unknown>"


def classify(node: dict[str, Any], topology_key: str) -> str:
    return get_labels(node).get(topology_key) or UNKNOWN_DOMAIN


def classify_pod(
    pod: dict[str, Any],
    nodes_by_name: dict[str, dict[str, Any]],
    topology_key: str,
) -> str:
    """
    Classify a pod through the node it is assigned to.

    Unscheduled pods and pods whose node vanished between the two LIST
    calls land in UNKNOWN_DOMAIN, so every pod is still counted.
    """
    node_name = get_node_name(pod)
    if node_name is None:
        return UNKNOWN_DOMAIN
    node = nodes_by_name.get(node_name)
    if node is None:
        return UNKNOWN_DOMAIN
    return classify(node, topology_key)


def index_nodes(nodes: Iterable[dict[str, Any]]) -> dict[str, dict[str, Any]]:
    return {get_name(node): node for node in nodes if get_name(node)}


def domain_sort_key(domain: str) -> tuple[bool, str]:
    return (domain == UNKNOWN_DOMAIN, domain)


def sort_domains(domains: Iterable[str]) -> tuple[str, ...]:
    return tuple(sorted(set(domains), key=domain_sort_key))


def domain_universe(nodes: Iterable[dict[str, Any]], topology_key: str) -> tuple[str, ...]:
    """
    Every domain seen on any node, even ones no pod is scheduled to.
    """
    return sort_domains(classify(node, topology_key) for node in nodes)
