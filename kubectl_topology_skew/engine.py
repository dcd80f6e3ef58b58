from collections.abc import Iterable
from typing import Any

from kubectl_topology_skew.config import SkewOptions
from kubectl_topology_skew.log import get_logger
from kubectl_topology_skew.model import (
    get_kind,
    get_labels,
    get_name,
    get_namespace,
    get_pod_phase,
    is_node_ready,
)
from kubectl_topology_skew.relations import (
    UNMANAGED,
    build_controller_index,
    resolve_owner,
)
from kubectl_topology_skew.resources import ResourceKind
from kubectl_topology_skew.result import DomainCount, OwnerIdentity, ResultSet, SkewRow
from kubectl_topology_skew.snapshot import ClusterSnapshot
from kubectl_topology_skew.topology import (
    classify,
    classify_pod,
    domain_universe,
    index_nodes,
    sort_domains,
)

log = get_logger("engine")

Groups = dict[OwnerIdentity, list[str]]


# ----------------------------
# Skew aggregation
# ----------------------------


def aggregate(groups: Groups, universe: Iterable[str]) -> ResultSet:
    """
    Turn owner -> member domains into one row per owner.

    Every row carries the same columns: the node-derived universe plus
    any domain a member was classified into (in practice only the
    unknown domain, when a pod's node is gone). Skew is each count minus
    the smallest count over the universe, so a column added for another
    owner's members never lowers this owner's minimum. Extra columns are
    floored at 0. Without nodes the row's own columns set the minimum.
    """
    universe = sort_domains(universe)
    columns = sort_domains(
        list(universe) + [domain for members in groups.values() for domain in members]
    )
    if not columns:
        # No nodes and no members: there is nothing to measure skew against.
        return ResultSet()

    rows: list[SkewRow] = []
    for owner in sorted(groups):
        counts = dict.fromkeys(columns, 0)
        for domain in groups[owner]:
            counts[domain] += 1

        lowest = min(counts[d] for d in (universe or columns))
        rows.append(
            SkewRow(
                owner=owner,
                domains=tuple(
                    DomainCount(domain=d, count=counts[d], skew=max(counts[d] - lowest, 0))
                    for d in columns
                ),
            )
        )

    return ResultSet(tuple(rows))


# ----------------------------
# Member selection per mode
# ----------------------------


def _in_namespace(obj: dict[str, Any], namespace: str | None) -> bool:
    return namespace is None or get_namespace(obj) == namespace


def _active_pods(snapshot: ClusterSnapshot, options: SkewOptions) -> list[dict[str, Any]]:
    return [
        pod
        for pod in snapshot.pods
        if _in_namespace(pod, options.namespace)
        and (options.include_inactive or get_pod_phase(pod) == "Running")
    ]


def _node_groups(snapshot: ClusterSnapshot, options: SkewOptions) -> Groups:
    members = [
        classify(node, options.topology_key)
        for node in snapshot.nodes
        if options.selector.matches(get_labels(node))
        and (options.include_inactive or is_node_ready(node))
    ]
    if not members:
        return {}
    return {OwnerIdentity.for_nodes(): members}


def _pod_groups(snapshot: ClusterSnapshot, options: SkewOptions) -> Groups:
    nodes_by_name = index_nodes(snapshot.nodes)
    members = [
        classify_pod(pod, nodes_by_name, options.topology_key)
        for pod in _active_pods(snapshot, options)
        if options.selector.matches(get_labels(pod))
    ]
    if not members:
        return {}
    return {OwnerIdentity.for_pods(options.namespace or ""): members}


def _workload_identity(obj: dict[str, Any]) -> OwnerIdentity:
    kind = get_kind(obj)
    api_version = obj.get("apiVersion") or ResourceKind.from_kind(kind).api_version
    return OwnerIdentity(
        kind=kind,
        namespace=get_namespace(obj),
        name=get_name(obj),
        api_version=api_version,
    )


def _workload_groups(snapshot: ClusterSnapshot, options: SkewOptions) -> Groups:
    mode = options.mode
    targets = mode.target_kinds
    filtering = bool(options.selector) or options.name is not None

    # Every selected workload gets a row, even without running pods.
    groups: Groups = {}
    selected: dict[tuple[str, str, str], OwnerIdentity] = {}
    for obj in snapshot.controllers:
        if get_kind(obj) not in targets or not _in_namespace(obj, options.namespace):
            continue
        if options.name is not None and get_name(obj) != options.name:
            continue
        if not options.selector.matches(get_labels(obj)):
            continue
        owner = _workload_identity(obj)
        selected[(owner.kind, owner.namespace, owner.name)] = owner
        groups[owner] = []

    index = build_controller_index(snapshot.controllers, mode.controller_kinds)
    nodes_by_name = index_nodes(snapshot.nodes)
    skipped = 0

    for pod in _active_pods(snapshot, options):
        resolution = resolve_owner(pod, index, targets, options.max_hops)
        if resolution.resolved:
            found = resolution.owner
            owner = selected.get((found.kind, found.namespace, found.name))
            if owner is None:
                skipped += 1
                continue
        elif filtering or (resolution.status == UNMANAGED and mode is not ResourceKind.ALL):
            skipped += 1
            continue
        else:
            owner = resolution.owner

        groups.setdefault(owner, []).append(
            classify_pod(pod, nodes_by_name, options.topology_key)
        )

    log.debug("pods outside report", mode=mode.command, skipped=skipped)
    return groups


def build_result(snapshot: ClusterSnapshot, options: SkewOptions) -> ResultSet:
    """
    Compute the skew report for one invocation.

    Pure: the snapshot is only read, and the same snapshot and options
    always produce the same ResultSet.
    """
    universe = domain_universe(snapshot.nodes, options.topology_key)

    if options.mode is ResourceKind.NODE:
        groups = _node_groups(snapshot, options)
    elif options.mode is ResourceKind.POD:
        groups = _pod_groups(snapshot, options)
    else:
        groups = _workload_groups(snapshot, options)

    result = aggregate(groups, universe)
    log.debug(
        "aggregated",
        mode=options.mode.command,
        topology_key=options.topology_key,
        domains=list(universe),
        rows=len(result),
        members=sum(row.total for row in result),
    )
    return result
