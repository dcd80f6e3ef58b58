from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from kubectl_topology_skew.log import get_logger
from kubectl_topology_skew.model import (
    controller_ref,
    get_kind,
    get_name,
    get_namespace,
)
from kubectl_topology_skew.result import OwnerIdentity

log = get_logger("relations")

RESOLVED = "resolved"
UNMANAGED = "unmanaged"
UNRESOLVED = "unresolved"

ObjectKey = tuple[str, str, str]


class ControllerIndex:
    """
    (kind, namespace, name) -> controller owner reference of that object.

    `kinds` lists every kind that was fetched, including kinds for which
    the cluster returned no objects, so a reference to a missing object of
    a fetched kind can be told apart from a reference to an untracked kind.
    """

    def __init__(self, refs: dict[ObjectKey, dict[str, Any] | None], kinds: Iterable[str]):
        self.refs = refs
        self.kinds = frozenset(kinds)

    def tracks(self, kind: str) -> bool:
        return kind in self.kinds

    def __contains__(self, key: ObjectKey) -> bool:
        return key in self.refs

    def parent(self, key: ObjectKey) -> dict[str, Any] | None:
        return self.refs.get(key)


def build_controller_index(
    controllers: Iterable[dict[str, Any]], kinds: Iterable[str] = ()
) -> ControllerIndex:
    refs: dict[ObjectKey, dict[str, Any] | None] = {}
    fetched = set(kinds)
    for obj in controllers:
        kind = get_kind(obj)
        refs[(kind, get_namespace(obj), get_name(obj))] = controller_ref(obj)
        fetched.add(kind)
    return ControllerIndex(refs, fetched)


@dataclass(frozen=True)
class OwnerResolution:
    owner: OwnerIdentity
    status: str

    @property
    def resolved(self) -> bool:
        return self.status == RESOLVED


def resolve_owner(
    pod: dict[str, Any],
    index: ControllerIndex,
    target_kinds: Iterable[str],
    max_hops: int | None = None,
) -> OwnerResolution:
    """
    Walk the controller references of a pod up to a workload of one of
    `target_kinds`.

    - no controller reference, or a chain ending at an untracked kind
      -> unmanaged
    - a reference to an object of a fetched kind that is not in the
      index, a cycle, or more than `max_hops` hops -> unresolved
    """
    targets = set(target_kinds)
    namespace = get_namespace(pod)
    pod_name = get_name(pod)

    ref = controller_ref(pod)
    visited: set[ObjectKey] = set()
    hops = 0

    while ref is not None:
        hops += 1
        kind = ref.get("kind") or ""
        name = ref.get("name") or ""
        key = (kind, namespace, name)

        if max_hops is not None and hops > max_hops:
            log.warning("owner chain too deep", pod=pod_name, namespace=namespace, max_hops=max_hops)
            return OwnerResolution(OwnerIdentity.unresolved(namespace), UNRESOLVED)

        if key in visited:
            log.warning("owner chain cycle", pod=pod_name, namespace=namespace, at=f"{kind}/{name}")
            return OwnerResolution(OwnerIdentity.unresolved(namespace), UNRESOLVED)
        visited.add(key)

        if index.tracks(kind) and key not in index:
            log.warning("dangling owner reference", pod=pod_name, namespace=namespace, owner=f"{kind}/{name}")
            return OwnerResolution(OwnerIdentity.unresolved(namespace), UNRESOLVED)

        if kind in targets:
            owner = OwnerIdentity(
                kind=kind,
                namespace=namespace,
                name=name,
                api_version=ref.get("apiVersion") or "",
            )
            return OwnerResolution(owner, RESOLVED)

        if not index.tracks(kind):
            return OwnerResolution(OwnerIdentity.unmanaged(namespace), UNMANAGED)

        ref = index.parent(key)

    return OwnerResolution(OwnerIdentity.unmanaged(namespace), UNMANAGED)
