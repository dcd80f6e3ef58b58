from kubectl_topology_skew.relations import (
    RESOLVED,
    UNMANAGED,
    UNRESOLVED,
    build_controller_index,
    resolve_owner,
)
from kubectl_topology_skew.result import UNMANAGED_KIND, UNRESOLVED_KIND, OwnerIdentity
from kubectl_topology_skew.tests.builders import controller, owner_ref, pod

RS_REF = owner_ref("ReplicaSet", "web-rs")


def _deployment_index():
    return build_controller_index(
        [
            controller("Deployment", "web"),
            controller("ReplicaSet", "web-rs", owner=owner_ref("Deployment", "web")),
        ],
        ["Deployment", "ReplicaSet"],
    )


# ----------------------------
# Resolution
# ----------------------------


def test_pod_resolves_through_replicaset():
    res = resolve_owner(pod("web-1", owner=RS_REF), _deployment_index(), ["Deployment"])
    assert res.status == RESOLVED
    assert res.owner == OwnerIdentity("Deployment", "default", "web", "apps/v1")


def test_direct_owner():
    index = build_controller_index([controller("StatefulSet", "db")], ["StatefulSet"])
    res = resolve_owner(pod("db-0", owner=owner_ref("StatefulSet", "db")), index, ["StatefulSet"])
    assert res.resolved
    assert res.owner.name == "db"


def test_job_keeps_batch_api_version():
    index = build_controller_index([controller("Job", "backup", api_version="batch/v1")], ["Job"])
    res = resolve_owner(pod("backup-x", owner=owner_ref("Job", "backup", "batch/v1")), index, ["Job"])
    assert res.owner.api_version == "batch/v1"


def test_pod_without_owner_is_unmanaged():
    res = resolve_owner(pod("debug"), _deployment_index(), ["Deployment"])
    assert res.status == UNMANAGED
    assert res.owner == OwnerIdentity(UNMANAGED_KIND, "default")


def test_non_controller_reference_is_ignored():
    ref = owner_ref("ReplicaSet", "web-rs", controller=False)
    res = resolve_owner(pod("web-1", owner=ref), _deployment_index(), ["Deployment"])
    assert res.status == UNMANAGED


def test_untracked_owner_kind_is_unmanaged():
    ref = owner_ref("Rollout", "canary", "argoproj.io/v1alpha1")
    res = resolve_owner(pod("canary-1", owner=ref), _deployment_index(), ["Deployment"])
    assert res.status == UNMANAGED


def test_bare_replicaset_is_unmanaged():
    index = build_controller_index([controller("ReplicaSet", "web-rs")], ["Deployment", "ReplicaSet"])
    res = resolve_owner(pod("web-1", owner=RS_REF), index, ["Deployment"])
    assert res.status == UNMANAGED


# ----------------------------
# Broken chains
# ----------------------------


def test_dangling_reference_is_unresolved():
    index = build_controller_index([], ["Deployment", "ReplicaSet"])
    res = resolve_owner(pod("web-1", owner=RS_REF), index, ["Deployment"])
    assert res.status == UNRESOLVED
    assert res.owner == OwnerIdentity(UNRESOLVED_KIND, "default")


def test_missing_target_object_is_unresolved():
    index = build_controller_index(
        [controller("ReplicaSet", "web-rs", owner=owner_ref("Deployment", "web"))],
        ["Deployment", "ReplicaSet"],
    )
    res = resolve_owner(pod("web-1", owner=RS_REF), index, ["Deployment"])
    assert res.status == UNRESOLVED


def test_owner_in_other_namespace_is_not_followed():
    index = build_controller_index(
        [
            controller("Deployment", "web", namespace="other"),
            controller("ReplicaSet", "web-rs", namespace="other", owner=owner_ref("Deployment", "web")),
        ],
        ["Deployment", "ReplicaSet"],
    )
    res = resolve_owner(pod("web-1", owner=RS_REF), index, ["Deployment"])
    assert res.status == UNRESOLVED


def test_cycle_is_unresolved():
    index = build_controller_index(
        [
            controller("ReplicaSet", "a", owner=owner_ref("ReplicaSet", "b")),
            controller("ReplicaSet", "b", owner=owner_ref("ReplicaSet", "a")),
        ],
        ["Deployment", "ReplicaSet"],
    )
    res = resolve_owner(pod("p", owner=owner_ref("ReplicaSet", "a")), index, ["Deployment"])
    assert res.status == UNRESOLVED


def test_max_hops():
    index = _deployment_index()
    p = pod("web-1", owner=RS_REF)
    assert resolve_owner(p, index, ["Deployment"], max_hops=2).resolved
    assert resolve_owner(p, index, ["Deployment"], max_hops=1).status == UNRESOLVED
