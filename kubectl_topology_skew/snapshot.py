from dataclasses import dataclass, field
from typing import Any

import yaml

from kubectl_topology_skew.errors import SnapshotError
from kubectl_topology_skew.model import get_kind, normalize_items
from kubectl_topology_skew.resources import INTERMEDIATE_KINDS, WORKLOAD_KINDS

CONTROLLER_KINDS = frozenset(WORKLOAD_KINDS).union(
    *(set(kinds) for kinds in INTERMEDIATE_KINDS.values())
)


@dataclass(frozen=True)
class ClusterSnapshot:
    """
    Read-only view of the objects one report is computed from.
    """

    pods: tuple[dict[str, Any], ...] = field(default_factory=tuple)
    nodes: tuple[dict[str, Any], ...] = field(default_factory=tuple)
    controllers: tuple[dict[str, Any], ...] = field(default_factory=tuple)

    @classmethod
    def from_objects(cls, objs: Any) -> "ClusterSnapshot":
        """
        Split a mixed bag of objects (e.g. `kubectl get pods,nodes,rs -o json`)
        by kind. Objects of other kinds are ignored.
        """
        pods: list[dict[str, Any]] = []
        nodes: list[dict[str, Any]] = []
        controllers: list[dict[str, Any]] = []

        for obj in normalize_items(objs):
            if not isinstance(obj, dict):
                raise SnapshotError(f"Snapshot items must be objects, got {type(obj).__name__}")
            kind = get_kind(obj)
            if kind == "Pod":
                pods.append(obj)
            elif kind == "Node":
                nodes.append(obj)
            elif kind in CONTROLLER_KINDS:
                controllers.append(obj)

        return cls(tuple(pods), tuple(nodes), tuple(controllers))


def load_snapshot(path: str) -> ClusterSnapshot:
    """
    Load a snapshot from a JSON or YAML file. Multi-document YAML streams
    are merged.
    """
    try:
        with open(path, encoding="utf-8") as f:
            docs = [doc for doc in yaml.safe_load_all(f) if doc]
    except OSError as e:
        raise SnapshotError(f"Cannot read snapshot {path}: {e}") from e
    except yaml.YAMLError as e:
        raise SnapshotError(f"Invalid snapshot {path}: {e}") from e

    return ClusterSnapshot.from_objects(docs)
