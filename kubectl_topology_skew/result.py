from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

UNMANAGED_KIND = "Unmanaged"
UNRESOLVED_KIND = "Unresolved"


@dataclass(frozen=True, order=True)
class OwnerIdentity:
    """
    Grouping key of a report row.

    Field order doubles as the sort order: kind, namespace, name.
    """

    kind: str
    namespace: str = ""
    name: str = ""
    api_version: str = ""

    @classmethod
    def for_pods(cls, namespace: str = "") -> "OwnerIdentity":
        return cls(kind="Pod", namespace=namespace, api_version="v1")

    @classmethod
    def for_nodes(cls) -> "OwnerIdentity":
        return cls(kind="Node", api_version="v1")

    @classmethod
    def unmanaged(cls, namespace: str) -> "OwnerIdentity":
        return cls(kind=UNMANAGED_KIND, namespace=namespace)

    @classmethod
    def unresolved(cls, namespace: str) -> "OwnerIdentity":
        return cls(kind=UNRESOLVED_KIND, namespace=namespace)

    @property
    def is_workload(self) -> bool:
        return bool(self.name) or self.kind in (UNMANAGED_KIND, UNRESOLVED_KIND)

    def title(self) -> str | None:
        if not self.is_workload:
            return None
        if self.name:
            title = f"{self.api_version}/{self.kind.lower()}/{self.name}"
        else:
            title = self.kind.lower()
        if self.namespace:
            title += f" ({self.namespace})"
        return title

    def to_data(self) -> dict[str, str]:
        return {
            "apiVersion": self.api_version,
            "kind": self.kind,
            "namespace": self.namespace,
            "name": self.name,
        }


@dataclass(frozen=True)
class DomainCount:
    domain: str
    count: int
    skew: int

    def to_data(self) -> dict[str, Any]:
        return {"domain": self.domain, "count": self.count, "skew": self.skew}


@dataclass(frozen=True)
class SkewRow:
    owner: OwnerIdentity
    domains: tuple[DomainCount, ...]

    @property
    def total(self) -> int:
        return sum(d.count for d in self.domains)

    def to_data(self) -> dict[str, Any]:
        return {
            "resource": self.owner.to_data(),
            "topology": [d.to_data() for d in self.domains],
        }


@dataclass(frozen=True)
class ResultSet:
    rows: tuple[SkewRow, ...] = field(default_factory=tuple)

    def __iter__(self) -> Iterator[SkewRow]:
        return iter(self.rows)

    def __len__(self) -> int:
        return len(self.rows)

    def to_data(self) -> list[dict[str, Any]]:
        return [row.to_data() for row in self.rows]
