from enum import Enum

WORKLOAD_KINDS = ("Deployment", "StatefulSet", "DaemonSet", "Job")

# Kinds that sit between a pod and its workload and must be fetched to
# walk the owner chain.
INTERMEDIATE_KINDS = {
    "Deployment": ("ReplicaSet",),
}


class ResourceKind(Enum):
    """
    Closed set of report modes. Each mode knows which kinds it reports
    on and which controller kinds must be listed to resolve pod owners.
    """

    POD = ("pod", ("po",), "v1", "Pod")
    NODE = ("node", ("no",), "v1", "Node")
    DEPLOYMENT = ("deployment", ("deploy",), "apps/v1", "Deployment")
    STATEFULSET = ("statefulset", ("sts",), "apps/v1", "StatefulSet")
    DAEMONSET = ("daemonset", ("ds",), "apps/v1", "DaemonSet")
    JOB = ("job", (), "batch/v1", "Job")
    ALL = ("all", (), "", "")

    def __init__(self, command: str, aliases: tuple[str, ...], api_version: str, kind: str):
        self.command = command
        self.aliases = aliases
        self.api_version = api_version
        self.kind = kind

    @classmethod
    def from_command(cls, name: str) -> "ResourceKind":
        for mode in cls:
            if name == mode.command or name in mode.aliases:
                return mode
        raise ValueError(f"Unknown resource kind: {name}")

    @classmethod
    def from_kind(cls, kind: str) -> "ResourceKind":
        for mode in cls:
            if mode.kind and mode.kind == kind:
                return mode
        raise ValueError(f"Unknown object kind: {kind}")

    @property
    def is_workload(self) -> bool:
        return self.kind in WORKLOAD_KINDS or self is ResourceKind.ALL

    @property
    def target_kinds(self) -> tuple[str, ...]:
        if self is ResourceKind.ALL:
            return WORKLOAD_KINDS
        if self.kind in WORKLOAD_KINDS:
            return (self.kind,)
        return ()

    @property
    def controller_kinds(self) -> tuple[str, ...]:
        kinds: list[str] = []
        for kind in self.target_kinds:
            kinds.append(kind)
            kinds.extend(INTERMEDIATE_KINDS.get(kind, ()))
        return tuple(kinds)
