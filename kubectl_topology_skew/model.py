import json
from typing import Any

# ----------------------------
# Parsing utilities
# ----------------------------


def load_json(path: str) -> Any:
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def normalize_items(objs: Any) -> list[dict[str, Any]]:
    """
    Accept a bare object, a list of objects or a `kind: List` document
    and always return a flat list of objects.
    """
    if not objs:
        return []
    if isinstance(objs, list):
        items: list[dict[str, Any]] = []
        for obj in objs:
            items.extend(normalize_items(obj))
        return items
    if isinstance(objs, dict) and str(objs.get("kind", "")).endswith("List"):
        return normalize_items(objs.get("items") or [])
    return [objs]


def get_kind(obj: dict[str, Any]) -> str:
    return obj.get("kind") or ""


def get_name(obj: dict[str, Any]) -> str:
    return (obj.get("metadata") or {}).get("name") or ""


def get_namespace(obj: dict[str, Any]) -> str:
    return (obj.get("metadata") or {}).get("namespace") or ""


def get_labels(obj: dict[str, Any]) -> dict[str, str]:
    return (obj.get("metadata") or {}).get("labels") or {}


def get_pod_phase(pod: dict[str, Any]) -> str:
    return (pod.get("status") or {}).get("phase") or "Unknown"


def get_node_name(pod: dict[str, Any]) -> str | None:
    return (pod.get("spec") or {}).get("nodeName") or None


def is_node_ready(node: dict[str, Any]) -> bool:
    for c in (node.get("status") or {}).get("conditions") or []:
        if c.get("type") == "Ready":
            return c.get("status") == "True"
    return False


def controller_ref(obj: dict[str, Any]) -> dict[str, Any] | None:
    """
    Return the owner reference flagged as the managing controller.
    Auxiliary owner references are ignored.
    """
    for ref in (obj.get("metadata") or {}).get("ownerReferences") or []:
        if ref.get("controller") is True:
            return ref
    return None
