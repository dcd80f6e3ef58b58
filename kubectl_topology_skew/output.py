import json
import sys

import yaml

from kubectl_topology_skew.result import ResultSet, SkewRow

NO_RESOURCES = "No resources found."
HEADERS = ("TOPOLOGY", "COUNT", "SKEW")

# ----------------------------
# Renderers
# ----------------------------


def _table(row: SkewRow) -> list[str]:
    cells = [HEADERS] + [(d.domain, str(d.count), str(d.skew)) for d in row.domains]
    widths = [max(len(c[i]) for c in cells) for i in range(len(HEADERS))]
    return ["  ".join(c.ljust(w) for c, w in zip(cells_row, widths)).rstrip() for cells_row in cells]


def render_text(result: ResultSet) -> str:
    """
    One table per owner. Workload rows get a title line; pod and node
    reports are a single untitled table.
    """
    blocks: list[str] = []
    for row in result:
        lines = _table(row)
        title = row.owner.title()
        if title:
            lines.insert(0, title)
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


def render_json(result: ResultSet) -> str:
    return json.dumps(result.to_data(), indent=2)


def render_yaml(result: ResultSet) -> str:
    return yaml.safe_dump(result.to_data(), sort_keys=False).rstrip("\n")


def render_tree(result: ResultSet) -> str:
    """
    Indented tree rooted at ".": owners, then their domains. Pod and node
    reports hang the domains off the root directly.
    """
    lines = ["."]

    def branch(labels: list[str], prefix: str) -> list[tuple[str, str]]:
        out = []
        for i, label in enumerate(labels):
            last = i == len(labels) - 1
            out.append((prefix + ("└── " if last else "├── ") + label, prefix + ("    " if last else "│   ")))
        return out

    def domain_labels(row: SkewRow) -> list[str]:
        return [f"{d.domain} (count: {d.count}, skew: {d.skew})" for d in row.domains]

    rows = list(result)
    titled = [row for row in rows if row.owner.title()]

    if not titled:
        for row in rows:
            lines.extend(line for line, _ in branch(domain_labels(row), ""))
        return "\n".join(lines)

    for row, (line, child_prefix) in zip(titled, branch([r.owner.title() or "" for r in titled], "")):
        lines.append(line)
        lines.extend(child for child, _ in branch(domain_labels(row), child_prefix))
    return "\n".join(lines)


RENDERERS = {
    "text": render_text,
    "json": render_json,
    "yaml": render_yaml,
    "tree": render_tree,
}


# ----------------------------
# Output formatting
# ----------------------------


def output_result(result: ResultSet, fmt: str = "text") -> None:
    """
    Print the report in the requested format.
    - JSON and YAML always print a document (`[]` when empty)
    - text and tree print nothing for an empty report; the notice goes
      to stderr so pipelines see empty stdout
    """
    if fmt in ("json", "yaml"):
        print(RENDERERS[fmt](result))
        return

    if not len(result):
        print(NO_RESOURCES, file=sys.stderr)
        return

    print(RENDERERS[fmt](result))
