"""Graph visualization: node graph -> Mermaid flowchart."""

from __future__ import annotations

import re

from .keys import EXEC_OUT
from .model import Graph, NodeInstance


# Command category -> Mermaid style
_CATEGORY_STYLES = {
    "Event_Commands":    "fill:#1e40af,stroke:#3b82f6,color:#e2e8f0",
    "Directives":        "fill:#7c3aed,stroke:#8b5cf6,color:#e2e8f0",
    "Meta_commands":     "fill:#b45309,stroke:#f59e0b,color:#e2e8f0",
    "Utility":           "fill:#065f46,stroke:#10b981,color:#e2e8f0",
}

_DEFAULT_STYLE = "fill:#1e293b,stroke:#64748b,color:#e2e8f0"
_HIDDEN_STYLE = "fill:#0f172a,stroke:#334155,color:#64748b,stroke-dasharray:4"

_UNSAFE = re.compile(r"[^A-Za-z0-9_]")


def generate_mermaid(graph: Graph) -> str:
    """Generate a Mermaid flowchart of nodes, flow and data connections."""
    lines: list[str] = ["graph TD"]

    # Node declarations
    for node in graph.nodes:
        lines.append(f"    {_mermaid_id(node.id)}{_node_shape(node)}")

    lines.append("")

    nodes = {n.id: n for n in graph.nodes}
    for c in graph.connections:
        source = nodes.get(c.from_node)
        target = nodes.get(c.to_node)
        if source is None or target is None:
            continue
        src, dst = _mermaid_id(source.id), _mermaid_id(target.id)
        socket = source.sockets.output(c.from_key)
        if socket is not None and socket.is_flow:
            label = "next" if c.from_key == EXEC_OUT else c.from_key
            lines.append(f"    {src} -->|{label}| {dst}")
        else:
            lines.append(f"    {src} -.->|{c.to_key}| {dst}")

    lines.append("")

    # Styles
    for node in graph.nodes:
        if not node.visible:
            style = _HIDDEN_STYLE
        else:
            style = _CATEGORY_STYLES.get(node.command.category or "", _DEFAULT_STYLE)
        lines.append(f"    style {_mermaid_id(node.id)} {style}")

    return "\n".join(lines)


def _mermaid_id(node_id: str) -> str:
    return _UNSAFE.sub("_", node_id)


def _node_shape(node: NodeInstance) -> str:
    """Return Mermaid node shape based on the node's role."""
    label = f"{node.display_name}\\n{node.id}".replace('"', "'")
    if node.definition.is_evaluator:
        return f'(["{label}"])'  # stadium
    if not node.command.is_exec:
        return f'[/"{label}"/]'  # parallelogram (data only)
    return f'["{label}"]'  # rectangle
