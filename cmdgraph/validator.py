"""Structural validator for node graphs, and the rules for making connections."""

from __future__ import annotations

import logging

from .errors import ConnectionRejected, ValidationError
from .factory import new_id
from .model import ANY_TYPE, Connection, Graph, NodeInstance, Socket

logger = logging.getLogger(__name__)


def can_connect(source: Socket, target: Socket) -> str | None:
    """Return why ``source`` may not feed ``target``, or None if it may."""
    if source.io != "output" or target.io != "input":
        return "Connections run from an output to an input"
    if source.kind != target.kind:
        return f"Cannot connect {source.kind} socket to {target.kind} socket"
    if (
        not source.is_flow
        and source.data_type != target.data_type
        and ANY_TYPE not in (source.data_type, target.data_type)
    ):
        return f"Type mismatch: cannot connect {source.data_type} to {target.data_type}"
    return None


def connect(graph: Graph, from_node: str, from_key: str, to_node: str, to_key: str) -> Connection:
    """Connect two sockets by node id and argument key.

    An input holds at most one connection, so an existing one is replaced.
    A flow output may not fan out.

    Raises:
        ConnectionRejected: If a socket is missing or the sockets are incompatible.
    """
    source_node = _require_node(graph, from_node)
    target_node = _require_node(graph, to_node)
    source = source_node.sockets.output(from_key)
    target = target_node.sockets.input(to_key)
    if source is None:
        raise ConnectionRejected("No such output socket", node_id=from_node, key=from_key)
    if target is None:
        raise ConnectionRejected("No such input socket", node_id=to_node, key=to_key)

    reason = can_connect(source, target)
    if reason is None and source.is_flow and from_node == to_node:
        reason = "A node cannot flow into itself"
    if reason is None and source.is_flow and graph.outgoing(source.id):
        reason = "Flow output is already connected"
    if reason:
        logger.warning("Rejected connection %s -> %s: %s", source.id, target.id, reason)
        raise ConnectionRejected(reason, node_id=from_node, key=from_key)

    for existing in graph.incoming(target.id):
        graph.disconnect(existing.id)
    return graph.add_connection(Connection(
        id=new_id("edge"),
        from_node=from_node,
        from_socket=source.id,
        to_node=to_node,
        to_socket=target.id,
    ))


class GraphValidator:
    """Validates a graph (typically one loaded from disk) for structural soundness."""

    def validate(self, graph: Graph) -> list[ValidationError]:
        """Run all validations and return a list of errors (empty = valid)."""
        errors: list[ValidationError] = []
        errors += self._validate_unique_ids(graph)
        errors += self._validate_endpoints(graph)
        errors += self._validate_single_input(graph)
        errors += self._validate_flow_fanout(graph)
        errors += self._validate_socket_types(graph)
        errors += self._validate_no_cycles(graph)
        return errors

    def _validate_unique_ids(self, graph: Graph) -> list[ValidationError]:
        errors = []
        seen: set[str] = set()
        for node in graph.nodes:
            if node.id in seen:
                errors.append(ValidationError(f"Duplicate node ID '{node.id}'", node_id=node.id))
            seen.add(node.id)
        return errors

    def _validate_endpoints(self, graph: Graph) -> list[ValidationError]:
        errors = []
        node_ids = {n.id for n in graph.nodes}
        for c in graph.connections:
            for node_id in (c.from_node, c.to_node):
                if node_id not in node_ids:
                    errors.append(ValidationError(
                        f"Connection '{c.id}' references unknown node '{node_id}'",
                    ))
            if c.from_node in node_ids and _socket(graph, c.from_node, c.from_key, "output") is None:
                errors.append(ValidationError(
                    f"Connection '{c.id}' starts at unknown socket '{c.from_key}'",
                    node_id=c.from_node,
                ))
            if c.to_node in node_ids and _socket(graph, c.to_node, c.to_key, "input") is None:
                errors.append(ValidationError(
                    f"Connection '{c.id}' ends at unknown socket '{c.to_key}'",
                    node_id=c.to_node,
                ))
        return errors

    def _validate_single_input(self, graph: Graph) -> list[ValidationError]:
        errors = []
        counts: dict[str, int] = {}
        for c in graph.connections:
            counts[c.to_socket] = counts.get(c.to_socket, 0) + 1
        for socket, count in counts.items():
            if count > 1:
                errors.append(ValidationError(f"Input socket '{socket}' has {count} incoming connections"))
        return errors

    def _validate_flow_fanout(self, graph: Graph) -> list[ValidationError]:
        errors = []
        counts: dict[str, int] = {}
        for c in graph.connections:
            source = _socket(graph, c.from_node, c.from_key, "output")
            if source is not None and source.is_flow:
                counts[c.from_socket] = counts.get(c.from_socket, 0) + 1
        for socket, count in counts.items():
            if count > 1:
                errors.append(ValidationError(
                    f"Flow socket '{socket}' has {count} outgoing connections; only the first is followed",
                ))
        return errors

    def _validate_socket_types(self, graph: Graph) -> list[ValidationError]:
        errors = []
        for c in graph.connections:
            source = _socket(graph, c.from_node, c.from_key, "output")
            target = _socket(graph, c.to_node, c.to_key, "input")
            if source is None or target is None:
                continue
            reason = can_connect(source, target)
            if reason:
                errors.append(ValidationError(f"Connection '{c.id}': {reason}"))
        return errors

    def _validate_no_cycles(self, graph: Graph) -> list[ValidationError]:
        """Detect cycles in the flow graph (main chains and branch entries)."""
        errors = []

        edges: dict[str, list[str]] = {n.id: [] for n in graph.nodes}
        for c in graph.connections:
            source = _socket(graph, c.from_node, c.from_key, "output")
            if source is not None and source.is_flow and c.to_node in edges:
                edges[c.from_node].append(c.to_node)

        # DFS cycle detection
        WHITE, GRAY, BLACK = 0, 1, 2
        color = {node_id: WHITE for node_id in edges}

        def dfs(node: str) -> str | None:
            color[node] = GRAY
            for nxt in edges.get(node, []):
                if color[nxt] == GRAY:
                    return f"Cycle detected involving '{node}' -> '{nxt}'"
                if color[nxt] == WHITE:
                    result = dfs(nxt)
                    if result:
                        return result
            color[node] = BLACK
            return None

        for node_id in edges:
            if color[node_id] == WHITE:
                cycle = dfs(node_id)
                if cycle:
                    errors.append(ValidationError(cycle))
                    break

        return errors


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _require_node(graph: Graph, node_id: str) -> NodeInstance:
    node = graph.node(node_id)
    if node is None:
        raise ConnectionRejected("No such node", node_id=node_id)
    return node


def _socket(graph: Graph, node_id: str, key: str, io: str) -> Socket | None:
    node = graph.node(node_id)
    if node is None:
        return None
    return node.sockets.output(key) if io == "output" else node.sockets.input(key)
