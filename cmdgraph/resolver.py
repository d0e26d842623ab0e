"""Value resolution through data connections, plus live evaluation of embedded code."""

from __future__ import annotations

import logging
from typing import Any

from .errors import CyclicConnectionError, ExpressionError
from .expression import error_marker, evaluate, stringify
from .keys import RESULT, socket_id, suffixed
from .model import Connection, Graph, NodeInstance
from .schema import EMBEDDED_CODE, Argument
from .walker import Handlers, WalkContext, walk_node

logger = logging.getLogger(__name__)

# Names of the primitives that make up one variable binding group
BINDING_NAME = "name"
BINDING_VALUE = "value"


class Resolver:
    """Resolves argument values against one graph snapshot.

    With ``trust_cache`` set, an evaluate-code node exposes the result stored
    under ``<key>_result`` when there is one and is only evaluated otherwise.
    Results computed during a pass are memoized on the resolver, never
    written back to the node.
    """

    def __init__(self, graph: Graph, trust_cache: bool = True):
        self.graph = graph
        self.trust_cache = trust_cache
        self._nodes = {n.id: n for n in graph.nodes}
        self._incoming: dict[str, Connection] = {}
        for c in graph.connections:
            self._incoming.setdefault(c.to_socket, c)
        self._results: dict[tuple[str, str], str] = {}
        self._code_keys: dict[str, list[str]] = {}

    def node(self, node_id: str) -> NodeInstance | None:
        return self._nodes.get(node_id)

    def code_keys(self, node: NodeInstance) -> list[str]:
        """Keys of the embedded-code primitives on ``node``."""
        if node.id not in self._code_keys:
            array_param, results = walk_node(node.command, _CodeKeyHandlers(), node.values.get)
            self._code_keys[node.id] = (array_param or []) + [k for keys in results for k in keys]
        return self._code_keys[node.id]

    def resolve(self, node: NodeInstance, key: str) -> Any:
        """Effective value of ``key`` on ``node``.

        Follows incoming connections iteratively; revisiting a socket on the
        current path raises CyclicConnectionError. A dangling connection
        falls back to the local value.
        """
        return self._resolve(node, key, set())

    def _resolve(self, node: NodeInstance, key: str, seen: set[tuple[str, str]]) -> Any:
        while True:
            marker = (node.id, key)
            if marker in seen:
                raise CyclicConnectionError("Cyclic connection", node_id=node.id, key=key)
            seen.add(marker)

            connection = self._incoming.get(socket_id(node.id, key))
            if connection is None:
                return node.values.get(key)
            source = self._nodes.get(connection.from_node)
            source_key = connection.from_key
            if source is None or not _exposes(source, source_key):
                logger.debug("Dangling connection %s, using local value", connection.id)
                return node.values.get(key)
            if source.definition.is_evaluator and source_key in self.code_keys(source):
                return self._evaluated(source, source_key, seen)
            node, key = source, source_key

    # ------------------------------------------------------------------
    # Embedded code
    # ------------------------------------------------------------------

    def evaluated_result(self, node: NodeInstance, key: str) -> str:
        """Stringified result of the embedded code stored under ``key``."""
        return self._evaluated(node, key, set())

    def _evaluated(self, node: NodeInstance, key: str, seen: set[tuple[str, str]]) -> str:
        if self.trust_cache:
            cached = node.values.get(suffixed(key, RESULT))
            if cached is not None:
                return cached
        memo = (node.id, key)
        if memo in self._results:
            return self._results[memo]

        code = self._resolve(node, key, set(seen))
        try:
            result = stringify(evaluate(code, self.variables(node, seen)))
        except ExpressionError as exc:
            logger.warning("Embedded code on %s failed: %s", node.id, exc)
            result = error_marker(exc)
        self._results[memo] = result
        return result

    def variables(self, node: NodeInstance, seen: set[tuple[str, str]] | None = None) -> dict[str, Any]:
        """Variable bindings declared by ``node``'s name/value groups."""
        handlers = _BindingHandlers()
        walk_node(node.command, handlers, node.values.get)
        bindings: dict[str, Any] = {}
        for name_key, value_key in handlers.bindings:
            name = self._resolve(node, name_key, set(seen or ()))
            if name in (None, ""):
                continue
            bindings[str(name)] = self._resolve(node, value_key, set(seen or ()))
        return bindings


class _BindingHandlers(Handlers[dict]):
    """Collects the keys of every group holding a ``name`` and a ``value``."""

    def __init__(self) -> None:
        self.bindings: list[tuple[str, str]] = []

    def on_primitive(self, ctx: WalkContext[dict]) -> dict:
        return {ctx.arg.name: ctx.key.key}

    def on_group(self, ctx: WalkContext[dict], children: list[dict]) -> dict:
        roles: dict = {}
        for child in children:
            roles.update(child)
        if BINDING_NAME in roles and BINDING_VALUE in roles:
            self.bindings.append((roles[BINDING_NAME], roles[BINDING_VALUE]))
        return {}

    def on_repeatable(self, ctx: WalkContext[dict], items: list[dict], count: int) -> dict:
        return {}


class _CodeKeyHandlers(Handlers[list]):
    """Lists the keys of embedded-code primitives."""

    def on_primitive(self, ctx: WalkContext[list]) -> list:
        return [ctx.key.key] if ctx.arg.type == EMBEDDED_CODE else []

    def on_repeatable(self, ctx: WalkContext[list], items: list[list], count: int) -> list:
        return [k for item in items for k in item]

    def on_group(self, ctx: WalkContext[list], children: list[list]) -> list:
        return [k for child in children for k in child]

    on_block = on_group
    on_array = on_group

    def on_subcommand(self, ctx: WalkContext[list], array_param: list | None,
                      children: list[list]) -> list:
        return (array_param or []) + [k for child in children for k in child]

    def on_choice(self, ctx: WalkContext[list], option: Argument | None, child: list | None) -> list:
        return child or []


def _exposes(node: NodeInstance, key: str) -> bool:
    # Collapsed nodes keep their values, so a stored key still counts.
    return node.sockets.output(key) is not None or key in node.values


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def resolve_value(graph: Graph, node: NodeInstance, key: str) -> Any:
    """Resolve one key against ``graph``."""
    return Resolver(graph).resolve(node, key)


def refresh_results(graph: Graph) -> None:
    """Re-evaluate every evaluate-code node and cache results on it."""
    resolver = Resolver(graph, trust_cache=False)
    for node in graph.nodes:
        if not node.definition.is_evaluator:
            continue
        for key in resolver.code_keys(node):
            node.values[suffixed(key, RESULT)] = resolver.evaluated_result(node, key)
