"""Code generator: node graph -> program text."""

from __future__ import annotations

import logging
from typing import Any

from .errors import CmdGraphError, CyclicConnectionError, ExpressionError
from .expression import error_marker, evaluate, stringify, to_text
from .keys import EXEC_OUT, socket_id
from .logging import GenerationLog, GenerationLogger
from .model import Connection, Graph, NodeInstance
from .resolver import Resolver
from .schema import (
    Argument,
    Block,
    EMBEDDED_CODE,
    HIDDEN_MARKER,
    STRING,
    contains_block,
)
from .walker import Handlers, WalkContext, walk_node

logger = logging.getLogger(__name__)

DEFAULT_INDENT = "  "


class CodeGenerator:
    """Renders every flow chain of a graph into program text.

    Generation never raises: failures become inline comment markers at the
    point where they happen and the rest of the document is still produced.
    """

    def __init__(self, indent_unit: str = DEFAULT_INDENT):
        self.indent_unit = indent_unit

    def generate(self, graph: Graph) -> str:
        """Return the full program text."""
        text, _ = self.generate_with_log(graph)
        return text

    def generate_with_log(self, graph: Graph) -> tuple[str, GenerationLog]:
        """Return the program text and a structured log of the pass."""
        run = _GenerationPass(graph, self.indent_unit, GenerationLogger())
        chains = []
        for node in graph.nodes:
            if graph.is_flow_root(node):
                run.log.root(node.id)
                text = run.chain(node, 0, frozenset())
                if text:
                    chains.append(text)
        # A closed loop has no root, so nothing above ever reached it.
        for node in graph.nodes:
            if node.id not in run.reached and node.sockets.has_flow_input():
                loop = run.closed_loop(node)
                if loop:
                    run.reached.update(loop)
                    message = f"cyclic connection at {node.id}"
                    run.log.error(message)
                    chains.append(f"// Error: {message}")
        return "\n\n".join(chains), run.log.finish()


class _GenerationPass:
    """State of one generation pass over an immutable graph snapshot."""

    def __init__(self, graph: Graph, indent_unit: str, log: GenerationLogger):
        self.graph = graph
        self.indent_unit = indent_unit
        self.log = log
        self.resolver = Resolver(graph)
        self.reached: set[str] = set()
        self._outgoing: dict[str, list[Connection]] = {}
        for c in graph.connections:
            self._outgoing.setdefault(c.from_socket, []).append(c)

    def indent(self, depth: int) -> str:
        return self.indent_unit * depth

    def successor(self, node: NodeInstance, key: str) -> NodeInstance | None:
        """Node at the end of the first connection leaving ``key``."""
        connections = self._outgoing.get(socket_id(node.id, key))
        if not connections:
            return None
        if len(connections) > 1:
            self.log.warn(f"{node.id}: {len(connections)} flow connections from {key}, following the first")
        return self.resolver.node(connections[0].to_node)

    def closed_loop(self, start: NodeInstance) -> list[str]:
        """Ids on the flow loop through ``start``, or empty if there is none."""
        path: list[str] = []
        node: NodeInstance | None = start
        while node is not None and node.id not in path:
            path.append(node.id)
            node = self._peek(node, EXEC_OUT)
        if node is None or node.id != start.id:
            return []
        return path

    def _peek(self, node: NodeInstance, key: str) -> NodeInstance | None:
        connections = self._outgoing.get(socket_id(node.id, key))
        return self.resolver.node(connections[0].to_node) if connections else None

    def chain(self, start: NodeInstance, depth: int, enclosing: frozenset[str]) -> str:
        """Text of ``start`` and every node after it on the flow chain.

        ``enclosing`` holds the nodes of the chains this one is nested in, so
        a connection back into any of them is reported as a cycle.
        """
        lines: list[str] = []
        visited: set[str] = set()
        node: NodeInstance | None = start
        while node is not None:
            if node.id in visited or node.id in enclosing:
                message = f"cyclic connection at {node.id}"
                logger.warning("Flow %s", message)
                self.log.error(message)
                lines.append(f"{self.indent(depth)}// Error: {message}")
                break
            visited.add(node.id)
            self.reached.add(node.id)

            if node.visible:
                text = self.render_node(node, depth, enclosing | visited)
                if text:
                    lines.append(text)
            else:
                self.log.hide_node(node.id, node.type, depth)

            node = self.successor(node, EXEC_OUT)
        return "\n".join(lines)

    def render_node(self, node: NodeInstance, depth: int, enclosing: frozenset[str]) -> str:
        """One node's own line, including any nested branch text."""
        self.log.start_node(node.id, node.type, depth)
        if node.definition.is_evaluator:
            self.log.complete_node(node.id, "")
            return ""
        try:
            text = self._node_text(node, depth, enclosing)
        except CmdGraphError as exc:
            self.log.fail_node(node.id, str(exc))
            return f"{self.indent(depth)}// Error: {exc}"
        self.log.complete_node(node.id, text)
        return text

    def _node_text(self, node: NodeInstance, depth: int, enclosing: frozenset[str]) -> str:
        command = node.command
        handlers = _TextHandlers(self, node, depth, enclosing)
        array_param, parts = walk_node(command, handlers, handlers.lookup)

        line = command.head
        if command.array_parameter is not None and array_param:
            line += f"[{array_param}]"
        if command.subcommand:
            line += command.subcommand

        args = " ".join(p for p in parts if p)
        if line and args:
            line = f"{line} {args}"
        elif args:
            line = args
        if not line:
            return ""
        return self.indent(depth) + line


class _TextHandlers(Handlers[str]):
    """Renders one node's arguments, resolving values through connections."""

    def __init__(self, run: _GenerationPass, node: NodeInstance, depth: int,
                 enclosing: frozenset[str]):
        self.run = run
        self.node = node
        self.depth = depth
        self.enclosing = enclosing

    @property
    def indent(self) -> str:
        return self.run.indent(self.depth)

    def lookup(self, key: str) -> Any:
        try:
            return self.run.resolver.resolve(self.node, key)
        except CyclicConnectionError as exc:
            self.run.log.warn(str(exc))
            return None

    def on_primitive(self, ctx: WalkContext[str]) -> str | None:
        arg, key = ctx.arg, ctx.key.key
        try:
            value = self.run.resolver.resolve(self.node, key)
        except CyclicConnectionError as exc:
            self.run.log.error(str(exc))
            return f"/* Error: {exc} */"

        if arg.type == EMBEDDED_CODE:
            return self._evaluate_inline(value)

        if ctx.optional and value in (None, ""):
            return None
        text = "" if value is None else to_text(value)

        if arg.prefix:
            return f"{arg.prefix}{text}"
        if arg.is_identifier:
            return text
        if arg.type == STRING:
            return f'"{text}"'
        return text

    def _evaluate_inline(self, code: Any) -> str | None:
        if not code:
            return None
        try:
            return stringify(evaluate(code, {}))
        except ExpressionError as exc:
            logger.warning("Embedded code on %s failed: %s", self.node.id, exc)
            self.run.log.error(f"{self.node.id}: {exc}")
            return error_marker(exc)

    def on_keyword(self, ctx: WalkContext[str]) -> str | None:
        if ctx.arg.value == HIDDEN_MARKER:
            return None
        return ctx.arg.value

    def on_choice(self, ctx: WalkContext[str], option: Argument | None, child: str | None) -> str | None:
        return child

    def on_subcommand(self, ctx: WalkContext[str], array_param: str | None, children: list[str]) -> str:
        arg = ctx.arg
        text = arg.name or ""
        if arg.array_parameter is not None and array_param:
            text += f"[{array_param}]"
        parts = [c for c in children if c]
        if parts:
            if any(isinstance(a, Block) for a in arg.arguments):
                text += " " + " ".join(parts)
            else:
                text += "(" + ", ".join(parts) + ")"
        return text

    def on_block(self, ctx: WalkContext[str], children: list[str]) -> str:
        name = f"{ctx.arg.name} " if ctx.arg.name else ""
        inner = self.indent + self.run.indent_unit
        body = f"\n{inner}".join(c for c in children if c)
        if not body:
            return f"{name}{{}}"
        return f"{name}{{\n{inner}{body}\n{self.indent}}}"

    def on_exec_block(self, ctx: WalkContext[str]) -> str:
        target = self.run.successor(self.node, ctx.key.key)
        if target is None:
            return "{}"
        body = self.run.chain(target, self.depth + 1, self.enclosing)
        if not body:
            return "{}"
        return f"{{\n{body}\n{self.indent}}}"

    def on_group(self, ctx: WalkContext[str], children: list[str]) -> str:
        return " ".join(c for c in children if c)

    def on_array(self, ctx: WalkContext[str], items: list[str]) -> str:
        arg = ctx.arg
        separator = arg.separator or ", "
        start, end = arg.delimiters or ("[", "]")
        return f"{start}{separator.join(items)}{end}"

    def on_base(self, ctx: WalkContext[str], array_param: str | None) -> str:
        text = ctx.arg.name or ""
        if ctx.arg.array_parameter is not None and array_param:
            text += f"[{array_param}]"
        return text

    def on_repeatable(self, ctx: WalkContext[str], items: list[str], count: int) -> str:
        joiner = ctx.arg.repeatable_joiner
        if not joiner:
            joiner = f"\n{self.indent}" if contains_block(ctx.arg) else " "
        elif joiner == "\n":
            joiner = f"\n{self.indent}"
        return joiner.join(i for i in items if i)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def generate(graph: Graph) -> str:
    """Render ``graph`` with the default indentation."""
    return CodeGenerator().generate(graph)
