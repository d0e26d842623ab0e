"""Socket projection: the connection points a node instance exposes."""

from __future__ import annotations

from .keys import EXEC_IN, EXEC_OUT, socket_id
from .model import (
    ANY_TYPE,
    DATA,
    FLOW,
    FLOW_TYPE,
    INPUT,
    OUTPUT,
    NodeInstance,
    NodeSockets,
    Socket,
)
from .schema import EMBEDDED_CODE, RAW_CODE, Argument
from .walker import Handlers, WalkContext, walk_node

FLOW_LABEL = "▶"
BRANCH_LABEL = "do"

SocketList = list[Socket]


class SocketHandlers(Handlers[SocketList]):
    """Primitives and executable blocks make sockets; everything else flattens."""

    def __init__(self, node_id: str):
        self.node_id = node_id

    def _pair(self, key: str, in_label: str, out_label: str, kind: str,
              in_type: str, out_type: str) -> SocketList:
        sid = socket_id(self.node_id, key)
        return [
            Socket(sid, self.node_id, key, in_label, INPUT, kind, in_type),
            Socket(sid, self.node_id, key, out_label, OUTPUT, kind, out_type),
        ]

    def on_primitive(self, ctx: WalkContext[SocketList]) -> SocketList:
        arg, key = ctx.arg, ctx.key.key
        if arg.type == EMBEDDED_CODE:
            # Code text goes in, the evaluated result comes out.
            return self._pair(key, arg.label or arg.name or "Code", "Result",
                              DATA, ANY_TYPE, ANY_TYPE)
        if arg.type == RAW_CODE:
            return self._pair(key, arg.label or arg.name or "Input", "Output",
                              DATA, ANY_TYPE, ANY_TYPE)
        label = arg.label or arg.name or arg.original_type or arg.type
        return self._pair(key, label, label, DATA, arg.type, arg.type)

    def on_exec_block(self, ctx: WalkContext[SocketList]) -> SocketList:
        sid = socket_id(self.node_id, ctx.key.key)
        return [
            Socket(sid, self.node_id, ctx.key.key, BRANCH_LABEL, OUTPUT, FLOW, FLOW_TYPE),
            Socket(sid, self.node_id, ctx.key.key, BRANCH_LABEL, INPUT, FLOW, FLOW_TYPE),
        ]

    def on_repeatable(self, ctx: WalkContext[SocketList], items: list[SocketList], count: int) -> SocketList:
        sockets = _flatten(items)
        if ctx.arg.type != RAW_CODE:
            return sockets
        inputs = [s for s in sockets if s.io == INPUT]
        outputs = [s for s in sockets if s.io == OUTPUT]
        for i, s in enumerate(inputs, start=1):
            s.label = f"Code {i} In"
        for i, s in enumerate(outputs, start=1):
            s.label = f"Code {i} Out"
        return inputs + outputs

    def on_choice(self, ctx: WalkContext[SocketList], option: Argument | None,
                  child: SocketList | None) -> SocketList:
        return child or []

    def on_subcommand(self, ctx: WalkContext[SocketList], array_param: SocketList | None,
                      children: list[SocketList]) -> SocketList:
        return (array_param or []) + _flatten(children)

    def on_block(self, ctx: WalkContext[SocketList], children: list[SocketList]) -> SocketList:
        return _flatten(children)

    def on_group(self, ctx: WalkContext[SocketList], children: list[SocketList]) -> SocketList:
        return _flatten(children)

    def on_array(self, ctx: WalkContext[SocketList], items: list[SocketList]) -> SocketList:
        return _flatten(items)

    def on_base(self, ctx: WalkContext[SocketList], array_param: SocketList | None) -> SocketList:
        return array_param or []


def project_sockets(node: NodeInstance) -> NodeSockets:
    """Compute every socket ``node`` exposes in its current state.

    Exec-capable commands always get the main flow pair. Argument sockets
    exist only while the node is expanded or when it has no arguments.
    """
    sockets: SocketList = []
    command = node.command

    if command.is_exec:
        sockets.append(Socket(socket_id(node.id, EXEC_OUT), node.id, EXEC_OUT,
                              FLOW_LABEL, OUTPUT, FLOW, FLOW_TYPE))
        sockets.append(Socket(socket_id(node.id, EXEC_IN), node.id, EXEC_IN,
                              FLOW_LABEL, INPUT, FLOW, FLOW_TYPE))

    if node.expanded or not command.arguments:
        array_param, results = walk_node(command, SocketHandlers(node.id), node.values.get)
        if array_param:
            sockets.extend(array_param)
        for result in results:
            sockets.extend(result)

    return NodeSockets(
        inputs=[s for s in sockets if s.io == INPUT],
        outputs=[s for s in sockets if s.io == OUTPUT],
    )


def _flatten(groups: list[SocketList]) -> SocketList:
    return [s for group in groups for s in group]
