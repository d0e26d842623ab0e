"""Graph data model: node instances, sockets and connections."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .keys import EXEC_IN, socket_id
from .schema import CommandDef

INPUT = "input"
OUTPUT = "output"

FLOW = "exec"
DATA = "data"

# Data type accepted by and connectable to anything
ANY_TYPE = "Default"
FLOW_TYPE = "Exec"


@dataclass
class Socket:
    """A typed, directional connection point on a node instance."""
    id: str
    node_id: str
    name: str        # argument key, or exec_in / exec_out
    label: str
    io: str          # "input" | "output"
    kind: str        # "exec" | "data"
    data_type: str

    @property
    def is_flow(self) -> bool:
        return self.kind == FLOW


@dataclass
class NodeSockets:
    """Derived socket list of one node, split by direction."""
    inputs: list[Socket] = field(default_factory=list)
    outputs: list[Socket] = field(default_factory=list)

    def input(self, key: str) -> Socket | None:
        return next((s for s in self.inputs if s.name == key), None)

    def output(self, key: str) -> Socket | None:
        return next((s for s in self.outputs if s.name == key), None)

    def has_flow_input(self) -> bool:
        return any(s.is_flow for s in self.inputs)


@dataclass
class NodeDefinition:
    """A loaded command together with its default value map."""
    type: str
    command: CommandDef
    default_values: dict[str, Any] = field(default_factory=dict)
    display_name: str | None = None

    @property
    def is_evaluator(self) -> bool:
        return self.command.is_evaluator


@dataclass
class NodeInstance:
    """One placed occurrence of a command in the graph."""
    id: str
    definition: NodeDefinition
    display_name: str
    position: tuple[float, float] = (0.0, 0.0)
    values: dict[str, Any] = field(default_factory=dict)
    expanded: bool = True
    visible: bool = True
    sockets: NodeSockets = field(default_factory=NodeSockets, compare=False)

    @property
    def type(self) -> str:
        return self.definition.type

    @property
    def command(self) -> CommandDef:
        return self.definition.command

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "display_name": self.display_name,
            "position": {"x": self.position[0], "y": self.position[1]},
            "values": dict(self.values),
            "expanded": self.expanded,
            "visible": self.visible,
        }


@dataclass
class Connection:
    """A directed edge from an output socket to an input socket."""
    id: str
    from_node: str
    from_socket: str
    to_node: str
    to_socket: str

    @property
    def from_key(self) -> str:
        return _strip_node(self.from_socket, self.from_node)

    @property
    def to_key(self) -> str:
        return _strip_node(self.to_socket, self.to_node)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "from_node": self.from_node,
            "from_socket": self.from_socket,
            "to_node": self.to_node,
            "to_socket": self.to_socket,
        }

    @classmethod
    def from_dict(cls, data: dict) -> Connection:
        return cls(
            id=str(data["id"]),
            from_node=str(data["from_node"]),
            from_socket=str(data["from_socket"]),
            to_node=str(data["to_node"]),
            to_socket=str(data["to_socket"]),
        )


@dataclass
class Graph:
    """All node instances and connections of one document."""
    nodes: list[NodeInstance] = field(default_factory=list)
    connections: list[Connection] = field(default_factory=list)

    def node(self, node_id: str) -> NodeInstance | None:
        return next((n for n in self.nodes if n.id == node_id), None)

    def add_node(self, node: NodeInstance) -> NodeInstance:
        self.nodes.append(node)
        return node

    def remove_node(self, node_id: str) -> None:
        """Remove a node together with every incident connection."""
        self.nodes = [n for n in self.nodes if n.id != node_id]
        self.connections = [
            c for c in self.connections
            if c.from_node != node_id and c.to_node != node_id
        ]

    def add_connection(self, connection: Connection) -> Connection:
        self.connections.append(connection)
        return connection

    def disconnect(self, connection_id: str) -> None:
        self.connections = [c for c in self.connections if c.id != connection_id]

    def incoming(self, socket: str) -> list[Connection]:
        return [c for c in self.connections if c.to_socket == socket]

    def outgoing(self, socket: str) -> list[Connection]:
        return [c for c in self.connections if c.from_socket == socket]

    def is_flow_root(self, node: NodeInstance) -> bool:
        """A node with a flow input that nothing flows into."""
        if not node.sockets.has_flow_input():
            return False
        return not self.incoming(socket_id(node.id, EXEC_IN))

    def to_dict(self) -> dict:
        return {
            "nodes": [n.to_dict() for n in self.nodes],
            "connections": [c.to_dict() for c in self.connections],
        }


def _strip_node(socket: str, node_id: str) -> str:
    prefix = f"{node_id}-"
    if socket.startswith(prefix):
        return socket[len(prefix):]
    return socket
