"""Node factory: default value maps, node instances and value edits."""

from __future__ import annotations

import re
from dataclasses import replace
from typing import Any, Mapping

from .errors import SchemaError
from .keys import (
    ARRAY_PARAM,
    COUNT,
    ENABLED,
    NONE_SENTINEL,
    ROOT,
    ArgPath,
    as_count,
    suffixed,
)
from .model import Connection, Graph, NodeDefinition, NodeInstance
from .schema import (
    Argument,
    ArrayArg,
    Base,
    Block,
    Choice,
    CommandDef,
    Group,
    Keyword,
    Primitive,
    Subcommand,
    UNNAMED_KINDS,
    identifier,
    load_command,
    with_name,
)
from .sockets import project_sockets


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------

class _IdSource:
    """Per-process counter producing ``<prefix>-<n>`` ids."""

    _SUFFIX = re.compile(r"-(\d+)$")

    def __init__(self) -> None:
        self._next = 0

    def next(self, prefix: str) -> str:
        value = f"{prefix}-{self._next}"
        self._next += 1
        return value

    def observe(self, existing_id: str) -> None:
        """Make sure ids loaded from disk are never handed out again."""
        match = self._SUFFIX.search(existing_id)
        if match:
            self._next = max(self._next, int(match.group(1)) + 1)


_ids = _IdSource()


def new_id(prefix: str) -> str:
    return _ids.next(prefix)


# ---------------------------------------------------------------------------
# Definitions and defaults
# ---------------------------------------------------------------------------

def create_definition(schema: Mapping | CommandDef, type_tag: str,
                      source_file: str | None = None,
                      display_name: str | None = None) -> NodeDefinition:
    """Load a command schema and compute its default value map."""
    command = schema if isinstance(schema, CommandDef) else load_command(schema, source_file)
    return NodeDefinition(
        type=type_tag,
        command=command,
        default_values=default_values(command),
        display_name=display_name or command.command or type_tag,
    )


def default_values(command: CommandDef, values: dict[str, Any] | None = None) -> dict[str, Any]:
    """Fill ``values`` (a new map by default) with every missing default.

    Existing entries are never overwritten, so applying this to an already
    defaulted map is a no-op.
    """
    values = {} if values is None else values
    if command.array_parameter is not None:
        _materialize(with_name(command.array_parameter, ARRAY_PARAM), ROOT, values)
    for i, arg in enumerate(command.arguments):
        _materialize(arg, ROOT.child(i), values)
    return values


def _materialize(arg: Argument, prefix: ArgPath, values: dict[str, Any]) -> None:
    name = identifier(arg)
    if not name and not isinstance(arg, UNNAMED_KINDS):
        return
    key = prefix.child(name)

    if arg.optional and not isinstance(arg, Choice):
        flag = key if isinstance(arg, Keyword) and arg.type == "keyword" else key.child(ENABLED)
        values.setdefault(flag.key, False)

    if arg.repeatable:
        _materialize_items(arg, replace(arg, repeatable=False, optional=False), key, values)
        return

    if isinstance(arg, Primitive):
        values.setdefault(key.key, "")
    elif isinstance(arg, Keyword):
        values.setdefault(key.key, False)
    elif isinstance(arg, Choice):
        if arg.optional:
            values.setdefault(key.key, NONE_SENTINEL)
        elif arg.options:
            values.setdefault(key.key, identifier(arg.options[0]))
        selected = values.get(key.key)
        for option in arg.options:
            if selected != NONE_SENTINEL and identifier(option) == selected:
                _materialize(option, key, values)
                break
    elif isinstance(arg, Subcommand):
        if arg.array_parameter is not None:
            _materialize(with_name(arg.array_parameter, ARRAY_PARAM), key, values)
        for i, sub in enumerate(arg.arguments):
            _materialize(sub, key.child(i), values)
    elif isinstance(arg, Block):
        for i, sub in enumerate(arg.content or ()):
            _materialize(sub, key.child(i), values)
    elif isinstance(arg, Group):
        for i, sub in enumerate(arg.content):
            _materialize(sub, prefix.child(i), values)
    elif isinstance(arg, ArrayArg):
        if arg.content is None:
            values.setdefault(key.key, "")
        else:
            _materialize_items(arg, replace(arg.content, repeatable=False), key, values)
    elif isinstance(arg, Base):
        if arg.array_parameter is not None:
            _materialize(with_name(arg.array_parameter, ARRAY_PARAM), key, values)


def _materialize_items(arg: Argument, item: Argument, key: ArgPath, values: dict[str, Any]) -> None:
    count_key = key.child(COUNT).key
    values.setdefault(count_key, 0 if arg.optional else 1)
    for i in range(as_count(values[count_key])):
        _materialize(item, key.child(i), values)


# ---------------------------------------------------------------------------
# Instances
# ---------------------------------------------------------------------------

def create_instance(definition: NodeDefinition, position: tuple[float, float] = (0.0, 0.0),
                    display_name: str | None = None) -> NodeInstance:
    """Place a new node seeded with the definition's defaults."""
    node = NodeInstance(
        id=new_id("node"),
        definition=definition,
        display_name=display_name or definition.display_name or definition.type,
        position=position,
        values=dict(definition.default_values),
        expanded=definition.command.has_arguments,
        visible=True,
    )
    refresh_sockets(node)
    return node


def refresh_sockets(node: NodeInstance) -> NodeInstance:
    node.sockets = project_sockets(node)
    return node


def set_value(node: NodeInstance, key: str, value: Any) -> None:
    """Store an edited value, fill defaults it makes reachable, re-project sockets."""
    node.values[key] = value
    default_values(node.command, node.values)
    refresh_sockets(node)


def set_repeat_count(node: NodeInstance, key: str, count: int) -> None:
    """Resize the repeatable or array stored under ``key``.

    Removed indices lose every stored value; new indices get defaults.
    """
    count = max(int(count), 0)
    count_key = suffixed(key, COUNT)
    old = as_count(node.values.get(count_key))

    for index in range(count, old):
        stale = f"{key}_{index}_"
        for k in [k for k in node.values if k.startswith(stale)]:
            del node.values[k]
    node.values[count_key] = count

    if count > old:
        fresh = [f"{key}_{index}_" for index in range(old, count)]
        scratch = default_values(node.command, dict(node.values))
        for k, v in scratch.items():
            if k not in node.values and k.startswith(tuple(fresh)):
                node.values[k] = v

    refresh_sockets(node)


def toggle_expanded(node: NodeInstance) -> None:
    node.expanded = not node.expanded
    refresh_sockets(node)


def set_visible(node: NodeInstance, visible: bool) -> None:
    node.visible = bool(visible)


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------

def load_graph(data: Mapping, definitions: Mapping[str, NodeDefinition]) -> Graph:
    """Rebuild a graph from ``Graph.to_dict()`` output.

    Stored values are kept as they are; defaults only fill the gaps.
    """
    graph = Graph()
    for entry in data.get("nodes", []):
        type_tag = entry.get("type")
        definition = definitions.get(type_tag)
        if definition is None:
            raise SchemaError(f"Unknown node type '{type_tag}'", node_id=entry.get("id"))
        position = entry.get("position") or {}
        node = NodeInstance(
            id=str(entry["id"]),
            definition=definition,
            display_name=entry.get("display_name") or definition.display_name or type_tag,
            position=(position.get("x", 0.0), position.get("y", 0.0)),
            values=default_values(definition.command, dict(entry.get("values") or {})),
            expanded=bool(entry.get("expanded", True)),
            visible=bool(entry.get("visible", True)),
        )
        _ids.observe(node.id)
        graph.add_node(refresh_sockets(node))

    for entry in data.get("connections", []):
        connection = Connection.from_dict(entry)
        _ids.observe(connection.id)
        graph.add_connection(connection)
    return graph
