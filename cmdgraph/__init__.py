"""cmdgraph: node graph editor engine that turns command graphs into script text."""

from .errors import (
    CmdGraphError,
    ConnectionRejected,
    CyclicConnectionError,
    ExpressionError,
    SchemaError,
    ValidationError,
)
from .expression import evaluate, stringify
from .factory import (
    create_definition,
    create_instance,
    default_values,
    load_graph,
    set_repeat_count,
    set_value,
    set_visible,
    toggle_expanded,
)
from .generator import CodeGenerator, generate
from .graph import generate_mermaid
from .importer import import_script
from .keys import ArgPath
from .library import builtin_definitions, load_library
from .logging import GenerationLog, GenerationLogger, NodeLog
from .model import Connection, Graph, NodeDefinition, NodeInstance, NodeSockets, Socket
from .resolver import Resolver, refresh_results, resolve_value
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
    identifier,
    load_argument,
    load_command,
    load_command_file,
)
from .sockets import SocketHandlers, project_sockets
from .validator import GraphValidator, can_connect, connect
from .walker import Handlers, WalkContext, walk_argument, walk_node

__all__ = [
    "load_argument",
    "load_command",
    "load_command_file",
    "identifier",
    "ArgPath",
    "Handlers",
    "WalkContext",
    "walk_argument",
    "walk_node",
    "SocketHandlers",
    "project_sockets",
    "create_definition",
    "create_instance",
    "default_values",
    "set_value",
    "set_repeat_count",
    "toggle_expanded",
    "set_visible",
    "load_graph",
    "builtin_definitions",
    "load_library",
    "Resolver",
    "resolve_value",
    "refresh_results",
    "evaluate",
    "stringify",
    "CodeGenerator",
    "generate",
    "GraphValidator",
    "can_connect",
    "connect",
    "generate_mermaid",
    "import_script",
    "GenerationLogger",
    "GenerationLog",
    "NodeLog",
    "Argument",
    "Primitive",
    "Keyword",
    "Choice",
    "Block",
    "Subcommand",
    "Group",
    "ArrayArg",
    "Base",
    "CommandDef",
    "Socket",
    "NodeSockets",
    "NodeDefinition",
    "NodeInstance",
    "Connection",
    "Graph",
    "CmdGraphError",
    "SchemaError",
    "ExpressionError",
    "ConnectionRejected",
    "CyclicConnectionError",
    "ValidationError",
]
