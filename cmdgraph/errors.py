"""Error types for cmdgraph with node/key location context."""

from __future__ import annotations


class CmdGraphError(Exception):
    """Base error with optional node and argument-key context."""

    def __init__(self, message: str, node_id: str | None = None, key: str | None = None):
        self.message = message
        self.node_id = node_id
        self.key = key
        loc = ""
        if node_id is not None:
            loc = f" (node {node_id}"
            if key is not None:
                loc += f", key {key}"
            loc += ")"
        super().__init__(f"{message}{loc}")


class SchemaError(CmdGraphError):
    """Raised when a command schema cannot be loaded."""


class ExpressionError(CmdGraphError):
    """Raised when embedded code cannot be parsed or evaluated."""

    def __init__(self, message: str, line: int | None = None, column: int | None = None):
        self.line = line
        self.column = column
        if line is not None:
            message = f"{message} (line {line}" + (f", col {column})" if column is not None else ")")
        super().__init__(message)


class ConnectionRejected(CmdGraphError):
    """Raised when two sockets cannot be connected."""


class CyclicConnectionError(CmdGraphError):
    """Raised when value resolution or traversal revisits a node on its own path."""


class ValidationError(CmdGraphError):
    """Reported when a graph fails structural validation."""
