"""Shared fixtures for cmdgraph tests."""

import pytest

from cmdgraph.factory import create_definition, create_instance
from cmdgraph.library import builtin_definitions
from cmdgraph.model import Graph


# ---------------------------------------------------------------------------
# Sample command schemas
# ---------------------------------------------------------------------------

WAIT = {
    "command": "Wait",
    "category": "Event_Commands",
    "arguments": [
        {"type": "Numeric", "name": "duration"},
        {"type": "keyword", "value": "frames"},
    ],
}

MOVE = {
    "command": "Move",
    "category": "Event_Commands",
    "arguments": [
        {"type": "Variable", "name": "target"},
        {"type": "keyword", "value": "fast", "optional": True},
    ],
}

SAY = {
    "command": "Say",
    "category": "Event_Commands",
    "arguments": [
        {"type": "String", "name": "text"},
    ],
}

MOVE_TO = {
    "command": "MoveTo",
    "base": None,
    "category": "Event_Commands",
    "arguments": [
        {
            "type": "subcommand",
            "name": "MoveTo",
            "array_parameter": {
                "type": "Array",
                "content": {"type": "Numeric", "name": "coord"},
                "delimiters": ["", ""],
                "separator": ",",
            },
            "arguments": [
                {"type": "block", "content": [{"type": "keyword", "value": "Jump"}]},
            ],
        },
    ],
}

IF = {
    "command": "If",
    "category": "Event_Commands",
    "arguments": [
        {"type": "Condition", "name": "condition", "is_identifier": True},
        {"type": "block", "name": "then"},
    ],
}

SPEED = {
    "command": "Speed",
    "category": "Event_Commands",
    "arguments": [
        {
            "type": "choice",
            "name": "mode",
            "optional": True,
            "options": [
                {"type": "group", "content": [
                    {"type": "keyword", "value": "fixed"},
                    {"type": "Numeric", "name": "amount"},
                ]},
                {"type": "group", "content": [
                    {"type": "keyword", "value": "random"},
                ]},
            ],
        },
    ],
}

LABELS = {
    "command": "Labels",
    "category": "Event_Commands",
    "arguments": [
        {"type": "Variable", "name": "label", "repeatable": True},
    ],
}

SPAWN = {
    "command": "Spawn",
    "base": "Spawn",
    "array_parameter": {"type": "Numeric", "name": "slot"},
    "category": "Event_Commands",
    "arguments": [
        {"type": "Variable", "name": "actor", "prefix": "@"},
    ],
}

HIDDEN_COMMAND = {
    "command": "Marker",
    "category": "Directives",
    "arguments": [
        {"type": "keyword", "value": ".hidden"},
        {"type": "Variable", "name": "tag"},
    ],
}

CONSTANT = {
    "command": "Constant",
    "arguments": [
        {"type": "String", "name": "text"},
    ],
}


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

SCHEMAS = {
    "wait": WAIT,
    "move": MOVE,
    "say": SAY,
    "move_to": MOVE_TO,
    "if": IF,
    "speed": SPEED,
    "labels": LABELS,
    "spawn": SPAWN,
    "marker": HIDDEN_COMMAND,
    "constant": CONSTANT,
}


@pytest.fixture
def schemas():
    return SCHEMAS


@pytest.fixture
def definitions():
    defs = builtin_definitions()
    for tag, schema in SCHEMAS.items():
        defs[tag] = create_definition(schema, tag)
    return defs


@pytest.fixture
def graph():
    return Graph()


@pytest.fixture
def place(graph, definitions):
    """Create a node of the given type, add it to ``graph`` and return it."""
    def _place(type_tag, values=None):
        node = create_instance(definitions[type_tag])
        node.values.update(values or {})
        return graph.add_node(node)
    return _place
