"""Script import: wraps an existing script in a raw-code graph with a file header."""

from __future__ import annotations

import logging
from typing import Mapping

from .factory import create_instance, set_repeat_count, set_value
from .library import find_by_command
from .model import Graph, NodeDefinition
from .schema import EVALUATOR_COMMANDS, RAW_CODE_COMMAND
from .validator import connect

logger = logging.getLogger(__name__)

HEADER_NAME = "File Header"
IMPORT_NAME = "Imported Code"
HEADER_CODE = "`// Code from ${filename}\n// ====================================`"

# Keys of the built-in evaluate-code and raw-code commands
_VARIABLES = "0_variable"
_CODE = "1_code"
_SLOTS = "0_code"


def import_script(script: str, definitions: Mapping[str, NodeDefinition], file_name: str) -> Graph:
    """Build a graph that regenerates ``script`` below a ``// Code from`` header.

    Returns an empty graph when the library lacks the evaluate-code or the
    raw-code command.
    """
    evaluator = None
    for name in sorted(EVALUATOR_COMMANDS):
        evaluator = evaluator or find_by_command(definitions, name)
    raw = find_by_command(definitions, RAW_CODE_COMMAND)
    if evaluator is None or raw is None:
        logger.warning("Cannot import %s: evaluate-code or raw-code command is missing", file_name)
        return Graph()

    graph = Graph()

    header = create_instance(evaluator, position=(100.0, 100.0), display_name=HEADER_NAME)
    set_repeat_count(header, _VARIABLES, 1)
    set_value(header, f"{_VARIABLES}_0_0_name", "filename")
    set_value(header, f"{_VARIABLES}_0_1_value", file_name)
    set_value(header, _CODE, HEADER_CODE)
    graph.add_node(header)

    body = create_instance(raw, position=(600.0, 100.0), display_name=IMPORT_NAME)
    set_repeat_count(body, _SLOTS, 2)
    set_value(body, f"{_SLOTS}_1_code", script)
    graph.add_node(body)

    connect(graph, header.id, _CODE, body.id, f"{_SLOTS}_0_code")
    return graph
