"""Command library: built-in commands plus command files loaded from disk."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Mapping

from .factory import create_definition
from .model import NodeDefinition
from .schema import RAW_CODE_COMMAND, iter_command_files, load_command_file

logger = logging.getLogger(__name__)


# Evaluates its code with variables bound from name/value groups; emits nothing itself.
EVALUATE_CODE = {
    "command": "Evaluate Code",
    "category": "Utility",
    "arguments": [
        {
            "type": "group",
            "name": "variable",
            "repeatable": True,
            "content": [
                {"type": "Variable", "name": "name", "label": "Name"},
                {"type": "Value", "name": "value", "label": "Value"},
            ],
        },
        {"type": "JSCode", "name": "code", "label": "Code"},
    ],
}

# Emits each code slot verbatim, one per line.
GENERATE_RAW_CODE = {
    "command": RAW_CODE_COMMAND,
    "base": None,
    "category": "Utility",
    "arguments": [
        {"type": "RawCode", "name": "code", "repeatable": True, "repeatable_joiner": "\n"},
    ],
}

BUILTINS = {
    "evaluate_code": EVALUATE_CODE,
    "generate_raw_code": GENERATE_RAW_CODE,
}


def builtin_definitions() -> dict[str, NodeDefinition]:
    return {tag: create_definition(schema, tag) for tag, schema in BUILTINS.items()}


def load_library(paths: Iterable[str | Path] = (), include_builtins: bool = True) -> dict[str, NodeDefinition]:
    """Load every command file under ``paths``, keyed by file stem.

    A file whose stem repeats an earlier one replaces it.

    Raises:
        SchemaError: If a command file is malformed.
    """
    definitions = builtin_definitions() if include_builtins else {}
    for path in iter_command_files(paths):
        if path.stem in definitions:
            logger.warning("Command %s from %s replaces an earlier definition", path.stem, path)
        command = load_command_file(path)
        definitions[path.stem] = create_definition(command, path.stem, source_file=path.as_posix())
    return definitions


def find_by_command(definitions: Mapping[str, NodeDefinition], command: str) -> NodeDefinition | None:
    """First definition whose command literal is ``command``."""
    return next((d for d in definitions.values() if d.command.command == command), None)
