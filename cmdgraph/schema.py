"""Grammar schema nodes for command arguments, all frozen (immutable) dataclasses.

Command files are authored elsewhere as JSON or YAML; this module only turns
them into a closed set of argument kinds and derives identifiers from them.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Iterable, Mapping

import yaml

from .errors import SchemaError


# ---------------------------------------------------------------------------
# Type tags
# ---------------------------------------------------------------------------

STRING = "String"
NUMERIC = "Numeric"
RAW_CODE = "RawCode"
EMBEDDED_CODE = "JSCode"

PRIMITIVE_TYPES = frozenset({
    STRING, NUMERIC, "Numeric..Numeric", "Variable", "Switch",
    "Condition", "Expression", "Value", RAW_CODE, EMBEDDED_CODE,
})
KEYWORD_TYPES = frozenset({"keyword", "assignment"})

# Keyword literal that marks a command as hidden; never emitted
HIDDEN_MARKER = ".hidden"

# Source-file directories whose commands take part in execution flow
EXEC_CATEGORIES = frozenset({"Event_Commands", "Directives", "Meta_commands", "Utility"})

EVALUATOR_COMMANDS = frozenset({"Evaluate Code", "Evaluate JS Code"})
RAW_CODE_COMMAND = "Generate Raw Code"


# ---------------------------------------------------------------------------
# Argument kinds
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Argument:
    """Common fields of every grammar node. Used as-is for unknown kinds."""
    type: str = ""
    name: str | None = None
    value: str | None = None
    label: str | None = None
    optional: bool = False
    repeatable: bool = False
    repeatable_joiner: str | None = None


@dataclass(frozen=True)
class Primitive(Argument):
    """A leaf holding one scalar value."""
    prefix: str | None = None
    is_identifier: bool = False
    original_type: str | None = None  # set when an Array degrades to a scalar


@dataclass(frozen=True)
class Keyword(Argument):
    """A fixed literal token (``keyword`` or ``assignment``)."""


@dataclass(frozen=True)
class Choice(Argument):
    options: tuple[Argument, ...] = ()


@dataclass(frozen=True)
class Block(Argument):
    """A container when ``content`` is a tuple, an executable branch when None."""
    content: tuple[Argument, ...] | None = None

    @property
    def is_container(self) -> bool:
        return self.content is not None


@dataclass(frozen=True)
class Subcommand(Argument):
    arguments: tuple[Argument, ...] = ()
    array_parameter: Argument | None = None


@dataclass(frozen=True)
class Group(Argument):
    content: tuple[Argument, ...] = ()


@dataclass(frozen=True)
class ArrayArg(Argument):
    content: Argument | None = None
    delimiters: tuple[str, str] | None = None
    separator: str | None = None


@dataclass(frozen=True)
class Base(Argument):
    array_parameter: Argument | None = None


# Kinds that may be walked without an identifier of their own
UNNAMED_KINDS = (Group, Block, ArrayArg)


@dataclass(frozen=True)
class CommandDef:
    """One command of the library: its literal head and argument grammar."""
    command: str = ""
    base: str | None = None
    has_base: bool = False
    subcommand: str | None = None
    array_parameter: Argument | None = None
    arguments: tuple[Argument, ...] = ()
    category: str | None = None
    source_file: str | None = None

    @property
    def head(self) -> str:
        """Literal that starts the emitted line; ``base`` wins even when null."""
        if self.has_base:
            return self.base or ""
        return self.command or ""

    @property
    def is_exec(self) -> bool:
        return self.category in EXEC_CATEGORIES

    @property
    def is_evaluator(self) -> bool:
        return self.command in EVALUATOR_COMMANDS

    @property
    def has_arguments(self) -> bool:
        return bool(self.arguments) or self.array_parameter is not None


# ---------------------------------------------------------------------------
# Identifier resolution
# ---------------------------------------------------------------------------

def identifier(arg: Argument) -> str:
    """Return the name under which ``arg`` is addressed in state.

    A group takes the literal of its first ``keyword`` child. Everything else
    falls back through name, literal value and type tag; an empty string
    means the node cannot be addressed.
    """
    if isinstance(arg, Group) and arg.content:
        for child in arg.content:
            if isinstance(child, Keyword) and child.type == "keyword":
                if child.value:
                    return child.value
                break
    return arg.name or arg.value or arg.type or ""


def with_name(arg: Argument, name: str) -> Argument:
    return replace(arg, name=name)


def contains_block(arg: Argument) -> bool:
    """True if a ``block`` is reachable anywhere below ``arg``."""
    if isinstance(arg, Block):
        return True
    children: Iterable[Argument] = ()
    if isinstance(arg, Group):
        children = arg.content
    elif isinstance(arg, Subcommand):
        children = arg.arguments + ((arg.array_parameter,) if arg.array_parameter else ())
    elif isinstance(arg, Choice):
        children = arg.options
    elif isinstance(arg, ArrayArg) and arg.content is not None:
        children = (arg.content,)
    elif isinstance(arg, Base) and arg.array_parameter is not None:
        children = (arg.array_parameter,)
    return any(contains_block(child) for child in children)


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

def load_argument(data: Any) -> Argument:
    """Convert one JSON-like grammar mapping into an ``Argument``."""
    if not isinstance(data, Mapping):
        raise SchemaError(f"Argument must be a mapping, got {type(data).__name__}")

    kind = str(data.get("type") or "")
    common = dict(
        type=kind,
        name=_opt_str(data.get("name")),
        value=_opt_str(data.get("value")),
        label=_opt_str(data.get("label")),
        optional=bool(data.get("optional", False)),
        repeatable=bool(data.get("repeatable", False)),
        repeatable_joiner=_opt_str(data.get("repeatable_joiner")),
    )

    if kind in PRIMITIVE_TYPES:
        return Primitive(
            prefix=_opt_str(data.get("prefix")),
            is_identifier=bool(data.get("is_identifier", False)),
            **common,
        )
    if kind in KEYWORD_TYPES:
        return Keyword(**common)
    if kind == "choice":
        return Choice(options=_load_list(data.get("options")), **common)
    if kind == "block":
        content = data.get("content")
        return Block(
            content=_load_list(content) if isinstance(content, list) else None,
            **common,
        )
    if kind == "subcommand":
        return Subcommand(
            arguments=_load_list(data.get("arguments")),
            array_parameter=_load_optional(data.get("array_parameter")),
            **common,
        )
    if kind == "group":
        return Group(content=_load_list(data.get("content")), **common)
    if kind == "Array":
        return ArrayArg(
            content=_load_optional(data.get("content")),
            delimiters=_load_delimiters(data.get("delimiters")),
            separator=_opt_str(data.get("separator")),
            **common,
        )
    if kind == "base":
        return Base(array_parameter=_load_optional(data.get("array_parameter")), **common)
    return Argument(**common)


def load_command(data: Any, source_file: str | None = None) -> CommandDef:
    """Convert one command mapping into a ``CommandDef``."""
    if not isinstance(data, Mapping):
        raise SchemaError(f"Command definition must be a mapping, got {type(data).__name__}")

    category = _opt_str(data.get("category")) or _category_from_path(source_file)
    return CommandDef(
        command=str(data.get("command") or ""),
        base=_opt_str(data.get("base")),
        has_base="base" in data,
        subcommand=_opt_str(data.get("subcommand")),
        array_parameter=_load_optional(data.get("array_parameter")),
        arguments=_load_list(data.get("arguments")),
        category=category,
        source_file=source_file,
    )


def load_command_file(path: str | Path) -> CommandDef:
    """Load a command from a ``.json``, ``.yaml`` or ``.yml`` file."""
    path = Path(path)
    text = path.read_text(encoding="utf-8")
    try:
        if path.suffix.lower() in (".yaml", ".yml"):
            data = yaml.safe_load(text)
        else:
            data = json.loads(text)
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise SchemaError(f"Invalid command file {path}: {exc}") from exc
    return load_command(data, source_file=path.as_posix())


def iter_command_files(paths: Iterable[str | Path]) -> list[Path]:
    """Expand files and directories into a sorted list of command files."""
    found: list[Path] = []
    for entry in paths:
        entry = Path(entry)
        if entry.is_dir():
            for suffix in ("*.json", "*.yaml", "*.yml"):
                found.extend(entry.rglob(suffix))
        else:
            found.append(entry)
    return sorted(set(found))


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _opt_str(value: Any) -> str | None:
    if value is None:
        return None
    return str(value)


def _load_list(items: Any) -> tuple[Argument, ...]:
    if not items:
        return ()
    if not isinstance(items, list):
        raise SchemaError(f"Expected a list of arguments, got {type(items).__name__}")
    return tuple(load_argument(item) for item in items)


def _load_optional(data: Any) -> Argument | None:
    if data is None:
        return None
    return load_argument(data)


def _load_delimiters(value: Any) -> tuple[str, str] | None:
    if value is None:
        return None
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        raise SchemaError(f"Array delimiters must be a pair, got {value!r}")
    return (str(value[0]), str(value[1]))


def _category_from_path(source_file: str | None) -> str | None:
    if not source_file:
        return None
    parts = Path(source_file).parts
    for part in parts:
        if part in EXEC_CATEGORIES:
            return part
    return parts[-2] if len(parts) > 1 else None
