"""Argument walker: the single recursive interpretation of a command grammar.

Socket projection, value binding and code generation all walk arguments the
same way; they differ only in the ``Handlers`` subclass they pass in. Every
handler returns ``None`` by default, which callers treat as "omit".
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Callable, Generic, TypeVar

from .keys import ARRAY_PARAM, COUNT, ENABLED, NONE_SENTINEL, ROOT, ArgPath, as_count
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
    STRING,
    UNNAMED_KINDS,
    identifier,
    with_name,
)

T = TypeVar("T")

# Lookup of a stored value by its encoded key
ValueLookup = Callable[[str], Any]


@dataclass(frozen=True)
class WalkContext(Generic[T]):
    """What a handler sees for the grammar node currently being walked."""
    walker: Walker[T]
    arg: Argument
    prefix: ArgPath
    key: ArgPath
    optional: bool = False  # the node sits under an enabled optional wrapper

    def value(self, path: ArgPath | None = None) -> Any:
        return self.walker.get((path or self.key).key)

    def walk(self, arg: Argument, prefix: ArgPath) -> T | None:
        return self.walker.walk(arg, prefix)


class Handlers(Generic[T]):
    """One callback per grammar kind. Subclasses override what they render."""

    def on_optional(self, ctx: WalkContext[T], enabled: bool, content: T | None) -> T | None:
        return content

    def on_repeatable(self, ctx: WalkContext[T], items: list[T], count: int) -> T | None:
        return None

    def on_primitive(self, ctx: WalkContext[T]) -> T | None:
        return None

    def on_keyword(self, ctx: WalkContext[T]) -> T | None:
        return None

    def on_choice(self, ctx: WalkContext[T], option: Argument | None, child: T | None) -> T | None:
        return None

    def on_subcommand(self, ctx: WalkContext[T], array_param: T | None, children: list[T]) -> T | None:
        return None

    def on_block(self, ctx: WalkContext[T], children: list[T]) -> T | None:
        return None

    def on_exec_block(self, ctx: WalkContext[T]) -> T | None:
        return None

    def on_group(self, ctx: WalkContext[T], children: list[T]) -> T | None:
        return None

    def on_array(self, ctx: WalkContext[T], items: list[T]) -> T | None:
        return None

    def on_base(self, ctx: WalkContext[T], array_param: T | None) -> T | None:
        return None


class Walker(Generic[T]):
    """Walks grammar nodes against a handler set and a value lookup."""

    def __init__(self, handlers: Handlers[T], get: ValueLookup):
        self.handlers = handlers
        self.get = get

    def walk(self, arg: Argument, prefix: ArgPath, optional: bool = False) -> T | None:
        name = identifier(arg)
        if not name and not isinstance(arg, UNNAMED_KINDS):
            return None

        key = prefix.child(name)
        ctx = WalkContext(self, arg, prefix, key, optional or arg.optional)

        # Optional choices keep their "none" state in the selection itself.
        if arg.optional and not isinstance(arg, Choice):
            flag = key if _is_flag_keyword(arg) else key.child(ENABLED)
            enabled = bool(self.get(flag.key))
            content = None
            if enabled:
                content = self.walk(replace(arg, optional=False), prefix, optional=True)
            return self.handlers.on_optional(ctx, enabled, content)

        if arg.repeatable:
            count = as_count(self.get(key.child(COUNT).key))
            item = replace(arg, repeatable=False, optional=False)
            items = self._collect(item, [key.child(i) for i in range(count)])
            return self.handlers.on_repeatable(ctx, items, count)

        return self._dispatch(ctx)

    def walk_command(self, command: CommandDef) -> tuple[T | None, list[T]]:
        array_param = None
        if command.array_parameter is not None:
            array_param = self.walk(with_name(command.array_parameter, ARRAY_PARAM), ROOT)
        return array_param, self._collect_each(command.arguments, ROOT)

    def _dispatch(self, ctx: WalkContext[T]) -> T | None:
        arg, key, h = ctx.arg, ctx.key, self.handlers

        if isinstance(arg, Primitive):
            return h.on_primitive(ctx)

        if isinstance(arg, Keyword):
            return h.on_keyword(ctx)

        if isinstance(arg, Choice):
            selected = self.get(key.key)
            option = None
            if selected != NONE_SENTINEL:
                option = next((o for o in arg.options if identifier(o) == selected), None)
            child = self.walk(option, key) if option is not None else None
            return h.on_choice(ctx, option, child)

        if isinstance(arg, Block):
            if arg.content is None:
                return h.on_exec_block(ctx)
            children = self._collect_each(arg.content, key)
            return h.on_block(ctx, children)

        if isinstance(arg, Subcommand):
            array_param = None
            if arg.array_parameter is not None:
                array_param = self.walk(with_name(arg.array_parameter, ARRAY_PARAM), key)
            children = self._collect_each(arg.arguments, key)
            return h.on_subcommand(ctx, array_param, children)

        if isinstance(arg, Group):
            # Children are qualified by position under the group's own prefix.
            children = self._collect_each(arg.content, ctx.prefix)
            return h.on_group(ctx, children)

        if isinstance(arg, ArrayArg):
            if arg.content is None:
                scalar = Primitive(
                    type=STRING,
                    name=arg.name,
                    label=arg.label,
                    original_type=arg.type,
                )
                return h.on_primitive(replace(ctx, arg=scalar))
            count = as_count(self.get(key.child(COUNT).key))
            item = replace(arg.content, repeatable=False)
            items = self._collect(item, [key.child(i) for i in range(count)])
            return h.on_array(ctx, items)

        if isinstance(arg, Base):
            array_param = None
            if arg.array_parameter is not None:
                array_param = self.walk(with_name(arg.array_parameter, ARRAY_PARAM), key)
            return h.on_base(ctx, array_param)

        return None

    def _collect(self, arg: Argument, prefixes: list[ArgPath]) -> list[T]:
        results = []
        for prefix in prefixes:
            result = self.walk(arg, prefix)
            if result is not None:
                results.append(result)
        return results

    def _collect_each(self, args: tuple[Argument, ...], parent: ArgPath) -> list[T]:
        results = []
        for i, sub in enumerate(args):
            result = self.walk(sub, parent.child(i))
            if result is not None:
                results.append(result)
        return results


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def walk_argument(arg: Argument, prefix: ArgPath, handlers: Handlers[T], get: ValueLookup) -> T | None:
    """Walk a single grammar node under ``prefix``."""
    return Walker(handlers, get).walk(arg, prefix)


def walk_node(command: CommandDef, handlers: Handlers[T], get: ValueLookup) -> tuple[T | None, list[T]]:
    """Walk a command's array parameter and then its top-level arguments.

    Returns the array parameter result (None when absent or omitted) and the
    non-null results of the arguments, each argument keyed under its ordinal.
    """
    return Walker(handlers, get).walk_command(command)


def _is_flag_keyword(arg: Argument) -> bool:
    """A keyword's own key doubles as its presence flag."""
    return isinstance(arg, Keyword) and arg.type == "keyword"
