"""Structured argument paths and their flat string codec.

A node instance stores every argument value in one flat mapping. The walker
never concatenates strings while descending; it extends an ``ArgPath`` and only
the ``key`` property turns the path into the string used by the value map
and by socket ids.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

Segment = Union[int, str]

# Suffix markers
ENABLED = "enabled"
COUNT = "count"
RESULT = "result"
ARRAY_PARAM = "array_param"

# Stored selection of an optional choice with nothing picked
NONE_SENTINEL = "__none__"

# Keys of the main flow socket pair
EXEC_IN = "exec_in"
EXEC_OUT = "exec_out"

SEPARATOR = "_"


@dataclass(frozen=True)
class ArgPath:
    """An ordered sequence of ordinal or named segments."""
    segments: tuple[Segment, ...] = ()

    def child(self, *segments: Segment) -> ArgPath:
        return ArgPath(self.segments + segments)

    @property
    def key(self) -> str:
        return SEPARATOR.join(str(s) for s in self.segments)

    def item_prefix(self, index: int) -> str:
        """String prefix shared by every key stored under item ``index``."""
        return f"{self.key}{SEPARATOR}{index}{SEPARATOR}"

    def __str__(self) -> str:
        return self.key


ROOT = ArgPath()


def suffixed(key: str, marker: str) -> str:
    """Append a marker to an already encoded key."""
    return f"{key}{SEPARATOR}{marker}"


def socket_id(node_id: str, key: str) -> str:
    return f"{node_id}-{key}"


def as_count(value: Any) -> int:
    """Coerce a stored repeat count; anything unusable counts as zero."""
    if isinstance(value, bool):
        return int(value)
    try:
        count = int(value)
    except (TypeError, ValueError):
        return 0
    return max(count, 0)
