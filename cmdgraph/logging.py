"""Structured logging: per-node records of one code generation pass.

Captures, for every node the traversal reaches:
- whether it emitted a line, was hidden, stayed silent or failed
- how long rendering took
- how many lines it contributed
- error details with node context
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass, field
from typing import Any

EMITTED = "emitted"
HIDDEN = "hidden"
SILENT = "silent"    # visible but contributes no text (e.g. evaluate-code nodes)
FAILED = "failed"


@dataclass
class NodeLog:
    """Log entry for one visited node."""
    node_id: str
    node_type: str
    status: str
    depth: int = 0
    timestamp: float = field(default_factory=time.time)
    duration_ms: float | None = None
    lines: int = 0
    error: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        d = {
            "node_id": self.node_id,
            "node_type": self.node_type,
            "status": self.status,
            "depth": self.depth,
            "timestamp": self.timestamp,
        }
        if self.duration_ms is not None:
            d["duration_ms"] = round(self.duration_ms, 3)
        if self.lines:
            d["lines"] = self.lines
        if self.error:
            d["error"] = self.error
        if self.metadata:
            d["metadata"] = self.metadata
        return d


@dataclass
class GenerationLog:
    """Aggregated log for an entire generation pass."""
    started_at: float = field(default_factory=time.time)
    finished_at: float | None = None
    roots: list[str] = field(default_factory=list)
    nodes: list[NodeLog] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def total_duration_ms(self) -> float | None:
        if self.finished_at is None:
            return None
        return (self.finished_at - self.started_at) * 1000

    @property
    def node_count(self) -> int:
        return len(self.nodes)

    @property
    def emitted_count(self) -> int:
        return sum(1 for n in self.nodes if n.status == EMITTED)

    @property
    def hidden_count(self) -> int:
        return sum(1 for n in self.nodes if n.status == HIDDEN)

    @property
    def error_count(self) -> int:
        return len(self.errors)

    def finish(self) -> None:
        self.finished_at = time.time()

    def to_dict(self) -> dict:
        d = {
            "started_at": self.started_at,
            "roots": list(self.roots),
            "nodes": [n.to_dict() for n in self.nodes],
        }
        if self.finished_at:
            d["finished_at"] = self.finished_at
            d["total_duration_ms"] = round(self.total_duration_ms, 3)
        if self.errors:
            d["errors"] = self.errors
        if self.warnings:
            d["warnings"] = self.warnings
        return d

    def to_json(self, pretty: bool = False) -> str:
        indent = 2 if pretty else None
        return json.dumps(self.to_dict(), indent=indent, default=str)

    def summary(self) -> str:
        duration = f"{self.total_duration_ms:.1f}ms" if self.total_duration_ms is not None else "running"
        lines = [
            f"Generation: {len(self.roots)} chain(s) [{duration}]",
            f"Nodes: {self.emitted_count}/{self.node_count} emitted, {self.hidden_count} hidden",
            "─" * 50,
        ]
        for n in self.nodes:
            dur = f"{n.duration_ms:.1f}ms" if n.duration_ms is not None else "—"
            icon = {EMITTED: "✅", FAILED: "❌", HIDDEN: "🙈"}.get(n.status, "⏭️")
            lines.append(f"  {'  ' * n.depth}{icon} {n.node_id} ({n.node_type}) [{dur}]")
            if n.error:
                lines.append(f"  {'  ' * n.depth}   └─ {n.error}")
        if self.errors or self.warnings:
            lines.append("─" * 50)
            for err in self.errors:
                lines.append(f"  ❌ {err}")
            for warning in self.warnings:
                lines.append(f"  ⚠ {warning}")
        return "\n".join(lines)


class GenerationLogger:
    """Tracks node rendering during one generation pass."""

    def __init__(self) -> None:
        self.log = GenerationLog()
        self._starts: dict[str, float] = {}

    def root(self, node_id: str) -> None:
        self.log.roots.append(node_id)

    def start_node(self, node_id: str, node_type: str, depth: int = 0) -> None:
        self._starts[node_id] = time.time()
        self.log.nodes.append(NodeLog(node_id=node_id, node_type=node_type,
                                      status="started", depth=depth))

    def complete_node(self, node_id: str, text: str) -> None:
        entry = self._find(node_id)
        if entry:
            entry.status = EMITTED if text else SILENT
            entry.lines = len(text.splitlines()) if text else 0
            self._stop(entry)

    def fail_node(self, node_id: str, error: str) -> None:
        entry = self._find(node_id)
        if entry:
            entry.status = FAILED
            entry.error = error
            self._stop(entry)
        self.log.errors.append(f"{node_id}: {error}")

    def hide_node(self, node_id: str, node_type: str, depth: int = 0) -> None:
        self.log.nodes.append(NodeLog(node_id=node_id, node_type=node_type,
                                      status=HIDDEN, depth=depth))

    def error(self, message: str) -> None:
        self.log.errors.append(message)

    def warn(self, message: str) -> None:
        self.log.warnings.append(message)

    def finish(self) -> GenerationLog:
        self.log.finish()
        return self.log

    def _stop(self, entry: NodeLog) -> None:
        start = self._starts.pop(entry.node_id, None)
        if start is not None:
            entry.duration_ms = (time.time() - start) * 1000

    def _find(self, node_id: str) -> NodeLog | None:
        for entry in reversed(self.log.nodes):
            if entry.node_id == node_id:
                return entry
        return None
