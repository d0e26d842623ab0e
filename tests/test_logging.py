"""Tests for cmdgraph.logging."""

import json

from cmdgraph.logging import EMITTED, FAILED, HIDDEN, SILENT, GenerationLogger, NodeLog


class TestNodeLog:

    def test_minimal_dict(self):
        entry = NodeLog(node_id="node-1", node_type="wait", status=EMITTED, timestamp=1.0)
        assert entry.to_dict() == {
            "node_id": "node-1",
            "node_type": "wait",
            "status": EMITTED,
            "depth": 0,
            "timestamp": 1.0,
        }

    def test_optional_fields(self):
        entry = NodeLog(node_id="node-1", node_type="wait", status=FAILED,
                        duration_ms=1.23456, lines=2, error="boom", metadata={"k": 1})
        d = entry.to_dict()
        assert d["duration_ms"] == 1.235
        assert d["lines"] == 2
        assert d["error"] == "boom"
        assert d["metadata"] == {"k": 1}


class TestGenerationLogger:

    def test_statuses(self):
        logger = GenerationLogger()
        logger.root("a")
        logger.start_node("a", "wait")
        logger.complete_node("a", "Wait 1 frames")
        logger.start_node("b", "evaluate_code")
        logger.complete_node("b", "")
        logger.hide_node("c", "wait", depth=1)
        logger.start_node("d", "print")
        logger.fail_node("d", "bad code")
        log = logger.finish()

        statuses = {n.node_id: n.status for n in log.nodes}
        assert statuses == {"a": EMITTED, "b": SILENT, "c": HIDDEN, "d": FAILED}
        assert log.emitted_count == 1
        assert log.hidden_count == 1
        assert log.error_count == 1
        assert log.errors == ["d: bad code"]
        assert log.nodes[0].lines == 1
        assert log.nodes[0].duration_ms is not None
        assert log.total_duration_ms is not None

    def test_unfinished_log(self):
        log = GenerationLogger().log
        assert log.total_duration_ms is None
        assert "running" in log.summary()
        assert "finished_at" not in log.to_dict()

    def test_summary(self):
        logger = GenerationLogger()
        logger.root("a")
        logger.start_node("a", "wait")
        logger.fail_node("a", "broken")
        logger.warn("fan-out")
        summary = logger.finish().summary()
        assert "1 chain(s)" in summary
        assert "0/1 emitted" in summary
        assert "broken" in summary
        assert "fan-out" in summary

    def test_json(self):
        logger = GenerationLogger()
        logger.root("a")
        logger.start_node("a", "wait")
        logger.complete_node("a", "Wait")
        logger.error("cyclic connection at a")
        data = json.loads(logger.finish().to_json(pretty=True))
        assert data["roots"] == ["a"]
        assert data["nodes"][0]["status"] == EMITTED
        assert data["errors"] == ["cyclic connection at a"]
        assert "total_duration_ms" in data
