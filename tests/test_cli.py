"""Tests for cmdgraph.cli."""

import json
import os
import tempfile

import pytest

from cmdgraph.cli import main


def _write_temp_file(content: str, suffix: str = ".json") -> str:
    fd, path = tempfile.mkstemp(suffix=suffix)
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(content)
    return path


WAIT_COMMAND = '''
command: Wait
category: Event_Commands
arguments:
  - type: Numeric
    name: duration
  - type: keyword
    value: frames
'''

VALID_GRAPH = json.dumps({
    "nodes": [
        {"id": "node-1", "type": "wait", "values": {"0_duration": "5"}},
        {"id": "node-2", "type": "wait", "values": {"0_duration": "6"}},
    ],
    "connections": [
        {
            "id": "edge-1",
            "from_node": "node-1",
            "from_socket": "node-1-exec_out",
            "to_node": "node-2",
            "to_socket": "node-2-exec_in",
        },
    ],
})

INVALID_GRAPH = json.dumps({
    "nodes": [{"id": "node-1", "type": "wait"}],
    "connections": [
        {
            "id": "edge-1",
            "from_node": "node-1",
            "from_socket": "node-1-exec_out",
            "to_node": "ghost",
            "to_socket": "ghost-exec_in",
        },
    ],
})


@pytest.fixture
def commands(tmp_path):
    (tmp_path / "wait.yaml").write_text(WAIT_COMMAND, encoding="utf-8")
    return str(tmp_path)


class TestCliGenerate:

    def test_generate_success(self, capsys, commands):
        path = _write_temp_file(VALID_GRAPH)
        try:
            rc = main(["generate", path, "--commands", commands])
            assert rc == 0
            assert capsys.readouterr().out == "Wait 5 frames\nWait 6 frames\n"
        finally:
            os.unlink(path)

    def test_generate_log(self, capsys, commands):
        path = _write_temp_file(VALID_GRAPH)
        try:
            rc = main(["generate", path, "--log", "--commands", commands])
            assert rc == 0
            assert "2/2 emitted" in capsys.readouterr().err
        finally:
            os.unlink(path)

    def test_unknown_node_type(self, capsys):
        path = _write_temp_file(VALID_GRAPH)
        try:
            rc = main(["generate", path])
            assert rc == 1
            assert "Unknown node type 'wait'" in capsys.readouterr().err
        finally:
            os.unlink(path)

    def test_invalid_json(self, capsys):
        path = _write_temp_file("{not json")
        try:
            rc = main(["generate", path])
            assert rc == 1
            assert "invalid graph file" in capsys.readouterr().err
        finally:
            os.unlink(path)

    def test_file_not_found(self, capsys):
        rc = main(["generate", "nonexistent.json"])
        assert rc == 1
        assert "file not found" in capsys.readouterr().err


class TestCliValidate:

    def test_validate_success(self, capsys, commands):
        path = _write_temp_file(VALID_GRAPH)
        try:
            rc = main(["validate", path, "--commands", commands])
            assert rc == 0
            assert "Valid: 2 nodes, 1 connections" in capsys.readouterr().out
        finally:
            os.unlink(path)

    def test_validate_failure(self, capsys, commands):
        path = _write_temp_file(INVALID_GRAPH)
        try:
            rc = main(["validate", path, "--commands", commands])
            assert rc == 1
            assert "unknown node 'ghost'" in capsys.readouterr().err
        finally:
            os.unlink(path)


class TestCliGraph:

    def test_mermaid_output(self, capsys, commands):
        path = _write_temp_file(VALID_GRAPH)
        try:
            rc = main(["graph", path, "--commands", commands])
            assert rc == 0
            output = capsys.readouterr().out
            assert output.startswith("graph TD")
            assert "node_1 -->|next| node_2" in output
        finally:
            os.unlink(path)


class TestCliDefaults:

    def test_defaults(self, capsys):
        path = _write_temp_file(WAIT_COMMAND, suffix=".yaml")
        try:
            rc = main(["defaults", path])
            assert rc == 0
            assert json.loads(capsys.readouterr().out)["0_duration"] == ""
        finally:
            os.unlink(path)


class TestCliImport:

    def test_import_to_stdout(self, capsys):
        path = _write_temp_file("Wait 1 frames", suffix=".txt")
        try:
            rc = main(["import", path])
            assert rc == 0
            data = json.loads(capsys.readouterr().out)
            assert [n["type"] for n in data["nodes"]] == ["evaluate_code", "generate_raw_code"]
            assert len(data["connections"]) == 1
        finally:
            os.unlink(path)

    def test_import_to_file(self, capsys, tmp_path):
        path = _write_temp_file("Wait 1 frames", suffix=".txt")
        output = tmp_path / "graph.json"
        try:
            rc = main(["import", path, "-o", str(output)])
            assert rc == 0
            assert capsys.readouterr().out == ""
            data = json.loads(output.read_text(encoding="utf-8"))
            assert data["nodes"][1]["values"]["0_code_1_code"] == "Wait 1 frames"
        finally:
            os.unlink(path)

    def test_import_round_trip(self, capsys, tmp_path):
        path = _write_temp_file("Wait 1 frames", suffix=".txt")
        output = tmp_path / "graph.json"
        try:
            main(["import", path, "-o", str(output)])
            rc = main(["generate", str(output)])
            assert rc == 0
            name = os.path.basename(path)
            assert capsys.readouterr().out == (
                f"// Code from {name}\n// {'=' * 36}\nWait 1 frames\n"
            )
        finally:
            os.unlink(path)


class TestCliNoCommand:

    def test_no_command_returns_1(self, capsys):
        rc = main([])
        assert rc == 1
