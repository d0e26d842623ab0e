"""Tests for cmdgraph.schema."""

import json

import pytest

from cmdgraph.errors import SchemaError
from cmdgraph.schema import (
    Argument,
    ArrayArg,
    Block,
    Choice,
    Group,
    Keyword,
    Primitive,
    Subcommand,
    contains_block,
    identifier,
    iter_command_files,
    load_argument,
    load_command,
    load_command_file,
)


# ---------------------------------------------------------------------------
# Identifier resolution
# ---------------------------------------------------------------------------

class TestIdentifier:

    def test_name_wins(self):
        assert identifier(Primitive(type="Numeric", name="x", value="y")) == "x"

    def test_value_then_type(self):
        assert identifier(Keyword(type="keyword", value="frames")) == "frames"
        assert identifier(Primitive(type="Numeric")) == "Numeric"

    def test_group_uses_first_keyword(self):
        group = Group(type="group", content=(
            Primitive(type="Numeric", name="amount"),
            Keyword(type="keyword", value="fixed"),
        ))
        assert identifier(group) == "fixed"

    def test_group_ignores_assignment(self):
        group = Group(type="group", content=(Keyword(type="assignment", value="="),))
        assert identifier(group) == "group"

    def test_nothing_derivable(self):
        assert identifier(Argument()) == ""


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

class TestLoadArgument:

    def test_primitive_fields(self):
        arg = load_argument({"type": "Variable", "name": "actor", "prefix": "@", "optional": True})
        assert isinstance(arg, Primitive)
        assert arg.prefix == "@"
        assert arg.optional is True

    def test_kinds(self):
        assert isinstance(load_argument({"type": "keyword", "value": "x"}), Keyword)
        assert isinstance(load_argument({"type": "choice", "options": []}), Choice)
        assert isinstance(load_argument({"type": "group", "content": []}), Group)
        assert isinstance(load_argument({"type": "subcommand", "name": "s"}), Subcommand)

    def test_block_container_vs_executable(self):
        container = load_argument({"type": "block", "content": []})
        branch = load_argument({"type": "block"})
        assert container.is_container
        assert not branch.is_container

    def test_array_delimiters(self):
        arg = load_argument({
            "type": "Array",
            "content": {"type": "Numeric", "name": "n"},
            "delimiters": ["(", ")"],
        })
        assert isinstance(arg, ArrayArg)
        assert arg.delimiters == ("(", ")")
        assert isinstance(arg.content, Primitive)

    def test_bad_delimiters(self):
        with pytest.raises(SchemaError, match="delimiters"):
            load_argument({"type": "Array", "delimiters": ["("]})

    def test_unknown_kind_is_opaque(self):
        arg = load_argument({"type": "Mystery", "name": "m"})
        assert type(arg) is Argument

    def test_not_a_mapping(self):
        with pytest.raises(SchemaError):
            load_argument(["type", "String"])


class TestLoadCommand:

    def test_head_is_command(self, schemas):
        command = load_command(schemas["wait"])
        assert command.head == "Wait"
        assert len(command.arguments) == 2

    def test_null_base_wins(self, schemas):
        command = load_command(schemas["move_to"])
        assert command.has_base
        assert command.head == ""

    def test_category_from_path(self):
        command = load_command({"command": "Wait"}, source_file="lib/Event_Commands/wait.json")
        assert command.category == "Event_Commands"
        assert command.is_exec

    def test_non_exec_category(self):
        command = load_command({"command": "Data"}, source_file="lib/Values/data.json")
        assert command.category == "Values"
        assert not command.is_exec

    def test_evaluator(self, schemas):
        assert load_command({"command": "Evaluate JS Code"}).is_evaluator
        assert not load_command(schemas["wait"]).is_evaluator

    def test_has_arguments(self, schemas):
        assert load_command(schemas["wait"]).has_arguments
        assert load_command({"command": "Spawn", "array_parameter": {"type": "Numeric"}}).has_arguments
        assert not load_command({"command": "End"}).has_arguments


class TestCommandFiles:

    def test_json_file(self, tmp_path, schemas):
        path = tmp_path / "Event_Commands" / "wait.json"
        path.parent.mkdir()
        path.write_text(json.dumps(schemas["wait"]), encoding="utf-8")
        command = load_command_file(path)
        assert command.head == "Wait"
        assert command.source_file.endswith("wait.json")

    def test_yaml_file(self, tmp_path):
        path = tmp_path / "say.yaml"
        path.write_text(
            "command: Say\n"
            "category: Event_Commands\n"
            "arguments:\n"
            "  - type: String\n"
            "    name: text\n",
            encoding="utf-8",
        )
        command = load_command_file(path)
        assert command.head == "Say"
        assert command.arguments[0].name == "text"

    def test_malformed_json(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{", encoding="utf-8")
        with pytest.raises(SchemaError, match="Invalid command file"):
            load_command_file(path)

    def test_malformed_yaml(self, tmp_path):
        path = tmp_path / "bad.yml"
        path.write_text("arguments: [", encoding="utf-8")
        with pytest.raises(SchemaError):
            load_command_file(path)

    def test_iter_directory(self, tmp_path):
        (tmp_path / "a.json").write_text("{}", encoding="utf-8")
        (tmp_path / "sub").mkdir()
        (tmp_path / "sub" / "b.yaml").write_text("{}", encoding="utf-8")
        (tmp_path / "notes.txt").write_text("", encoding="utf-8")
        found = iter_command_files([tmp_path])
        assert [p.name for p in found] == ["a.json", "b.yaml"]


# ---------------------------------------------------------------------------
# Structure
# ---------------------------------------------------------------------------

class TestContainsBlock:

    def test_direct(self):
        assert contains_block(Block(type="block"))

    def test_nested(self):
        arg = Group(type="group", content=(
            Subcommand(type="subcommand", name="s", arguments=(Block(type="block"),)),
        ))
        assert contains_block(arg)

    def test_absent(self):
        arg = Group(type="group", content=(Primitive(type="Numeric", name="n"),))
        assert not contains_block(arg)
