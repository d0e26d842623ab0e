"""CLI for cmdgraph: generate, validate, and inspect node graph files."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from .errors import CmdGraphError
from .factory import default_values, load_graph
from .generator import CodeGenerator
from .graph import generate_mermaid
from .importer import import_script
from .library import load_library
from .model import Graph
from .schema import load_command_file
from .validator import GraphValidator


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="cmdgraph",
        description="Node graph editor engine for command scripts",
    )
    sub = parser.add_subparsers(dest="command")

    # generate
    generate_p = sub.add_parser("generate", help="Generate program text from a graph")
    generate_p.add_argument("file", help="Input graph .json file")
    _add_commands_option(generate_p)
    generate_p.add_argument("--log", action="store_true", help="Print a generation summary to stderr")
    generate_p.add_argument("--indent", default="  ", help="Indentation unit (default: two spaces)")

    # validate
    validate_p = sub.add_parser("validate", help="Validate a graph without generating")
    validate_p.add_argument("file", help="Input graph .json file")
    _add_commands_option(validate_p)

    # graph
    graph_p = sub.add_parser("graph", help="Generate Mermaid flowchart")
    graph_p.add_argument("file", help="Input graph .json file")
    _add_commands_option(graph_p)

    # defaults
    defaults_p = sub.add_parser("defaults", help="Show the default value map of a command")
    defaults_p.add_argument("file", help="Command .json/.yaml file")

    # import
    import_p = sub.add_parser("import", help="Wrap an existing script in a graph")
    import_p.add_argument("file", help="Script file")
    _add_commands_option(import_p)
    import_p.add_argument("-o", "--output", help="Write the graph here instead of stdout")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        if args.command == "defaults":
            return _cmd_defaults(args.file)
        definitions = load_library(args.commands)
        if args.command == "import":
            return _cmd_import(args.file, definitions, output=args.output)

        graph = load_graph(json.loads(_read_file(args.file)), definitions)
        if args.command == "generate":
            return _cmd_generate(graph, log=args.log, indent=args.indent)
        elif args.command == "validate":
            return _cmd_validate(graph)
        elif args.command == "graph":
            return _cmd_graph(graph)
    except FileNotFoundError as e:
        print(f"Error: file not found: {e.filename}", file=sys.stderr)
        return 1
    except json.JSONDecodeError as e:
        print(f"Error: invalid graph file: {e}", file=sys.stderr)
        return 1
    except CmdGraphError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    return 0


def _add_commands_option(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--commands", nargs="*", default=[], metavar="PATH",
        help="Command files or directories (built-in commands are always loaded)",
    )


def _read_file(path: str) -> str:
    with open(path, encoding="utf-8") as f:
        return f.read()


def _cmd_generate(graph: Graph, log: bool = False, indent: str = "  ") -> int:
    text, generation_log = CodeGenerator(indent_unit=indent).generate_with_log(graph)
    print(text)
    if log:
        print(generation_log.summary(), file=sys.stderr)
    return 0


def _cmd_validate(graph: Graph) -> int:
    errors = GraphValidator().validate(graph)
    if errors:
        for e in errors:
            print(f"  {e}", file=sys.stderr)
        return 1

    print(f"Valid: {len(graph.nodes)} nodes, {len(graph.connections)} connections")
    return 0


def _cmd_graph(graph: Graph) -> int:
    print(generate_mermaid(graph))
    return 0


def _cmd_defaults(path: str) -> int:
    command = load_command_file(path)
    print(json.dumps(default_values(command), indent=2))
    return 0


def _cmd_import(path: str, definitions: dict, output: str | None = None) -> int:
    graph = import_script(_read_file(path), definitions, Path(path).name)
    text = json.dumps(graph.to_dict(), indent=2)
    if output:
        Path(output).write_text(text + "\n", encoding="utf-8")
    else:
        print(text)
    return 0


if __name__ == "__main__":
    sys.exit(main())
