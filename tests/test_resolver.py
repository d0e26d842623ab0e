"""Tests for cmdgraph.resolver."""

import pytest

from cmdgraph.errors import CyclicConnectionError
from cmdgraph.factory import set_repeat_count, toggle_expanded
from cmdgraph.keys import socket_id
from cmdgraph.model import Connection
from cmdgraph.resolver import Resolver, refresh_results, resolve_value
from cmdgraph.validator import connect


def _wire(graph, source, source_key, target, target_key):
    """Add a connection without the socket checks ``connect`` applies."""
    return graph.add_connection(Connection(
        id=f"edge-{source.id}-{target.id}-{target_key}",
        from_node=source.id,
        from_socket=socket_id(source.id, source_key),
        to_node=target.id,
        to_socket=socket_id(target.id, target_key),
    ))


@pytest.fixture
def evaluator(place):
    def _evaluator(code, **variables):
        node = place("evaluate_code", {"1_code": code})
        set_repeat_count(node, "0_variable", max(len(variables), 1))
        for i, (name, value) in enumerate(variables.items()):
            node.values[f"0_variable_{i}_0_name"] = name
            node.values[f"0_variable_{i}_1_value"] = value
        return node
    return _evaluator


# ---------------------------------------------------------------------------
# Plain values
# ---------------------------------------------------------------------------

class TestLocalAndConnected:

    def test_local_value(self, graph, place):
        say = place("say", {"0_text": "hello"})
        assert resolve_value(graph, say, "0_text") == "hello"

    def test_missing_key(self, graph, place):
        say = place("say")
        assert resolve_value(graph, say, "9_nothing") is None

    def test_follows_chain(self, graph, place):
        first = place("constant", {"0_text": "origin"})
        middle = place("constant", {"0_text": "middle"})
        say = place("say", {"0_text": "local"})
        connect(graph, first.id, "0_text", middle.id, "0_text")
        connect(graph, middle.id, "0_text", say.id, "0_text")
        assert resolve_value(graph, say, "0_text") == "origin"

    def test_long_chain(self, graph, place):
        nodes = [place("constant", {"0_text": str(i)}) for i in range(1500)]
        for source, target in zip(nodes, nodes[1:]):
            _wire(graph, source, "0_text", target, "0_text")
        assert resolve_value(graph, nodes[-1], "0_text") == "0"

    def test_dangling_source(self, graph, place):
        say = place("say", {"0_text": "local"})
        graph.add_connection(Connection(
            id="edge-x", from_node="gone", from_socket="gone-0_text",
            to_node=say.id, to_socket=socket_id(say.id, "0_text"),
        ))
        assert resolve_value(graph, say, "0_text") == "local"

    def test_dangling_socket(self, graph, place):
        source = place("constant", {"0_text": "remote"})
        say = place("say", {"0_text": "local"})
        _wire(graph, source, "7_missing", say, "0_text")
        assert resolve_value(graph, say, "0_text") == "local"

    def test_collapsed_source_still_exposes_value(self, graph, place):
        source = place("constant", {"0_text": "remote"})
        say = place("say")
        connect(graph, source.id, "0_text", say.id, "0_text")
        toggle_expanded(source)
        assert resolve_value(graph, say, "0_text") == "remote"

    def test_cycle(self, graph, place):
        a = place("constant", {"0_text": "a"})
        b = place("constant", {"0_text": "b"})
        _wire(graph, a, "0_text", b, "0_text")
        _wire(graph, b, "0_text", a, "0_text")
        with pytest.raises(CyclicConnectionError, match="Cyclic connection"):
            resolve_value(graph, a, "0_text")


# ---------------------------------------------------------------------------
# Embedded code
# ---------------------------------------------------------------------------

class TestEvaluatedResults:

    def test_connected_result_is_stringified(self, graph, place, evaluator):
        source = evaluator("1+1")
        say = place("say")
        connect(graph, source.id, "1_code", say.id, "0_text")
        assert resolve_value(graph, say, "0_text") == "2"

    def test_variables(self, graph, place, evaluator):
        source = evaluator("x * 2", x="4")
        say = place("say")
        connect(graph, source.id, "1_code", say.id, "0_text")
        assert resolve_value(graph, say, "0_text") == "8"

    def test_variable_value_through_connection(self, graph, place, evaluator):
        source = evaluator("`hi ${who}`", who="nobody")
        name = place("constant", {"0_text": "hero"})
        _wire(graph, name, "0_text", source, "0_variable_0_1_value")
        assert Resolver(graph).evaluated_result(source, "1_code") == "hi hero"

    def test_cached_result_trusted(self, graph, place, evaluator):
        source = evaluator("1+1")
        source.values["1_code_result"] = "cached"
        say = place("say")
        connect(graph, source.id, "1_code", say.id, "0_text")
        assert resolve_value(graph, say, "0_text") == "cached"
        assert Resolver(graph, trust_cache=False).resolve(say, "0_text") == "2"

    def test_failure_becomes_marker(self, graph, place, evaluator):
        source = evaluator("missing + 1")
        say = place("say")
        connect(graph, source.id, "1_code", say.id, "0_text")
        value = resolve_value(graph, say, "0_text")
        assert value.startswith("/* Error evaluating code:")
        assert "missing is not defined" in value

    def test_null_result_is_empty(self, graph, evaluator):
        source = evaluator("null")
        assert Resolver(graph).evaluated_result(source, "1_code") == ""

    def test_refresh_results(self, graph, evaluator):
        source = evaluator("3 * 3")
        refresh_results(graph)
        assert source.values["1_code_result"] == "9"

    def test_unnamed_binding_ignored(self, graph, evaluator):
        source = evaluator("1")
        assert Resolver(graph).variables(source) == {}

    def test_code_keys(self, graph, evaluator):
        source = evaluator("1", who="x")
        assert Resolver(graph).code_keys(source) == ["1_code"]

    def test_variable_output_is_not_evaluated(self, graph, place, evaluator):
        source = evaluator("1", who="hello")
        raw = place("generate_raw_code")
        _wire(graph, source, "0_variable_0_1_value", raw, "0_code_0_code")
        assert resolve_value(graph, raw, "0_code_0_code") == "hello"
