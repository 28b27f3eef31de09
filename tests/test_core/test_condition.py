"""Tests for the condition expression language."""

from __future__ import annotations

import pytest

from agentflow.core.condition import Compare, Defined, Name, evaluate_condition, parse_condition, referenced_keys
from agentflow.core.errors import EvaluationError


class TestParse:
    def test_comparison_ast(self):
        node = parse_condition("score >= 0.5")
        assert isinstance(node, Compare)
        assert node.op == ">="
        assert node.left == Name(("score",))

    def test_defined_ast(self):
        assert parse_condition("defined(a.b)") == Defined(Name(("a", "b")))

    def test_parse_is_cached(self):
        assert parse_condition("x == 1") is parse_condition("x == 1")

    @pytest.mark.parametrize("expr", ["", "x ==", "(x == 1", "x == 1)", "in x", "x # 1", "defined(1)"])
    def test_syntax_errors(self, expr):
        with pytest.raises(EvaluationError):
            parse_condition(expr)


class TestEvaluate:
    @pytest.mark.parametrize(
        "expr, expected",
        [
            ("x == 1", True),
            ("x != 1", False),
            ("x > 0 && x < 2", True),
            ("x > 5 || name == 'ada'", True),
            ("!(x == 1)", False),
            ("!flag", True),
            ("x >= 1.0", True),
            ("name < \"bob\"", True),
            ("'ada' in names", True),
            ("names includes 'eve'", False),
            ("x in [1, 2, 3]", True),
            ("'d' in name", True),
            ("defined(x)", True),
            ("defined(missing)", False),
            ("!defined(missing) || missing > 1", True),
            ("nested.level == 2", True),
            ("dotted.key == 'whole'", True),
            ("empty == null", True),
            ("flag == false", True),
        ],
    )
    def test_expressions(self, expr, expected):
        bag = {
            "x": 1,
            "name": "ada",
            "names": ["ada", "bob"],
            "flag": False,
            "nested": {"level": 2},
            "dotted.key": "whole",
            "empty": None,
        }
        assert evaluate_condition(expr, bag) is expected

    def test_missing_key_raises(self):
        with pytest.raises(EvaluationError, match="missing key 'score'"):
            evaluate_condition("score > 1", {})

    def test_short_circuit_skips_missing_key(self):
        assert evaluate_condition("x == 2 && missing > 1", {"x": 1}) is False

    def test_mismatched_ordering_types(self):
        with pytest.raises(EvaluationError, match="Cannot compare"):
            evaluate_condition("x > 'a'", {"x": 1})

    def test_booleans_are_not_ordered_as_numbers(self):
        with pytest.raises(EvaluationError):
            evaluate_condition("flag > 0", {"flag": True})

    def test_membership_needs_a_container(self):
        with pytest.raises(EvaluationError, match="Membership"):
            evaluate_condition("1 in x", {"x": 5})

    def test_no_code_execution(self):
        with pytest.raises(EvaluationError):
            evaluate_condition("__import__('os').system('true')", {})


class TestReferencedKeys:
    def test_collects_top_level_keys(self):
        assert referenced_keys("a.b > 1 && defined(c) || d in [e, 2]") == {"a", "c", "d", "e"}
