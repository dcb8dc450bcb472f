"""Tests for binding expression parsing."""

import pytest
from defer_compiler.dsl.bindings import EMPTY_AST


def read(name):
    return {"kind": "read", "name": name}


def literal(value):
    return {"kind": "literal", "value": value}


@pytest.mark.parametrize("text, expected", [
    ("ready", read("ready")),
    ("user.profile", {"kind": "property_read", "receiver": read("user"), "name": "profile"}),
    ("items[0]", {"kind": "keyed_read", "receiver": read("items"), "key": literal(0)}),
    ("!done", {"kind": "unary", "operator": "!", "operand": read("done")}),
    ("[1, 2.5]", {"kind": "array", "items": [literal(1), literal(2.5)]}),
    ("null", literal(None)),
    ("true", literal(True)),
    (
        "save(1, 'draft')",
        {"kind": "call", "receiver": read("save"), "args": [literal(1), literal("draft")]},
    ),
    (
        "a ? b : c",
        {"kind": "conditional", "condition": read("a"), "true_exp": read("b"), "false_exp": read("c")},
    ),
])
def test_parse_binding(blocks, binding_parser, text, expected):
    """Test the AST produced for each expression form."""
    expression = binding_parser.parse_binding(text, blocks.span(text))

    assert expression.ast == expected
    assert expression.source == text
    assert binding_parser.errors == []


def test_operator_precedence(blocks, binding_parser):
    """Test that multiplication binds tighter than addition."""
    expression = binding_parser.parse_binding("a + b * 2", blocks.span("a + b * 2"))

    assert expression.ast == {
        "kind": "binary",
        "operator": "+",
        "left": read("a"),
        "right": {"kind": "binary", "operator": "*", "left": read("b"), "right": literal(2)},
    }


def test_logical_operators(blocks, binding_parser):
    """Test that || binds looser than &&."""
    expression = binding_parser.parse_binding("a && !b || c", blocks.span("a && !b || c"))

    assert expression.ast["operator"] == "||"
    assert expression.ast["left"]["operator"] == "&&"


def test_binding_span_at_offset(blocks, binding_parser):
    """Test that the expression span starts at the given absolute offset."""
    span = blocks.span("when isReady")
    expression = binding_parser.parse_binding("isReady", span, span.start.offset + 5)

    assert expression.source_span.text == "isReady"


def test_empty_binding(blocks, binding_parser):
    """Test that a blank expression is reported and gets an empty AST."""
    span = blocks.span("   ")
    expression = binding_parser.parse_binding("   ", span)

    assert expression.ast == EMPTY_AST
    assert [e.message for e in binding_parser.errors] == [
        "Parser Error: Empty expressions are not allowed in [   ]"
    ]


def test_incomplete_binding(blocks, binding_parser):
    """Test that a truncated expression is reported."""
    expression = binding_parser.parse_binding("a +", blocks.span("a +"))

    assert expression.ast == EMPTY_AST
    assert [e.message for e in binding_parser.errors] == [
        "Parser Error: Unexpected end of expression in [a +]"
    ]


def test_unexpected_token_in_binding(blocks, binding_parser):
    """Test that the column of an unexpected token is reported."""
    binding_parser.parse_binding("a b", blocks.span("a b"))

    assert [e.message for e in binding_parser.errors] == [
        "Parser Error: Unexpected token 'b' at column 3 in [a b]"
    ]


def test_parse_interpolation(blocks, binding_parser):
    """Test that text is split around `{{ }}` expressions."""
    text = "Hi {{ name }}, you have {{ count }} messages"
    strings, expressions = binding_parser.parse_interpolation(text, blocks.span(text))

    assert strings == ["Hi ", ", you have ", " messages"]
    assert [e.ast for e in expressions] == [read("name"), read("count")]
    assert [e.source_span.text.strip() for e in expressions] == ["name", "count"]


def test_text_without_interpolation(blocks, binding_parser):
    """Test that plain text is not treated as an interpolation."""
    assert binding_parser.parse_interpolation("plain", blocks.span("plain")) is None
