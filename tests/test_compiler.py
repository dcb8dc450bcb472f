"""Tests for compiling whole templates."""

import json
from pathlib import Path
import pytest
from defer_compiler.core.types import (
    BoundText,
    DeferredBlock,
    Element,
    IdleDeferredTrigger,
    InteractionDeferredTrigger,
    UnknownBlock,
    ViewportDeferredTrigger,
)
from defer_compiler.dsl.compiler import DeferCompiler, TemplateVisitor

EXAMPLES_PATH = Path(__file__).parent.parent / "defer_compiler" / "dsl" / "examples"


@pytest.fixture
def compiler():
    return DeferCompiler()


def messages(result):
    return [e.message for e in result.errors]


def test_compile_feed_example(compiler):
    """Test compiling the feed example template."""
    result = compiler.compile_file(EXAMPLES_PATH / "feed.html")

    assert result.errors == []
    assert not result.has_errors()

    blocks = result.get_deferred_blocks()
    assert len(blocks) == 2

    feed, comments = blocks
    assert isinstance(feed.triggers["viewport"], ViewportDeferredTrigger)
    assert isinstance(feed.prefetch_triggers["idle"], IdleDeferredTrigger)
    assert feed.placeholder.minimum_time == 500
    assert feed.loading.after_time == 100
    assert feed.loading.minimum_time == 1000
    assert feed.error is not None

    assert list(comments.triggers) == ["interaction", "when"]
    assert isinstance(comments.triggers["interaction"], InteractionDeferredTrigger)
    assert comments.triggers["interaction"].reference == "showComments"
    assert comments.triggers["when"].value.ast["operator"] == "&&"
    assert comments.loading is None


def test_compile_broken_example(compiler):
    """Test that every problem in a template is reported in order."""
    result = compiler.compile_file(EXAMPLES_PATH / "broken.html")

    assert result.has_errors()
    assert messages(result) == [
        '@placeholder block can only have one "minimum" parameter',
        'Could not parse time value of parameter "after"',
        "@error block cannot have parameters",
        'Duplicate "idle" trigger is not allowed',
        "Unrecognized trigger",
        "@loading block can only be used after an @defer block.",
    ]

    block = result.get_deferred_blocks()[0]
    assert block.placeholder is None
    assert block.loading is None
    assert block.error is None
    assert list(block.triggers) == ["idle"]


def test_connected_blocks_are_consumed(compiler):
    """Test that connected blocks do not appear as separate nodes."""
    result = compiler.compile_string(
        "@defer { <app-a /> } @placeholder { <p>A</p> } @error { <p>Oops</p> }"
    )

    assert result.errors == []
    assert len(result.nodes) == 1
    assert isinstance(result.nodes[0], DeferredBlock)


def test_connected_block_without_defer(compiler):
    """Test that a connected block on its own is reported."""
    result = compiler.compile_string("@placeholder { <p>Alone</p> }")

    assert messages(result) == ["@placeholder block can only be used after an @defer block."]
    assert isinstance(result.nodes[0], UnknownBlock)


def test_text_breaks_connection(compiler):
    """Test that text between blocks separates them."""
    result = compiler.compile_string("@defer { a } text @placeholder { b }")

    assert messages(result) == ["@placeholder block can only be used after an @defer block."]
    assert result.get_deferred_blocks()[0].placeholder is None


def test_unrecognized_block(compiler):
    """Test that an unknown block becomes an UnknownBlock node."""
    result = compiler.compile_string("@switch (value) { }")

    assert messages(result) == ["Unrecognized block @switch."]
    assert result.nodes[0].name == "switch"


def test_nested_defer_blocks(compiler):
    """Test that @defer blocks inside other blocks and elements are compiled."""
    result = compiler.compile_string(
        "<main>"
        "@defer (on idle) { @defer (on immediate) { <app-inner /> } }"
        "</main>"
    )

    assert result.errors == []
    main = result.nodes[0]
    assert isinstance(main, Element)
    outer = main.children[0]
    inner = outer.children[0]
    assert isinstance(inner, DeferredBlock)
    assert list(inner.triggers) == ["immediate"]
    assert result.get_deferred_blocks() == [outer, inner]


def test_interpolated_text(compiler):
    """Test that interpolated text becomes a BoundText node."""
    result = compiler.compile_string("<p>{{ count }} items</p>")

    text = result.nodes[0].children[0]
    assert isinstance(text, BoundText)
    assert text.strings == ("", " items")
    assert text.expressions[0].ast == {"kind": "read", "name": "count"}


def test_binding_errors_are_collected(compiler):
    """Test that expression errors join the compile diagnostics."""
    result = compiler.compile_string("@defer (when a +) { }")

    assert messages(result) == ["Parser Error: Unexpected end of expression in [a +]"]
    assert "when" in result.nodes[0].triggers


def test_syntax_error(compiler):
    """Test that a template syntax error yields no nodes."""
    result = compiler.compile_string("@defer {")

    assert result.nodes == ()
    assert messages(result) == ["Unexpected end of template"]


def test_compile_result_serializes(compiler):
    """Test that a compile result can be dumped as JSON."""
    result = compiler.compile_string("@defer (on timer(2s)) { <app-a /> }", url="a.html")

    data = json.loads(result.model_dump_json())
    trigger = data["nodes"][0]["triggers"]["timer"]
    assert trigger["delay"] == 2000
    assert "file" not in trigger["source_span"]["start"]


def test_visit_block_needs_sibling_context(blocks, visitor):
    """Test that a block visited without its siblings is rejected."""
    with pytest.raises(ValueError):
        visitor.visit_block(blocks.block("defer"), None)


def test_visitor_errors_start_empty(binding_parser):
    """Test that a new visitor has no errors."""
    assert TemplateVisitor(binding_parser).errors == []
