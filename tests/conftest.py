"""Shared fixtures for building template blocks by hand."""

import pytest
from defer_compiler.core.types import ParseLocation, ParseSourceFile, ParseSourceSpan
from defer_compiler.dsl.ast import Block, BlockParameter, Element
from defer_compiler.dsl.bindings import BindingParser
from defer_compiler.dsl.compiler import TemplateVisitor


class BlockFactory:
    """
    Builds blocks whose spans point into a growing fake source.
    Every piece of text gets its own line so spans can be sliced and moved.
    """

    def __init__(self):
        self.lines: list[str] = []

    def span(self, text: str) -> ParseSourceSpan:
        offset = sum(len(line) + 1 for line in self.lines)
        line = len(self.lines)
        self.lines.append(text)
        file = ParseSourceFile(content="\n".join(self.lines) + "\n", url="test.html")
        return ParseSourceSpan(
            start=ParseLocation(file=file, offset=offset, line=line, col=0),
            end=ParseLocation(file=file, offset=offset + len(text), line=line, col=len(text)),
        )

    def param(self, expression: str) -> BlockParameter:
        return BlockParameter(expression=expression, source_span=self.span(expression))

    def block(self, name: str, parameters=(), children=()) -> Block:
        header = f"@{name} {{"
        return Block(
            name=name,
            parameters=[self.param(p) for p in parameters],
            children=list(children),
            source_span=self.span(header),
            start_source_span=self.span(header),
            end_source_span=self.span("}"),
        )

    def element(self, name: str = "div") -> Element:
        return Element(
            name=name,
            attrs=[],
            children=[],
            source_span=self.span(f"<{name}></{name}>"),
            start_source_span=self.span(f"<{name}>"),
            end_source_span=self.span(f"</{name}>"),
        )


@pytest.fixture
def blocks():
    return BlockFactory()


@pytest.fixture
def binding_parser():
    return BindingParser()


@pytest.fixture
def visitor(binding_parser):
    return TemplateVisitor(binding_parser)
