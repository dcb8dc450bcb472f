"""Generic template AST produced by the template parser."""

from dataclasses import dataclass, field
from typing import Any

from ..core.types import ParseSourceSpan


@dataclass
class Text:
    """Raw text, possibly containing `{{ }}` interpolations."""
    value: str
    source_span: ParseSourceSpan

    def visit(self, visitor: "Visitor", context: Any) -> Any:
        return visitor.visit_text(self, context)


@dataclass
class Attribute:
    name: str
    value: str
    source_span: ParseSourceSpan

    def visit(self, visitor: "Visitor", context: Any) -> Any:
        return visitor.visit_attribute(self, context)


@dataclass
class Element:
    name: str
    attrs: list[Attribute]
    children: list[Any]
    source_span: ParseSourceSpan
    start_source_span: ParseSourceSpan
    end_source_span: ParseSourceSpan | None = None

    def visit(self, visitor: "Visitor", context: Any) -> Any:
        return visitor.visit_element(self, context)


@dataclass
class BlockParameter:
    """One `;`-separated parameter of a block, kept as raw text."""
    expression: str
    source_span: ParseSourceSpan

    def visit(self, visitor: "Visitor", context: Any) -> Any:
        return visitor.visit_block_parameter(self, context)


@dataclass
class Block:
    """An `@name (parameters) { children }` block."""
    name: str
    parameters: list[BlockParameter]
    children: list[Any]
    source_span: ParseSourceSpan
    start_source_span: ParseSourceSpan
    end_source_span: ParseSourceSpan | None = None

    def visit(self, visitor: "Visitor", context: Any) -> Any:
        return visitor.visit_block(self, context)


@dataclass
class ParseTreeResult:
    """Root nodes of a parsed template and the syntax errors found."""
    root_nodes: list[Any] = field(default_factory=list)
    errors: list = field(default_factory=list)


class Visitor:
    """Base visitor; subclasses override the node kinds they handle."""

    def visit_text(self, text: Text, context: Any) -> Any:
        return None

    def visit_attribute(self, attribute: Attribute, context: Any) -> Any:
        return None

    def visit_element(self, element: Element, context: Any) -> Any:
        return None

    def visit_block(self, block: Block, context: Any) -> Any:
        return None

    def visit_block_parameter(self, parameter: BlockParameter, context: Any) -> Any:
        return None


def visit_all(visitor: Visitor, nodes: list[Any], context: Any = None) -> list[Any]:
    """Visit every node, dropping the ones the visitor returns None for."""
    result = []
    for node in nodes:
        visited = node.visit(visitor, context)
        if visited is not None:
            result.append(visited)
    return result
