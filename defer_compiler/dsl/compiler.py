"""Compiler that transforms the template AST into typed nodes."""

import logging
from pathlib import Path
from typing import Any

from . import ast as html
from .bindings import BindingParser
from .parser import TemplateParser
from ..core.deferred_blocks import create_deferred_block, is_connected_defer_block
from ..core.types import (
    BoundText,
    CompileResult,
    Diagnostic,
    Element,
    Text,
    TextAttribute,
    UnknownBlock,
)

logger = logging.getLogger(__name__)


class TemplateVisitor(html.Visitor):
    """Visits the template AST, building nodes and collecting errors."""

    def __init__(self, binding_parser: BindingParser):
        self.binding_parser = binding_parser
        self.errors: list[Diagnostic] = []
        # Nodes consumed as connected blocks of a preceding `@defer`.
        self._processed: set[int] = set()

    def visit_text(self, text: html.Text, context: Any):
        if id(text) in self._processed:
            return None

        parsed = self.binding_parser.parse_interpolation(text.value, text.source_span)
        if parsed is None:
            return Text(value=text.value, source_span=text.source_span)

        strings, expressions = parsed
        return BoundText(
            strings=strings,
            expressions=expressions,
            source_span=text.source_span,
        )

    def visit_attribute(self, attribute: html.Attribute, context: Any):
        return TextAttribute(
            name=attribute.name,
            value=attribute.value,
            source_span=attribute.source_span,
        )

    def visit_element(self, element: html.Element, context: Any):
        return Element(
            name=element.name,
            attributes=html.visit_all(self, element.attrs),
            children=html.visit_all(self, element.children, element.children),
            source_span=element.source_span,
            start_source_span=element.start_source_span,
            end_source_span=element.end_source_span,
        )

    def visit_block(self, block: html.Block, context: Any):
        if not isinstance(context, list):
            raise ValueError(
                "visit_block must be invoked with the sibling list as its context"
            )

        if id(block) in self._processed:
            return None

        index = next(i for i, sibling in enumerate(context) if sibling is block)

        if block.name == "defer":
            node, errors = create_deferred_block(
                block,
                self._find_connected_blocks(index, context),
                self,
                self.binding_parser,
            )
            self.errors.extend(errors)
            return node

        if is_connected_defer_block(block.name):
            message = f"@{block.name} block can only be used after an @defer block."
        else:
            message = f"Unrecognized block @{block.name}."

        self.errors.append(Diagnostic(span=block.source_span, message=message))
        return UnknownBlock(name=block.name, source_span=block.source_span)

    def _find_connected_blocks(self, primary_index: int, siblings: list) -> list[html.Block]:
        """Collect the connected blocks directly following a primary block."""
        connected = []

        for node in siblings[primary_index + 1:]:
            # Whitespace between connected blocks is dropped with them.
            if isinstance(node, html.Text) and not node.value.strip():
                self._processed.add(id(node))
                continue

            if not isinstance(node, html.Block) or not is_connected_defer_block(node.name):
                break

            connected.append(node)
            self._processed.add(id(node))

        return connected


class DeferCompiler:
    """Compiles templates into typed nodes with their diagnostics."""

    def __init__(self):
        self.parser = TemplateParser()

    def compile(self, parse_result: html.ParseTreeResult) -> CompileResult:
        """Compile a parsed template AST."""
        binding_parser = BindingParser()
        visitor = TemplateVisitor(binding_parser)
        nodes = html.visit_all(visitor, parse_result.root_nodes, parse_result.root_nodes)

        errors = [*parse_result.errors, *binding_parser.errors, *visitor.errors]
        logger.debug("Compiled %d root node(s) with %d error(s)", len(nodes), len(errors))
        return CompileResult(nodes=nodes, errors=errors)

    def compile_file(self, path: Path) -> CompileResult:
        """Parse and compile a template file."""
        logger.debug("Compiling template file %s", path)
        return self.compile(self.parser.parse_file(path))

    def compile_string(self, content: str, url: str = "inline") -> CompileResult:
        """Parse and compile template content from string."""
        return self.compile(self.parser.parse(content, url=url))
