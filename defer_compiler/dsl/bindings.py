"""Binding expression parser for `when` triggers and text interpolations."""

import logging
import re
from pathlib import Path
from lark import Lark, Transformer, v_args
from lark.exceptions import UnexpectedCharacters, UnexpectedInput, UnexpectedToken

from ..core.types import BoundExpression, Diagnostic, ParseSourceSpan

logger = logging.getLogger(__name__)

GRAMMAR_PATH = Path(__file__).parent / "expression.lark"

INTERPOLATION_PATTERN = re.compile(r"\{\{([\s\S]*?)\}\}")

EMPTY_AST = {"kind": "empty"}


class ExpressionTransformer(Transformer):
    """Transform an expression parse tree into a JSON-friendly dict AST."""

    @v_args(inline=True)
    def read(self, name):
        return {"kind": "read", "name": str(name)}

    @v_args(inline=True)
    def number(self, token):
        value = float(token)
        return {"kind": "literal", "value": int(value) if value.is_integer() else value}

    @v_args(inline=True)
    def string(self, token):
        return {"kind": "literal", "value": token[1:-1]}

    def true(self, _):
        return {"kind": "literal", "value": True}

    def false(self, _):
        return {"kind": "literal", "value": False}

    def null(self, _):
        return {"kind": "literal", "value": None}

    def undefined(self, _):
        return {"kind": "literal", "value": "undefined"}

    def arguments(self, items):
        return list(items)

    @v_args(inline=True)
    def array(self, items):
        return {"kind": "array", "items": items or []}

    @v_args(inline=True)
    def property_read(self, receiver, name):
        return {"kind": "property_read", "receiver": receiver, "name": str(name)}

    @v_args(inline=True)
    def safe_property_read(self, receiver, name):
        return {"kind": "safe_property_read", "receiver": receiver, "name": str(name)}

    @v_args(inline=True)
    def keyed_read(self, receiver, key):
        return {"kind": "keyed_read", "receiver": receiver, "key": key}

    @v_args(inline=True)
    def call(self, receiver, args):
        return {"kind": "call", "receiver": receiver, "args": args or []}

    @v_args(inline=True)
    def unary(self, operator, operand):
        return {"kind": "unary", "operator": str(operator), "operand": operand}

    @v_args(inline=True)
    def binary(self, left, operator, right):
        return {"kind": "binary", "operator": str(operator), "left": left, "right": right}

    @v_args(inline=True)
    def conditional(self, condition, true_exp, false_exp):
        return {
            "kind": "conditional",
            "condition": condition,
            "true_exp": true_exp,
            "false_exp": false_exp,
        }


class BindingParser:
    """Parses binding expressions, collecting errors instead of raising."""

    def __init__(self):
        with open(GRAMMAR_PATH) as f:
            grammar = f.read()
        self.parser = Lark(grammar, parser="lalr")
        self.transformer = ExpressionTransformer()
        self.errors: list[Diagnostic] = []

    def parse_binding(
        self,
        text: str,
        source_span: ParseSourceSpan,
        absolute_offset: int | None = None,
    ) -> BoundExpression:
        """Parse `text` as an expression located at `absolute_offset`."""
        if absolute_offset is None:
            absolute_offset = source_span.start.offset

        if not text.strip():
            self._report("Parser Error: Empty expressions are not allowed", text, source_span)
            return BoundExpression(source=text, ast=EMPTY_AST, source_span=source_span)

        try:
            tree = self.parser.parse(text)
        except UnexpectedInput as e:
            self._report(f"Parser Error: {_describe(e)}", text, source_span)
            return BoundExpression(source=text, ast=EMPTY_AST, source_span=source_span)

        expression_span = _subspan(source_span, absolute_offset, len(text))
        return BoundExpression(
            source=text,
            ast=self.transformer.transform(tree),
            source_span=expression_span,
        )

    def parse_interpolation(
        self,
        text: str,
        source_span: ParseSourceSpan,
    ) -> tuple[list[str], list[BoundExpression]] | None:
        """
        Split text into literal strings and `{{ }}` expressions.
        Returns None when the text has no interpolation.
        """
        matches = list(INTERPOLATION_PATTERN.finditer(text))
        if not matches:
            return None

        strings: list[str] = []
        expressions: list[BoundExpression] = []
        last = 0
        for match in matches:
            strings.append(text[last:match.start()])
            expressions.append(self.parse_binding(
                match.group(1),
                source_span,
                source_span.start.offset + match.start(1),
            ))
            last = match.end()
        strings.append(text[last:])
        return strings, expressions

    def _report(self, message: str, text: str, source_span: ParseSourceSpan) -> None:
        logger.debug("Binding error in %r: %s", text, message)
        self.errors.append(Diagnostic(span=source_span, message=f"{message} in [{text}]"))


def _describe(error: UnexpectedInput) -> str:
    if isinstance(error, UnexpectedToken):
        if error.token.type == "$END":
            return "Unexpected end of expression"
        return f"Unexpected token '{error.token}' at column {error.column}"
    if isinstance(error, UnexpectedCharacters):
        return f"Unexpected character '{error.char}' at column {error.column}"
    return str(error)


def _subspan(span: ParseSourceSpan, absolute_offset: int, length: int) -> ParseSourceSpan:
    start = span.start.move_by(absolute_offset - span.start.offset)
    return ParseSourceSpan(start=start, end=start.move_by(length))
