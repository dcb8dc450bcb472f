"""Parsing of `when` and `on` trigger parameters of a `@defer` block."""

import logging
from pathlib import Path
from lark import Lark, Token, Tree
from lark.exceptions import UnexpectedCharacters, UnexpectedInput, UnexpectedToken

from ..core.result import Err
from ..core.types import (
    BoundDeferredTrigger,
    DeferredBlockPlaceholder,
    DeferredBlockTriggers,
    DeferredTrigger,
    Diagnostic,
    ParseSourceSpan,
)
from ..dsl.bindings import BindingParser
from ..dsl.ast import BlockParameter
from .factories import parse_deferred_time
from .registry import get_trigger_factory

logger = logging.getLogger(__name__)

GRAMMAR_PATH = Path(__file__).parent / "triggers.lark"

__all__ = [
    "OnTriggerParser",
    "get_trigger_parameters_start",
    "parse_deferred_time",
    "parse_on_trigger",
    "parse_when_trigger",
    "track_trigger",
]


def get_trigger_parameters_start(value: str, start_position: int = 0) -> int:
    """
    Find where the parameters of a keyword start: the first non-whitespace
    character after the first run of whitespace at or after `start_position`.
    Returns -1 if there is none.
    """
    has_found_separator = False
    for index in range(start_position, len(value)):
        if value[index].isspace():
            has_found_separator = True
        elif has_found_separator:
            return index
    return -1


def track_trigger(
    name: str,
    triggers: DeferredBlockTriggers,
    errors: list[Diagnostic],
    trigger: DeferredTrigger,
) -> None:
    """Register a trigger under `name`, rejecting a second one of the same kind."""
    if name in triggers:
        errors.append(Diagnostic(
            span=trigger.source_span,
            message=f'Duplicate "{name}" trigger is not allowed',
        ))
    else:
        triggers[name] = trigger


def parse_when_trigger(
    param: BlockParameter,
    binding_parser: BindingParser,
    triggers: DeferredBlockTriggers,
    errors: list[Diagnostic],
) -> None:
    """Parse a `when <expression>` parameter into a bound trigger."""
    expression = param.expression
    when_index = expression.find("when")

    if when_index == -1:
        errors.append(Diagnostic(
            span=param.source_span,
            message='Could not find "when" keyword in expression',
        ))
        return

    start = get_trigger_parameters_start(expression, when_index + 1)
    text = expression[start:] if start != -1 else ""
    offset = param.source_span.start.offset + (start if start != -1 else len(expression))
    parsed = binding_parser.parse_binding(text, param.source_span, offset)
    track_trigger(
        "when",
        triggers,
        errors,
        BoundDeferredTrigger(value=parsed, source_span=param.source_span),
    )


def parse_on_trigger(
    param: BlockParameter,
    triggers: DeferredBlockTriggers,
    errors: list[Diagnostic],
    placeholder: DeferredBlockPlaceholder | None,
) -> None:
    """Parse an `on <trigger>, <trigger>(<params>)` parameter."""
    expression = param.expression
    on_index = expression.find("on")

    if on_index == -1:
        errors.append(Diagnostic(
            span=param.source_span,
            message='Could not find "on" keyword in expression',
        ))
        return

    start = get_trigger_parameters_start(expression, on_index + 1)
    if start == -1:
        return

    OnTriggerParser(expression, start, param.source_span, triggers, errors, placeholder).parse()


class OnTriggerParser:
    """Builds the triggers listed after an `on` keyword."""

    _lark: Lark | None = None

    def __init__(
        self,
        expression: str,
        start: int,
        span: ParseSourceSpan,
        triggers: DeferredBlockTriggers,
        errors: list[Diagnostic],
        placeholder: DeferredBlockPlaceholder | None,
    ):
        self.expression = expression
        self.start = start
        self.span = span
        self.triggers = triggers
        self.errors = errors
        self.placeholder = placeholder

    @classmethod
    def _get_lark(cls) -> Lark:
        if cls._lark is None:
            with open(GRAMMAR_PATH) as f:
                cls._lark = Lark(f.read(), parser="lalr")
        return cls._lark

    def parse(self) -> None:
        text = self.expression[self.start:]

        try:
            tree = self._get_lark().parse(text)
        except UnexpectedInput as e:
            self._syntax_error(e, text)
            return

        for child in tree.children:
            if isinstance(child, Tree) and child.data == "trigger":
                self._consume_trigger(child)

    def _consume_trigger(self, trigger: Tree) -> None:
        tokens = [t for t in trigger.children if isinstance(t, Token)]
        identifier = tokens[0]
        parameters = [t.value.strip() for t in tokens if t.type == "TRIGGER_PARAM"]
        source_span = self._span(identifier.start_pos, tokens[-1].end_pos)

        factory = get_trigger_factory(identifier.value)
        if factory is None:
            self._error(identifier, f'Unrecognized trigger type "{identifier}"')
            return

        result = factory(parameters, source_span, self.placeholder)
        if isinstance(result, Err):
            self._error(identifier, result.message)
            return

        logger.debug("Parsed %r trigger from %r", identifier.value, self.expression)
        track_trigger(identifier.value, self.triggers, self.errors, result.value)

    def _span(self, start: int, end: int) -> ParseSourceSpan:
        """Span for a range of the trigger text, relative to the parameter."""
        begin = self.span.start.move_by(self.start + start)
        return ParseSourceSpan(start=begin, end=begin.move_by(end - start))

    def _error(self, token: Token, message: str) -> None:
        self.errors.append(Diagnostic(
            span=self._span(token.start_pos, token.end_pos),
            message=message,
        ))

    def _syntax_error(self, error: UnexpectedInput, text: str) -> None:
        if isinstance(error, UnexpectedToken):
            if error.token.type == "$END":
                self.errors.append(Diagnostic(
                    span=self._span(len(text), len(text)),
                    message="Unexpected end of trigger expression",
                ))
            else:
                self._error(error.token, f'Unexpected token "{error.token}"')
        elif isinstance(error, UnexpectedCharacters):
            position = error.pos_in_stream
            self.errors.append(Diagnostic(
                span=self._span(position, position + 1),
                message=f'Unexpected character "{error.char}"',
            ))
        else:
            self.errors.append(Diagnostic(span=self.span, message=str(error)))
