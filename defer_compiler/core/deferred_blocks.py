"""
Assembly of `@defer` blocks.

Turns a generic `@defer` block and the `@placeholder`, `@loading` and
`@error` blocks that follow it into a typed DeferredBlock. Problems are
collected as diagnostics; the assembler itself never raises.
"""

import logging
import re

from ..dsl.bindings import BindingParser
from ..dsl.ast import Block, BlockParameter, Visitor, visit_all
from ..triggers.parser import (
    get_trigger_parameters_start,
    parse_deferred_time,
    parse_on_trigger,
    parse_when_trigger,
)
from .result import Err, Ok, Result
from .types import (
    DeferredBlock,
    DeferredBlockError,
    DeferredBlockLoading,
    DeferredBlockPlaceholder,
    DeferredBlockTriggers,
    Diagnostic,
)

logger = logging.getLogger(__name__)

PREFETCH_WHEN_PATTERN = re.compile(r"^prefetch\s+when\s")
PREFETCH_ON_PATTERN = re.compile(r"^prefetch\s+on\s")
MINIMUM_PARAMETER_PATTERN = re.compile(r"^minimum\s")
AFTER_PARAMETER_PATTERN = re.compile(r"^after\s")
WHEN_PARAMETER_PATTERN = re.compile(r"^when\s")
ON_PARAMETER_PATTERN = re.compile(r"^on\s")

CONNECTED_BLOCK_NAMES = ("placeholder", "loading", "error")

# Checked in order: the plain forms never match a `prefetch` parameter.
TRIGGER_DISPATCH = (
    (WHEN_PARAMETER_PATTERN, "when", False),
    (ON_PARAMETER_PATTERN, "on", False),
    (PREFETCH_WHEN_PATTERN, "when", True),
    (PREFETCH_ON_PATTERN, "on", True),
)


def is_connected_defer_block(name: str) -> bool:
    """Whether a block with this name can be connected to a `@defer` block."""
    return name in CONNECTED_BLOCK_NAMES


def create_deferred_block(
    ast: Block,
    connected_blocks: list[Block],
    visitor: Visitor,
    binding_parser: BindingParser,
) -> tuple[DeferredBlock, list[Diagnostic]]:
    """Create a DeferredBlock from a `@defer` block and its connected blocks."""
    errors: list[Diagnostic] = []
    placeholder, loading, error = parse_connected_blocks(connected_blocks, errors, visitor)
    triggers, prefetch_triggers = parse_primary_triggers(
        ast.parameters, binding_parser, errors, placeholder
    )

    node = DeferredBlock(
        children=visit_all(visitor, ast.children, ast.children),
        triggers=triggers,
        prefetch_triggers=prefetch_triggers,
        placeholder=placeholder,
        loading=loading,
        error=error,
        source_span=ast.source_span,
        start_source_span=ast.start_source_span,
        end_source_span=ast.end_source_span,
    )

    logger.debug(
        "Created @defer block with %d trigger(s), %d prefetch trigger(s), %d error(s)",
        len(triggers), len(prefetch_triggers), len(errors),
    )
    return node, errors


def parse_connected_blocks(
    connected_blocks: list[Block],
    errors: list[Diagnostic],
    visitor: Visitor,
) -> tuple[
    DeferredBlockPlaceholder | None,
    DeferredBlockLoading | None,
    DeferredBlockError | None,
]:
    """
    Sort connected blocks into at most one placeholder, loading and error block.

    An unrecognized block name stops processing of all remaining blocks.
    A duplicate kind is reported and skipped. A block that fails to parse is
    reported at its start span and does not affect its siblings.
    """
    parsers = {
        "placeholder": parse_placeholder_block,
        "loading": parse_loading_block,
        "error": parse_error_block,
    }
    found = {name: None for name in CONNECTED_BLOCK_NAMES}

    for block in connected_blocks:
        if not is_connected_defer_block(block.name):
            errors.append(Diagnostic(
                span=block.start_source_span,
                message=f'Unrecognized block "@{block.name}"',
            ))
            break

        if found[block.name] is not None:
            errors.append(Diagnostic(
                span=block.start_source_span,
                message=f"@defer block can only have one @{block.name} block",
            ))
            continue

        result = parsers[block.name](block, visitor)
        if isinstance(result, Err):
            errors.append(Diagnostic(span=block.start_source_span, message=result.message))
        else:
            found[block.name] = result.value

    return found["placeholder"], found["loading"], found["error"]


def _parse_time_parameter(
    param: BlockParameter,
    name: str,
    block_name: str,
    current: float | None,
) -> Result:
    """Parse the duration of a `<name> <duration>` parameter."""
    if current is not None:
        return Err(f'@{block_name} block can only have one "{name}" parameter')

    start = get_trigger_parameters_start(param.expression)
    parsed_time = parse_deferred_time(param.expression[start:] if start != -1 else "")

    if parsed_time is None:
        return Err(f'Could not parse time value of parameter "{name}"')

    return Ok(parsed_time)


def parse_placeholder_block(ast: Block, visitor: Visitor) -> Result:
    minimum_time: float | None = None

    for param in ast.parameters:
        if MINIMUM_PARAMETER_PATTERN.match(param.expression):
            result = _parse_time_parameter(param, "minimum", "placeholder", minimum_time)
            if isinstance(result, Err):
                return result
            minimum_time = result.value
        else:
            return Err(f'Unrecognized parameter in @placeholder block: "{param.expression}"')

    return Ok(DeferredBlockPlaceholder(
        children=visit_all(visitor, ast.children, ast.children),
        minimum_time=minimum_time,
        source_span=ast.source_span,
        start_source_span=ast.start_source_span,
        end_source_span=ast.end_source_span,
    ))


def parse_loading_block(ast: Block, visitor: Visitor) -> Result:
    after_time: float | None = None
    minimum_time: float | None = None

    for param in ast.parameters:
        if AFTER_PARAMETER_PATTERN.match(param.expression):
            result = _parse_time_parameter(param, "after", "loading", after_time)
            if isinstance(result, Err):
                return result
            after_time = result.value
        elif MINIMUM_PARAMETER_PATTERN.match(param.expression):
            result = _parse_time_parameter(param, "minimum", "loading", minimum_time)
            if isinstance(result, Err):
                return result
            minimum_time = result.value
        else:
            return Err(f'Unrecognized parameter in @loading block: "{param.expression}"')

    return Ok(DeferredBlockLoading(
        children=visit_all(visitor, ast.children, ast.children),
        after_time=after_time,
        minimum_time=minimum_time,
        source_span=ast.source_span,
        start_source_span=ast.start_source_span,
        end_source_span=ast.end_source_span,
    ))


def parse_error_block(ast: Block, visitor: Visitor) -> Result:
    if len(ast.parameters) > 0:
        return Err("@error block cannot have parameters")

    return Ok(DeferredBlockError(
        children=visit_all(visitor, ast.children, ast.children),
        source_span=ast.source_span,
        start_source_span=ast.start_source_span,
        end_source_span=ast.end_source_span,
    ))


def parse_primary_triggers(
    params: list[BlockParameter],
    binding_parser: BindingParser,
    errors: list[Diagnostic],
    placeholder: DeferredBlockPlaceholder | None,
) -> tuple[DeferredBlockTriggers, DeferredBlockTriggers]:
    """Sort `@defer` parameters into immediate and prefetch trigger sets."""
    triggers: DeferredBlockTriggers = {}
    prefetch_triggers: DeferredBlockTriggers = {}

    for param in params:
        # The lexer strips leading whitespace so the keyword is at the start.
        for pattern, kind, is_prefetch in TRIGGER_DISPATCH:
            if not pattern.match(param.expression):
                continue
            target = prefetch_triggers if is_prefetch else triggers
            if kind == "when":
                parse_when_trigger(param, binding_parser, target, errors)
            else:
                parse_on_trigger(param, target, errors, placeholder)
            break
        else:
            errors.append(Diagnostic(span=param.source_span, message="Unrecognized trigger"))

    return triggers, prefetch_triggers
