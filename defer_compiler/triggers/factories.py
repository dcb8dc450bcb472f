"""Factories that build `on` triggers from their parsed parameters."""

import re

from ..core.result import Err, Ok, Result
from ..core.types import (
    DeferredBlockPlaceholder,
    Element,
    HoverDeferredTrigger,
    IdleDeferredTrigger,
    ImmediateDeferredTrigger,
    InteractionDeferredTrigger,
    NeverDeferredTrigger,
    ParseSourceSpan,
    TimerDeferredTrigger,
    ViewportDeferredTrigger,
)

TIME_PATTERN = re.compile(r"^\d+\.?\d*(ms|s)?$")


def parse_deferred_time(value: str) -> float | None:
    """Parse a time expression such as `100ms` or `1.5s` into milliseconds."""
    match = TIME_PATTERN.match(value)
    if match is None:
        return None
    units = match.group(1)
    number = value[:len(value) - len(units)] if units else value
    return float(number) * (1000 if units == "s" else 1)


def create_idle_trigger(
    parameters: list[str],
    source_span: ParseSourceSpan,
    placeholder: DeferredBlockPlaceholder | None,
) -> Result:
    if parameters:
        return Err('"idle" trigger cannot have parameters')
    return Ok(IdleDeferredTrigger(source_span=source_span))


def create_immediate_trigger(
    parameters: list[str],
    source_span: ParseSourceSpan,
    placeholder: DeferredBlockPlaceholder | None,
) -> Result:
    if parameters:
        return Err('"immediate" trigger cannot have parameters')
    return Ok(ImmediateDeferredTrigger(source_span=source_span))


def create_never_trigger(
    parameters: list[str],
    source_span: ParseSourceSpan,
    placeholder: DeferredBlockPlaceholder | None,
) -> Result:
    if parameters:
        return Err('"never" trigger cannot have parameters')
    return Ok(NeverDeferredTrigger(source_span=source_span))


def create_timer_trigger(
    parameters: list[str],
    source_span: ParseSourceSpan,
    placeholder: DeferredBlockPlaceholder | None,
) -> Result:
    if len(parameters) != 1:
        return Err('"timer" trigger must have exactly one parameter')

    delay = parse_deferred_time(parameters[0])
    if delay is None:
        return Err('Could not parse time value of trigger "timer"')

    return Ok(TimerDeferredTrigger(delay=delay, source_span=source_span))


def check_reference_trigger(
    name: str,
    parameters: list[str],
    placeholder: DeferredBlockPlaceholder | None,
) -> str | None:
    """
    Check the parameters of a trigger that targets an element.
    Without a reference the trigger targets the placeholder's root element,
    so a placeholder with exactly one root element is required.
    Returns an error message, or None when the trigger is valid.
    """
    if len(parameters) > 1:
        return f'"{name}" trigger can only have zero or one parameters'

    if not parameters:
        if placeholder is None:
            return (
                f'"{name}" trigger with no parameters can only be placed on an @defer '
                f"that has a @placeholder block"
            )
        if len(placeholder.children) != 1 or not isinstance(placeholder.children[0], Element):
            return (
                f'"{name}" trigger with no parameters can only be placed on an @defer '
                f"that has a @placeholder block with exactly one root element node"
            )

    return None


def create_hover_trigger(
    parameters: list[str],
    source_span: ParseSourceSpan,
    placeholder: DeferredBlockPlaceholder | None,
) -> Result:
    message = check_reference_trigger("hover", parameters, placeholder)
    if message is not None:
        return Err(message)
    return Ok(HoverDeferredTrigger(
        reference=parameters[0] if parameters else None,
        source_span=source_span,
    ))


def create_interaction_trigger(
    parameters: list[str],
    source_span: ParseSourceSpan,
    placeholder: DeferredBlockPlaceholder | None,
) -> Result:
    message = check_reference_trigger("interaction", parameters, placeholder)
    if message is not None:
        return Err(message)
    return Ok(InteractionDeferredTrigger(
        reference=parameters[0] if parameters else None,
        source_span=source_span,
    ))


def create_viewport_trigger(
    parameters: list[str],
    source_span: ParseSourceSpan,
    placeholder: DeferredBlockPlaceholder | None,
) -> Result:
    message = check_reference_trigger("viewport", parameters, placeholder)
    if message is not None:
        return Err(message)
    return Ok(ViewportDeferredTrigger(
        reference=parameters[0] if parameters else None,
        source_span=source_span,
    ))
