"""Core type definitions for the deferred block compiler."""

from enum import Enum
from typing import Any, Union
from pydantic import BaseModel, ConfigDict, Field


class DiagnosticLevel(str, Enum):
    ERROR = "ERROR"
    WARNING = "WARNING"


class ParseSourceFile(BaseModel):
    """A template source with the URL it was loaded from."""
    model_config = ConfigDict(frozen=True)

    content: str
    url: str


class ParseLocation(BaseModel):
    """A zero-based position inside a template source."""
    model_config = ConfigDict(frozen=True)

    file: ParseSourceFile = Field(exclude=True, repr=False)
    offset: int
    line: int
    col: int

    def move_by(self, delta: int) -> "ParseLocation":
        """Return the location `delta` characters away, following newlines."""
        source = self.file.content
        offset, line, col = self.offset, self.line, self.col

        while offset > 0 and delta < 0:
            offset -= 1
            delta += 1
            if source[offset] == "\n":
                line -= 1
                prior_line = source.rfind("\n", 0, offset)
                col = offset - prior_line - 1
            else:
                col -= 1

        while offset < len(source) and delta > 0:
            ch = source[offset]
            offset += 1
            delta -= 1
            if ch == "\n":
                line += 1
                col = 0
            else:
                col += 1

        return ParseLocation(file=self.file, offset=offset, line=line, col=col)

    def __str__(self) -> str:
        return f"{self.file.url}@{self.line}:{self.col}"


class ParseSourceSpan(BaseModel):
    """A range of template source, carried on nodes as provenance."""
    model_config = ConfigDict(frozen=True)

    start: ParseLocation
    end: ParseLocation

    @property
    def text(self) -> str:
        return self.start.file.content[self.start.offset:self.end.offset]

    def __str__(self) -> str:
        return self.text


class Diagnostic(BaseModel):
    """A non-fatal parse or validation error attached to a source span."""
    model_config = ConfigDict(frozen=True)

    span: ParseSourceSpan
    message: str
    level: DiagnosticLevel = DiagnosticLevel.ERROR

    def __str__(self) -> str:
        return f'{self.message} ("{self.span.text}"): {self.span.start}'


class BoundExpression(BaseModel):
    """A parsed binding expression together with its source text."""
    model_config = ConfigDict(frozen=True)

    source: str
    ast: dict[str, Any]
    source_span: ParseSourceSpan


class BoundDeferredTrigger(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: BoundExpression
    source_span: ParseSourceSpan


class IdleDeferredTrigger(BaseModel):
    model_config = ConfigDict(frozen=True)

    source_span: ParseSourceSpan


class ImmediateDeferredTrigger(BaseModel):
    model_config = ConfigDict(frozen=True)

    source_span: ParseSourceSpan


class NeverDeferredTrigger(BaseModel):
    model_config = ConfigDict(frozen=True)

    source_span: ParseSourceSpan


class TimerDeferredTrigger(BaseModel):
    model_config = ConfigDict(frozen=True)

    delay: float
    source_span: ParseSourceSpan


class HoverDeferredTrigger(BaseModel):
    model_config = ConfigDict(frozen=True)

    reference: str | None = None
    source_span: ParseSourceSpan


class InteractionDeferredTrigger(BaseModel):
    model_config = ConfigDict(frozen=True)

    reference: str | None = None
    source_span: ParseSourceSpan


class ViewportDeferredTrigger(BaseModel):
    model_config = ConfigDict(frozen=True)

    reference: str | None = None
    source_span: ParseSourceSpan


DeferredTrigger = Union[
    BoundDeferredTrigger,
    IdleDeferredTrigger,
    ImmediateDeferredTrigger,
    NeverDeferredTrigger,
    TimerDeferredTrigger,
    HoverDeferredTrigger,
    InteractionDeferredTrigger,
    ViewportDeferredTrigger,
]

# Keyed by trigger kind ("when", "idle", "timer", ...).
DeferredBlockTriggers = dict[str, DeferredTrigger]


class Text(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: str
    source_span: ParseSourceSpan


class BoundText(BaseModel):
    """Text containing `{{ }}` interpolations."""
    model_config = ConfigDict(frozen=True)

    strings: tuple[str, ...]
    expressions: tuple[BoundExpression, ...]
    source_span: ParseSourceSpan


class TextAttribute(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    value: str
    source_span: ParseSourceSpan


class Element(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    attributes: tuple[TextAttribute, ...] = ()
    # Visited child nodes; any of the node types in this module.
    children: tuple[Any, ...] = ()
    source_span: ParseSourceSpan
    start_source_span: ParseSourceSpan
    end_source_span: ParseSourceSpan | None = None


class UnknownBlock(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    source_span: ParseSourceSpan


class DeferredBlockPlaceholder(BaseModel):
    """Content shown before the deferred content starts loading."""
    model_config = ConfigDict(frozen=True)

    children: tuple[Any, ...] = ()
    minimum_time: float | None = None
    source_span: ParseSourceSpan
    start_source_span: ParseSourceSpan
    end_source_span: ParseSourceSpan | None = None


class DeferredBlockLoading(BaseModel):
    """Content shown while the deferred dependencies are loading."""
    model_config = ConfigDict(frozen=True)

    children: tuple[Any, ...] = ()
    after_time: float | None = None
    minimum_time: float | None = None
    source_span: ParseSourceSpan
    start_source_span: ParseSourceSpan
    end_source_span: ParseSourceSpan | None = None


class DeferredBlockError(BaseModel):
    """Content shown when loading the deferred dependencies fails."""
    model_config = ConfigDict(frozen=True)

    children: tuple[Any, ...] = ()
    source_span: ParseSourceSpan
    start_source_span: ParseSourceSpan
    end_source_span: ParseSourceSpan | None = None


class DeferredBlock(BaseModel):
    """A `@defer` block with its triggers and connected blocks."""
    model_config = ConfigDict(frozen=True)

    children: tuple[Any, ...] = ()
    triggers: DeferredBlockTriggers = Field(default_factory=dict)
    prefetch_triggers: DeferredBlockTriggers = Field(default_factory=dict)
    placeholder: DeferredBlockPlaceholder | None = None
    loading: DeferredBlockLoading | None = None
    error: DeferredBlockError | None = None
    source_span: ParseSourceSpan
    start_source_span: ParseSourceSpan
    end_source_span: ParseSourceSpan | None = None


class CompileResult(BaseModel):
    """Nodes produced from a template plus every diagnostic collected."""
    nodes: tuple[Any, ...] = ()
    errors: list[Diagnostic] = Field(default_factory=list)

    def has_errors(self) -> bool:
        return any(e.level == DiagnosticLevel.ERROR for e in self.errors)

    def get_deferred_blocks(self) -> list[DeferredBlock]:
        """Collect `@defer` blocks in document order, including nested ones."""
        found: list[DeferredBlock] = []

        def walk(nodes):
            for node in nodes:
                if isinstance(node, DeferredBlock):
                    found.append(node)
                    walk(node.children)
                    for connected in (node.placeholder, node.loading, node.error):
                        if connected is not None:
                            walk(connected.children)
                elif isinstance(node, Element):
                    walk(node.children)

        walk(self.nodes)
        return found
