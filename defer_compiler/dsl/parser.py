"""Template parser using Lark grammar."""

import logging
from bisect import bisect_right
from pathlib import Path
from lark import Lark, Token, Transformer
from lark.exceptions import UnexpectedInput, UnexpectedToken

from ..core.types import Diagnostic, ParseLocation, ParseSourceFile, ParseSourceSpan
from .ast import Attribute, Block, BlockParameter, Element, ParseTreeResult, Text

logger = logging.getLogger(__name__)

GRAMMAR_PATH = Path(__file__).parent / "grammar.lark"

TEXT_TOKENS = ("TEXT", "INTERPOLATION")


class SourceLocator:
    """Maps offsets in a source file to zero-based line/column locations."""

    def __init__(self, file: ParseSourceFile):
        self.file = file
        self._line_starts = [0]
        for index, ch in enumerate(file.content):
            if ch == "\n":
                self._line_starts.append(index + 1)

    def location(self, offset: int) -> ParseLocation:
        line = bisect_right(self._line_starts, offset) - 1
        return ParseLocation(
            file=self.file,
            offset=offset,
            line=line,
            col=offset - self._line_starts[line],
        )

    def span(self, start: int, end: int) -> ParseSourceSpan:
        return ParseSourceSpan(start=self.location(start), end=self.location(end))


class _Tag:
    def __init__(self, name: str, attrs: list[Attribute], start: int, end: int):
        self.name = name
        self.attrs = attrs
        self.start = start
        self.end = end


class TemplateTransformer(Transformer):
    """Transform parse tree to the generic template AST."""

    def __init__(self, locator: SourceLocator):
        super().__init__()
        self.locator = locator
        self.errors: list[Diagnostic] = []

    def _children(self, items) -> list:
        """Merge runs of text and interpolation tokens into Text nodes."""
        nodes = []
        run: list[Token] = []
        for item in list(items) + [None]:
            if isinstance(item, Token) and item.type in TEXT_TOKENS:
                run.append(item)
                continue
            if run:
                start, end = run[0].start_pos, run[-1].end_pos
                nodes.append(Text(
                    value=self.locator.file.content[start:end],
                    source_span=self.locator.span(start, end),
                ))
                run = []
            if item is not None:
                nodes.append(item)
        return nodes

    def attribute(self, items):
        name = items[0]
        value = ""
        if len(items) == 3:
            value = items[2].value[1:-1]
        return Attribute(
            name=name.value,
            value=value,
            source_span=self.locator.span(name.start_pos, items[-1].end_pos),
        )

    def start_tag(self, items):
        attrs = [i for i in items if isinstance(i, Attribute)]
        return _Tag(items[1].value, attrs, items[0].start_pos, items[-1].end_pos)

    empty_tag = start_tag

    def end_tag(self, items):
        return _Tag(items[1].value, [], items[0].start_pos, items[-1].end_pos)

    def element(self, items):
        start_tag = items[0]
        end_tag = items[-1] if len(items) > 1 else None
        children = self._children(items[1:-1]) if end_tag is not None else []

        if end_tag is not None and end_tag.name.lower() != start_tag.name.lower():
            self.errors.append(Diagnostic(
                span=self.locator.span(end_tag.start, end_tag.end),
                message=f'Unexpected closing tag "{end_tag.name}"',
            ))

        end = end_tag.end if end_tag is not None else start_tag.end
        return Element(
            name=start_tag.name,
            attrs=start_tag.attrs,
            children=children,
            source_span=self.locator.span(start_tag.start, end),
            start_source_span=self.locator.span(start_tag.start, start_tag.end),
            end_source_span=(
                self.locator.span(end_tag.start, end_tag.end) if end_tag is not None else None
            ),
        )

    def block_parameters(self, items):
        parameters = []
        for token in items:
            if token.type != "BLOCK_PARAM":
                continue
            expression = token.value.rstrip()
            parameters.append(BlockParameter(
                expression=expression,
                source_span=self.locator.span(
                    token.start_pos, token.start_pos + len(expression)
                ),
            ))
        return parameters

    def block(self, items):
        name_token = items[0]
        parameters = items[1] if isinstance(items[1], list) else []
        lbrace_index = next(
            index for index, item in enumerate(items)
            if isinstance(item, Token) and item.type == "LBRACE"
        )
        lbrace = items[lbrace_index]
        rbrace = items[-1]
        body = items[lbrace_index + 1:-1]

        return Block(
            name=name_token.value[1:],
            parameters=parameters,
            children=self._children(body),
            source_span=self.locator.span(name_token.start_pos, rbrace.end_pos),
            start_source_span=self.locator.span(name_token.start_pos, lbrace.end_pos),
            end_source_span=self.locator.span(rbrace.start_pos, rbrace.end_pos),
        )

    def start(self, items):
        return self._children(items)


class TemplateParser:
    """Parser for template sources with @-blocks."""

    def __init__(self):
        with open(GRAMMAR_PATH) as f:
            grammar = f.read()
        self.parser = Lark(grammar, parser="lalr")

    def parse(self, content: str, url: str = "inline") -> ParseTreeResult:
        """Parse template content; syntax errors are returned, not raised."""
        file = ParseSourceFile(content=content, url=url)
        locator = SourceLocator(file)

        try:
            tree = self.parser.parse(content)
        except UnexpectedInput as e:
            logger.debug("Syntax error in %s: %s", url, e)
            return ParseTreeResult(root_nodes=[], errors=[_syntax_error(e, locator)])

        transformer = TemplateTransformer(locator)
        root_nodes = transformer.transform(tree)
        return ParseTreeResult(root_nodes=root_nodes, errors=transformer.errors)

    def parse_file(self, path: Path) -> ParseTreeResult:
        """Parse a template file."""
        with open(path) as f:
            content = f.read()
        return self.parse(content, url=str(path))


def _syntax_error(error: UnexpectedInput, locator: SourceLocator) -> Diagnostic:
    content = locator.file.content

    if isinstance(error, UnexpectedToken) and error.token.type == "$END":
        return Diagnostic(
            span=locator.span(len(content), len(content)),
            message="Unexpected end of template",
        )

    offset = getattr(error, "pos_in_stream", None)
    if offset is None or offset < 0:
        offset = len(content)

    if offset >= len(content):
        return Diagnostic(span=locator.span(offset, offset), message="Unexpected input")

    # Tokens from the fallback lexer can run past the offending character.
    return Diagnostic(
        span=locator.span(offset, offset + 1),
        message=f'Unexpected character "{content[offset]}"',
    )
