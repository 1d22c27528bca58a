"""
Lexical analyzer for the template language.

Splits template source into a lazy sequence of tokens. Delimiters are not
fixed syntax: every matching rule is compiled from the environment's
`LexerConfig` when the lexer is constructed, so `<? ?>`, `<% %>` or
`${ }` style templates work the same way as the default `{% %}`, `{{ }}`
and `{# #}` ones.
"""

from __future__ import annotations

import bisect
import logging
import re
from dataclasses import dataclass
from typing import Iterator, List, Optional, Pattern, Tuple

from .errors import TemplateSyntaxError
from .tokens import BRACKET_PAIRS, OPERATORS, Token, TokenStream, TokenType

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")
_NAME_RE = re.compile(r"[^\W\d]\w*")
_STRING_RE = re.compile(r"('([^'\\]*(?:\\.[^'\\]*)*)'" r'|"([^"\\]*(?:\\.[^"\\]*)*)")', re.S)
_INTEGER_RE = re.compile(
    r"(0b(_?[0-1])+|0o(_?[0-7])+|0x(_?[\da-f])+|[1-9](_?\d)*|0(_?0)*)",
    re.IGNORECASE,
)
_FLOAT_RE = re.compile(
    r"(?<!\.)(\d+_)*\d+((\.(\d+_)*\d+)?e[+\-]?(\d+_)*\d+|\.(\d+_)*\d+)",
    re.IGNORECASE,
)
_NEWLINE_RE = re.compile(r"(\r\n|\r|\n)")
_LINE_END_RE = re.compile(r"[ \t]*(\r\n|\r|\n)")
_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "\\": "\\", "'": "'", '"': '"', "0": "\0"}

DEFAULT_NEWLINE = "\n"


@dataclass(frozen=True)
class LexerConfig:
    """Delimiters and whitespace policy the lexer is built from."""
    block_start: str = "{%"
    block_end: str = "%}"
    variable_start: str = "{{"
    variable_end: str = "}}"
    comment_start: str = "{#"
    comment_end: str = "#}"
    line_statement_prefix: Optional[str] = None
    line_comment_prefix: Optional[str] = None
    trim_blocks: bool = False
    lstrip_blocks: bool = False
    newline_sequence: str = DEFAULT_NEWLINE
    keep_trailing_newline: bool = False

    def __post_init__(self):
        if self.newline_sequence not in ("\n", "\r\n", "\r"):
            raise ValueError("newline_sequence must be one of '\\n', '\\r\\n' or '\\r'")
        if not (self.block_start and self.block_end and self.variable_start
                and self.variable_end and self.comment_start and self.comment_end):
            raise ValueError("template delimiters must not be empty")


def normalize_number(text: str, is_float: bool) -> str:
    """
    Convert a numeric literal to canonical decimal text.

    Underscore separators are dropped and radix prefixes resolved, e.g.
    `1_2.3_4e5_6` becomes `1.234e+57` and `0x12_3abc` becomes `1194684`.
    """
    digits = text.replace("_", "")
    if is_float:
        return repr(float(digits))
    if digits[:2].lower() in ("0b", "0o", "0x"):
        return str(int(digits, 0))
    return str(int(digits, 10))


def unescape_string(body: str) -> str:
    """Resolve backslash escapes of a string literal body."""
    if "\\" not in body:
        return body
    out: List[str] = []
    i = 0
    while i < len(body):
        ch = body[i]
        if ch != "\\" or i + 1 >= len(body):
            out.append(ch)
            i += 1
            continue
        nxt = body[i + 1]
        if nxt in _ESCAPES:
            out.append(_ESCAPES[nxt])
            i += 2
        elif nxt == "u" and i + 6 <= len(body):
            out.append(chr(int(body[i + 2:i + 6], 16)))
            i += 6
        elif nxt == "x" and i + 4 <= len(body):
            out.append(chr(int(body[i + 2:i + 4], 16)))
            i += 4
        else:
            out.append(ch + nxt)
            i += 2
    return "".join(out)


class Lexer:
    """
    Template lexer.

    Scans the source in a single forward pass, switching between literal
    data, tag interiors, comments, raw blocks and line statements.

    Args:
        config: Delimiter and whitespace configuration
    """

    def __init__(self, config: LexerConfig):
        self.config = config
        c = re.escape

        openers: List[Tuple[str, str]] = [
            ("block", c(config.block_start)),
            ("variable", c(config.variable_start)),
            ("comment", c(config.comment_start)),
        ]
        if config.line_statement_prefix:
            openers.append(("linestatement", r"^[ \t\v]*" + c(config.line_statement_prefix)))
        if config.line_comment_prefix:
            openers.append(("linecomment", r"(?:^|(?<=\S))[^\S\r\n]*" + c(config.line_comment_prefix)))
        # Longest delimiter wins when one is a prefix of another (`<?=` vs `<?`).
        openers.sort(key=lambda item: -len(item[1]))

        self._opener_re: Pattern[str] = re.compile(
            "|".join(f"(?P<{kind}>{pattern})" for kind, pattern in openers), re.M
        )
        self._raw_re = re.compile(
            rf"(\-|\+|)\s*raw\s*(\-|\+)?{c(config.block_end)}"
        )
        self._endraw_re = re.compile(
            rf"{c(config.block_start)}(\-|\+)?\s*endraw\s*(\-|\+)?{c(config.block_end)}", re.S
        )
        self._comment_end_re = re.compile(rf"(\-|\+)?{c(config.comment_end)}", re.S)
        self._block_end_re = re.compile(rf"(\-|\+)?{c(config.block_end)}")
        self._variable_end_re = re.compile(rf"(\-)?{c(config.variable_end)}")
        self._line_comment_re = (
            re.compile(rf"[^\S\r\n]*{c(config.line_comment_prefix)}[^\r\n]*")
            if config.line_comment_prefix else None
        )

    def tokenize(
        self,
        source: str,
        name: Optional[str] = None,
        filename: Optional[str] = None,
    ) -> TokenStream:
        """Wrap the lazy token generator in a stream."""
        return TokenStream(self.tokeniter(source, name, filename), name, filename)

    def tokeniter(
        self,
        source: str,
        name: Optional[str] = None,
        filename: Optional[str] = None,
    ) -> Iterator[Token]:
        """
        Generate tokens for the given source.

        Raises:
            TemplateSyntaxError: On unterminated tags, strings or comments
                and on unexpected characters
        """
        return _LexerRun(self, source, name, filename).run()


class _LexerRun:
    """State of a single tokenize call."""

    def __init__(self, lexer: Lexer, source: str, name: Optional[str], filename: Optional[str]):
        config = lexer.config
        if not config.keep_trailing_newline:
            match = re.search(r"(\r\n|\r|\n)\Z", source)
            if match:
                source = source[:match.start()]
        self.lexer = lexer
        self.config = config
        self.source = source
        self.name = name
        self.filename = filename
        self.pos = 0
        self._line_starts = [0] + [m.end() for m in _NEWLINE_RE.finditer(source)]
        # Whitespace control carried over from the previous tag.
        self._strip_next = False
        self._trim_next = False

    # -- positions ----------------------------------------------------------

    def _locate(self, position: int) -> Tuple[int, int]:
        index = bisect.bisect_right(self._line_starts, position) - 1
        return index + 1, position - self._line_starts[index] + 1

    def _token(self, type_: TokenType, value: str, position: int) -> Token:
        line, column = self._locate(position)
        return Token(type_, value, position, line, column)

    def _error(self, message: str, position: int) -> TemplateSyntaxError:
        line, column = self._locate(position)
        return TemplateSyntaxError(message, line, self.name, self.filename, colno=column)

    # -- data -----------------------------------------------------------------

    def _data(self, text: str, position: int, rstrip: bool = False, lstrip_line: bool = False) -> Optional[Token]:
        if self._strip_next:
            stripped = text.lstrip()
            position += len(text) - len(stripped)
            text = stripped
        elif self._trim_next:
            match = re.match(r"\r\n|\r|\n", text)
            if match:
                position += match.end()
                text = text[match.end():]
        self._strip_next = self._trim_next = False

        if rstrip:
            text = text.rstrip()
        elif lstrip_line:
            text = self._lstrip_line(text, position)
        if not text:
            return None
        text = _NEWLINE_RE.sub(self.config.newline_sequence, text)
        return self._token(TokenType.DATA, text, position)

    def _lstrip_line(self, text: str, position: int) -> str:
        """Drop spaces/tabs between the last line start and a block tag."""
        end = position + len(text)
        stripped = text.rstrip(" \t")
        cut = position + len(stripped)
        at_line_start = cut == 0 or self.source[cut - 1] in "\r\n"
        if at_line_start and cut < end:
            return stripped
        return text

    # -- main loop ------------------------------------------------------------

    def run(self) -> Iterator[Token]:
        source = self.source
        opener_re = self.lexer._opener_re
        logger.debug(f"Tokenizing template {self.name or '<string>'} ({len(source)} chars)")

        while self.pos < len(source):
            match = opener_re.search(source, self.pos)
            if match is None:
                token = self._data(source[self.pos:], self.pos)
                if token:
                    yield token
                self.pos = len(source)
                break

            kind = match.lastgroup
            start, end = match.span()
            marker = source[end:end + 1]
            text = source[self.pos:start]

            if kind == "linecomment":
                token = self._data(text, self.pos)
                if token:
                    yield token
                self.pos = self.lexer._line_comment_re.match(source, start).end()
                continue

            if kind == "linestatement":
                token = self._data(text, self.pos)
                if token:
                    yield token
                # Line statements surface as ordinary block tags.
                yield self._token(TokenType.BLOCK_BEGIN, "", start)
                self.pos = end
                yield from self._tag_body(TokenType.BLOCK_END, None, start)
                continue

            rstrip = marker == "-"
            lstrip_line = (
                kind in ("block", "comment")
                and self.config.lstrip_blocks
                and marker != "+"
            )
            token = self._data(text, self.pos, rstrip=rstrip, lstrip_line=lstrip_line)
            if token:
                yield token

            if kind == "comment":
                yield from self._comment(end, start)
            elif kind == "variable":
                yield self._token(TokenType.VARIABLE_BEGIN, match.group(), start)
                self.pos = end + (1 if marker == "-" else 0)
                yield from self._tag_body(TokenType.VARIABLE_END, self.lexer._variable_end_re, start)
            else:
                raw = self.lexer._raw_re.match(source, end)
                if raw:
                    yield from self._raw(raw, start)
                    continue
                yield self._token(TokenType.BLOCK_BEGIN, match.group(), start)
                self.pos = end + (1 if marker and marker in "-+" else 0)
                yield from self._tag_body(TokenType.BLOCK_END, self.lexer._block_end_re, start)

    def _after_tag(self, control: Optional[str], trims: bool) -> None:
        if control == "-":
            self._strip_next = True
        elif trims and control != "+" and self.config.trim_blocks:
            self._trim_next = True

    def _comment(self, body_start: int, tag_start: int) -> Iterator[Token]:
        end = self.lexer._comment_end_re.search(self.source, body_start)
        if end is None:
            raise self._error("Missing end of comment tag", tag_start)
        self.pos = end.end()
        self._after_tag(end.group(1), trims=True)
        return iter(())

    def _raw(self, raw: "re.Match[str]", tag_start: int) -> Iterator[Token]:
        source = self.source
        endraw = self.lexer._endraw_re.search(source, raw.end())
        if endraw is None:
            raise self._error("Missing end of raw directive", tag_start)
        self._strip_next = self._trim_next = False
        self._after_tag(raw.group(2), trims=True)
        body = source[raw.end():endraw.start()]
        body_pos = raw.end()
        token = self._data(body, body_pos, rstrip=endraw.group(1) == "-")
        if token:
            yield token
        self.pos = endraw.end()
        self._after_tag(endraw.group(2), trims=True)

    def _tag_body(
        self,
        end_type: TokenType,
        end_re: Optional[Pattern[str]],
        tag_start: int,
    ) -> Iterator[Token]:
        """Tokenize the interior of a tag until its closing delimiter."""
        source = self.source
        balance: List[Tuple[str, int]] = []
        line_mode = end_re is None

        while True:
            if self.pos >= len(source):
                if line_mode:
                    yield self._token(end_type, "", self.pos)
                    return
                what = "block" if end_type is TokenType.BLOCK_END else "variable"
                raise self._error(f"Missing end of {what} tag", tag_start)

            if not balance:
                if line_mode:
                    newline = _LINE_END_RE.match(source, self.pos)
                    if newline:
                        yield self._token(end_type, "", self.pos)
                        self.pos = newline.end()
                        return
                    comment_re = self.lexer._line_comment_re
                    if comment_re is not None and comment_re.match(source, self.pos):
                        self.pos = comment_re.match(source, self.pos).end()
                        continue
                else:
                    closing = end_re.match(source, self.pos)
                    if closing:
                        yield self._token(end_type, closing.group(), self.pos)
                        self.pos = closing.end()
                        self._after_tag(closing.group(1), trims=end_type is TokenType.BLOCK_END)
                        return

            ws = _WHITESPACE_RE.match(source, self.pos)
            if ws:
                if line_mode and not balance and re.search(r"[\r\n]", ws.group()):
                    # Handled by the newline check above on the next pass.
                    nl = re.search(r"[\r\n]", ws.group())
                    self.pos += nl.start()
                    continue
                self.pos = ws.end()
                continue

            position = self.pos
            char = source[position]

            match = _FLOAT_RE.match(source, position)
            if match:
                self.pos = match.end()
                yield self._token(TokenType.FLOAT, normalize_number(match.group(), True), position)
                continue
            match = _INTEGER_RE.match(source, position)
            if match:
                self.pos = match.end()
                yield self._token(TokenType.INTEGER, normalize_number(match.group(), False), position)
                continue
            match = _NAME_RE.match(source, position)
            if match:
                self.pos = match.end()
                yield self._token(TokenType.NAME, match.group(), position)
                continue
            if char in "'\"":
                match = _STRING_RE.match(source, position)
                if match is None:
                    raise self._error("unterminated string literal", position)
                self.pos = match.end()
                yield self._token(TokenType.STRING, unescape_string(match.group()[1:-1]), position)
                continue

            op = next((o for o in OPERATORS if source.startswith(o, position)), None)
            if op is None:
                raise self._error(f"unexpected char {char!r} at {position}", position)
            if op in BRACKET_PAIRS:
                balance.append((BRACKET_PAIRS[op], position))
            elif op in (")", "]", "}"):
                if not balance:
                    raise self._error(f"unexpected '{op}'", position)
                expected, _ = balance.pop()
                if expected != op:
                    raise self._error(f"unexpected '{op}', expected '{expected}'", position)
            self.pos = position + len(op)
            yield self._token(TokenType.OPERATOR, op, position)


__all__ = [
    "Lexer",
    "LexerConfig",
    "normalize_number",
    "unescape_string",
]
