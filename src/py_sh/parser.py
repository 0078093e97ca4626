"""Command-line parsing — from text to a command tree.

A deliberately small parser: words are split on whitespace, and the
operators ``<``, ``>``, ``|``, ``&``, ``&&``, ``||``, ``;`` are
recognised with or without surrounding spaces.  There is no quoting,
escaping, globbing, or variable expansion.

Grammar, lowest precedence first::

    list      := and_or ((";" | "&") and_or)* [";" | "&"]
    and_or    := pipeline (("&&" | "||") pipeline)*
    pipeline  := command ("|" command)*
    command   := (WORD | ("<" | ">") WORD)+

So ``a | b && c ; d &`` parses as
``Sequence(And(Pipe(a, b), c), Background(d))``.

Redirections on one command nest so the first one written is the
outermost node: it is opened first, and for two redirections of the
same stream the last one written wins, as in any POSIX shell.
"""

import re
from dataclasses import dataclass
from enum import StrEnum
from functools import reduce

from py_sh.tree import And, Background, CommandTree, Direction, Or, Pipe, Redirect, Sequence, Simple

# Longest operators first so "&&" is never read as two "&".
_TOKEN_PATTERN = re.compile(r"&&|\|\||[<>|&;]|[^\s<>|&;]+")


class ParseError(Exception):
    """Raise when a command line is not well formed."""


class TokenKind(StrEnum):
    """Lexical categories of a command line."""

    WORD = "word"
    LESS = "<"
    GREAT = ">"
    PIPE = "|"
    AMP = "&"
    AND_IF = "&&"
    OR_IF = "||"
    SEMI = ";"


_OPERATORS = {kind.value: kind for kind in TokenKind if kind is not TokenKind.WORD}


@dataclass(frozen=True)
class Token:
    """One lexeme: its kind and the exact text."""

    kind: TokenKind
    text: str


def tokenize(line: str) -> list[Token]:
    """Split a command line into words and operators."""
    return [
        Token(kind=_OPERATORS.get(text, TokenKind.WORD), text=text)
        for text in _TOKEN_PATTERN.findall(line)
    ]


def parse(line: str) -> CommandTree | None:
    """Parse a command line into a tree.

    Args:
        line: Raw command text, e.g. ``"sort < in.txt > out.txt"``.

    Returns:
        The tree, or None if the line holds no tokens.

    Raises:
        ParseError: If the line is malformed (``"| cat"``, ``"ls >"``).

    """
    tokens = tokenize(line)
    if not tokens:
        return None
    return _Parser(tokens).parse()


class _Parser:
    """Recursive-descent parser over a token list."""

    def __init__(self, tokens: list[Token]) -> None:
        self._tokens = tokens
        self._pos = 0

    def parse(self) -> CommandTree:
        items: list[CommandTree] = []
        while self._peek() is not None:
            node = self._and_or()
            token = self._peek()
            if token is not None and token.kind is TokenKind.AMP:
                self._pos += 1
                node = Background(node)
            elif token is not None and token.kind is TokenKind.SEMI:
                self._pos += 1
            elif token is not None:
                msg = f"syntax error near {token.text!r}"
                raise ParseError(msg)
            items.append(node)
        return reduce(Sequence, items)

    def _and_or(self) -> CommandTree:
        node = self._pipeline()
        while (token := self._peek()) is not None and token.kind in (
            TokenKind.AND_IF,
            TokenKind.OR_IF,
        ):
            self._pos += 1
            right = self._pipeline()
            node = And(node, right) if token.kind is TokenKind.AND_IF else Or(node, right)
        return node

    def _pipeline(self) -> CommandTree:
        node = self._command()
        while (token := self._peek()) is not None and token.kind is TokenKind.PIPE:
            self._pos += 1
            node = Pipe(node, self._command())
        return node

    def _command(self) -> CommandTree:
        words: list[str] = []
        redirects: list[tuple[Direction, str]] = []
        while (token := self._peek()) is not None:
            if token.kind is TokenKind.WORD:
                words.append(token.text)
            elif token.kind in (TokenKind.LESS, TokenKind.GREAT):
                self._pos += 1
                target = self._peek()
                if target is None or target.kind is not TokenKind.WORD:
                    msg = f"missing file name after {token.text!r}"
                    raise ParseError(msg)
                redirects.append((Direction(token.text), target.text))
            else:
                break
            self._pos += 1

        if not words:
            token = self._peek()
            near = repr(token.text) if token is not None else "end of line"
            msg = f"syntax error near {near}"
            raise ParseError(msg)

        node: CommandTree = Simple(words[0], tuple(words[1:]))
        for direction, target in reversed(redirects):
            node = Redirect(node, direction, target)
        return node

    def _peek(self) -> Token | None:
        if self._pos < len(self._tokens):
            return self._tokens[self._pos]
        return None
