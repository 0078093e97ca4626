"""Command trees — the parsed shape of a command line.

The parser turns ``sort < in.txt > out.txt`` into a tree of nodes; the
executor walks that tree and decides which processes to create.  The
tree is built once and never mutated, so every node is a frozen
dataclass.

Node variants::

    Simple      ls -l                 leaf: program + arguments
    Redirect    cmd < file            unary: swap stdin or stdout for a file
    Pipe        left | right          left's stdout feeds right's stdin
    Sequence    left ; right          run both, right's status wins
    And         left && right         run right only if left succeeded
    Or          left || right         run right only if left failed
    Background  cmd &                 run without waiting

Design choices:
    - **A closed union, not a class hierarchy.**  ``CommandTree`` is a
      type alias over the seven node classes, and evaluation uses an
      exhaustive ``match`` — adding a node means the type checker points
      at every place that has to handle it.
    - **Tuples for arguments** so nodes stay hashable.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TypeAlias


class Direction(StrEnum):
    """Which standard stream a redirection replaces.

    The values are the operators themselves, which keeps rendering
    trivial.
    """

    INPUT = "<"
    OUTPUT = ">"


@dataclass(frozen=True)
class Simple:
    """A single program invocation (``echo hi``).

    Attributes:
        program: Program name or path, resolved against ``PATH`` at exec.
        args: Arguments after the program name.

    """

    program: str
    args: tuple[str, ...] = ()


@dataclass(frozen=True)
class Redirect:
    """Run *child* with one standard stream replaced by a file."""

    child: CommandTree
    direction: Direction
    target: str


@dataclass(frozen=True)
class Pipe:
    """Connect *left*'s standard output to *right*'s standard input."""

    left: CommandTree
    right: CommandTree


@dataclass(frozen=True)
class Sequence:
    """Run *left*, then *right*; the status of *right* wins."""

    left: CommandTree
    right: CommandTree


@dataclass(frozen=True)
class And:
    """Run *right* only when *left* exits with status 0."""

    left: CommandTree
    right: CommandTree


@dataclass(frozen=True)
class Or:
    """Run *right* only when *left* exits with a non-zero status."""

    left: CommandTree
    right: CommandTree


@dataclass(frozen=True)
class Background:
    """Run *child* without waiting for it to finish."""

    child: CommandTree


CommandTree: TypeAlias = Simple | Redirect | Pipe | Sequence | And | Or | Background


def render(tree: CommandTree) -> str:
    """Turn a tree back into command-line text.

    Used for job names and log messages, so ``render(parse(line))``
    normalises spacing but otherwise reads like what the user typed.
    A subtree that binds more loosely than its position allows, such as
    a pipeline under a redirection, is wrapped in parentheses:
    ``Redirect(Pipe(a, b), ">", "f")`` renders as ``(a | b) > f``.  Trees built by
    the parser never need parentheses.

    Args:
        tree: The command tree to render.

    Returns:
        The command line, e.g. ``"sort < in.txt > out.txt"``.

    """
    match tree:
        case Simple(program=program, args=args):
            return " ".join((program, *args))
        case Redirect():
            # Outermost redirection first, matching the order it was typed.
            redirects: list[str] = []
            node: CommandTree = tree
            while isinstance(node, Redirect):
                redirects.append(f"{node.direction} {node.target}")
                node = node.child
            return " ".join((_grouped(node, _COMMAND), *redirects))
        case Pipe(left=left, right=right):
            return f"{_grouped(left, _PIPELINE)} | {_grouped(right, _COMMAND)}"
        case Sequence(left=left, right=right):
            # "a & b": the & already separates the two commands
            separator = " " if _ends_in_background(left) else " ; "
            return f"{render(left)}{separator}{_grouped(right, _ITEM)}"
        case And(left=left, right=right):
            return f"{_grouped(left, _AND_OR)} && {_grouped(right, _PIPELINE)}"
        case Or(left=left, right=right):
            return f"{_grouped(left, _AND_OR)} || {_grouped(right, _PIPELINE)}"
        case Background(child=child):
            return f"{_grouped(child, _AND_OR)} &"


# Binding strength of each grammar level, loosest first.
_LIST, _ITEM, _AND_OR, _PIPELINE, _COMMAND = range(5)


def _binding(tree: CommandTree) -> int:
    match tree:
        case Sequence():
            return _LIST
        case Background():
            return _ITEM
        case And() | Or():
            return _AND_OR
        case Pipe():
            return _PIPELINE
        case Simple() | Redirect():
            return _COMMAND


def _ends_in_background(tree: CommandTree) -> bool:
    """Return True if the rendered text of *tree* ends with ``&``."""
    match tree:
        case Background():
            return True
        case Sequence(right=right):
            return _ends_in_background(right)
        case _:
            return False


def _grouped(tree: CommandTree, level: int) -> str:
    """Render *tree*, parenthesised if it binds more loosely than *level*."""
    text = render(tree)
    return text if _binding(tree) >= level else f"({text})"
