"""py-sh — the execution engine of a Unix-style shell.

Re-exports the public API so callers can write::

    from py_sh import Executor, parse

    status = Executor().execute(parse("sort < in.txt > out.txt"))
"""

from py_sh.errors import ExecError, FileError, PipeError, ShellError, SpawnError
from py_sh.executor import Executor
from py_sh.jobs import Job, JobRegistry, JobStatus
from py_sh.parser import ParseError, parse
from py_sh.tree import (
    And,
    Background,
    CommandTree,
    Direction,
    Or,
    Pipe,
    Redirect,
    Sequence,
    Simple,
    render,
)

__all__ = [
    "And",
    "Background",
    "CommandTree",
    "Direction",
    "ExecError",
    "Executor",
    "FileError",
    "Job",
    "JobRegistry",
    "JobStatus",
    "Or",
    "ParseError",
    "Pipe",
    "PipeError",
    "Redirect",
    "Sequence",
    "ShellError",
    "Simple",
    "SpawnError",
    "parse",
    "render",
]
