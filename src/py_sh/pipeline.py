"""Pipelines — connecting two subtrees with a kernel pipe.

``left | right`` needs three things:

1. A **pipe**: a pair of descriptors, bytes written to the write end
   come out of the read end.
2. Two **children**: one with the write end on its stdout that runs
   ``left``, one with the read end on its stdin that runs ``right``.
3. **Closing discipline.**  A reader only sees end-of-file once *every*
   copy of the write end is closed.  Each fork copies both ends, so:

   - each child closes both originals after ``dup2``-ing the one it
     needs onto 0 or 1;
   - the process that created the pipe closes both ends as soon as the
     second child exists.

   Forget one close anywhere and ``cat`` waits forever for input that
   will never come.

Either side may itself be compound (``a | b | c`` is ``Pipe(Pipe(a, b),
c)``).  The child for such a side runs the subtree through the
executor and exits with its status, so the topology builds itself
recursively.

Waiting order: the rightmost child's status is the pipeline's status,
so it is awaited first; the left child is reaped afterwards only to
avoid a zombie.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Self

from py_sh.errors import EXIT_FAILURE, PipeError, SpawnError
from py_sh.logging import Logger, LogLevel
from py_sh.process.handle import ProcessHandle
from py_sh.process.launcher import Side, Streams, exit_child, fork_process
from py_sh.tree import render

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType
    from typing import NoReturn, TypeAlias

    from py_sh.tree import CommandTree

    # Runs a subtree in the current (child) process and never returns.
    Runner: TypeAlias = Callable[[CommandTree], NoReturn]


@dataclass
class PipeEndpointPair:
    """The two descriptors of one pipe.

    Used as a context manager by whoever creates the pipe, so both ends
    are closed on every path out — success or failure.
    """

    read_fd: int
    write_fd: int
    _closed: bool = field(default=False, repr=False)

    @classmethod
    def allocate(cls) -> Self:
        """Create a new pipe.

        Raises:
            PipeError: If the process is out of descriptors.

        """
        try:
            read_fd, write_fd = os.pipe()
        except OSError as e:
            msg = f"cannot create pipe: {e.strerror}"
            raise PipeError(msg) from e
        return cls(read_fd=read_fd, write_fd=write_fd)

    @property
    def closed(self) -> bool:
        """Return True once both ends have been closed."""
        return self._closed

    def close(self) -> None:
        """Close both ends; safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        os.close(self.read_fd)
        os.close(self.write_fd)

    def close_except(self, keep: frozenset[int]) -> None:
        """Close every end not numbered in *keep*.

        Used in a pipeline child after ``Streams.apply()``: an end that
        already sat on its own standard slot now *is* that stream.
        """
        self._closed = True
        for fd in (self.read_fd, self.write_fd):
            if fd not in keep:
                os.close(fd)

    def __enter__(self) -> Self:
        """Return the pair itself."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        """Close both ends."""
        self.close()


class PipelineBuilder:
    """Build and await the two-process topology for a ``Pipe`` node."""

    def __init__(self, *, runner: Runner, logger: Logger | None = None) -> None:
        """Create a builder.

        Args:
            runner: Executes a subtree inside the current child process
                and exits with its status.  Supplied by the executor.
            logger: Event log; a private one is created if omitted.

        """
        self._runner = runner
        self._logger = logger if logger is not None else Logger()

    def connect(
        self,
        left: CommandTree,
        right: CommandTree,
        streams: Streams | None = None,
    ) -> int:
        """Run ``left | right`` and return the status of *right*.

        Args:
            left: Subtree whose standard output feeds the pipe.
            right: Subtree whose standard input drains the pipe.
            streams: Streams inherited from enclosing redirections; the
                pipe overrides stdout on the left and stdin on the right.

        Raises:
            PipeError: If the pipe cannot be created.
            SpawnError: If either child cannot be forked.

        """
        streams = streams or Streams()
        with PipeEndpointPair.allocate() as pair:
            self._logger.log(
                LogLevel.DEBUG,
                f"pipe r={pair.read_fd} w={pair.write_fd} for {render(left)} | {render(right)}",
                source="pipeline",
            )
            writer = self._spawn_side(left, streams.replace(stdout=pair.write_fd), pair)
            try:
                reader = self._spawn_side(right, streams.replace(stdin=pair.read_fd), pair)
            except SpawnError:
                # No reader will ever exist; close our ends before reaping
                # the writer so it gets EPIPE instead of blocking forever.
                pair.close()
                writer.wait()
                raise
        status = reader.wait()
        writer.wait()
        self._logger.log(
            LogLevel.INFO,
            f"pipeline {render(left)} | {render(right)} exited with status {status}",
            source="pipeline",
            pid=reader.pid,
        )
        return status

    def _spawn_side(
        self,
        tree: CommandTree,
        streams: Streams,
        pair: PipeEndpointPair,
    ) -> ProcessHandle:
        """Fork one pipeline member wired to its end of *pair*."""
        fork = fork_process()
        if fork.side is Side.CHILD:
            try:
                streams.apply()
                pair.close_except(streams.installed())
                self._runner(tree)
            finally:
                exit_child(EXIT_FAILURE)
        return ProcessHandle(pid=fork.pid, name=render(tree))
