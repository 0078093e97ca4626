"""The executor — walking a command tree and building processes.

The executor is a recursive evaluator.  For every node it decides which
processes to create, whether to wait for them, and which exit status
to hand back to its caller::

    Simple      fork + exec; wait (or register as a job)
    Redirect    open the file, evaluate the child with it on 0 or 1
    Pipe        two children joined by a pipe; right's status wins
    Sequence    left, then right; right's status wins
    And         right only if left returned 0
    Or          right only if left returned non-zero
    Background  evaluate the child without waiting; return 0

The **wait flag** is the only state carried down the recursion.  It
starts set; a ``Background`` node clears it for its subtree.  A leaf
evaluated with the flag cleared is launched and handed to the job
registry instead of being awaited.  A compound subtree under
``Background`` runs in a forked *subshell* that evaluates it
synchronously, so every background job is exactly one process.

Errors never escape ``execute()``.  Each ``ShellError`` is turned into
its exit status at the node where it happened, logged, and reported on
standard error; the status then flows upward like any other, so a
failed redirect on the left of ``||`` still lets the right side run.

Design choices:
    - **Streams, not ambient state.**  Redirections and pipes travel
      down the recursion in a ``Streams`` value; only children ever
      ``dup2`` them onto 0/1/2, so the shell's own streams never change.
    - **Exhaustive ``match``** over the closed ``CommandTree`` union.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING, NoReturn

from py_sh.errors import EXIT_FAILURE, EXIT_SUCCESS, ShellError
from py_sh.jobs import JobRegistry
from py_sh.logging import Logger, LogLevel
from py_sh.pipeline import PipelineBuilder
from py_sh.process.handle import ProcessHandle
from py_sh.process.launcher import (
    ProcessLauncher,
    Side,
    Streams,
    exit_child,
    fork_process,
    report,
)
from py_sh.redirect import RedirectionApplier
from py_sh.tree import And, Background, Or, Pipe, Redirect, Sequence, Simple, render

if TYPE_CHECKING:
    from py_sh.env import Environment
    from py_sh.tree import CommandTree


class Executor:
    """Evaluate command trees against real processes."""

    def __init__(
        self,
        *,
        launcher: ProcessLauncher | None = None,
        jobs: JobRegistry | None = None,
        logger: Logger | None = None,
        environment: Environment | None = None,
    ) -> None:
        """Create an executor.

        Args:
            launcher: Starts external programs.  Built from *environment*
                if omitted.
            jobs: Registry for background children.
            logger: Event log shared with the pipeline builder and jobs.
            environment: Variables passed to programs when no launcher is
                given; ``None`` passes ``os.environ`` through.

        """
        self._logger = logger if logger is not None else Logger()
        self._launcher = launcher or ProcessLauncher(environment=environment)
        self._jobs = jobs if jobs is not None else JobRegistry(logger=self._logger)
        self._redirects = RedirectionApplier()
        self._pipelines = PipelineBuilder(runner=self._run_in_child, logger=self._logger)
        self._last_status = EXIT_SUCCESS

    @property
    def jobs(self) -> JobRegistry:
        """Return the background job registry."""
        return self._jobs

    @property
    def logger(self) -> Logger:
        """Return the event log."""
        return self._logger

    @property
    def last_status(self) -> int:
        """Return the status of the most recent top-level ``execute``."""
        return self._last_status

    def execute(self, tree: CommandTree) -> int:
        """Run a whole command tree and return its exit status.

        Args:
            tree: Root of the parsed command line.

        Returns:
            0 on success, non-zero on failure.

        """
        status = self._evaluate(tree, Streams(), wait=True)
        self._last_status = status
        return status

    def _evaluate(self, tree: CommandTree, streams: Streams, *, wait: bool) -> int:
        """Evaluate one node, converting engine errors to a status."""
        try:
            return self._dispatch(tree, streams, wait=wait)
        except ShellError as e:
            self._logger.log(LogLevel.ERROR, f"{render(tree)}: {e}", source="executor")
            report(e)
            return e.status

    def _dispatch(self, tree: CommandTree, streams: Streams, *, wait: bool) -> int:
        match tree:
            case Simple(program=program, args=args):
                return self._run_simple(program, args, streams, wait=wait)
            case Redirect(child=child, direction=direction, target=target):
                fd = self._redirects.resolve(direction, target)
                try:
                    slot = self._redirects.slot(direction)
                    return self._evaluate(child, streams.replace(**{slot: fd}), wait=wait)
                finally:
                    os.close(fd)
            case Background(child=child):
                self._evaluate(child, streams, wait=False)
                return EXIT_SUCCESS
            case Pipe() | Sequence() | And() | Or() if not wait:
                return self._run_detached(tree, streams)
            case Pipe(left=left, right=right):
                return self._pipelines.connect(left, right, streams)
            case Sequence(left=left, right=right):
                discarded = self._evaluate(left, streams, wait=True)
                self._logger.log(
                    LogLevel.DEBUG,
                    f"sequence: discarding status {discarded} of {render(left)}",
                    source="executor",
                )
                return self._evaluate(right, streams, wait=True)
            case And(left=left, right=right):
                status = self._evaluate(left, streams, wait=True)
                if status != EXIT_SUCCESS:
                    return status
                return self._evaluate(right, streams, wait=True)
            case Or(left=left, right=right):
                status = self._evaluate(left, streams, wait=True)
                if status == EXIT_SUCCESS:
                    return status
                return self._evaluate(right, streams, wait=True)

    def _run_simple(
        self,
        program: str,
        args: tuple[str, ...],
        streams: Streams,
        *,
        wait: bool,
    ) -> int:
        """Launch one program, then wait for it or register it as a job."""
        handle = self._launcher.launch(program, args, streams)
        self._logger.log(
            LogLevel.DEBUG, f"launched {handle.name}", source="executor", pid=handle.pid
        )
        if not wait:
            self._jobs.register(handle)
            return EXIT_SUCCESS
        status = handle.wait()
        self._logger.log(
            LogLevel.INFO,
            f"{handle.name} exited with status {status}",
            source="executor",
            pid=handle.pid,
        )
        return status

    def _run_detached(self, tree: CommandTree, streams: Streams) -> int:
        """Fork a subshell that evaluates *tree* and register it as a job."""
        fork = fork_process()
        if fork.side is Side.CHILD:
            status = EXIT_FAILURE
            try:
                status = self._evaluate(tree, streams, wait=True)
            finally:
                exit_child(status)
        handle = ProcessHandle(pid=fork.pid, name=render(tree))
        self._logger.log(
            LogLevel.DEBUG, f"subshell for {handle.name}", source="executor", pid=handle.pid
        )
        self._jobs.register(handle)
        return EXIT_SUCCESS

    def _run_in_child(self, tree: CommandTree) -> NoReturn:
        """Run *tree* inside a pipeline child and exit with its status.

        A leaf replaces the child's image directly instead of forking a
        grandchild; a redirection is opened and installed here, on the
        child side; anything compound is evaluated normally.
        """
        status = EXIT_FAILURE
        try:
            match tree:
                case Simple(program=program, args=args):
                    self._launcher.replace_image(program, args)
                case Redirect(child=child, direction=direction, target=target):
                    fd = self._redirects.resolve(direction, target)
                    streams = Streams().replace(**{self._redirects.slot(direction): fd})
                    streams.apply()
                    if fd not in streams.installed():
                        os.close(fd)
                    self._run_in_child(child)
                case _:
                    status = self._evaluate(tree, Streams(), wait=True)
        except ShellError as e:
            report(e)
            status = e.status
        finally:
            exit_child(status)
