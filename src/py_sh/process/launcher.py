"""Process launching — fork, rewire standard streams, exec.

Every external command a shell runs is born the same way:

1. ``fork()`` duplicates the shell.  The call returns twice — once in
   the original (parent) with the child's pid, once in the copy (child)
   with 0.
2. In the child only, ``dup2()`` puts the right file descriptors on
   0/1/2 (stdin, stdout, stderr).
3. Still in the child, ``exec()`` replaces the shell's program image
   with the requested program.  On success it never returns.
4. The parent keeps a ``ProcessHandle`` and decides whether to wait.

Key ideas:
    - **Two return paths, two code paths.**  ``fork_process()`` returns
      a ``ForkResult`` tagged with ``Side.PARENT`` or ``Side.CHILD``, so
      callers branch on an explicit enum rather than on ``pid == 0``.
    - **Streams are parameters.**  The descriptors a child should use
      travel in a ``Streams`` value; the parent's own 0/1/2 are never
      touched.
    - **A child never returns into shell logic.**  If ``exec`` fails
      the child reports the error and leaves via ``os._exit`` — the
      ``try``/``finally`` makes that hold even for unexpected exceptions.
    - **Non-inheritable by default.**  Python creates every descriptor
      with close-on-exec (PEP 446), so only what ``dup2`` placed on
      0/1/2 survives into the new program.
"""

from __future__ import annotations

import contextlib
import dataclasses
import fcntl
import os
import signal
import sys
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, NoReturn

from py_sh.errors import EXIT_FAILURE, ExecError, ShellError, SpawnError
from py_sh.process.handle import ProcessHandle

if TYPE_CHECKING:
    from collections.abc import Sequence

    from py_sh.env import Environment

# Python ignores these at startup; ignored dispositions survive exec,
# so children must get the defaults back before replacing their image.
_RESTORED_SIGNALS = ("SIGPIPE", "SIGXFSZ", "SIGINT", "SIGQUIT")

# Lowest descriptor number above stdin, stdout, and stderr.
_FIRST_FREE_FD = 3


class Side(StrEnum):
    """Which process we are in after a fork."""

    PARENT = "parent"
    CHILD = "child"


@dataclass(frozen=True)
class ForkResult:
    """Outcome of ``fork_process()``.

    Attributes:
        side: PARENT in the original process, CHILD in the new one.
        pid: The child's pid on the parent side; 0 on the child side.

    """

    side: Side
    pid: int = 0


@dataclass(frozen=True)
class Streams:
    """Descriptors to install as a child's stdin, stdout, and stderr.

    ``None`` means "inherit whatever the parent has on that slot".
    """

    stdin: int | None = None
    stdout: int | None = None
    stderr: int | None = None

    def replace(self, **slots: int | None) -> Streams:
        """Return a copy with the named slots swapped out."""
        return dataclasses.replace(self, **slots)

    def apply(self) -> None:
        """Install the descriptors on 0/1/2 of the *current* process.

        Only ever called on the child side of a fork.  When the shell was
        started with a standard stream closed, a descriptor it opened can
        already sit on 0, 1, or 2:

        - one already on its own slot only needs to survive exec;
        - one on *another* slot is first lifted above 2, so an earlier
          ``dup2`` cannot overwrite it.
        """
        lifted = [(target, _lift(fd, target)) for target, fd in self._slots()]
        for target, fd in lifted:
            if fd == target:
                os.set_inheritable(fd, True)
            else:
                os.dup2(fd, target)

    def installed(self) -> frozenset[int]:
        """Return the standard slots ``apply()`` fills."""
        return frozenset(target for target, _ in self._slots())

    def _slots(self) -> list[tuple[int, int]]:
        pairs = ((0, self.stdin), (1, self.stdout), (2, self.stderr))
        return [(target, fd) for target, fd in pairs if fd is not None]


def _lift(fd: int, target: int) -> int:
    """Move *fd* above 2 if it occupies a standard slot other than *target*."""
    if fd == target or fd >= _FIRST_FREE_FD:
        return fd
    return fcntl.fcntl(fd, fcntl.F_DUPFD_CLOEXEC, _FIRST_FREE_FD)


def fork_process() -> ForkResult:
    """Fork the current process.

    Python's buffered ``sys.stdout`` / ``sys.stderr`` are flushed first;
    otherwise pending output would be copied into the child and written
    twice.

    Raises:
        SpawnError: If the operating system refuses to create a process.

    """
    sys.stdout.flush()
    sys.stderr.flush()
    try:
        pid = os.fork()
    except OSError as e:
        msg = f"cannot fork: {e.strerror}"
        raise SpawnError(msg) from e
    if pid == 0:
        return ForkResult(side=Side.CHILD)
    return ForkResult(side=Side.PARENT, pid=pid)


def report(error: ShellError) -> None:
    """Write ``py-sh: <error>`` straight to descriptor 2."""
    os.write(2, f"py-sh: {error}\n".encode())


def exit_child(status: int) -> NoReturn:
    """Terminate a forked child without running the parent's cleanup.

    ``os._exit`` skips ``atexit`` handlers and ``finally`` blocks further
    up the stack, which belong to the parent's copy of the program.
    """
    # The child is about to vanish; a closed or broken stream is irrelevant.
    with contextlib.suppress(OSError, ValueError):
        sys.stdout.flush()
        sys.stderr.flush()
    os._exit(status)


def restore_default_signals() -> None:
    """Give the child default signal dispositions before exec."""
    for name in _RESTORED_SIGNALS:
        signum = getattr(signal, name, None)
        if signum is not None:
            signal.signal(signum, signal.SIG_DFL)


class ProcessLauncher:
    """Create child processes running external programs.

    The launcher owns no processes itself — ``launch()`` hands the
    ``ProcessHandle`` to the caller, who becomes responsible for
    waiting on it (or for giving it to the job registry).
    """

    def __init__(self, *, environment: Environment | None = None) -> None:
        """Create a launcher.

        Args:
            environment: Variables passed to every program.  ``None``
                passes the live ``os.environ`` at exec time.

        """
        self._environment = environment

    def launch(
        self,
        program: str,
        args: Sequence[str] = (),
        streams: Streams | None = None,
    ) -> ProcessHandle:
        """Start *program* in a new process and return without waiting.

        Args:
            program: Program name (searched on ``PATH``) or path.
            args: Arguments after the program name.
            streams: Descriptors for the child's 0/1/2.

        Returns:
            A handle the caller must eventually wait on.

        Raises:
            SpawnError: If the fork fails.

        """
        fork = fork_process()
        if fork.side is Side.CHILD:
            self.replace_image(program, args, streams or Streams())
        return ProcessHandle(pid=fork.pid, name=" ".join((program, *args)))

    def replace_image(
        self,
        program: str,
        args: Sequence[str] = (),
        streams: Streams | None = None,
    ) -> NoReturn:
        """Turn the *current* process into *program*; never returns.

        Used on the child side of a fork — by ``launch()`` and by
        pipeline children that run a leaf command in place.  A failed
        exec exits with 127 (not found) or 126 (not executable).
        """
        status = EXIT_FAILURE
        try:
            (streams or Streams()).apply()
            restore_default_signals()
            env = os.environ if self._environment is None else self._environment.as_dict()
            os.execvpe(program, [program, *args], env)
        except OSError as e:
            error = ExecError(program, e)
            status = error.status
            report(error)
        finally:
            exit_child(status)
