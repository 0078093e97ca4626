"""Process handles — the parent's grip on a running child.

``fork()`` gives the parent nothing but a pid.  A ``ProcessHandle``
wraps that pid together with a slot for the exit status, which stays
empty until the parent has *observed* the child's termination through
``waitpid``.  Observing the status is also what releases the kernel's
zombie entry, so every handle must eventually be waited on — either by
whoever launched it, or by the job registry for background children.

Two ways to observe:
    - ``wait()`` — block until the child exits (foreground commands).
    - ``poll()`` — return immediately, filling the slot only if the
      child has already exited (``WNOHANG``; background reaping).

Once observed, the status is cached — a pid can only be reaped once,
so a second ``waitpid`` would fail with ``ChildProcessError``.
"""

import os

from py_sh.errors import SIGNAL_EXIT_BASE


def decode_status(raw: int) -> int:
    """Convert a raw ``waitpid`` status into a shell exit status.

    Normal exit yields the program's exit code; death by signal N
    yields ``128 + N``, the convention every POSIX shell uses.
    """
    code = os.waitstatus_to_exitcode(raw)
    if code < 0:
        return SIGNAL_EXIT_BASE - code
    return code


class ProcessHandle:
    """A launched child process and its not-yet-observed exit status."""

    def __init__(self, *, pid: int, name: str) -> None:
        """Wrap a freshly forked child.

        Args:
            pid: The child's process id, as returned to the parent by fork.
            name: Human-readable command text, used for logs and jobs.

        """
        self._pid = pid
        self._name = name
        self._status: int | None = None

    @property
    def pid(self) -> int:
        """Return the child's process id."""
        return self._pid

    @property
    def name(self) -> str:
        """Return the command text this child runs."""
        return self._name

    @property
    def status(self) -> int | None:
        """Return the observed exit status, or None if not yet observed."""
        return self._status

    @property
    def done(self) -> bool:
        """Return True once the exit status has been observed."""
        return self._status is not None

    def wait(self) -> int:
        """Block until the child exits and return its status."""
        if self._status is None:
            _, raw = os.waitpid(self._pid, 0)
            self._status = decode_status(raw)
        return self._status

    def poll(self) -> int | None:
        """Return the status if the child has exited, else None (never blocks)."""
        if self._status is None:
            pid, raw = os.waitpid(self._pid, os.WNOHANG)
            if pid == 0:
                return None
            self._status = decode_status(raw)
        return self._status

    def __repr__(self) -> str:
        """Show pid, name, and status."""
        return f"ProcessHandle(pid={self._pid}, name={self._name!r}, status={self._status})"
