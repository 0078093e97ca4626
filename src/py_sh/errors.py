"""Error taxonomy for the execution engine.

Every failure the engine can hit while building a process topology
falls into one of four kinds:

- **SpawnError** — ``fork()`` itself failed (process table full,
  out of memory).  Fatal for the node being evaluated.
- **ExecError** — the program could not replace the child's image
  (not found, not executable).  Only the failed child is affected.
- **FileError** — a redirection target could not be opened.  Raised
  before any process is created for that node.
- **PipeError** — ``pipe()`` failed (out of descriptors).

Errors never escape ``Executor.execute()``: each one is turned into a
numeric exit status at the node where it happened, and that status
flows upward like any other.  The status for each kind lives on the
class so the conversion is a single attribute lookup.

Status conventions follow POSIX shells:

- 126 — found but not executable.
- 127 — command not found.
- 128 + N — killed by signal N.
"""

import errno

EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_NOT_EXECUTABLE = 126
EXIT_NOT_FOUND = 127
SIGNAL_EXIT_BASE = 128


class ShellError(Exception):
    """Base class for engine failures that map to an exit status."""

    status: int = EXIT_FAILURE


class SpawnError(ShellError):
    """Raise when a new process cannot be created."""


class ExecError(ShellError):
    """Raise when a program cannot replace the child's process image.

    The status distinguishes "not found" (127) from "found but cannot
    run" (126) so ``&&`` / ``||`` chains and the caller can tell them
    apart.
    """

    _NOT_EXECUTABLE = frozenset({errno.EACCES, errno.ENOEXEC, errno.EISDIR, errno.EPERM})

    def __init__(self, program: str, error: OSError) -> None:
        """Describe why *program* could not be executed.

        Args:
            program: The program name as the user typed it.
            error: The ``OSError`` raised by ``execvpe``.

        """
        if error.errno == errno.ENOENT:
            reason = "command not found"
        else:
            reason = error.strerror or str(error)
        super().__init__(f"{program}: {reason}")
        self.program = program
        self.status = (
            EXIT_NOT_EXECUTABLE if error.errno in self._NOT_EXECUTABLE else EXIT_NOT_FOUND
        )


class FileError(ShellError):
    """Raise when a redirection target cannot be opened."""


class PipeError(ShellError):
    """Raise when a pipe cannot be allocated."""
