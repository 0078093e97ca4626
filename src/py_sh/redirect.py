"""I/O redirection — opening the files behind ``<`` and ``>``.

``sort < in.txt > out.txt`` asks for ``sort`` to read ``in.txt`` on its
standard input and write ``out.txt`` on its standard output.  The shell
does this in two steps:

1. **Resolve** — open the file and get a descriptor.  This can fail
   (missing input file, unwritable directory), and when it does no
   process should be created at all.
2. **Substitute** — inside the child, ``dup2`` the descriptor onto 0 or
   1 before exec.  The shell's own stdin/stdout are never replaced.

This module does step 1; the launcher does step 2 from a ``Streams``
value.

Output redirection truncates: ``>`` creates the file if needed and
throws away whatever it held before.
"""

import os

from py_sh.errors import FileError
from py_sh.tree import Direction

_OPEN_FLAGS = {
    Direction.INPUT: os.O_RDONLY,
    Direction.OUTPUT: os.O_WRONLY | os.O_CREAT | os.O_TRUNC,
}

_SLOTS = {
    Direction.INPUT: "stdin",
    Direction.OUTPUT: "stdout",
}

_NEW_FILE_MODE = 0o666


class RedirectionApplier:
    """Open redirection targets as raw, non-inheritable descriptors."""

    def resolve(self, direction: Direction, path: str) -> int:
        """Open *path* for the given redirection direction.

        Args:
            direction: INPUT opens read-only; OUTPUT creates/truncates.
            path: The file to open.

        Returns:
            An open descriptor.  The caller owns it and must close it.

        Raises:
            FileError: If the file cannot be opened.

        """
        try:
            return os.open(path, _OPEN_FLAGS[direction], _NEW_FILE_MODE)
        except OSError as e:
            msg = f"{path}: {e.strerror}"
            raise FileError(msg) from e

    @staticmethod
    def slot(direction: Direction) -> str:
        """Return the ``Streams`` field a direction replaces."""
        return _SLOTS[direction]
