"""Process subsystem — forking, exec, and child handles.

Re-exports public symbols so callers can write::

    from py_sh.process import ProcessLauncher, ProcessHandle, Streams
"""

from py_sh.process.handle import ProcessHandle, decode_status
from py_sh.process.launcher import (
    ForkResult,
    ProcessLauncher,
    Side,
    Streams,
    exit_child,
    fork_process,
    report,
)

__all__ = [
    "ForkResult",
    "ProcessHandle",
    "ProcessLauncher",
    "Side",
    "Streams",
    "decode_status",
    "exit_child",
    "fork_process",
    "report",
]
