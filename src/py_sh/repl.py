"""Interactive REPL (Read-Eval-Print Loop) for the shell.

The REPL is the thin I/O layer around the executor:

    1. **Reap** — collect background jobs that finished since the last
       prompt and announce them (``[1]+ Done  sleep 1``).
    2. **Read** — display a prompt and read a line.
    3. **Eval** — parse it and hand the tree to ``Executor.execute()``.
    4. **Loop** — repeat until ``exit`` or end of input.

A few commands cannot run in a child process because they change the
shell itself; these are handled here as built-ins:

- ``exit [status]`` — leave the loop.
- ``cd [dir]`` — change the shell's working directory.
- ``jobs`` — list background jobs not yet reaped.
- ``wait`` — block until every background job has finished.

Built-ins apply only when they are the whole command line.

The helper functions (``build_prompt``, ``format_reaped``,
``run_builtin``) are testable without a terminal; ``run()`` is the I/O
entrypoint.
"""

import contextlib
import os
import readline  # noqa: F401  (line editing for input())
import signal
import sys
from collections.abc import Callable, Iterator
from typing import TypeAlias

from py_sh.env import Environment
from py_sh.errors import EXIT_FAILURE, EXIT_SUCCESS, SIGNAL_EXIT_BASE
from py_sh.executor import Executor
from py_sh.parser import ParseError, parse
from py_sh.tree import CommandTree, Simple

# Status for a malformed command line, as in POSIX shells.
EXIT_USAGE = 2

_DEFAULT_PROMPT = "$ "

_Builtin: TypeAlias = Callable[[Executor, tuple[str, ...]], int]


def build_prompt(environment: Environment) -> str:
    """Return ``$PS1``, or ``"$ "`` when it is unset."""
    return environment.get("PS1") or _DEFAULT_PROMPT


def format_reaped(job_id: int, name: str, status: int) -> str:
    """Format a finished-job notice like ``[1]+ Done  sleep 1``."""
    state = "Done" if status == EXIT_SUCCESS else f"Exit {status}"
    return f"[{job_id}]+ {state}  {name}"


def report_finished(executor: Executor, *, block: bool = False) -> list[str]:
    """Reap finished background jobs and return one notice per job.

    Args:
        executor: The executor whose job registry to reap.
        block: Wait for every job instead of only the finished ones.

    """
    names = {job.job_id: job.name for job in executor.jobs.list_jobs()}
    finished = executor.jobs.wait_all() if block else executor.jobs.reap_completed()
    return [format_reaped(job_id, names[job_id], status) for job_id, status in finished]


def _builtin_cd(_executor: Executor, args: tuple[str, ...]) -> int:
    """Change the shell's working directory (default ``$HOME``)."""
    target = args[0] if args else os.path.expanduser("~")
    try:
        os.chdir(target)
    except OSError as e:
        print(f"py-sh: cd: {target}: {e.strerror}", file=sys.stderr)  # noqa: T201
        return EXIT_FAILURE
    return EXIT_SUCCESS


def _builtin_jobs(executor: Executor, _args: tuple[str, ...]) -> int:
    """List background jobs that have not been reaped."""
    for job in executor.jobs.list_jobs():
        print(job)  # noqa: T201
    return EXIT_SUCCESS


def _builtin_wait(executor: Executor, _args: tuple[str, ...]) -> int:
    """Block until all background jobs finish, announcing each."""
    for notice in report_finished(executor, block=True):
        print(notice)  # noqa: T201
    return EXIT_SUCCESS


_BUILTINS: dict[str, _Builtin] = {
    "cd": _builtin_cd,
    "jobs": _builtin_jobs,
    "wait": _builtin_wait,
}


def run_builtin(executor: Executor, tree: CommandTree) -> int | None:
    """Run *tree* as a built-in if it is one.

    Returns:
        The built-in's status, or None if *tree* is not a built-in.

    """
    if not isinstance(tree, Simple):
        return None
    handler = _BUILTINS.get(tree.program)
    if handler is None:
        return None
    return handler(executor, tree.args)


def exit_status(args: tuple[str, ...], last_status: int) -> int:
    """Return the status ``exit`` should leave with."""
    if not args:
        return last_status
    try:
        return int(args[0]) & 0xFF
    except ValueError:
        print(f"py-sh: exit: {args[0]}: numeric argument required", file=sys.stderr)  # noqa: T201
        return EXIT_USAGE


@contextlib.contextmanager
def _ignoring_interrupts() -> Iterator[None]:
    """Ignore Ctrl+C in the shell while a foreground command runs.

    The terminal delivers SIGINT to the children too; they get default
    handling back before exec, so the command dies and the shell lives.
    """
    previous = signal.signal(signal.SIGINT, signal.SIG_IGN)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


def run() -> int:
    """Run the interactive loop and return the shell's exit status.

    Handles:
    - Reaping background jobs before each prompt.
    - Parse errors (status 2, loop continues).
    - Ctrl+D (end of input) and Ctrl+C at the prompt — graceful exit.
    """
    environment = Environment.from_os()
    executor = Executor(environment=environment)
    status = EXIT_SUCCESS

    try:
        while True:
            for notice in report_finished(executor):
                print(notice)  # noqa: T201

            try:
                line = input(build_prompt(environment))
            except EOFError:
                # Ctrl+D: graceful exit
                print()  # noqa: T201
                break

            try:
                tree = parse(line)
            except ParseError as e:
                print(f"py-sh: {e}", file=sys.stderr)  # noqa: T201
                status = EXIT_USAGE
                continue
            if tree is None:
                continue

            if isinstance(tree, Simple) and tree.program == "exit":
                status = exit_status(tree.args, status)
                break

            builtin_status = run_builtin(executor, tree)
            if builtin_status is not None:
                status = builtin_status
                continue

            with _ignoring_interrupts():
                status = executor.execute(tree)

    except KeyboardInterrupt:
        # Ctrl+C at the prompt: graceful exit
        print("\nInterrupted.")  # noqa: T201
        status = SIGNAL_EXIT_BASE + signal.SIGINT

    return status


def main() -> None:
    """Console-script entrypoint."""
    sys.exit(run())
