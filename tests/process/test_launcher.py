"""Tests for launching programs with fork + exec.

The launcher forks, installs the requested descriptors on the child's
0/1/2, and replaces the child's image with the program.  A failed exec
must end the child with 127 (not found) or 126 (not executable) — never
let it continue running shell code.
"""

import os
import stat
from pathlib import Path

import pytest

from py_sh.env import Environment
from py_sh.process.launcher import (
    ProcessLauncher,
    Side,
    Streams,
    exit_child,
    fork_process,
)


def _write_fd(path: Path) -> int:
    """Open *path* for writing as a raw descriptor."""
    return os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o644)


class TestStreams:
    """Verify the stream-assignment value."""

    def test_default_inherits_everything(self) -> None:
        """A default Streams inherits all three slots."""
        streams = Streams()
        assert (streams.stdin, streams.stdout, streams.stderr) == (None, None, None)

    def test_replace_returns_copy(self) -> None:
        """replace() changes only the named slot and leaves the original."""
        base = Streams(stdin=5)
        changed = base.replace(stdout=7)
        assert changed == Streams(stdin=5, stdout=7)
        assert base == Streams(stdin=5)

    def test_installed_names_filled_slots(self) -> None:
        """installed() lists the standard slots apply() writes."""
        assert Streams().installed() == frozenset()
        assert Streams(stdin=5, stderr=9).installed() == frozenset({0, 2})


class TestForkProcess:
    """Verify the tagged fork wrapper."""

    def test_parent_side_gets_child_pid(self) -> None:
        """The parent sees Side.PARENT and the child's pid."""
        fork = fork_process()
        if fork.side is Side.CHILD:
            exit_child(7)
        assert fork.side is Side.PARENT
        assert fork.pid > 0
        _, raw = os.waitpid(fork.pid, 0)
        assert os.waitstatus_to_exitcode(raw) == 7


class TestLaunch:
    """Verify launching external programs."""

    def test_exit_status(self) -> None:
        """The handle reports the program's own exit code."""
        handle = ProcessLauncher().launch("sh", ("-c", "exit 3"))
        assert handle.wait() == 3

    def test_stdout_substitution(self, tmp_path: Path) -> None:
        """A stdout descriptor receives the child's output."""
        out = tmp_path / "out.txt"
        fd = _write_fd(out)
        try:
            handle = ProcessLauncher().launch("echo", ("hello",), Streams(stdout=fd))
            assert handle.wait() == 0
        finally:
            os.close(fd)
        assert out.read_text() == "hello\n"

    def test_stdin_substitution(self, tmp_path: Path) -> None:
        """A stdin descriptor feeds the child's input."""
        src = tmp_path / "in.txt"
        src.write_text("b\na\n")
        out = tmp_path / "out.txt"
        in_fd = os.open(src, os.O_RDONLY)
        out_fd = _write_fd(out)
        try:
            handle = ProcessLauncher().launch("sort", (), Streams(stdin=in_fd, stdout=out_fd))
            handle.wait()
        finally:
            os.close(in_fd)
            os.close(out_fd)
        assert out.read_text() == "a\nb\n"

    def test_stderr_substitution(self, tmp_path: Path) -> None:
        """A stderr descriptor captures the child's error output."""
        err = tmp_path / "err.txt"
        fd = _write_fd(err)
        try:
            ProcessLauncher().launch("sh", ("-c", "echo oops >&2"), Streams(stderr=fd)).wait()
        finally:
            os.close(fd)
        assert err.read_text() == "oops\n"

    def test_parent_streams_untouched(self, tmp_path: Path, capfd: pytest.CaptureFixture[str]) -> None:
        """Redirecting a child never redirects the parent."""
        out = tmp_path / "out.txt"
        fd = _write_fd(out)
        try:
            ProcessLauncher().launch("echo", ("child",), Streams(stdout=fd)).wait()
        finally:
            os.close(fd)
        print("parent")  # noqa: T201
        captured = capfd.readouterr()
        assert captured.out == "parent\n"
        assert out.read_text() == "child\n"

    def test_environment_is_passed(self, tmp_path: Path) -> None:
        """Programs receive the launcher's environment."""
        env = Environment({"PATH": os.environ["PATH"], "PY_SH_VALUE": "42"})
        out = tmp_path / "out.txt"
        fd = _write_fd(out)
        try:
            launcher = ProcessLauncher(environment=env)
            launcher.launch("sh", ("-c", "echo $PY_SH_VALUE"), Streams(stdout=fd)).wait()
        finally:
            os.close(fd)
        assert out.read_text() == "42\n"


class TestExecFailure:
    """Verify a failed exec ends only the child, with a distinct status."""

    def test_command_not_found(self, capfd: pytest.CaptureFixture[str]) -> None:
        """A missing program exits 127 and says so on stderr."""
        handle = ProcessLauncher().launch("py-sh-no-such-program")
        assert handle.wait() == 127
        assert "py-sh-no-such-program: command not found" in capfd.readouterr().err

    def test_not_executable(self, tmp_path: Path) -> None:
        """A file without the execute bit exits 126."""
        script = tmp_path / "script.sh"
        script.write_text("#!/bin/sh\necho hi\n")
        script.chmod(stat.S_IRUSR | stat.S_IWUSR)
        handle = ProcessLauncher().launch(str(script))
        assert handle.wait() == 126

    def test_child_does_not_continue(self, tmp_path: Path) -> None:
        """Code after launch() runs exactly once — in the parent."""
        marker = tmp_path / "marker.txt"
        handle = ProcessLauncher().launch("py-sh-no-such-program")
        with marker.open("a") as f:
            f.write(f"{os.getpid()}\n")
        handle.wait()
        assert marker.read_text().splitlines() == [str(os.getpid())]
