"""Tests for the engine event log.

The logger records structured entries for what the executor did to the
operating system: launches, exit statuses, failures, and reaping.
"""

from pathlib import Path

from py_sh.executor import Executor
from py_sh.logging import LogEntry, Logger, LogLevel
from py_sh.tree import Background, Direction, Pipe, Redirect, Sequence, Simple


class TestLogLevel:
    """Verify log level ordering."""

    def test_levels_are_ordered(self) -> None:
        """DEBUG < INFO < WARNING < ERROR."""
        assert LogLevel.DEBUG < LogLevel.INFO
        assert LogLevel.INFO < LogLevel.WARNING
        assert LogLevel.WARNING < LogLevel.ERROR


class TestLogEntry:
    """Verify log entry structure."""

    def test_entry_has_fields(self) -> None:
        """A log entry should store level, message, source, and pid."""
        entry = LogEntry(level=LogLevel.INFO, message="launched ls", source="executor", pid=42)
        assert entry.level is LogLevel.INFO
        assert entry.message == "launched ls"
        assert entry.source == "executor"
        expected_pid = 42
        assert entry.pid == expected_pid

    def test_pid_defaults_to_zero(self) -> None:
        """Entries not about a specific child carry pid 0."""
        entry = LogEntry(level=LogLevel.DEBUG, message="m", source="s")
        assert entry.pid == 0

    def test_entry_str(self) -> None:
        """String representation should include level, source, and message."""
        entry = LogEntry(level=LogLevel.WARNING, message="slow child", source="jobs")
        assert str(entry) == "[WARNING] jobs: slow child"


class TestLogger:
    """Verify the logger."""

    def test_log_stores_entries(self) -> None:
        """Logged entries should be retrievable."""
        logger = Logger()
        logger.log(LogLevel.INFO, "started", source="executor")
        assert len(logger.entries) == 1
        assert logger.entries[0].message == "started"

    def test_entries_are_ordered(self) -> None:
        """Entries should be in chronological order."""
        logger = Logger()
        logger.log(LogLevel.INFO, "first", source="test")
        logger.log(LogLevel.INFO, "second", source="test")
        assert [e.message for e in logger.entries] == ["first", "second"]

    def test_entries_is_a_copy(self) -> None:
        """Mutating the returned list should not touch the log."""
        logger = Logger()
        logger.log(LogLevel.INFO, "kept", source="test")
        logger.entries.clear()
        assert len(logger.entries) == 1

    def test_filter_by_level(self) -> None:
        """Filtering should return only entries at or above the level."""
        logger = Logger()
        logger.log(LogLevel.DEBUG, "debug msg", source="test")
        logger.log(LogLevel.INFO, "info msg", source="test")
        logger.log(LogLevel.ERROR, "error msg", source="test")
        warnings_and_above = logger.filter(min_level=LogLevel.WARNING)
        assert len(warnings_and_above) == 1
        assert warnings_and_above[0].level is LogLevel.ERROR

    def test_filter_by_source(self) -> None:
        """Filtering by source should return matching entries."""
        logger = Logger()
        logger.log(LogLevel.INFO, "pipe event", source="pipeline")
        logger.log(LogLevel.INFO, "job event", source="jobs")
        pipeline_logs = logger.filter(source="pipeline")
        assert len(pipeline_logs) == 1
        assert pipeline_logs[0].source == "pipeline"

    def test_filter_by_pid(self) -> None:
        """Filtering by pid keeps only entries about that child."""
        logger = Logger()
        logger.log(LogLevel.DEBUG, "launched sleep 1", source="executor", pid=10)
        logger.log(LogLevel.INFO, "launched true", source="executor", pid=11)
        logger.log(LogLevel.INFO, "[1] 10 reaped with status 0", source="jobs", pid=10)
        assert len(logger.filter(pid=10)) == 2
        assert len(logger.filter(pid=10, min_level=LogLevel.INFO)) == 1

    def test_for_pid(self) -> None:
        """for_pid returns one child's messages in order."""
        logger = Logger()
        logger.log(LogLevel.DEBUG, "launched sleep 1", source="executor", pid=10)
        logger.log(LogLevel.INFO, "unrelated", source="executor")
        logger.log(LogLevel.INFO, "[1] 10 reaped with status 0", source="jobs", pid=10)
        assert logger.for_pid(10) == ["launched sleep 1", "[1] 10 reaped with status 0"]

    def test_clear(self) -> None:
        """Clearing should remove all entries."""
        logger = Logger()
        logger.log(LogLevel.INFO, "test", source="test")
        logger.clear()
        assert len(logger.entries) == 0


class TestExecutorLogging:
    """Verify that the executor logs process lifecycle events."""

    def test_launch_and_exit_are_logged(self) -> None:
        """A simple command logs its launch and its exit status."""
        executor = Executor()
        executor.execute(Simple("true"))
        messages = [e.message for e in executor.logger.filter(source="executor")]
        assert "launched true" in messages
        assert "true exited with status 0" in messages

    def test_exit_entry_carries_pid(self) -> None:
        """Lifecycle entries record the child's pid."""
        executor = Executor()
        executor.execute(Simple("true"))
        exits = [e for e in executor.logger.entries if "exited" in e.message]
        assert exits
        assert exits[0].pid > 0

    def test_failure_is_logged_as_error(self, tmp_path: Path) -> None:
        """A failed redirection produces an ERROR entry."""
        executor = Executor()
        missing = tmp_path / "missing.txt"
        executor.execute(Redirect(Simple("cat"), Direction.INPUT, str(missing)))
        errors = executor.logger.filter(min_level=LogLevel.ERROR)
        assert len(errors) == 1
        assert str(missing) in errors[0].message

    def test_sequence_discard_is_logged(self) -> None:
        """A sequence records the left status it throws away."""
        executor = Executor()
        executor.execute(Sequence(Simple("false"), Simple("true")))
        assert any(
            "discarding status 1 of false" in e.message
            for e in executor.logger.filter(source="executor")
        )

    def test_pipeline_is_logged(self) -> None:
        """A pipe logs under the pipeline source."""
        executor = Executor()
        executor.execute(Pipe(Simple("true"), Simple("true")))
        assert executor.logger.filter(source="pipeline")

    def test_background_history_by_pid(self) -> None:
        """A background child's launch and reaping share its pid."""
        executor = Executor()
        executor.execute(Background(Simple("true")))
        (job,) = executor.jobs.list_jobs()
        executor.jobs.wait_all()
        history = executor.logger.for_pid(job.pid)
        assert history[0] == "launched true"
        assert history[-1] == f"[1] {job.pid} reaped with status 0"

    def test_shared_logger(self) -> None:
        """An injected logger receives the executor's entries."""
        logger = Logger()
        Executor(logger=logger).execute(Simple("true"))
        assert logger.entries
