"""Background jobs — tracking children nobody is waiting for.

When you run ``sleep 60 &`` the shell forks ``sleep`` and immediately
returns to the prompt.  The child still has to be *reaped* when it
exits, otherwise it lingers in the process table as a zombie.  The job
registry holds the handles of such children until someone collects
them.

Key ideas:
    - **Jobs are not processes** — a job wraps one process handle and
      adds a small job number (``[1]``, ``[2]``) for humans.
    - **Reaping never blocks.**  ``reap_completed()`` polls each job with
      ``WNOHANG`` and returns only those that already finished.  The
      REPL calls it before every prompt; the engine itself never does.
    - **Reaped jobs leave the registry** — a pid can be reaped only
      once, so a finished job is reported exactly once.

Design choices:
    - ``JobRegistry`` is owned by the executor, not global state.
    - Auto-incrementing job IDs via ``itertools.count``.
"""

from dataclasses import dataclass
from enum import StrEnum
from itertools import count

from py_sh.logging import Logger, LogLevel
from py_sh.process.handle import ProcessHandle


class JobStatus(StrEnum):
    """Status of a background job."""

    RUNNING = "running"
    DONE = "done"


@dataclass
class Job:
    """A background job wrapping one child process.

    Attributes:
        job_id: Small human-friendly job number ([1], [2], ...).
        handle: The child's process handle.
        name: The command text.
        status: Current job status.
        exit_code: The child's exit status once reaped.

    """

    job_id: int
    handle: ProcessHandle
    name: str
    status: JobStatus = JobStatus.RUNNING
    exit_code: int | None = None

    @property
    def pid(self) -> int:
        """Return the underlying process id."""
        return self.handle.pid

    def __str__(self) -> str:
        """Format as ``[id] status name (pid=N)``."""
        return f"[{self.job_id}] {self.status} {self.name} (pid={self.pid})"


class JobRegistry:
    """Hold background children until they are reaped."""

    def __init__(self, *, logger: Logger | None = None) -> None:
        """Create an empty registry."""
        self._jobs: dict[int, Job] = {}
        self._counter = count(start=1)
        self._logger = logger if logger is not None else Logger()

    def register(self, handle: ProcessHandle, name: str | None = None) -> int:
        """Take ownership of a background child.

        Args:
            handle: The child's handle; the registry is now responsible
                for reaping it.
            name: Display name; defaults to the handle's command text.

        Returns:
            The new job id.

        """
        job_id = next(self._counter)
        self._jobs[job_id] = Job(job_id=job_id, handle=handle, name=name or handle.name)
        self._logger.log(
            LogLevel.INFO,
            f"[{job_id}] {handle.pid} started: {name or handle.name}",
            source="jobs",
            pid=handle.pid,
        )
        return job_id

    def get(self, job_id: int) -> Job | None:
        """Return a job by its id, or None."""
        return self._jobs.get(job_id)

    def list_jobs(self) -> list[Job]:
        """Return all jobs not yet reaped, oldest first."""
        return list(self._jobs.values())

    def reap_completed(self) -> list[tuple[int, int]]:
        """Collect every job whose process has already exited.

        Never blocks: a job still running is left alone.

        Returns:
            ``(job_id, exit_status)`` pairs in job-id order.

        """
        finished: list[tuple[int, int]] = []
        for job in list(self._jobs.values()):
            status = job.handle.poll()
            if status is not None:
                finished.append((job.job_id, self._finish(job, status)))
        return finished

    def wait_all(self) -> list[tuple[int, int]]:
        """Block until every job has exited and collect them all.

        Returns:
            ``(job_id, exit_status)`` pairs in job-id order.

        """
        return [(job.job_id, self._finish(job, job.handle.wait())) for job in self.list_jobs()]

    def _finish(self, job: Job, status: int) -> int:
        """Mark *job* done, drop it from the registry, and log it."""
        job.status = JobStatus.DONE
        job.exit_code = status
        del self._jobs[job.job_id]
        self._logger.log(
            LogLevel.INFO,
            f"[{job.job_id}] {job.pid} reaped with status {status}",
            source="jobs",
            pid=job.pid,
        )
        return status

    def __len__(self) -> int:
        """Return the number of jobs not yet reaped."""
        return len(self._jobs)
