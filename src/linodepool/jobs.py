"""
Job poller: waits for an asynchronous Linode job to finish.

The wait is a small state machine driven by two timers:

- tick: every ``interval`` seconds the job is fetched again. A failing
  fetch is remembered and polling continues, since a fresh job may not be
  queryable yet.
- finished: the job reports a finish time. It either succeeded or its
  message becomes the error.
- deadline: ``timeout`` seconds after the wait began. A remembered fetch
  error is raised as is; otherwise the wait timed out for real, the
  caller's rollback runs, and JobTimeoutError is raised.

The machine itself is never shut down on timeout: it may be running
something that predates us.
"""

from __future__ import annotations

import logging
import time
from enum import Enum
from typing import Callable, List, Optional

from .errors import (
    JobError,
    JobFailedError,
    JobTimeoutError,
    LinodeError,
    lower_first,
)
from .models import Envelope, JobInfo
from .protocol import LinodeClient

logger = logging.getLogger(__name__)


class PollState(str, Enum):
    """Where one step of the wait left the job."""

    PENDING = "pending"
    FINISHED = "finished"
    EXPIRED = "expired"


def job_error(job: JobInfo) -> Optional[str]:
    """Return the failure message of a finished job, or None on success."""
    if job.succeeded or not job.finished:
        return None
    if job.host_message:
        return lower_first(job.host_message)
    return f"job {job.job_id} failed silently"


class JobPoller:
    """Polls ``linode.job.list`` until a job finishes or the deadline passes.

    Args:
        client: Protocol adapter used for the job queries.
        interval: Seconds between polls.
        timeout: Seconds before the wait gives up.
        clock: Monotonic clock, replaceable in tests.
        sleep: Sleep function, replaceable in tests.
    """

    def __init__(
        self,
        client: LinodeClient,
        interval: float = 5.0,
        timeout: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._client = client
        self.interval = interval
        self.timeout = timeout
        self._clock = clock
        self._sleep = sleep

    def job_info(self, linode_id: int, job_id: int) -> JobInfo:
        """Fetch the current state of one job.

        Raises:
            LinodeError: If the query fails or returns nothing.
        """
        result = self._client.execute(
            {"api_action": "linode.job.list", "LinodeID": linode_id, "JobID": job_id},
            Envelope[List[JobInfo]],
        )
        result.raise_for_error()
        if not result.data:
            raise JobError("empty result")
        return result.data[0]

    def wait(
        self,
        server,
        verb: str,
        job_id: int,
        rollback: Optional[Callable[[], None]] = None,
    ) -> JobInfo:
        """Block until job *job_id* on *server* finishes.

        Args:
            server: The machine the job runs on; needs an ``id`` and a
                readable ``str()``.
            verb: What the job does ('boot', 'reboot', 'shutdown').
            job_id: Provider job id.
            rollback: Best-effort cleanup run on a genuine timeout.

        Returns:
            The finished, successful job.

        Raises:
            JobFailedError: The job finished unsuccessfully.
            JobError: Every poll failed until the deadline.
            JobTimeoutError: The job did not finish in time.
        """
        logger.info("Waiting for %s to %s...", server, verb)

        deadline = self._clock() + self.timeout
        poll_error: Optional[JobError] = None

        while True:
            remaining = deadline - self._clock()
            if remaining > 0:
                self._sleep(min(self.interval, remaining))
            if self._clock() >= deadline:
                state = PollState.EXPIRED
            else:
                state, job, err = self._tick(server, verb, job_id)
                if err is not None:
                    poll_error = err

            if state is PollState.FINISHED:
                message = job_error(job)
                if message is not None:
                    raise JobFailedError(f"cannot {verb} {server}: {message}")
                return job

            if state is PollState.EXPIRED:
                if poll_error is not None:
                    raise poll_error
                if rollback is not None:
                    try:
                        rollback()
                    except LinodeError as exc:
                        logger.warning("Cannot roll back %s after timeout: %s", server, exc)
                raise JobTimeoutError(f"timeout waiting for {server} to {verb}")

    def _tick(self, server, verb: str, job_id: int):
        try:
            job = self.job_info(server.id, job_id)
        except LinodeError as exc:
            logger.debug("Cannot get job %d details for %s: %s", job_id, server, exc)
            err = JobError(f"cannot {verb} {server}: cannot get job details for {server}: {exc}")
            err.__cause__ = exc
            return PollState.PENDING, None, err
        if job.finished:
            return PollState.FINISHED, job, None
        return PollState.PENDING, job, None
