"""Waiting on an asynchronous analysis task and translating it into a verdict."""

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from gitops_runner.errors import (
    ErrorKind,
    InvalidArgument,
    PollTimeoutError,
    ProtocolError,
    QualityGateFailedError,
    TaskFailedError,
)
from gitops_runner.models import (
    FAIL,
    FAILED_STATUSES,
    PASS,
    SUCCESS,
    UNKNOWN,
    WAITING_STATUSES,
    WARN,
    TaskStatus,
)

logger = logging.getLogger(__name__)


def map_verdict(raw_status: str) -> str:
    """Map a raw quality gate status onto PASS, WARN or FAIL."""
    if raw_status == "ERROR":
        return FAIL
    if raw_status == "WARN":
        return WARN
    return PASS


@dataclass(frozen=True)
class PollResult:
    task_id: str
    task: TaskStatus
    verdict: str = UNKNOWN
    raw_status: str | None = None
    sleeps: int = 0
    error: ErrorKind | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def raise_for_outcome(self) -> str:
        """Return the verdict, or raise the error this result carries."""
        if self.error is ErrorKind.TASK_FAILED:
            raise TaskFailedError(
                f"The analysis task {self.task_id} was either canceled or has failed "
                f"(status {self.task.status})."
            )
        if self.error is ErrorKind.QUALITY_GATE_FAILED:
            raise QualityGateFailedError(
                f"The quality gate didn't pass for analysis {self.task.analysis_id}."
            )
        return self.verdict


class AsyncTaskPoller:
    """Polls a task status client at a fixed interval until the task finishes.

    There is no backoff and, unless ``timeout_secs`` is set, no upper bound on
    the number of polls; the caller's job deadline ends an abandoned wait.
    """

    def __init__(
        self,
        client,
        query_interval_secs: float,
        timeout_secs: float | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        if client is None:
            raise InvalidArgument("A task status client is required")
        if not query_interval_secs or query_interval_secs <= 0:
            raise InvalidArgument("query_interval_secs must be positive")
        if timeout_secs is not None and timeout_secs <= 0:
            raise InvalidArgument("timeout_secs must be positive")
        self.client = client
        self.query_interval_secs = query_interval_secs
        self.timeout_secs = timeout_secs
        self._sleep = sleep
        self._clock = clock

    def poll(self, task_id: str) -> PollResult:
        """Wait for the task and classify the outcome without raising for expected failures."""
        if not task_id:
            raise InvalidArgument("task_id must not be empty")

        started = self._clock()
        sleeps = 0
        task = self.client.fetch_task(task_id)
        while task.status in WAITING_STATUSES:
            if self.timeout_secs is not None and self._clock() - started >= self.timeout_secs:
                raise PollTimeoutError(
                    f"The analysis task {task_id} was still {task.status} after "
                    f"{self.timeout_secs}s."
                )
            logger.info("Waiting for the analysis task %s (%s)...", task_id, task.status)
            self._sleep(self.query_interval_secs)
            sleeps += 1
            task = self.client.fetch_task(task_id)

        if task.status in FAILED_STATUSES:
            logger.error("The analysis task %s ended as %s", task_id, task.status)
            return PollResult(task_id, task, sleeps=sleeps, error=ErrorKind.TASK_FAILED)

        if task.status != SUCCESS:
            raise ProtocolError(f"Unknown status {task.status!r} for analysis task {task_id}")
        if not task.analysis_id:
            raise ProtocolError(f"The analysis task {task_id} succeeded without an analysis id")

        raw_status = self.client.fetch_quality_verdict(task.analysis_id)
        verdict = map_verdict(raw_status)
        if verdict == FAIL:
            logger.error("The quality gate didn't pass for analysis %s", task.analysis_id)
            error = ErrorKind.QUALITY_GATE_FAILED
        elif verdict == WARN:
            logger.warning("The quality gate has warnings that need to be reviewed.")
            error = None
        else:
            if not raw_status:
                logger.warning("No quality gate status was reported for analysis %s", task.analysis_id)
            logger.info("The quality gate passed.")
            error = None

        return PollResult(task_id, task, verdict, raw_status, sleeps, error)

    def wait_for_quality_result(self, task_id: str) -> str:
        """Wait for the task and return PASS or WARN; raise on task or gate failure."""
        return self.poll(task_id).raise_for_outcome()


def wait_for_quality_result(client, task_id: str, interval_secs: float, timeout_secs: float | None = None) -> str:
    return AsyncTaskPoller(client, interval_secs, timeout_secs).wait_for_quality_result(task_id)
