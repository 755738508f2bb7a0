"""Exception taxonomy shared by every gitops-runner component."""

from enum import Enum


class ErrorKind(str, Enum):
    INVALID_ARGUMENT = "invalid_argument"
    UNSUPPORTED_WORKFLOW = "unsupported_workflow"
    IO_FAILURE = "io_failure"
    LOCK_TIMEOUT = "lock_timeout"
    TASK_FAILED = "task_failed"
    QUALITY_GATE_FAILED = "quality_gate_failed"
    PROTOCOL_ERROR = "protocol_error"
    POLL_TIMEOUT = "poll_timeout"


class GitopsError(Exception):
    """Base class for all errors raised by gitops-runner."""

    kind: ErrorKind


class InvalidArgument(GitopsError, ValueError):
    """Raised when a caller passes a missing or malformed argument."""

    kind = ErrorKind.INVALID_ARGUMENT


class UnsupportedWorkflowError(GitopsError):
    """Raised when a trigger event matches none of the GitOps checkout rules."""

    kind = ErrorKind.UNSUPPORTED_WORKFLOW

    def __init__(self, message: str, event=None):
        super().__init__(message)
        self.event = event


class IOFailure(GitopsError):
    """Raised when an underlying file, process or network operation fails."""

    kind = ErrorKind.IO_FAILURE


class LockTimeoutError(GitopsError):
    """Raised when a mutual-exclusion region could not be acquired in time."""

    kind = ErrorKind.LOCK_TIMEOUT


class TaskFailedError(GitopsError):
    """Raised when the analysis task ends as CANCELED or FAILED."""

    kind = ErrorKind.TASK_FAILED


class QualityGateFailedError(GitopsError):
    """Raised when the quality gate reports ERROR."""

    kind = ErrorKind.QUALITY_GATE_FAILED


class ProtocolError(GitopsError):
    """Raised when the analysis server answers with data we cannot interpret."""

    kind = ErrorKind.PROTOCOL_ERROR


class PollTimeoutError(GitopsError):
    """Raised when polling exceeds its configured wall-clock bound."""

    kind = ErrorKind.POLL_TIMEOUT

