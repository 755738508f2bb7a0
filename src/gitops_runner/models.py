"""Data models for gitops-runner."""

from dataclasses import dataclass

from gitops_runner.errors import InvalidArgument

# Branch classes, in the order they are tested.
DEVELOPMENT = "development"
TEST = "test"
PRODUCTION = "production"
UNCLASSIFIED = "unclassified"
BRANCH_CLASSES = (DEVELOPMENT, TEST, PRODUCTION)

# Analysis task statuses reported by the quality server.
PENDING = "PENDING"
IN_PROGRESS = "IN_PROGRESS"
SUCCESS = "SUCCESS"
CANCELED = "CANCELED"
FAILED = "FAILED"
WAITING_STATUSES = frozenset({PENDING, IN_PROGRESS})
FAILED_STATUSES = frozenset({CANCELED, FAILED})
TASK_STATUSES = WAITING_STATUSES | FAILED_STATUSES | {SUCCESS}

# Quality verdicts.
PASS = "PASS"
WARN = "WARN"
FAIL = "FAIL"
UNKNOWN = "UNKNOWN"


def _require(value, name: str):
    if not value:
        raise InvalidArgument(f"{name} must not be empty")


def _require_mr_id(mr_id):
    if isinstance(mr_id, bool) or not isinstance(mr_id, int) or mr_id <= 0:
        raise InvalidArgument(f"mr_id must be a positive integer, got {mr_id!r}")


# ── Trigger events ────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class PushEvent:
    branch: str

    def __post_init__(self):
        _require(self.branch, "branch")


@dataclass(frozen=True)
class MergeEvent:
    mr_id: int
    source_repo: str
    source_branch: str
    target_branch: str

    def __post_init__(self):
        _require_mr_id(self.mr_id)
        _require(self.source_repo, "source_repo")
        _require(self.target_branch, "target_branch")


@dataclass(frozen=True)
class NoteEvent:
    mr_id: int
    source_repo: str
    source_branch: str
    target_branch: str
    comment: str = ""

    def __post_init__(self):
        _require_mr_id(self.mr_id)
        _require(self.source_repo, "source_repo")
        _require(self.target_branch, "target_branch")


@dataclass(frozen=True)
class ManualEvent:
    branch: str | None = None


TriggerEvent = PushEvent | MergeEvent | NoteEvent | ManualEvent


# ── Checkout plans ────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class CheckoutBranch:
    repo_url: str
    branch: str


@dataclass(frozen=True)
class CheckoutMergeRequest:
    mr_id: int
    source_repo: str
    source_repo_url: str
    target_repo_url: str
    target_branch: str


CheckoutPlan = CheckoutBranch | CheckoutMergeRequest


# ── Analysis task ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class TaskStatus:
    status: str
    analysis_id: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status not in WAITING_STATUSES
