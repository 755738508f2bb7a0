"""GitOps checkout dispatch: choose what to check out for a trigger event."""

import logging
from dataclasses import dataclass

from gitops_runner.core.branches import BranchPatterns, classify
from gitops_runner.core.events import describe_event
from gitops_runner.errors import ErrorKind, InvalidArgument, UnsupportedWorkflowError
from gitops_runner.models import (
    UNCLASSIFIED,
    CheckoutBranch,
    CheckoutMergeRequest,
    CheckoutPlan,
    ManualEvent,
    MergeEvent,
    NoteEvent,
    PushEvent,
    TriggerEvent,
)

logger = logging.getLogger(__name__)

UNSUPPORTED_WORKFLOW_MESSAGE = (
    "The branch which triggered the current job instance isn't valid or does not meet "
    "the defined GitOps workflow standards. If this job instance was triggered manually, "
    "the manual job invocation branch doesn't match the branch naming standards."
)


@dataclass(frozen=True)
class DispatchResult:
    event: TriggerEvent
    plan: CheckoutPlan | None = None
    branch_class: str = UNCLASSIFIED
    error: ErrorKind | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def raise_for_outcome(self) -> CheckoutPlan:
        if self.error is ErrorKind.UNSUPPORTED_WORKFLOW:
            raise UnsupportedWorkflowError(
                f"{UNSUPPORTED_WORKFLOW_MESSAGE} Event: {describe_event(self.event)}",
                event=self.event,
            )
        return self.plan


class CheckoutDispatcher:
    """Maps trigger events onto checkout plans.

    Holds no state between calls; the same event and patterns always yield
    the same plan.
    """

    def __init__(
        self,
        patterns: BranchPatterns,
        upstream_repo_url: str,
        forked_repo_url: str | None = None,
    ):
        if patterns is None:
            raise InvalidArgument("branch patterns must be provided")
        if not upstream_repo_url:
            raise InvalidArgument("upstream_repo_url must not be empty")
        self.patterns = patterns
        self.upstream_repo_url = upstream_repo_url
        self.forked_repo_url = forked_repo_url or upstream_repo_url

    @classmethod
    def from_config(cls, config) -> "CheckoutDispatcher":
        return cls(config.branch_patterns, config.upstream_repo_url, config.forked_repo_url)

    def resolve(self, event: TriggerEvent) -> DispatchResult:
        """Select a checkout plan, reporting unsupported workflows as a result value."""
        if isinstance(event, (MergeEvent, NoteEvent)):
            branch_class = classify(event.target_branch, self.patterns)
            if branch_class != UNCLASSIFIED:
                plan = CheckoutMergeRequest(
                    mr_id=event.mr_id,
                    source_repo=event.source_repo,
                    source_repo_url=self.forked_repo_url,
                    target_repo_url=self.upstream_repo_url,
                    target_branch=event.target_branch,
                )
                return DispatchResult(event, plan, branch_class)

        elif isinstance(event, (PushEvent, ManualEvent)):
            if event.branch:
                branch_class = classify(event.branch, self.patterns)
                if branch_class != UNCLASSIFIED:
                    plan = CheckoutBranch(repo_url=self.upstream_repo_url, branch=event.branch)
                    return DispatchResult(event, plan, branch_class)

        else:
            raise InvalidArgument(f"Unknown trigger event: {event!r}")

        return DispatchResult(event, error=ErrorKind.UNSUPPORTED_WORKFLOW)

    def dispatch(self, event: TriggerEvent) -> CheckoutPlan:
        """Select a checkout plan or raise UnsupportedWorkflowError."""
        return self.resolve(event).raise_for_outcome()


def dispatch(
    event: TriggerEvent,
    patterns: BranchPatterns,
    upstream_repo_url: str,
    forked_repo_url: str | None = None,
) -> CheckoutPlan:
    return CheckoutDispatcher(patterns, upstream_repo_url, forked_repo_url).dispatch(event)


def auto_checkout(event: TriggerEvent, dispatcher: CheckoutDispatcher, vcs, file_store, workspace) -> CheckoutPlan:
    """Clear the job workspace, then dispatch and execute the checkout for an event."""
    logger.info("%s", describe_event(event))
    # The workspace is cleared even when the event turns out to be unsupported.
    file_store.clear_directory(workspace)
    plan = dispatcher.dispatch(event)
    if isinstance(plan, CheckoutMergeRequest):
        vcs.checkout_merge_request(
            plan.mr_id,
            plan.source_repo,
            plan.source_repo_url,
            plan.target_repo_url,
            plan.target_branch,
        )
    else:
        vcs.checkout_branch(plan.repo_url, plan.branch)
    return plan
