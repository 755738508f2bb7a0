"""Building trigger events from the CI environment and GitLab webhook payloads."""

import logging

from gitops_runner.errors import InvalidArgument
from gitops_runner.models import (
    ManualEvent,
    MergeEvent,
    NoteEvent,
    PushEvent,
    TriggerEvent,
)

logger = logging.getLogger(__name__)

# Variables exported by the Jenkins GitLab plugin.
GITLAB_ENV_VARS = (
    "gitlabActionType",
    "gitlabBranch",
    "gitlabSourceBranch",
    "gitlabTargetBranch",
    "gitlabSourceRepoName",
    "gitlabMergeRequestIid",
    "gitlabMergeRequestTitle",
    "gitlabUserName",
    "gitlabTriggerPhrase",
)


def _parse_mr_id(value) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise InvalidArgument(f"Merge request id must be an integer, got {value!r}") from e


def _strip_heads(ref: str) -> str:
    return ref[len("refs/heads/"):] if ref.startswith("refs/heads/") else ref


def event_from_env(environ, manual_branch: str | None = None) -> TriggerEvent:
    """Build the trigger event for the current job from GitLab plugin variables.

    Jobs started without a GitLab action are manual invocations and use the
    configured manual branch.
    """
    action = (environ.get("gitlabActionType") or "").upper()

    if action == "PUSH":
        return PushEvent(branch=_strip_heads(environ.get("gitlabBranch", "")))

    if action in ("MERGE", "NOTE"):
        fields = dict(
            mr_id=_parse_mr_id(environ.get("gitlabMergeRequestIid")),
            source_repo=environ.get("gitlabSourceRepoName", ""),
            source_branch=environ.get("gitlabSourceBranch", ""),
            target_branch=environ.get("gitlabTargetBranch", ""),
        )
        if action == "NOTE":
            return NoteEvent(comment=environ.get("gitlabTriggerPhrase", ""), **fields)
        return MergeEvent(**fields)

    if action:
        raise InvalidArgument(f"Unknown GitLab action type: {action}")
    return ManualEvent(branch=manual_branch)


def event_from_webhook(payload: dict) -> TriggerEvent:
    """Build a trigger event from a GitLab push, merge_request or note webhook."""
    if not isinstance(payload, dict):
        raise InvalidArgument("Webhook payload must be a JSON object")

    kind = payload.get("object_kind")
    if kind == "push":
        return PushEvent(branch=_strip_heads(payload.get("ref") or ""))

    if kind == "merge_request":
        attrs = payload.get("object_attributes") or {}
        return MergeEvent(**_merge_request_fields(attrs))

    if kind == "note":
        merge_request = payload.get("merge_request")
        if not merge_request:
            raise InvalidArgument("Only notes on merge requests can trigger a pipeline")
        attrs = payload.get("object_attributes") or {}
        return NoteEvent(comment=attrs.get("note", ""), **_merge_request_fields(merge_request))

    raise InvalidArgument(f"Unsupported webhook kind: {kind!r}")


def _merge_request_fields(merge_request: dict) -> dict:
    source = merge_request.get("source") or {}
    source_repo = source.get("name")
    if not source_repo and merge_request.get("source_project_id") is not None:
        source_repo = str(merge_request["source_project_id"])
    return {
        "mr_id": _parse_mr_id(merge_request.get("iid")),
        "source_repo": source_repo or "",
        "source_branch": merge_request.get("source_branch", ""),
        "target_branch": merge_request.get("target_branch", ""),
    }


def describe_event(event: TriggerEvent) -> str:
    """Human-readable summary of a trigger event for the job log."""
    if isinstance(event, PushEvent):
        return f"GitLab PUSH to {event.branch}"
    if isinstance(event, (MergeEvent, NoteEvent)):
        action = "NOTE" if isinstance(event, NoteEvent) else "MERGE"
        text = (
            f"GitLab {action} on merge request !{event.mr_id}: "
            f"{event.source_repo}/{event.source_branch} -> {event.target_branch}"
        )
        if isinstance(event, NoteEvent) and event.comment:
            text += f" (comment: {event.comment!r})"
        return text
    return f"Manual invocation for branch {event.branch or '(none configured)'}"


def log_gitlab_env(environ):
    """Log the GitLab plugin variables, or note that no GitLab action occurred."""
    if not environ.get("gitlabActionType"):
        logger.info("No GitLab action has been defined. Skipped printing GitLab details.")
        return
    logger.info("The GitLab %s action has occurred.", environ["gitlabActionType"])
    for name in GITLAB_ENV_VARS:
        logger.info("  %s: %s", name, environ.get(name, ""))
