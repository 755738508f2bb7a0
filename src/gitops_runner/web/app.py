"""Webhook receiver and lock status API."""

import logging

import uvicorn
from starlette.applications import Starlette
from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from gitops_runner.config import get_config
from gitops_runner.core.branches import classify
from gitops_runner.core.checkout import CheckoutDispatcher
from gitops_runner.core.events import describe_event, event_from_webhook
from gitops_runner.core.locks import BranchLockStore
from gitops_runner.errors import GitopsError, InvalidArgument
from gitops_runner.models import CheckoutMergeRequest

logger = logging.getLogger(__name__)


# ── Handlers ──────────────────────────────────────────────────────────────────


async def gitlab_webhook(request: Request):
    try:
        dispatcher = CheckoutDispatcher.from_config(get_config())
    except GitopsError as e:
        return JSONResponse({"error": f"Checkout dispatch is not configured: {e}"}, status_code=503)

    try:
        payload = await request.json()
    except ValueError:
        return JSONResponse({"error": "Request body is not valid JSON"}, status_code=400)

    try:
        event = event_from_webhook(payload)
        result = dispatcher.resolve(event)
    except InvalidArgument as e:
        return JSONResponse({"error": str(e), "kind": e.kind.value}, status_code=400)

    logger.info("Webhook received: %s", describe_event(event))
    if not result.ok:
        return JSONResponse(
            {"event": describe_event(event), "error": result.error.value},
            status_code=422,
        )
    return JSONResponse({
        "event": describe_event(event),
        "branch_class": result.branch_class,
        "plan": _plan_dict(result.plan),
    })


async def api_classify(request: Request):
    ref = request.path_params["ref"]
    try:
        branch_class = classify(ref, get_config().branch_patterns)
    except InvalidArgument as e:
        return JSONResponse({"error": str(e), "kind": e.kind.value}, status_code=400)
    return JSONResponse({"ref": ref, "class": branch_class})


async def api_list_locks(request: Request):
    try:
        store = BranchLockStore.from_config(get_config())
        return JSONResponse(await run_in_threadpool(store.locked_branches))
    except GitopsError as e:
        return JSONResponse({"error": str(e), "kind": e.kind.value}, status_code=503)


async def api_get_lock(request: Request):
    branch = request.path_params["branch"]
    try:
        store = BranchLockStore.from_config(get_config())
        allowed = await run_in_threadpool(store.is_allowed, branch)
        return JSONResponse({"branch": branch, "allowed": allowed})
    except GitopsError as e:
        return JSONResponse({"error": str(e), "kind": e.kind.value}, status_code=503)


# ── Serialization ─────────────────────────────────────────────────────────────


def _plan_dict(plan) -> dict:
    if isinstance(plan, CheckoutMergeRequest):
        return {
            "type": "merge_request",
            "mr_id": plan.mr_id,
            "source_repo": plan.source_repo,
            "source_repo_url": plan.source_repo_url,
            "target_repo_url": plan.target_repo_url,
            "target_branch": plan.target_branch,
        }
    return {"type": "branch", "repo_url": plan.repo_url, "branch": plan.branch}


# ── App ───────────────────────────────────────────────────────────────────────


def create_app() -> Starlette:
    routes = [
        Route("/webhook/gitlab", gitlab_webhook, methods=["POST"]),
        Route("/api/classify/{ref:path}", api_classify),
        Route("/api/locks", api_list_locks),
        Route("/api/locks/{branch:path}", api_get_lock),
    ]
    return Starlette(routes=routes)


def run_server(host: str = "127.0.0.1", port: int = 8787):
    app = create_app()
    uvicorn.run(app, host=host, port=port)
