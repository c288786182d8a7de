# iac_reviewer/github/context.py
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Optional

import httpx

from iac_reviewer.config import APP_NAME
from iac_reviewer.errors import GitHubContextError
from iac_reviewer.models.analysis import (
    BackendCallContext,
    ContextInfo,
    PRInfo,
    RepositoryInfo,
    RunInfo,
)

log = logging.getLogger(__name__)

PULL_REQUEST_EVENT = "pull_request"
GITHUB_API_VERSION = "2022-11-28"


@dataclass
class PRContext:
    owner: str
    repo: str
    pr_number: int
    event_name: str
    sha: str
    ref: str
    full_name: str
    pr_title: str = ""
    pr_author: str = ""
    base_branch: str = "main"


def _get(obj: Any, *path: str) -> Any:
    for part in path:
        if not isinstance(obj, Mapping):
            return None
        obj = obj.get(part)
    return obj


def parse_pr_context(event_path: Optional[str], event_name: Optional[str]) -> PRContext:
    """
    Read the workflow event payload and pull out the PR coordinates.

    Only ``pull_request`` events are accepted; anything else, or a payload
    without owner/repo/number, raises GitHubContextError.
    """
    if not event_path:
        raise GitHubContextError("GITHUB_EVENT_PATH environment variable is not set")
    if not event_name:
        raise GitHubContextError("GITHUB_EVENT_NAME environment variable is not set")
    if event_name != PULL_REQUEST_EVENT:
        raise GitHubContextError(
            f"This action only works on pull_request events. Current event: {event_name}"
        )

    try:
        payload = json.loads(Path(event_path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise GitHubContextError(
            f"Failed to read or parse event payload from {event_path}: {e}"
        ) from e

    pull_request = _get(payload, "pull_request")
    if not isinstance(pull_request, Mapping):
        raise GitHubContextError("Event payload does not contain pull_request data")
    repository = _get(payload, "repository")
    if not isinstance(repository, Mapping):
        raise GitHubContextError("Event payload does not contain repository data")

    owner = _get(repository, "owner", "login")
    repo = _get(repository, "name")
    pr_number = _get(pull_request, "number")
    if not owner or not repo or not isinstance(pr_number, int) or pr_number <= 0:
        raise GitHubContextError(
            "Event payload is missing required fields (owner, repo, or PR number)"
        )

    ctx = PRContext(
        owner=str(owner),
        repo=str(repo),
        pr_number=pr_number,
        event_name=event_name,
        sha=str(_get(pull_request, "head", "sha") or ""),
        ref=str(_get(pull_request, "head", "ref") or ""),
        full_name=f"{owner}/{repo}",
        pr_title=str(_get(pull_request, "title") or ""),
        pr_author=str(_get(pull_request, "user", "login") or ""),
        base_branch=str(_get(pull_request, "base", "ref") or "main"),
    )

    log.info("Detected PR #%d in %s", ctx.pr_number, ctx.full_name)
    log.debug("PR head SHA: %s", ctx.sha)
    log.debug("PR head ref: %s", ctx.ref)
    return ctx


def create_client(
    token: Optional[str],
    api_url: str = "https://api.github.com",
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """Authenticated REST client rooted at ``api_url``."""
    if not token:
        raise GitHubContextError(
            "GITHUB_TOKEN environment variable is not set. "
            "Ensure the workflow has appropriate permissions."
        )
    log.debug("Creating authenticated GitHub client")
    return httpx.AsyncClient(
        base_url=api_url.rstrip("/"),
        headers={
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": GITHUB_API_VERSION,
            "User-Agent": f"{APP_NAME}-action",
        },
        timeout=30,
        transport=transport,
    )


def build_call_context(
    ctx: PRContext,
    run_id: str = "",
    server_url: str = "https://github.com",
) -> BackendCallContext:
    """Repository/PR/run metadata sent alongside the sanitized resources."""
    return BackendCallContext(
        repo=RepositoryInfo(owner=ctx.owner, name=ctx.repo, full_name=ctx.full_name),
        pr=PRInfo(
            number=ctx.pr_number,
            title=ctx.pr_title,
            author=ctx.pr_author,
            base_branch=ctx.base_branch,
        ),
        run=RunInfo(
            id=run_id,
            url=f"{server_url.rstrip('/')}/{ctx.full_name}/actions/runs/{run_id}",
        ),
        context=ContextInfo(sha=ctx.sha, ref=ctx.ref),
    )


__all__ = [
    "PRContext",
    "parse_pr_context",
    "create_client",
    "build_call_context",
]
