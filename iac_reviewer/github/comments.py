# iac_reviewer/github/comments.py
from __future__ import annotations

import logging
from typing import Optional

import httpx

from iac_reviewer.config import CommentMode
from iac_reviewer.errors import GitHubAPIError
from iac_reviewer.format.markdown import COMMENT_MARKER
from iac_reviewer.github.context import PRContext
from iac_reviewer.github.pr_files import PER_PAGE

log = logging.getLogger(__name__)


def _comments_url(ctx: PRContext) -> str:
    return f"/repos/{ctx.owner}/{ctx.repo}/issues/{ctx.pr_number}/comments"


async def find_existing_comment(client: httpx.AsyncClient, ctx: PRContext) -> Optional[int]:
    """ID of the first PR comment carrying the marker, or None.

    Pages through the comments oldest first and stops at the first match.
    Listing failures are logged and reported as "no comment".
    """
    page = 1
    while True:
        try:
            resp = await client.get(
                _comments_url(ctx), params={"per_page": PER_PAGE, "page": page}
            )
            resp.raise_for_status()
            comments = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            log.warning("Failed to list existing comments: %s", e)
            return None

        if not isinstance(comments, list):
            return None
        for comment in comments:
            if not isinstance(comment, dict):
                continue
            body = comment.get("body") or ""
            comment_id = comment.get("id")
            if COMMENT_MARKER in body and isinstance(comment_id, int):
                return comment_id
        if len(comments) < PER_PAGE:
            return None
        page += 1


async def create_or_update_comment(
    client: httpx.AsyncClient,
    ctx: PRContext,
    body: str,
    mode: CommentMode = "update",
) -> None:
    """
    Post ``body`` prefixed with the marker. In ``update`` mode the first
    marked comment is edited in place; otherwise, or when none exists, a new
    comment is created.
    """
    marked_body = f"{COMMENT_MARKER}\n{body}"

    try:
        if mode == "update":
            existing_id = await find_existing_comment(client, ctx)
            if existing_id:
                log.info("Updating existing PR comment (ID: %d)", existing_id)
                resp = await client.patch(
                    f"/repos/{ctx.owner}/{ctx.repo}/issues/comments/{existing_id}",
                    json={"body": marked_body},
                )
                resp.raise_for_status()
                log.info("PR comment updated successfully")
                return
            log.info("No existing comment found, creating new comment")

        log.info("Creating new PR comment")
        resp = await client.post(_comments_url(ctx), json={"body": marked_body})
        resp.raise_for_status()
        log.info("PR comment created successfully")
    except httpx.HTTPError as e:
        status = e.response.status_code if isinstance(e, httpx.HTTPStatusError) else None
        raise GitHubAPIError(
            f"Failed to create/update PR comment: {e}", status_code=status
        ) from e


__all__ = ["find_existing_comment", "create_or_update_comment"]
