# iac_reviewer/github/pr_files.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, List

import httpx

from iac_reviewer.errors import GitHubAPIError
from iac_reviewer.github.context import PRContext
from iac_reviewer.models.resources import ChangeType

log = logging.getLogger(__name__)

PER_PAGE = 100
BICEP_EXTENSION = ".bicep"


@dataclass
class ChangedFile:
    filename: str
    status: str
    additions: int = 0
    deletions: int = 0
    changes: int = 0


@dataclass
class FileWithStatus:
    filename: str
    change: ChangeType


def _to_changed_file(raw: Any) -> ChangedFile:
    return ChangedFile(
        filename=str(raw.get("filename", "")),
        status=str(raw.get("status", "")),
        additions=int(raw.get("additions") or 0),
        deletions=int(raw.get("deletions") or 0),
        changes=int(raw.get("changes") or 0),
    )


async def list_changed_files(client: httpx.AsyncClient, ctx: PRContext) -> List[ChangedFile]:
    """All files in the PR, following pagination until a short page."""
    log.debug(
        "Fetching changed files for PR #%d in %s/%s", ctx.pr_number, ctx.owner, ctx.repo
    )
    url = f"/repos/{ctx.owner}/{ctx.repo}/pulls/{ctx.pr_number}/files"

    files: List[ChangedFile] = []
    page = 1
    try:
        while True:
            resp = await client.get(url, params={"per_page": PER_PAGE, "page": page})
            resp.raise_for_status()
            batch = resp.json()
            if not isinstance(batch, list):
                raise ValueError("unexpected response body")
            files.extend(_to_changed_file(item) for item in batch if isinstance(item, dict))
            if len(batch) < PER_PAGE:
                break
            page += 1
    except (httpx.HTTPError, ValueError) as e:
        status = e.response.status_code if isinstance(e, httpx.HTTPStatusError) else None
        raise GitHubAPIError(
            f"Failed to list changed files for PR #{ctx.pr_number}: {e}", status_code=status
        ) from e

    log.debug("Found %d changed file(s) in PR", len(files))
    return files


def _normalize_extension(extension: str) -> str:
    ext = extension if extension.startswith(".") else f".{extension}"
    return ext.lower()


def filter_files_by_extension(files: Iterable[ChangedFile], extension: str) -> List[str]:
    ext = _normalize_extension(extension)
    return [f.filename for f in files if f.filename.lower().endswith(ext)]


def _change_for_status(status: str) -> ChangeType:
    if status == "added":
        return "added"
    if status == "removed":
        return "removed"
    # modified, renamed, copied, changed, unchanged
    return "modified"


def filter_files_by_extension_with_status(
    files: Iterable[ChangedFile], extension: str
) -> List[FileWithStatus]:
    ext = _normalize_extension(extension)
    return [
        FileWithStatus(filename=f.filename, change=_change_for_status(f.status))
        for f in files
        if f.filename.lower().endswith(ext)
    ]


def _log_detected(filenames: List[str]) -> None:
    if not filenames:
        log.info("No .bicep files detected in PR changes")
        return
    log.info("Detected %d .bicep file(s):", len(filenames))
    for name in filenames:
        log.info("  - %s", name)


async def list_bicep_files(client: httpx.AsyncClient, ctx: PRContext) -> List[str]:
    log.info("Detecting changed .bicep files in PR")
    files = await list_changed_files(client, ctx)
    bicep_files = filter_files_by_extension(files, BICEP_EXTENSION)
    _log_detected(bicep_files)
    return bicep_files


async def list_bicep_files_with_status(
    client: httpx.AsyncClient, ctx: PRContext
) -> List[FileWithStatus]:
    log.info("Detecting changed .bicep files in PR")
    files = await list_changed_files(client, ctx)
    bicep_files = filter_files_by_extension_with_status(files, BICEP_EXTENSION)
    _log_detected([f"{f.filename} ({f.change})" for f in bicep_files])
    return bicep_files


__all__ = [
    "ChangedFile",
    "FileWithStatus",
    "list_changed_files",
    "filter_files_by_extension",
    "filter_files_by_extension_with_status",
    "list_bicep_files",
    "list_bicep_files_with_status",
]
