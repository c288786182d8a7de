# iac_reviewer/models/analysis.py
from __future__ import annotations

from typing import Literal, Optional

from pydantic import ConfigDict, Field

from iac_reviewer.models.base import AppBaseModel
from iac_reviewer.models.resources import ChangeType

AnalysisSource = Literal["backend", "local"]


class AnalysisResult(AppBaseModel):
    success: bool
    source: AnalysisSource
    # Pre-formatted markdown, ready for the PR comment body.
    markdown: str


class RepositoryInfo(AppBaseModel):
    owner: str
    name: str
    full_name: str = Field(alias="fullName")


class PRInfo(AppBaseModel):
    number: int
    title: str = ""
    author: str = ""
    base_branch: str = Field(default="main", alias="baseBranch")


class RunInfo(AppBaseModel):
    id: str = ""
    url: str = ""


class ContextInfo(AppBaseModel):
    sha: str = ""
    ref: str = ""


class BackendCallContext(AppBaseModel):
    repo: RepositoryInfo
    pr: PRInfo
    run: RunInfo
    context: ContextInfo


class ApiResource(AppBaseModel):
    """Aggregated resource row in the remote analysis request."""

    kind: str
    region: Optional[str] = None
    sku: Optional[str] = None
    count: int = 1
    change: ChangeType = "modified"


class BackendResponse(AppBaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    success: Optional[bool] = None
    markdown: Optional[str] = None
    message: Optional[str] = None
    error: Optional[str] = None


__all__ = [
    "AnalysisSource",
    "AnalysisResult",
    "RepositoryInfo",
    "PRInfo",
    "RunInfo",
    "ContextInfo",
    "BackendCallContext",
    "ApiResource",
    "BackendResponse",
]
